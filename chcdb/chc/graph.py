"""
CHC dependency graph.

G_chc = (V, E) where:
- V is the set of declared relations of a CHCDatabase
- (P, Q) in E iff some rule clause applies P in its body and Q at its head

Facts contribute no edges (their bodies apply no relation) and neither do
queries (their heads apply none). The entry relation is the initial-state
predicate: the single relation defined by a fact that no rule derives.

The graph is a snapshot. Inserting clauses into the database afterwards
does not change it; call build_graph() again.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, List, Optional, Set
import logging
import z3

from ..z3model.terms import Symbol, as_relation, term_key
from .database import CHCDatabase
from .errors import InvariantViolation

logger = logging.getLogger(__name__)


# Shared result for adjacency misses; never mutated.
EMPTY_RELATION_SET: FrozenSet[z3.FuncDeclRef] = frozenset()


class CHCGraph:
    """Relation dependency graph with an optional entry relation."""

    def __init__(self):
        self._vertices: FrozenSet[z3.FuncDeclRef] = frozenset()

        # E: body relation -> head relations
        self._outgoing: Dict[z3.FuncDeclRef, FrozenSet[z3.FuncDeclRef]] = {}

        # Reverse edges for backward traversal
        self._incoming: Dict[z3.FuncDeclRef, FrozenSet[z3.FuncDeclRef]] = {}

        self._entry: Optional[z3.FuncDeclRef] = None
        self._entry_candidates: List[z3.FuncDeclRef] = []

        # SCCs in reverse topological order, and relations on a cycle
        self._sccs: List[FrozenSet[z3.FuncDeclRef]] = []
        self._recursive: FrozenSet[z3.FuncDeclRef] = frozenset()

        self.stats = {
            'builds': 0,
            'rules_scanned': 0,
            'edges': 0,
        }

    def build_graph(self, db: CHCDatabase) -> None:
        """Rebuild vertices, edges, SCCs and the entry relation from db."""
        outgoing: Dict[z3.FuncDeclRef, Set[z3.FuncDeclRef]] = {}
        incoming: Dict[z3.FuncDeclRef, Set[z3.FuncDeclRef]] = {}
        fact_heads: Dict[int, z3.FuncDeclRef] = {}
        rules = 0

        for clause in db.clauses():
            if clause.is_fact():
                for app in clause.head_func_app(db):
                    rel = app.decl()
                    fact_heads.setdefault(rel.get_id(), rel)
                continue
            if clause.is_query():
                continue

            rules += 1
            heads = [app.decl() for app in clause.head_func_app(db)]
            for src in clause.used_relations(db):
                for dst in heads:
                    outgoing.setdefault(src, set()).add(dst)
                    incoming.setdefault(dst, set()).add(src)

        self._vertices = db.get_relations()
        self._outgoing = {rel: frozenset(dsts) for rel, dsts in outgoing.items()}
        self._incoming = {rel: frozenset(srcs) for rel, srcs in incoming.items()}

        self._entry_candidates = sorted(
            (rel for rel in fact_heads.values() if rel not in self._incoming),
            key=term_key,
        )
        if len(self._entry_candidates) == 1:
            self._entry = self._entry_candidates[0]
        else:
            self._entry = None

        self._sccs = self._tarjan()
        self._recursive = frozenset(
            rel for scc in self._sccs for rel in scc
            if len(scc) > 1 or rel in self._outgoing.get(rel, EMPTY_RELATION_SET)
        )

        n_edges = sum(len(dsts) for dsts in self._outgoing.values())
        self.stats['builds'] += 1
        self.stats['rules_scanned'] = rules
        self.stats['edges'] = n_edges

        logger.info(f"[GRAPH] {len(self._vertices)} relations, {n_edges} edges "
                    f"from {rules} rules")
        if self._entry is not None:
            logger.info(f"[GRAPH] Entry relation: {self._entry.name()}")
        elif self._entry_candidates:
            names = ', '.join(rel.name() for rel in self._entry_candidates)
            logger.info(f"[GRAPH] Ambiguous entry, candidates: {names}")
        else:
            logger.info("[GRAPH] No entry relation")

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------

    def has_entry(self) -> bool:
        return self._entry is not None

    def entry(self) -> z3.FuncDeclRef:
        if self._entry is None:
            raise InvariantViolation("Entry must exist.")
        return self._entry

    def entry_candidates(self) -> List[z3.FuncDeclRef]:
        """Fact-defined relations without incoming edges, canonical order."""
        return list(self._entry_candidates)

    def vertices(self) -> FrozenSet[z3.FuncDeclRef]:
        return self._vertices

    def outgoing(self, relation: Symbol) -> FrozenSet[z3.FuncDeclRef]:
        rel = as_relation(relation)
        if rel is None:
            return EMPTY_RELATION_SET
        return self._outgoing.get(rel, EMPTY_RELATION_SET)

    def incoming(self, relation: Symbol) -> FrozenSet[z3.FuncDeclRef]:
        rel = as_relation(relation)
        if rel is None:
            return EMPTY_RELATION_SET
        return self._incoming.get(rel, EMPTY_RELATION_SET)

    def reachable_from(self, relations: Iterable[Symbol]) -> Set[z3.FuncDeclRef]:
        """All relations reachable from the given ones, including themselves."""
        reachable = set()
        worklist = [rel for rel in map(as_relation, relations) if rel is not None]

        while worklist:
            rel = worklist.pop()
            if rel in reachable:
                continue
            reachable.add(rel)
            worklist.extend(self._outgoing.get(rel, EMPTY_RELATION_SET))

        return reachable

    def compute_sccs(self) -> List[Set[z3.FuncDeclRef]]:
        """
        Strongly connected components, computed when the graph was built.

        Returns SCCs in reverse topological order (sinks first).
        """
        return [set(scc) for scc in self._sccs]

    def is_recursive(self, relation: Symbol) -> bool:
        """True if relation lies on a cycle (including a self-loop)."""
        rel = as_relation(relation)
        return rel is not None and rel in self._recursive

    def _tarjan(self) -> List[FrozenSet[z3.FuncDeclRef]]:
        """
        Tarjan's algorithm with an explicit work stack.

        Relation chains generated per basic block run far deeper than the
        interpreter's recursion limit.
        """
        counter = 0
        stack = []
        lowlink = {}
        index = {}
        on_stack = set()
        sccs = []

        def successors(v):
            return iter(sorted(self._outgoing.get(v, EMPTY_RELATION_SET), key=term_key))

        nodes = set(self._vertices) | set(self._outgoing) | set(self._incoming)
        for root in sorted(nodes, key=term_key):
            if root in index:
                continue
            index[root] = lowlink[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            work = [(root, successors(root))]

            while work:
                v, children = work[-1]
                for w in children:
                    if w not in index:
                        index[w] = lowlink[w] = counter
                        counter += 1
                        stack.append(w)
                        on_stack.add(w)
                        work.append((w, successors(w)))
                        break
                    if w in on_stack:
                        lowlink[v] = min(lowlink[v], index[w])
                else:
                    work.pop()
                    if work:
                        parent = work[-1][0]
                        lowlink[parent] = min(lowlink[parent], lowlink[v])
                    if lowlink[v] == index[v]:
                        scc = set()
                        while True:
                            w = stack.pop()
                            on_stack.discard(w)
                            scc.add(w)
                            if w.eq(v):
                                break
                        sccs.append(frozenset(scc))

        return sccs
