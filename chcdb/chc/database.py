"""
CHC database: deduplicated clause storage plus use/def indices.

Uninterpreted relations have to be declared before they count as relations:
a clause R(x) => S(x) only links R and S once both are registered.

    db = CHCDatabase()
    inv = db.declare_relation(z3.Function('Inv', z3.IntSort(), z3.BoolSort()))
    db.add_fact([x], x == 0, inv(x))
    db.add_rule([x, y], z3.And(inv(x), y == x + 1), inv(y))
    db.add_query([x], z3.And(inv(x), x < 0))
    db.build_indices()

    db.use(inv)   # clauses with Inv in the body
    db.def_(inv)  # clauses with Inv in the head

Indices are cached state. Every insert drops them, and nothing rebuilds
them implicitly: call build_indices() again after mutating the corpus.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Optional, Sequence, Set, Tuple
import logging
import z3

from ..z3model.terms import (
    Symbol,
    as_relation,
    is_bool_decl,
    is_trivially_true,
    mk_clause,
)
from .clause import HornClause
from .errors import InvariantViolation

logger = logging.getLogger(__name__)


# Shared result for index misses; never mutated.
EMPTY_CLAUSE_SET: FrozenSet[int] = frozenset()


@dataclass
class CHCDatabaseConfig:
    """
    Configuration for a CHCDatabase.

    Attributes:
        hash_dedup: Keep an auxiliary index keyed by structural hash so
            duplicate detection on insert does not scan the whole corpus
        verbose: Log insertions at INFO instead of DEBUG
    """
    hash_dedup: bool = False
    verbose: bool = False


class CHCDatabase:
    """
    Ordered, duplicate-free corpus of Horn clauses.

    Clause ids are positions in insertion order; they are never reused
    since clauses cannot be removed.
    """

    def __init__(self, config: Optional[CHCDatabaseConfig] = None):
        self.config = config or CHCDatabaseConfig()

        self._clauses: List[HornClause] = []
        self._relations: Set[z3.FuncDeclRef] = set()

        # relation -> ids of clauses using it in the body / defining it
        self._use_idx: Dict[z3.FuncDeclRef, FrozenSet[int]] = {}
        self._def_idx: Dict[z3.FuncDeclRef, FrozenSet[int]] = {}
        self._indices_built = False

        # structural hash -> clause ids (only with hash_dedup)
        self._by_hash: Dict[int, List[int]] = {}

        self.stats = {
            'clauses_added': 0,
            'duplicates_skipped': 0,
            'trivial_skipped': 0,
            'index_builds': 0,
        }

    # -------------------------------------------------------------------
    # Relations
    # -------------------------------------------------------------------

    def declare_relation(self, sym: Symbol) -> z3.FuncDeclRef:
        """Register an uninterpreted relation. Declaring twice is a no-op."""
        rel = as_relation(sym)
        if rel is None or rel.kind() != z3.Z3_OP_UNINTERPRETED:
            raise InvariantViolation(f"not an uninterpreted symbol: {sym}")
        if not is_bool_decl(rel):
            raise InvariantViolation(f"relation {rel.name()} must be Bool-valued")
        if rel.arity() == 0:
            # A Bool constant is a symbol reference, never an application
            raise InvariantViolation(f"relation {rel.name()} must take arguments")
        if rel not in self._relations:
            self._relations.add(rel)
            logger.debug(f"[CHC] Declared relation {rel.name()}/{rel.arity()}")
        return rel

    def is_relation(self, sym: Symbol) -> bool:
        rel = as_relation(sym)
        return rel is not None and rel in self._relations

    def get_relations(self) -> FrozenSet[z3.FuncDeclRef]:
        return frozenset(self._relations)

    # -------------------------------------------------------------------
    # Clauses
    # -------------------------------------------------------------------

    def insert(self, term: z3.ExprRef) -> Optional[int]:
        """
        Add a clause unless it is trivially true or already present.

        Returns the id of the stored clause (new or existing), or None for
        a trivially true term. A new clause invalidates the indices.
        """
        if is_trivially_true(term):
            self.stats['trivial_skipped'] += 1
            logger.debug("[CHC] Skipping trivially true clause")
            return None

        existing = self._find(term)
        if existing is not None:
            self.stats['duplicates_skipped'] += 1
            logger.debug(f"[CHC] Duplicate of clause {existing}, skipping")
            return existing

        clause_id = len(self._clauses)
        self._clauses.append(HornClause(term))
        if self.config.hash_dedup:
            self._by_hash.setdefault(term.hash(), []).append(clause_id)
        self.stats['clauses_added'] += 1

        log = logger.info if self.config.verbose else logger.debug
        log(f"[CHC] Added clause {clause_id}: {term}")

        self.reset_indices()
        return clause_id

    def _find(self, term: z3.ExprRef) -> Optional[int]:
        if self.config.hash_dedup:
            candidates = self._by_hash.get(term.hash(), [])
        else:
            candidates = range(len(self._clauses))
        for clause_id in candidates:
            if self._clauses[clause_id].formula.eq(term):
                return clause_id
        return None

    def add_fact(self, variables: Sequence[z3.ExprRef],
                 constraint: z3.ExprRef,
                 head: z3.ExprRef) -> Optional[int]:
        """Add initialization clause: constraint(x) -> P(x)."""
        return self.insert(mk_clause(variables, constraint, head))

    def add_rule(self, variables: Sequence[z3.ExprRef],
                 body: z3.ExprRef,
                 head: z3.ExprRef) -> Optional[int]:
        """Add rule: P1(x1) /\\ ... /\\ phi(x) -> P(x)."""
        return self.insert(mk_clause(variables, body, head))

    def add_query(self, variables: Sequence[z3.ExprRef],
                  body: z3.ExprRef,
                  violation: Optional[z3.ExprRef] = None) -> Optional[int]:
        """Add safety clause: body -> violation (False by default)."""
        if violation is None:
            violation = z3.BoolVal(False)
        return self.insert(mk_clause(variables, body, violation))

    def get_clause(self, clause_id: int) -> HornClause:
        if not 0 <= clause_id < len(self._clauses):
            raise InvariantViolation(
                f"clause id {clause_id} out of range [0, {len(self._clauses)})")
        return self._clauses[clause_id]

    def enumerate_clauses(self) -> Iterator[Tuple[int, HornClause]]:
        return enumerate(self._clauses)

    def facts(self) -> Iterator[Tuple[int, HornClause]]:
        return ((i, c) for i, c in enumerate(self._clauses) if c.is_fact())

    def rules(self) -> Iterator[Tuple[int, HornClause]]:
        return ((i, c) for i, c in enumerate(self._clauses) if c.is_rule())

    def queries(self) -> Iterator[Tuple[int, HornClause]]:
        return ((i, c) for i, c in enumerate(self._clauses) if c.is_query())

    def __iter__(self) -> Iterator[HornClause]:
        return iter(self._clauses)

    clauses = __iter__

    def __len__(self) -> int:
        return len(self._clauses)

    # -------------------------------------------------------------------
    # Indices
    # -------------------------------------------------------------------

    @property
    def indices_built(self) -> bool:
        return self._indices_built

    def build_indices(self) -> None:
        """
        Index every clause by the relations it uses and defines.

        use: each declared relation applied anywhere in the body.
        def: each declared relation applied at the head position (the head
             itself or an operand of a top-level conjunction).
        """
        use_idx: Dict[z3.FuncDeclRef, Set[int]] = {}
        def_idx: Dict[z3.FuncDeclRef, Set[int]] = {}

        for clause_id, clause in enumerate(self._clauses):
            for app in clause.used_func_app(self):
                use_idx.setdefault(app.decl(), set()).add(clause_id)
            for app in clause.head_func_app(self):
                def_idx.setdefault(app.decl(), set()).add(clause_id)

        self._use_idx = {rel: frozenset(ids) for rel, ids in use_idx.items()}
        self._def_idx = {rel: frozenset(ids) for rel, ids in def_idx.items()}
        self._indices_built = True
        self.stats['index_builds'] += 1

        logger.info(f"[CHC] Indexed {len(self._clauses)} clauses: "
                    f"{len(self._use_idx)} used, {len(self._def_idx)} defined relations")

    def reset_indices(self) -> None:
        self._use_idx = {}
        self._def_idx = {}
        self._indices_built = False

    def use(self, relation: Symbol) -> FrozenSet[int]:
        """Ids of clauses whose body applies relation."""
        rel = as_relation(relation)
        if rel is None:
            return EMPTY_CLAUSE_SET
        return self._use_idx.get(rel, EMPTY_CLAUSE_SET)

    def def_(self, relation: Symbol) -> FrozenSet[int]:
        """Ids of clauses whose head applies relation."""
        rel = as_relation(relation)
        if rel is None:
            return EMPTY_CLAUSE_SET
        return self._def_idx.get(rel, EMPTY_CLAUSE_SET)

    defs = def_
