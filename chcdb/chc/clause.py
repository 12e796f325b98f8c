"""
Horn clauses.

A HornClause wraps one universally quantified formula

    ForAll(vs, Implies(body, head))

and derives everything else from it:

1. body / head views (a non-implication matrix is all body, no head)
2. classification: facts (no application in the body) and queries (no
   application in the head)
3. the relations and relation applications the body uses, filtered by the
   relations declared in a CHCDatabase

Classification only looks at the term. Relation extraction consults the
database's current declarations, so callers that declare relations late
must re-extract.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional, Tuple
import z3

from ..z3model.terms import (
    contains_func_app,
    find_symbols,
    implication_parts,
    is_implication,
    is_uninterpreted_app,
    iter_pre,
    quantifier_matrix,
    term_key,
)

if TYPE_CHECKING:
    from .database import CHCDatabase


class HornClause:
    """A single constrained Horn clause; immutable once created."""

    def __init__(self, formula: z3.ExprRef):
        self.formula = formula
        self.matrix = quantifier_matrix(formula)

    def body(self) -> z3.ExprRef:
        if is_implication(self.matrix):
            return implication_parts(self.matrix)[0]
        return self.matrix

    def head(self) -> Optional[z3.ExprRef]:
        if is_implication(self.matrix):
            return implication_parts(self.matrix)[1]
        return None

    def bound_vars(self) -> List[Tuple[str, z3.SortRef]]:
        """Names and sorts of the quantified variables, outermost first."""
        if not (z3.is_quantifier(self.formula) and self.formula.is_forall()):
            return []
        q = self.formula
        return [(q.var_name(i), q.var_sort(i)) for i in range(q.num_vars())]

    def is_fact(self) -> bool:
        """No function application anywhere in the body."""
        return not contains_func_app(self.body())

    def is_query(self) -> bool:
        """An implication whose head contains no function application."""
        head = self.head()
        if head is None:
            return False
        return not contains_func_app(head)

    def is_rule(self) -> bool:
        return not self.is_fact() and not self.is_query()

    def used_relations(self, db: CHCDatabase) -> List[z3.FuncDeclRef]:
        """Declared relations referenced in the body, in canonical order."""
        return [s for s in find_symbols(self.body()) if db.is_relation(s)]

    def used_func_app(self, db: CHCDatabase) -> List[z3.ExprRef]:
        """
        Distinct applications of declared relations in the body.

        Returned in pre-order of first occurrence. Not cached: callers that
        need the result repeatedly should keep it.
        """
        return [
            e for e in iter_pre(self.body())
            if is_uninterpreted_app(e) and db.is_relation(e.decl())
        ]

    def head_func_app(self, db: CHCDatabase) -> List[z3.ExprRef]:
        """
        Applications of declared relations at the head position.

        A head that is itself such an application yields just that; a
        top-level conjunction yields its direct operands that are. Anything
        nested deeper is not decomposed.
        """
        head = self.head()
        if head is None:
            return []
        candidates = head.children() if z3.is_and(head) else [head]
        apps = {}
        for e in candidates:
            if is_uninterpreted_app(e) and db.is_relation(e.decl()):
                apps.setdefault(e.get_id(), e)
        return list(apps.values())

    def __eq__(self, other):
        return isinstance(other, HornClause) and self.formula.eq(other.formula)

    def __lt__(self, other: HornClause) -> bool:
        return term_key(self.formula) < term_key(other.formula)

    def __hash__(self):
        return self.formula.hash()

    def __repr__(self):
        return f"HornClause({self.formula})"

    def __str__(self):
        return str(self.formula)
