"""
Term capability over Z3 expressions.

The clause database never inspects Z3 ASTs directly; everything it needs
from the term representation goes through this module:

- quantified implications:   ForAll(vs, Implies(A, B))
- function applications:     R(x, y) for an uninterpreted R of arity > 0
- symbol references:         uninterpreted constants and function decls
- boolean literals:          BoolVal(True) / BoolVal(False)

Structural equality is ExprRef.eq (Z3 hash-conses terms, so structurally
equal terms in one context are the same AST), hashing is AstRef.hash, and
term_key() gives a total order that is stable within a process.
"""

from typing import Iterator, List, Optional, Sequence, Tuple, Union
import z3


Symbol = Union[z3.FuncDeclRef, z3.ExprRef]


def term_key(t: z3.AstRef) -> Tuple[str, int]:
    """Canonical ordering key: printed form first, AST id as tie-break."""
    return (t.sexpr(), t.get_id())


def quantifier_matrix(t: z3.ExprRef) -> z3.ExprRef:
    """Strip an outer universal quantifier, if any."""
    if z3.is_quantifier(t) and t.is_forall():
        return t.body()
    return t


def is_implication(t: z3.ExprRef) -> bool:
    return z3.is_implies(t)


def implication_parts(t: z3.ExprRef) -> Tuple[z3.ExprRef, z3.ExprRef]:
    """Return (antecedent, consequent) of an implication."""
    if not z3.is_implies(t):
        raise ValueError(f"not an implication: {t}")
    return t.arg(0), t.arg(1)


def is_uninterpreted_app(t: z3.ExprRef) -> bool:
    """Application of a user-declared symbol (constant or function)."""
    return z3.is_app(t) and t.decl().kind() == z3.Z3_OP_UNINTERPRETED


def is_func_app(t: z3.ExprRef) -> bool:
    """
    Function application node: an uninterpreted symbol applied to at least
    one argument. Uninterpreted constants are symbol references, not
    applications.
    """
    return is_uninterpreted_app(t) and t.num_args() > 0


def is_symbol(t: z3.ExprRef) -> bool:
    return is_uninterpreted_app(t) and t.num_args() == 0


def is_trivially_true(t: z3.ExprRef) -> bool:
    """True literal, or a universal quantifier over the True literal."""
    return z3.is_true(quantifier_matrix(t))


def iter_pre(t: z3.ExprRef) -> Iterator[z3.ExprRef]:
    """
    Pre-order traversal over the sub-terms of t.

    Z3 terms are DAGs; each distinct sub-term is yielded once, at its first
    occurrence. Bound variables (de Bruijn indices) are leaves.
    """
    seen = set()
    stack = [t]
    while stack:
        e = stack.pop()
        eid = e.get_id()
        if eid in seen:
            continue
        seen.add(eid)
        yield e
        stack.extend(reversed(e.children()))


def contains_func_app(t: z3.ExprRef) -> bool:
    return any(is_func_app(e) for e in iter_pre(t))


def find_symbols(t: z3.ExprRef) -> List[z3.FuncDeclRef]:
    """
    Free symbol references of t, as declarations, in canonical order.

    Both uninterpreted constants and the functions of uninterpreted
    applications count. Quantified variables do not.
    """
    decls = {}
    for e in iter_pre(t):
        if is_uninterpreted_app(e):
            d = e.decl()
            decls.setdefault(d.get_id(), d)
    return sorted(decls.values(), key=term_key)


def as_relation(sym: Symbol) -> Optional[z3.FuncDeclRef]:
    """
    Normalize a relation symbol to its declaration.

    Accepts a FuncDeclRef or a nullary uninterpreted constant; anything else
    yields None.
    """
    if z3.is_func_decl(sym):
        return sym
    if isinstance(sym, z3.ExprRef) and is_symbol(sym):
        return sym.decl()
    return None


def is_bool_decl(decl: z3.FuncDeclRef) -> bool:
    return decl.range().kind() == z3.Z3_BOOL_SORT


def mk_clause(variables: Sequence[z3.ExprRef],
              body: z3.ExprRef,
              head: Optional[z3.ExprRef] = None) -> z3.ExprRef:
    """
    Build ForAll(variables, Implies(body, head)).

    Without a head the matrix is the body itself. With no variables Z3 would
    return the matrix unchanged, so we skip the quantifier.
    """
    matrix = body if head is None else z3.Implies(body, head)
    if not variables:
        return matrix
    return z3.ForAll(list(variables), matrix)
