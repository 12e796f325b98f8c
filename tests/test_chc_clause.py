"""
Tests for Horn clause views and classification.

Tests cover:
1. Body/head extraction for implications and plain formulas
2. Fact / query / rule classification
3. Relation and application extraction against declared relations
"""

import pytest
import z3

from chcdb.chc import CHCDatabase, HornClause


x, y = z3.Ints('x y')
A = z3.Function('A', z3.IntSort(), z3.BoolSort())
B = z3.Function('B', z3.IntSort(), z3.BoolSort())
C = z3.Function('C', z3.IntSort(), z3.IntSort(), z3.BoolSort())
R = z3.Function('R', z3.IntSort(), z3.BoolSort())


@pytest.fixture
def db():
    db = CHCDatabase()
    for rel in (A, B, C, R):
        db.declare_relation(rel)
    return db


class TestBodyHead:
    """Body and head views of a clause."""

    def test_implication_splits(self):
        """Antecedent is the body, consequent the head."""
        clause = HornClause(z3.ForAll([x], z3.Implies(A(x), B(x))))

        assert clause.body().decl().name() == 'A'
        assert clause.head().decl().name() == 'B'

    def test_plain_formula_has_no_head(self):
        """A non-implication matrix is all body."""
        clause = HornClause(z3.ForAll([x], x * x >= 0))

        assert clause.head() is None
        assert clause.body().eq(clause.matrix)

    def test_unquantified_clause(self):
        """Ground clauses are accepted; z3 drops empty quantifiers."""
        clause = HornClause(z3.Implies(z3.BoolVal(True), R(z3.IntVal(0))))

        assert clause.bound_vars() == []
        assert z3.is_true(clause.body())
        assert clause.head().eq(R(z3.IntVal(0)))

    def test_bound_vars(self):
        """Quantified variables are reported outermost first."""
        clause = HornClause(z3.ForAll([x, y], z3.Implies(A(x), C(x, y))))

        names = [name for name, _ in clause.bound_vars()]
        assert names == ['x', 'y']
        assert all(sort == z3.IntSort() for _, sort in clause.bound_vars())


class TestClassification:
    """Fact, query and rule classification."""

    def test_constraint_only_clause(self):
        """No application anywhere: a fact, never a query."""
        clause = HornClause(z3.ForAll([x], x * x >= 0))

        assert clause.is_fact()
        assert not clause.is_query()

    def test_query(self):
        """R(x) => False is a query."""
        clause = HornClause(z3.ForAll([x], z3.Implies(R(x), z3.BoolVal(False))))

        assert clause.is_query()
        assert not clause.is_fact()
        assert not clause.is_rule()

    def test_query_with_constraint_head(self):
        """Any pure-constraint head makes a query."""
        clause = HornClause(z3.ForAll([x], z3.Implies(R(x), x >= 0)))

        assert clause.is_query()

    def test_fact(self):
        """True => R(x) is a fact, not a query."""
        clause = HornClause(z3.ForAll([x], z3.Implies(z3.BoolVal(True), R(x))))

        assert clause.is_fact()
        assert not clause.is_query()

    def test_fact_with_constraint_body(self):
        """Constraints in the body do not stop a clause being a fact."""
        clause = HornClause(z3.ForAll([x], z3.Implies(x == 0, R(x))))

        assert clause.is_fact()

    def test_rule(self):
        """Applications on both sides make a rule."""
        clause = HornClause(z3.ForAll([x, y],
                                      z3.Implies(z3.And(A(x), B(y)), C(x, y))))

        assert clause.is_rule()
        assert not clause.is_fact()
        assert not clause.is_query()

    def test_nested_application_in_body(self):
        """Applications below other connectives still count."""
        body = z3.And(x > 0, z3.Not(z3.Or(y < 0, A(x))))
        clause = HornClause(z3.ForAll([x, y], z3.Implies(body, R(y))))

        assert not clause.is_fact()


class TestRelationExtraction:
    """used_relations / used_func_app / head_func_app."""

    def test_used_relations_filters_undeclared(self, db):
        """Only declared relations are reported, once each, in order."""
        U = z3.Function('U', z3.IntSort(), z3.BoolSort())
        c = z3.Int('c')
        body = z3.And(B(y), A(x), U(x), x > c, A(x))
        clause = HornClause(z3.ForAll([x, y], z3.Implies(body, C(x, y))))

        rels = clause.used_relations(db)

        assert [r.name() for r in rels] == ['A', 'B']

    def test_used_relations_ignores_head(self, db):
        """The head is not part of the body."""
        clause = HornClause(z3.ForAll([x], z3.Implies(A(x), R(x))))

        assert [r.name() for r in clause.used_relations(db)] == ['A']

    def test_used_func_app_distinct(self, db):
        """Repeated applications are reported once, in pre-order."""
        body = z3.And(A(x), z3.Or(A(x), B(x)))
        clause = HornClause(z3.ForAll([x], z3.Implies(body, R(x))))

        apps = clause.used_func_app(db)

        assert [a.decl().name() for a in apps] == ['A', 'B']

    def test_used_func_app_different_arguments(self, db):
        """Applications with different arguments are different sub-terms."""
        clause = HornClause(z3.ForAll([x, y],
                                      z3.Implies(z3.And(A(x), A(y)), C(x, y))))

        assert len(clause.used_func_app(db)) == 2

    def test_used_func_app_undeclared(self):
        """Nothing is a relation in an empty database."""
        clause = HornClause(z3.ForAll([x], z3.Implies(A(x), R(x))))

        assert clause.used_func_app(CHCDatabase()) == []

    def test_head_single_application(self, db):
        clause = HornClause(z3.ForAll([x], z3.Implies(A(x), R(x))))

        assert [a.decl().name() for a in clause.head_func_app(db)] == ['R']

    def test_head_conjunction(self, db):
        """Operands of a top-level conjunction are head applications."""
        clause = HornClause(z3.ForAll([x], z3.Implies(A(x), z3.And(B(x), R(x)))))

        assert [a.decl().name() for a in clause.head_func_app(db)] == ['B', 'R']

    def test_head_nested_not_decomposed(self, db):
        """Applications below a disjunction are not head applications."""
        head = z3.Or(B(x), z3.And(R(x), x > 0))
        clause = HornClause(z3.ForAll([x], z3.Implies(A(x), head)))

        assert clause.head_func_app(db) == []

    def test_query_has_no_head_applications(self, db):
        clause = HornClause(z3.ForAll([x], z3.Implies(R(x), z3.BoolVal(False))))

        assert clause.head_func_app(db) == []


class TestEquality:
    """Structural equality and ordering."""

    def test_structurally_equal(self):
        f1 = z3.ForAll([x], z3.Implies(A(x), B(x)))
        f2 = z3.ForAll([x], z3.Implies(A(x), B(x)))

        assert HornClause(f1) == HornClause(f2)
        assert hash(HornClause(f1)) == hash(HornClause(f2))

    def test_different(self):
        c1 = HornClause(z3.ForAll([x], z3.Implies(A(x), B(x))))
        c2 = HornClause(z3.ForAll([x], z3.Implies(B(x), A(x))))

        assert c1 != c2
        assert (c1 < c2) != (c2 < c1)
