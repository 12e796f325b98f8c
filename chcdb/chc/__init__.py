"""
CHC clause database and relation dependency graph.

Typical driver flow:

    db = CHCDatabase()
    db.declare_relation(inv)
    db.insert(clause)            # repeated
    db.build_indices()
    graph = CHCGraph()
    graph.build_graph(db)
"""

from .clause import HornClause
from .database import EMPTY_CLAUSE_SET, CHCDatabase, CHCDatabaseConfig
from .errors import InvariantViolation
from .graph import EMPTY_RELATION_SET, CHCGraph

__all__ = [
    'EMPTY_CLAUSE_SET',
    'EMPTY_RELATION_SET',
    'CHCDatabase',
    'CHCDatabaseConfig',
    'CHCGraph',
    'HornClause',
    'InvariantViolation',
]
