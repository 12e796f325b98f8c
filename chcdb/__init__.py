"""
chcdb: Constrained Horn Clause storage and dependency analysis.

The clause layer of a CHC-based verifier:
1. HornClause: body/head views and fact/rule/query classification
2. CHCDatabase: deduplicated clause corpus with use/def indices per relation
3. CHCGraph: relation dependency graph with entry detection

Terms are Z3 expressions; no solving happens here.
"""

from .chc import (
    EMPTY_CLAUSE_SET,
    EMPTY_RELATION_SET,
    CHCDatabase,
    CHCDatabaseConfig,
    CHCGraph,
    HornClause,
    InvariantViolation,
)

__version__ = "0.1.0"

__all__ = [
    'EMPTY_CLAUSE_SET',
    'EMPTY_RELATION_SET',
    'CHCDatabase',
    'CHCDatabaseConfig',
    'CHCGraph',
    'HornClause',
    'InvariantViolation',
]
