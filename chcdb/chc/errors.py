"""Errors raised by the CHC layer."""


class InvariantViolation(AssertionError):
    """
    A caller broke an internal invariant of the clause database or graph.

    Raised for out-of-range clause ids and for asking a graph without an
    entry relation for its entry. These are programming errors; nothing in
    chcdb catches them.
    """
