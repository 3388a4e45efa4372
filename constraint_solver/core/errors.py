"""
Exception and warning types raised by the constraint solver.
"""


class SolverError(Exception):
    """Base class for all errors raised by the constraint solver."""

    pass


class OverConstrainedError(SolverError):
    """Raised by Solver.solve() when the constraints contradict each other and no solution exists."""

    pass


class SolverMismatchError(SolverError, ValueError):
    """Raised when a variable or constraint is used with a Solver it does not belong to."""

    pass


class ConstraintNotFoundError(SolverError, LookupError):
    """Raised when a deleted constraint is used or deleted again."""

    pass


class VariableNotFoundError(SolverError, LookupError):
    """Raised when a deleted variable is used."""

    pass


class NotificationCascadeError(SolverError, RuntimeError):
    """Raised when update hooks keep re-triggering solves past the cascade limit."""

    pass


class OverConstrainedWarning(UserWarning):
    """Issued by Solver.solve() for an over-constrained system when errors are disabled."""

    pass
