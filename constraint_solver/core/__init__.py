"""Core abstractions for the linear constraint solver."""

from constraint_solver.core.matrix import Matrix, TOLERANCE
from constraint_solver.core.variable import Variable, Subscription
from constraint_solver.core.constraint import Constraint, ConstraintBuilder
from constraint_solver.core.solver import Solver
from constraint_solver.core.errors import (
    SolverError,
    OverConstrainedError,
    SolverMismatchError,
    ConstraintNotFoundError,
    VariableNotFoundError,
    NotificationCascadeError,
    OverConstrainedWarning,
)

__all__ = [
    'Matrix',
    'TOLERANCE',
    'Variable',
    'Subscription',
    'Constraint',
    'ConstraintBuilder',
    'Solver',
    'SolverError',
    'OverConstrainedError',
    'SolverMismatchError',
    'ConstraintNotFoundError',
    'VariableNotFoundError',
    'NotificationCascadeError',
    'OverConstrainedWarning',
]
