"""
Live linear constraint solver.

Keeps a set of variables consistent with a set of linear equations,
re-solving whenever a value or an equation changes.
"""

import logging

from constraint_solver.core import (
    Matrix,
    TOLERANCE,
    Variable,
    Subscription,
    Constraint,
    ConstraintBuilder,
    Solver,
    SolverError,
    OverConstrainedError,
    SolverMismatchError,
    ConstraintNotFoundError,
    VariableNotFoundError,
    NotificationCascadeError,
    OverConstrainedWarning,
)

__version__ = '0.1.0'

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

# Library logging is silent unless the application configures handlers
logging.getLogger(__name__).addHandler(logging.NullHandler())
