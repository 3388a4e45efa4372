"""
Solver: owner of variables and constraints, and orchestrator of re-solving.

The Solver is responsible for:
  - Storing variable and constraint state (handles only carry ids)
  - Assembling live constraints into an augmented Matrix
  - Reducing and back-substituting it
  - Writing solved values back and notifying update hooks
"""

import logging
import warnings
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from itertools import count
from typing import Callable, Deque, Dict, Iterator, List, Mapping, Optional, Tuple

import numpy as np

from constraint_solver.core.constraint import Constraint, ConstraintBuilder
from constraint_solver.core.errors import (
    ConstraintNotFoundError,
    NotificationCascadeError,
    OverConstrainedError,
    OverConstrainedWarning,
    SolverMismatchError,
    VariableNotFoundError,
)
from constraint_solver.core.matrix import Matrix, TOLERANCE
from constraint_solver.core.variable import Subscription, Variable

logger = logging.getLogger(__name__)

Hook = Callable[[float], None]


@dataclass
class _VariableSlot:
    name: str
    value: float
    lock_id: Optional[int] = None
    hook: Optional[Hook] = None

    def update(self, value: float, tolerance: float) -> bool:
        """Overwrite the value without solving or notifying; report whether it moved"""
        changed = abs(value - self.value) > tolerance
        self.value = float(value)
        return changed


@dataclass
class _ConstraintSlot:
    terms: Dict[int, float] = field(default_factory=dict)
    sum: float = 0.0


def _finite(value: float, what: str) -> float:
    value = float(value)
    if not np.isfinite(value):
        raise ValueError(f"{what} must be finite, got {value}")
    return value


class Solver:
    """
    A set of variables and the linear constraints between them.

    Usage:
        solver = Solver()
        v1 = solver.add_variable('v1')
        v2 = solver.add_variable('v2')
        solver.add_constraint({v1: 1.0, v2: 1.0}, total=6.0)
        solver.add_constraint({v1: 2.0, v2: 1.0}, total=8.0)
        v1.value, v2.value  # (2.0, 4.0)

    Attributes:
        auto_solve: Re-solve after every mutation (default True). Disable for
            bulk edits and call solve() explicitly, or use batch().
        error_on_over_constrained: Raise OverConstrainedError from solve() when
            no solution exists (default True). Otherwise warn and write the
            approximate values back-substitution produces.
        tolerance: Magnitudes at or below this are zero, and value changes
            at or below it are not changes
        max_cascade: Maximum number of deferred updates processed after one
            round of hooks before NotificationCascadeError is raised

    Column order is variable insertion order, row order is constraint
    insertion order. Not thread-safe: callers must serialise access.
    """

    def __init__(self,
                 auto_solve: bool = True,
                 error_on_over_constrained: bool = True,
                 tolerance: float = TOLERANCE,
                 max_cascade: int = 100):
        if tolerance < 0:
            raise ValueError(f"Tolerance must be non-negative, got {tolerance}")
        if max_cascade < 1:
            raise ValueError(f"max_cascade must be at least 1, got {max_cascade}")

        self.auto_solve = auto_solve
        self.error_on_over_constrained = error_on_over_constrained
        self.tolerance = tolerance
        self.max_cascade = max_cascade

        self._variables: Dict[int, _VariableSlot] = {}
        self._constraints: Dict[int, _ConstraintSlot] = {}
        self._variable_ids = count()
        self._constraint_ids = count()
        self._unnamed = count()

        # Re-entrancy bookkeeping for update hooks
        self._dispatching = False
        self._draining = False
        self._resolve_pending = False
        self._deferred_values: Deque[Tuple[int, float]] = deque()

    # =========================================================================
    # Construction
    # =========================================================================

    def add_variable(self, name: Optional[str] = None, value: float = 0.0) -> Variable:
        """
        Create a variable owned by this Solver.

        Args:
            name: Human-readable name (default 'var0', 'var1', ...)
            value: Initial value

        Returns:
            Handle to the new variable

        Note:
            Adding a variable does not trigger a solve.
        """
        value = _finite(value, "Variable value")
        if name is None:
            name = f"var{next(self._unnamed)}"

        var_id = next(self._variable_ids)
        self._variables[var_id] = _VariableSlot(name, value)
        return Variable(self, var_id)

    def add_constraint(self,
                       terms: Optional[Mapping[Variable, float]] = None,
                       total: float = 0.0) -> Constraint:
        """
        Create a constraint sum(coefficient * variable) = total.

        Solves immediately when auto-solve is enabled.

        Args:
            terms: Mapping of variable to coefficient, in the order the terms
                should be stored
            total: The value the terms must sum to

        Returns:
            Handle to the new constraint

        Raises:
            OverConstrainedError: If the new constraint contradicts the existing
                ones. The constraint is not kept.
        """
        slot = _ConstraintSlot(sum=_finite(total, "Constraint sum"))
        for variable, coefficient in (terms or {}).items():
            slot.terms[self._variable_id(variable)] = _finite(coefficient, "Coefficient")

        constraint_id = next(self._constraint_ids)
        self._constraints[constraint_id] = slot

        # Only a failure of this solve rolls back; hook errors come after
        try:
            changed = self._write_if_auto()
        except OverConstrainedError:
            del self._constraints[constraint_id]
            raise

        self._notify(changed)
        return Constraint(self, constraint_id)

    def build_constraint(self) -> ConstraintBuilder:
        """Start a ConstraintBuilder; nothing is registered until build()"""
        return ConstraintBuilder(self)

    @property
    def variables(self) -> List[Variable]:
        """Variable handles in column order"""
        return [Variable(self, var_id) for var_id in self._variables]

    @property
    def constraints(self) -> List[Constraint]:
        """Constraint handles in row order (lock constraints included)"""
        return [Constraint(self, constraint_id) for constraint_id in self._constraints]

    # =========================================================================
    # Solving
    # =========================================================================

    def solve(self) -> None:
        """
        Solve for every variable once.

        Not needed while auto-solve is enabled. Steps:
            1. Assemble the augmented matrix from live constraints
            2. Reduce it
            3. Fail (or warn) if it is over-constrained
            4. Back-substitute; free variables keep their current value
            5. Write all values, then call each changed variable's hook once,
               in variable order

        Called from inside an update hook, the solve is deferred until the
        current round of hooks has finished.

        Raises:
            OverConstrainedError: If no solution exists and
                error_on_over_constrained is set. No value is changed.
        """
        self._notify(self._write_solution())

    def _write_solution(self) -> List[int]:
        """
        Solve and write every value without calling hooks.

        Returns:
            Ids of the variables whose value changed, in variable order. Empty
            if the solve was deferred because hooks are running.
        """
        if self._dispatching:
            self._resolve_pending = True
            logger.debug("Solve requested from an update hook, deferred")
            return []
        self._resolve_pending = False

        var_ids = list(self._variables)
        matrix = self._assemble(var_ids)
        matrix.rref()

        if matrix.is_over_constrained():
            if self.error_on_over_constrained:
                raise OverConstrainedError(
                    "Solver is over-constrained and no solutions exist"
                )
            warnings.warn(
                "Solver is over-constrained; contradictory constraints were ignored",
                OverConstrainedWarning,
                stacklevel=3,
            )

        current = np.array([self._variables[var_id].value for var_id in var_ids])
        solution = matrix.solve(initial=current)

        changed = []
        for var_id, value in zip(var_ids, solution):
            if self._variables[var_id].update(value, self.tolerance):
                changed.append(var_id)

        logger.debug("Solved %d variables, %d changed", len(var_ids), len(changed))
        return changed

    def is_over_constrained(self) -> bool:
        """Whether the constraints contradict each other (no solution exists)"""
        return self._assemble(list(self._variables)).is_over_constrained()

    def is_under_constrained(self) -> bool:
        """Whether there are fewer independent constraints than variables"""
        return self._assemble(list(self._variables)).is_under_constrained()

    def free_variables(self) -> List[Variable]:
        """
        Variables not determined by the constraints.

        These keep their current value on every solve. Which variables end up
        free depends on column (insertion) order.
        """
        var_ids = list(self._variables)
        pivots = set(self._assemble(var_ids).pivot_columns())
        return [Variable(self, var_id)
                for column, var_id in enumerate(var_ids)
                if column not in pivots]

    def residuals(self) -> np.ndarray:
        """
        Residual (lhs - sum) of every constraint at the current values.

        Returns:
            1D array in constraint order; all within tolerance of zero when
            the current values satisfy every constraint
        """
        return np.array([self._evaluate(slot) - slot.sum
                         for slot in self._constraints.values()])

    @contextmanager
    def batch(self) -> Iterator['Solver']:
        """
        Suspend auto-solve for a block of edits, then solve once.

        Usage:
            with solver.batch():
                c.set_var(a, 1.0).set_var(b, 2.0).set_sum(3.0)

        No solve runs on exit if auto-solve was already off, or if the block
        raised.
        """
        previous = self.auto_solve
        self.auto_solve = False
        try:
            yield self
        finally:
            self.auto_solve = previous

        if previous:
            self.solve()

    def _assemble(self, var_ids: List[int]) -> Matrix:
        """
        Build the augmented matrix: one row per constraint, one column per
        variable in var_ids, plus the sum column.
        """
        columns = {var_id: column for column, var_id in enumerate(var_ids)}
        coefficients = np.zeros((len(self._constraints), len(var_ids)))
        sums = np.zeros(len(self._constraints))

        for row, slot in enumerate(self._constraints.values()):
            for var_id, coefficient in slot.terms.items():
                coefficients[row, columns[var_id]] = coefficient
            sums[row] = slot.sum

        logger.debug("Assembled %d constraints over %d variables",
                     len(self._constraints), len(var_ids))
        return Matrix.from_system(coefficients, sums, self.tolerance)

    def _evaluate(self, slot: _ConstraintSlot) -> float:
        return sum(c * self._variables[var_id].value for var_id, c in slot.terms.items())

    def _trigger(self) -> None:
        if self.auto_solve:
            self.solve()

    def _write_if_auto(self) -> List[int]:
        return self._write_solution() if self.auto_solve else []

    # =========================================================================
    # Update hooks and re-entrancy
    # =========================================================================

    def _notify(self, var_ids: List[int]) -> None:
        """
        Call the hook of each variable in var_ids with its current value.

        While hooks run, mutations they make are deferred (see _drain).
        """
        if not var_ids:
            return

        self._dispatching = True
        try:
            for var_id in var_ids:
                slot = self._variables.get(var_id)
                if slot is not None and slot.hook is not None:
                    slot.hook(slot.value)
        except BaseException:
            self._deferred_values.clear()
            self._resolve_pending = False
            raise
        finally:
            self._dispatching = False

        self._drain()

    def _drain(self) -> None:
        """
        Apply work deferred by hooks: queued set_value calls in order, then a
        single re-solve if one is still pending.

        Only the outermost call loops; nested calls return and leave new work
        to it.
        """
        if self._draining:
            return

        self._draining = True
        try:
            rounds = 0
            while self._deferred_values or self._resolve_pending:
                rounds += 1
                if rounds > self.max_cascade:
                    self._deferred_values.clear()
                    self._resolve_pending = False
                    raise NotificationCascadeError(
                        f"Update hooks kept triggering solves after {self.max_cascade} rounds"
                    )

                if self._deferred_values:
                    var_id, value = self._deferred_values.popleft()
                    self._apply_value(var_id, value)
                else:
                    self.solve()
        except BaseException:
            self._deferred_values.clear()
            self._resolve_pending = False
            raise
        finally:
            self._draining = False

    def _set_hook(self, variable: Variable, hook: Optional[Hook]) -> Subscription:
        if hook is not None and not callable(hook):
            raise TypeError(f"Update hook must be callable, got {type(hook).__name__}")

        var_id = self._variable_id(variable)
        self._variables[var_id].hook = hook
        return Subscription(self, var_id, hook)

    def _hook_of(self, var_id: int) -> Optional[Hook]:
        slot = self._variables.get(var_id)
        return slot.hook if slot is not None else None

    def _cancel_hook(self, var_id: int, hook: Optional[Hook]) -> None:
        slot = self._variables.get(var_id)
        if slot is not None and hook is not None and slot.hook is hook:
            slot.hook = None

    # =========================================================================
    # Variable operations (called through Variable handles)
    # =========================================================================

    def _variable_id(self, variable: Variable) -> int:
        """
        Validate a variable handle against this Solver.

        Raises:
            TypeError: If variable is not a Variable
            SolverMismatchError: If it belongs to another Solver
            VariableNotFoundError: If it has been deleted
        """
        if not isinstance(variable, Variable):
            raise TypeError(f"Expected a Variable, got {type(variable).__name__}")
        if variable._solver is not self:
            raise SolverMismatchError(
                f"Variable {variable._id} belongs to a different Solver"
            )
        if variable._id not in self._variables:
            raise VariableNotFoundError(f"Variable {variable._id} has been deleted")
        return variable._id

    def _variable_slot(self, variable: Variable) -> _VariableSlot:
        return self._variables[self._variable_id(variable)]

    def _has_variable(self, var_id: int) -> bool:
        return var_id in self._variables

    def _set_value(self, variable: Variable, value: float) -> None:
        var_id = self._variable_id(variable)
        value = _finite(value, "Variable value")

        if self._dispatching:
            self._deferred_values.append((var_id, value))
            logger.debug("set_value on variable %d from an update hook, queued", var_id)
            return

        self._apply_value(var_id, value)

    def _apply_value(self, var_id: int, value: float) -> None:
        slot = self._variables.get(var_id)
        if slot is None:
            # Deleted while its update was queued
            return
        if abs(value - slot.value) <= self.tolerance:
            return

        old_value = slot.value
        was_locked = slot.lock_id is not None

        slot.value = value
        self._release_lock(slot)
        self._pin(var_id, slot)

        try:
            changed = self._write_if_auto()
        except OverConstrainedError:
            slot.value = old_value
            self._release_lock(slot)
            if was_locked:
                self._pin(var_id, slot)
            raise
        finally:
            if not was_locked:
                self._release_lock(slot)

        # Dependents first, the edited variable last
        self._notify([i for i in changed if i != var_id] + [var_id])

    def _lock(self, variable: Variable) -> None:
        var_id = self._variable_id(variable)
        slot = self._variables[var_id]
        if slot.lock_id is not None:
            return

        self._pin(var_id, slot)
        try:
            changed = self._write_if_auto()
        except OverConstrainedError:
            self._release_lock(slot)
            raise

        self._notify(changed)

    def _unlock(self, variable: Variable) -> None:
        self._release_lock(self._variable_slot(variable))

    def _lock_constraint(self, variable: Variable) -> Optional[Constraint]:
        slot = self._variable_slot(variable)
        if slot.lock_id is None:
            return None
        return Constraint(self, slot.lock_id)

    def _pin(self, var_id: int, slot: _VariableSlot) -> None:
        """Register 1·v = value as this variable's lock constraint (no solve)"""
        constraint_id = next(self._constraint_ids)
        self._constraints[constraint_id] = _ConstraintSlot({var_id: 1.0}, slot.value)
        slot.lock_id = constraint_id

    def _release_lock(self, slot: _VariableSlot) -> None:
        if slot.lock_id is not None:
            self._constraints.pop(slot.lock_id, None)
            slot.lock_id = None

    def _delete_variable(self, variable: Variable) -> None:
        var_id = self._variable_id(variable)
        self._release_lock(self._variables[var_id])

        for slot in self._constraints.values():
            slot.terms.pop(var_id, None)

        del self._variables[var_id]

    # =========================================================================
    # Constraint operations (called through Constraint handles)
    # =========================================================================

    def _constraint_slot(self, constraint: Constraint) -> _ConstraintSlot:
        """
        Validate a constraint handle against this Solver.

        Raises:
            SolverMismatchError: If it belongs to another Solver
            ConstraintNotFoundError: If it has been deleted
        """
        if constraint._solver is not self:
            raise SolverMismatchError(
                f"Constraint {constraint._id} belongs to a different Solver"
            )
        slot = self._constraints.get(constraint._id)
        if slot is None:
            raise ConstraintNotFoundError(f"Constraint {constraint._id} has been deleted")
        return slot

    def _has_constraint(self, constraint_id: int) -> bool:
        return constraint_id in self._constraints

    def _set_term(self, constraint: Constraint, variable: Variable, coefficient: float) -> None:
        slot = self._constraint_slot(constraint)
        slot.terms[self._variable_id(variable)] = _finite(coefficient, "Coefficient")
        self._trigger()

    def _add_term(self, constraint: Constraint, variable: Variable, coefficient: float) -> None:
        slot = self._constraint_slot(constraint)
        var_id = self._variable_id(variable)
        coefficient = _finite(coefficient, "Coefficient")

        if var_id in slot.terms:
            slot.terms[var_id] += coefficient
        else:
            slot.terms[var_id] = coefficient
        self._trigger()

    def _remove_term(self, constraint: Constraint, variable: Variable) -> None:
        slot = self._constraint_slot(constraint)
        slot.terms.pop(self._variable_id(variable), None)
        self._trigger()

    def _set_sum(self, constraint: Constraint, total: float) -> None:
        self._constraint_slot(constraint).sum = _finite(total, "Constraint sum")
        self._trigger()

    def _delete_constraint(self, constraint: Constraint) -> None:
        self._constraint_slot(constraint)
        del self._constraints[constraint._id]

        # Deleting a lock constraint directly unlocks its variable
        for slot in self._variables.values():
            if slot.lock_id == constraint._id:
                slot.lock_id = None

    def __repr__(self) -> str:
        return (f"Solver({len(self._variables)} variables, "
                f"{len(self._constraints)} constraints, auto_solve={self.auto_solve})")
