"""
Variable handle: a named numeric cell kept consistent by its Solver.

The Solver owns the variable's state (name, value, lock, update hook).
A Variable object is only a handle, (solver, id), so creating and dropping
handles is free and no reference cycle exists between Solver and Variable.
"""

from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from constraint_solver.core.constraint import Constraint
    from constraint_solver.core.solver import Solver


class Variable:
    """
    A value for which the Solver solves.

    Usage:
        solver = Solver()
        width = solver.add_variable('width', 100.0)
        width.on_update(lambda w: print(f"width is now {w}"))
        width.set_value(120.0)  # dependent variables follow

    Equality:
        Two handles are equal when they refer to the same variable of the same
        Solver. Use value_equals() to compare current values within tolerance.

    Attributes:
        solver: The Solver this variable belongs to (fixed for life)
    """

    def __init__(self, solver: 'Solver', var_id: int):
        """
        Wrap an existing variable slot. Use Solver.add_variable() to create one.

        Args:
            solver: Owning Solver
            var_id: Stable id of the variable within the Solver
        """
        self._solver = solver
        self._id = var_id

    @property
    def solver(self) -> 'Solver':
        return self._solver

    @property
    def name(self) -> str:
        return self._solver._variable_slot(self).name

    @property
    def value(self) -> float:
        """Current value"""
        return self._solver._variable_slot(self).value

    @value.setter
    def value(self, value: float) -> None:
        self.set_value(value)

    def set_value(self, value: float) -> 'Variable':
        """
        Change this variable's value, moving dependent variables to match.

        The variable is pinned at the new value while the Solver re-solves
        (if auto-solve is enabled), then unpinned again unless it was locked
        beforehand. A locked variable stays locked, at the new value.
        The update hook receives the new value afterwards.

        A value within tolerance of the current one is ignored: no re-solve,
        no notification.

        Args:
            value: The new value

        Returns:
            self, for chaining

        Raises:
            OverConstrainedError: If the new value contradicts the constraints.
                The previous value is restored.
        """
        self._solver._set_value(self, value)
        return self

    def lock(self) -> 'Variable':
        """
        Pin this variable to its current value.

        Adds the constraint 1·self = value. The value can still be changed with
        set_value(). Does nothing if already locked.

        The pin is an ordinary constraint row. With error_on_over_constrained
        off, a contradicting row can win the pivot and move a locked variable;
        the solver only warns.
        """
        self._solver._lock(self)
        return self

    def unlock(self) -> 'Variable':
        """
        Remove the pin added by lock(). Does nothing if not locked.

        Does not re-solve; the variable is free to move on the next solve.
        """
        self._solver._unlock(self)
        return self

    @property
    def locked(self) -> bool:
        return self._solver._variable_slot(self).lock_id is not None

    @property
    def lock_constraint(self) -> Optional['Constraint']:
        """The constraint pinning this variable, or None if unlocked"""
        return self._solver._lock_constraint(self)

    def on_update(self, hook: Optional[Callable[[float], None]]) -> 'Subscription':
        """
        Register the function called with the new value whenever this value changes.

        Only one hook is held per variable; registering replaces the previous
        one. Passing None removes the current hook.

        Hooks run after a solve has written every value. Mutations made from
        inside a hook are queued and applied once the current round of hooks
        has finished.

        Returns:
            Subscription whose cancel() removes this hook
        """
        return self._solver._set_hook(self, hook)

    def value_equals(self, other: 'Variable', tolerance: Optional[float] = None) -> bool:
        """Compare current values (not identity) within tolerance"""
        if tolerance is None:
            tolerance = self._solver.tolerance
        return abs(self.value - other.value) < tolerance

    def delete(self) -> None:
        """
        Remove this variable from its Solver.

        Unlocks it, drops its term from every constraint and removes its column.
        Does not re-solve. Any further use of this handle raises
        VariableNotFoundError.
        """
        self._solver._delete_variable(self)

    @property
    def exists(self) -> bool:
        """Whether this variable is still registered with its Solver"""
        return self._solver._has_variable(self._id)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Variable):
            return NotImplemented
        return other._solver is self._solver and other._id == self._id

    def __hash__(self) -> int:
        return hash((id(self._solver), self._id))

    def __str__(self) -> str:
        if not self.exists:
            return f"<deleted variable {self._id}>"
        return f"{self.name} = {self.value}"

    def __repr__(self) -> str:
        return f"Variable({self})"


class Subscription:
    """
    Token returned by Variable.on_update().

    cancel() removes the hook only if it is still the one registered, so a
    stale token cannot detach a hook registered later.
    """

    def __init__(self, solver: 'Solver', var_id: int, hook: Optional[Callable[[float], None]]):
        self._solver = solver
        self._var_id = var_id
        self._hook = hook

    @property
    def active(self) -> bool:
        return self._hook is not None and self._solver._hook_of(self._var_id) is self._hook

    def cancel(self) -> None:
        self._solver._cancel_hook(self._var_id, self._hook)

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"Subscription(variable={self._var_id}, {state})"
