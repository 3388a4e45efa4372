"""
Constraint handle: a linear equation the Solver keeps satisfied.

Constraints have the form:
    c1*v1 + c2*v2 + ... + cn*vn = x

where c1..cn and x are constants and v1..vn are Variables. Like Variable,
a Constraint is a (solver, id) handle; the Solver owns the terms and sum.
"""

from typing import TYPE_CHECKING, Dict, List

from constraint_solver.core.variable import Variable

if TYPE_CHECKING:
    from constraint_solver.core.solver import Solver


class Constraint:
    """
    A linear equation between variables of one Solver.

    Usage:
        total = solver.add_constraint({left: 1.0, right: 1.0}, total=6.0)
        total.set_var(middle, 1.0).set_sum(10.0)

    Every mutation re-solves the whole system when auto-solve is enabled.
    Term order follows insertion order.
    """

    def __init__(self, solver: 'Solver', constraint_id: int):
        """
        Wrap an existing constraint slot. Use Solver.add_constraint() to create one.
        """
        self._solver = solver
        self._id = constraint_id

    @property
    def solver(self) -> 'Solver':
        return self._solver

    def coefficient(self, variable: Variable) -> float:
        """
        Coefficient of variable in this equation (ck for a given vk).

        Returns:
            The stored coefficient, or 0.0 if the variable has no term
        """
        var_id = self._solver._variable_id(variable)
        return self._solver._constraint_slot(self).terms.get(var_id, 0.0)

    def contains(self, variable: Variable) -> bool:
        """Whether variable has a coefficient larger than tolerance"""
        return abs(self.coefficient(variable)) > self._solver.tolerance

    def set_var(self, variable: Variable, coefficient: float) -> 'Constraint':
        """Set the coefficient of variable, replacing any existing one"""
        self._solver._set_term(self, variable, coefficient)
        return self

    def add_var(self, variable: Variable, coefficient: float) -> 'Constraint':
        """
        Add coefficient to the existing coefficient of variable.

        If variable has no term yet, it is created with this coefficient.
        """
        self._solver._add_term(self, variable, coefficient)
        return self

    def remove_var(self, variable: Variable) -> 'Constraint':
        """Drop the term for variable (no-op if absent)"""
        self._solver._remove_term(self, variable)
        return self

    @property
    def sum(self) -> float:
        """The value the terms must sum to"""
        return self._solver._constraint_slot(self).sum

    @sum.setter
    def sum(self, total: float) -> None:
        self.set_sum(total)

    def set_sum(self, total: float) -> 'Constraint':
        self._solver._set_sum(self, total)
        return self

    @property
    def terms(self) -> Dict[Variable, float]:
        """Snapshot of {variable: coefficient}, in insertion order"""
        slot = self._solver._constraint_slot(self)
        return {Variable(self._solver, var_id): c for var_id, c in slot.terms.items()}

    @property
    def variables(self) -> List[Variable]:
        """Variables with a non-negligible coefficient"""
        tol = self._solver.tolerance
        return [v for v, c in self.terms.items() if abs(c) > tol]

    def evaluate(self) -> float:
        """Left-hand side at the variables' current values"""
        return self._solver._evaluate(self._solver._constraint_slot(self))

    def residual(self) -> float:
        """evaluate() - sum; zero when the equation holds"""
        return self.evaluate() - self.sum

    def is_satisfied(self) -> bool:
        return abs(self.residual()) <= self._solver.tolerance

    def delete(self) -> None:
        """
        Remove this constraint from its Solver.

        Does not re-solve; the equation simply stops being enforced from the
        next solve on.

        Raises:
            ConstraintNotFoundError: If already deleted
        """
        self._solver._delete_constraint(self)

    @property
    def exists(self) -> bool:
        """Whether this constraint is still registered with its Solver"""
        return self._solver._has_constraint(self._id)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Constraint):
            return NotImplemented
        return other._solver is self._solver and other._id == self._id

    def __hash__(self) -> int:
        return hash((id(self._solver), self._id))

    def __str__(self) -> str:
        if not self.exists:
            return f"<deleted constraint {self._id}>"
        terms = " + ".join(f"{c} * {v.name}" for v, c in self.terms.items())
        return f"{terms or '0'} = {self.sum}"

    def __repr__(self) -> str:
        return f"Constraint({self})"


class ConstraintBuilder:
    """
    Collects terms and a sum, then registers the constraint in one step.

    Unlike mutating a live Constraint, building does not re-solve per term:
    only build() triggers a solve.

    Usage:
        solver.build_constraint().var(a, 1.0).var(b, -2.0).sum(0.0).build()
    """

    def __init__(self, solver: 'Solver'):
        self._solver = solver
        self._terms: Dict[Variable, float] = {}
        self._sum = 0.0
        self._built = False

    def var(self, variable: Variable, coefficient: float) -> 'ConstraintBuilder':
        """Set the coefficient of variable, replacing any earlier one"""
        # Reject foreign or deleted variables here rather than at build()
        self._solver._variable_id(variable)
        self._terms[variable] = coefficient
        return self

    def sum(self, total: float) -> 'ConstraintBuilder':
        self._sum = total
        return self

    def build(self) -> Constraint:
        """
        Register the constraint with the Solver (and solve, under auto-solve).

        Raises:
            RuntimeError: If called more than once
        """
        if self._built:
            raise RuntimeError("ConstraintBuilder.build() can only be called once")
        self._built = True
        return self._solver.add_constraint(self._terms, self._sum)
