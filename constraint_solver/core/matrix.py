"""
Augmented matrix and row reduction for systems of linear constraints.

Each row is one equation:
    c1*v1 + c2*v2 + ... + cn*vn = x

The first width-1 columns hold the coefficients c1..cn, the last column
holds the sum x. The matrix knows nothing about Variable or Constraint
objects; the Solver assembles it and maps columns back to variables.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)

# Shared by the matrix, constraint containment and variable change detection.
TOLERANCE = 1e-6


class Matrix:
    """
    Augmented coefficient matrix with in-place Gaussian elimination.

    Usage:
        m = Matrix([[1.0, 1.0, 6.0],
                    [2.0, 1.0, 8.0]])
        m.rref()
        m.solve()  # array([2., 4.])

    Attributes:
        data: Backing array of shape (height, width), rows are equations
        width: Number of columns (one per variable, plus the sum column)
        height: Number of rows (one per equation)
        tolerance: Magnitudes at or below this value count as zero
    """

    def __init__(self, data, tolerance: float = TOLERANCE):
        """
        Build a matrix from a 2D array-like of rows.

        Args:
            data: Rows of the augmented matrix, copied on construction
            tolerance: Zero threshold for pivoting and diagnostics

        Raises:
            ValueError: If data is not 2D, has no sum column, or holds NaN/Inf
        """
        array = np.array(data, dtype=float)

        if array.ndim != 2:
            raise ValueError(f"Matrix data must be 2-dimensional, got shape {array.shape}")
        if array.shape[1] < 1:
            raise ValueError("Matrix must have at least the sum column")
        if not np.all(np.isfinite(array)):
            raise ValueError("Matrix entries must be finite")
        if tolerance < 0:
            raise ValueError(f"Tolerance must be non-negative, got {tolerance}")

        self.data = array
        self.height, self.width = array.shape
        self.tolerance = tolerance
        self._reduced = False

    @classmethod
    def from_system(cls,
                    coefficients,
                    sums,
                    tolerance: float = TOLERANCE) -> 'Matrix':
        """
        Build an augmented matrix from a coefficient matrix and a sum vector.

        Args:
            coefficients: Array of shape (n_equations, n_variables)
            sums: Array of length n_equations

        Returns:
            Matrix of shape (n_equations, n_variables + 1)
        """
        coefficients = np.asarray(coefficients, dtype=float)
        sums = np.asarray(sums, dtype=float).reshape(-1)

        if coefficients.ndim != 2:
            raise ValueError(
                f"Coefficients must be 2-dimensional, got shape {coefficients.shape}"
            )
        if coefficients.shape[0] != sums.shape[0]:
            raise ValueError(
                f"Got {coefficients.shape[0]} coefficient rows but {sums.shape[0]} sums"
            )

        return cls(np.hstack([coefficients, sums[:, np.newaxis]]), tolerance)

    @property
    def reduced(self) -> bool:
        """Whether rref() has been applied"""
        return self._reduced

    def copy(self) -> 'Matrix':
        clone = Matrix(self.data, self.tolerance)
        clone._reduced = self._reduced
        return clone

    def rref(self) -> 'Matrix':
        """
        Reduce this matrix in place using Gaussian elimination with partial pivoting.

        For each coefficient column, the row at or below the lead row with the
        largest magnitude in that column becomes the pivot (lowest index wins a
        tie). A pivot at or below tolerance means the column has no independent
        equation: it is skipped and the lead row stays put. Otherwise the pivot
        row is swapped into the lead position, eliminated from every row below,
        and scaled so its leading entry is exactly 1.

        Entries above each pivot are not cleared; solve() back-substitutes
        through them.

        Returns:
            self, for chaining
        """
        lead_row = 0

        for lead_column in range(self.width - 1):
            if lead_row >= self.height:
                break

            pivot_row = self._pivot_row(lead_column, lead_row)

            if abs(self.data[pivot_row, lead_column]) <= self.tolerance:
                continue

            self._swap_rows(lead_row, pivot_row)
            self._subtract_pivot(lead_column, lead_row)
            self._reduce_row(lead_column, lead_row)
            lead_row += 1

        self._reduced = True
        logger.debug("Reduced %dx%d matrix, rank %d", self.height, self.width, lead_row)
        return self

    def solve(self, initial: Optional[Sequence[float]] = None) -> np.ndarray:
        """
        Back-substitute the reduced matrix into one value per variable column.

        Works from the bottom row up. Rows whose coefficients are all zero are
        skipped (redundant, or contradictory when the sum is non-zero). For every
        other row the leading column's value is:

            x[lead] = (sum - Σ row[c]·x[c] for c > lead) / row[lead]

        Args:
            initial: Values for columns that never receive a leading entry
                (free variables of an under-constrained system). Defaults to 0.

        Returns:
            1D array of length width-1

        Note:
            Reduces the matrix first if rref() has not been called.
        """
        self._ensure_reduced()
        n_vars = self.width - 1

        if initial is None:
            x = np.zeros(n_vars)
        else:
            x = np.array(initial, dtype=float)
            if x.shape != (n_vars,):
                raise ValueError(
                    f"Initial values must have shape ({n_vars},), got {x.shape}"
                )

        zero_rows = self._zero_rows()

        for row in range(self.height - 1, -1, -1):
            if zero_rows[row]:
                continue

            coefficients = self.data[row, :-1]
            lead = self._lead_column(row)

            # Later pivots are already solved; free columns hold their initial value
            remainder = coefficients[lead + 1:] @ x[lead + 1:]
            x[lead] = (self.data[row, -1] - remainder) / coefficients[lead]

        return x

    def is_over_constrained(self) -> bool:
        """
        Check for an impossible equation (0 = non-zero) in the reduced matrix.

        Returns:
            True if no solution exists
        """
        self._ensure_reduced()
        nonzero_sums = np.abs(self.data[:, -1]) > self.tolerance
        return bool(np.any(self._zero_rows() & nonzero_sums))

    def is_under_constrained(self) -> bool:
        """
        Check for fewer independent equations than variables.

        Returns:
            True if the solution is not unique
        """
        return self.rank() < self.width - 1

    def rank(self) -> int:
        """Number of rows with a non-zero coefficient after reduction"""
        self._ensure_reduced()
        return int(np.count_nonzero(~self._zero_rows()))

    def pivot_columns(self) -> List[int]:
        """Indices of the columns holding a leading entry after reduction"""
        self._ensure_reduced()
        zero_rows = self._zero_rows()
        return [self._lead_column(row) for row in range(self.height) if not zero_rows[row]]

    def _ensure_reduced(self) -> None:
        if not self._reduced:
            self.rref()

    def _pivot_row(self, lead_column: int, lead_row: int) -> int:
        """
        Row at or below lead_row with the largest magnitude in lead_column.

        Choosing the largest value rather than the first non-zero one keeps
        the elimination multipliers at most 1 in magnitude.
        """
        column = np.abs(self.data[lead_row:, lead_column])
        return lead_row + int(np.argmax(column))

    def _swap_rows(self, row_a: int, row_b: int) -> None:
        if row_a != row_b:
            self.data[[row_a, row_b]] = self.data[[row_b, row_a]]

    def _subtract_pivot(self, pivot_column: int, pivot_row: int) -> None:
        """Eliminate pivot_column from every row below pivot_row"""
        below = self.data[pivot_row + 1:]
        if below.shape[0] == 0:
            return

        multipliers = below[:, pivot_column] / self.data[pivot_row, pivot_column]
        below[:, pivot_column:] -= np.outer(multipliers, self.data[pivot_row, pivot_column:])

        # Exact zeros below the pivot, not rounding residue
        below[:, pivot_column] = 0.0

    def _reduce_row(self, lead_column: int, row: int) -> None:
        """Scale row so its leading entry is 1"""
        self.data[row, lead_column:] /= self.data[row, lead_column]
        self.data[row, lead_column] = 1.0

    def _lead_column(self, row: int) -> int:
        nonzero = np.abs(self.data[row, :-1]) > self.tolerance
        return int(np.argmax(nonzero))

    def _zero_rows(self) -> np.ndarray:
        """Boolean mask of rows whose coefficients (sum column excluded) are all zero"""
        return np.all(np.abs(self.data[:, :-1]) <= self.tolerance, axis=1)

    def __repr__(self) -> str:
        state = "reduced" if self._reduced else "unreduced"
        return f"Matrix({self.height}x{self.width}, {state})"
