"""Dense LU decomposition with scaled partial pivoting (Crout's method),
and the forward/backward substitution that goes with it.

The decomposition overwrites its input: afterwards the strict lower triangle
holds the multipliers of the unit-lower factor L and the upper triangle
(diagonal included) holds U, such that L.U equals the input matrix with its
rows reordered by the returned permutation.
"""
import logging

import numpy

logger = logging.getLogger(__name__)

class LUDecompositionError(RuntimeError):
    """A matrix could not be LU decomposed."""

class NullRowError(LUDecompositionError):
    """The matrix has a row consisting entirely of zeros."""

class SingularMatrixError(LUDecompositionError):
    """An exactly-zero pivot was encountered during elimination."""


def _check_square(matrix):
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError('Matrix must be square, not of shape {}.'.format(matrix.shape))
    if matrix.shape[0] == 0:
        raise ValueError('Matrix must have at least one row.')


def lu_decompose(matrix):
    """LU decompose a square matrix in place.

    Each row is scaled by the reciprocal of its largest absolute entry when
    comparing pivot candidates, so the pivot choice does not depend on the
    absolute magnitude of the rows. For each column the first row with the
    largest scaled entry becomes the pivot row, and is physically swapped into
    position.

    Only exact zeros are treated as failures: there is no tolerance for
    near-singular matrices.

    Parameters:
        matrix: square numpy array of floating-point type, shape (n, n). It is
            overwritten with the L and U factors.

    Returns: (permutation, parity)
        permutation: integer array of shape (n,); row i of the decomposed
            matrix corresponds to row permutation[i] of the input.
        parity: +1 if an even number of row swaps was performed, -1 if odd.

    Raises:
        NullRowError: if a row of the input is all zeros.
        SingularMatrixError: if a pivot is exactly zero.
    """
    if not isinstance(matrix, numpy.ndarray) or not numpy.issubdtype(matrix.dtype, numpy.floating):
        raise ValueError('Matrix must be a floating-point numpy array to be decomposed in place.')
    _check_square(matrix)
    n = matrix.shape[0]
    permutation = numpy.arange(n)
    parity = 1

    scaling = numpy.absolute(matrix).max(axis=1)
    null_rows = numpy.nonzero(scaling == 0)[0]
    if len(null_rows) > 0:
        raise NullRowError('Unable to LU decompose matrix: row {} is null.'.format(null_rows[0]))
    scaling = 1 / scaling

    for j in range(n):
        # elements of U above the diagonal in this column
        for i in range(1, j):
            matrix[i, j] -= numpy.dot(matrix[i, :i], matrix[:i, j])
        # rest of the column, before division by the pivot
        pivot_val = 0
        pivot_row = j
        for i in range(j, n):
            matrix[i, j] -= numpy.dot(matrix[i, :j], matrix[:j, j])
            scaled = abs(matrix[i, j] * scaling[i])
            if scaled > pivot_val:
                pivot_val = scaled
                pivot_row = i

        if matrix[pivot_row, j] == 0:
            raise SingularMatrixError('Unable to LU decompose singular matrix: zero pivot in column {}.'.format(j))

        if pivot_row != j:
            matrix[[j, pivot_row]] = matrix[[pivot_row, j]]
            scaling[[j, pivot_row]] = scaling[[pivot_row, j]]
            permutation[[j, pivot_row]] = permutation[[pivot_row, j]]
            parity = -parity

        if j < n - 1:
            matrix[j+1:, j] /= matrix[j, j]
    logger.debug('LU decomposed %d x %d matrix, parity %+d', n, n, parity)
    return permutation, parity


def forward_substitution(lu, x):
    """Solve L.y = x in place, where L is the unit-lower-triangular factor
    stored below the diagonal of an LU-decomposed matrix.

    x may be of shape (n,) or (n, d), in which case each of the d columns is an
    independent right-hand side."""
    for i in range(1, len(x)):
        x[i] -= numpy.dot(lu[i, :i], x[:i])
    return x


def backward_substitution(lu, x):
    """Solve U.y = x in place, where U is the upper-triangular factor (including
    the diagonal) of an LU-decomposed matrix.

    x may be of shape (n,) or (n, d)."""
    n = len(x)
    x[n-1] /= lu[n-1, n-1]
    for i in range(n-2, -1, -1):
        x[i] -= numpy.dot(lu[i, i+1:], x[i+1:])
        x[i] /= lu[i, i]
    return x


def lu_solve(lu, permutation, rhs):
    """Solve A.x = rhs given the output of lu_decompose(A).

    Parameters:
        lu: the decomposed matrix, shape (n, n)
        permutation: the permutation returned by lu_decompose
        rhs: right-hand side of shape (n,), or of shape (n, d) to solve d
            independent systems sharing the same matrix (e.g. one per spatial
            dimension of a set of curve coefficients).

    Returns: solution array with the same shape as rhs. The rhs array itself is
        not modified.
    """
    rhs = numpy.asarray(rhs, dtype=float)
    if lu.ndim != 2 or lu.shape[0] != lu.shape[1]:
        raise ValueError('Decomposed matrix must be square, not of shape {}.'.format(lu.shape))
    if len(permutation) != lu.shape[0] or rhs.shape[0] != lu.shape[0]:
        raise ValueError('Size mismatch: matrix has {} rows, permutation {} entries and right-hand side {} rows.'.format(
            lu.shape[0], len(permutation), rhs.shape[0]))
    x = rhs[numpy.asarray(permutation)]
    forward_substitution(lu, x)
    backward_substitution(lu, x)
    return x


def lu_solve_system(matrix, rhs):
    """Solve A.x = rhs by LU decomposition.

    If matrix is a floating-point numpy array it is decomposed in place (and
    thus destroyed); any other array-like is copied first.

    Returns: solution array with the same shape as rhs.
    """
    if not isinstance(matrix, numpy.ndarray) or not numpy.issubdtype(matrix.dtype, numpy.floating):
        matrix = numpy.array(matrix, dtype=float)
    permutation, parity = lu_decompose(matrix)
    return lu_solve(matrix, permutation, rhs)


def lu_determinant(lu, parity):
    """Determinant of the original matrix, from its LU decomposition and the
    parity of the row permutation."""
    return parity * numpy.prod(numpy.diagonal(lu))
