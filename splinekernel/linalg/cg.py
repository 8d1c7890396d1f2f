"""Solve A.x = b for a sparse symmetric positive definite matrix A with the
Conjugate Gradient method, optionally preconditioned by a Relaxed Incomplete LU
(RILU) factorization.

No test is made of whether the attached matrix really is symmetric and positive
definite: that is the caller's responsibility.

Example:
    solver = SolveCG()
    solver.attach_matrix(values, col_indices, row_starts)
    solver.precondition_rilu(0.95)
    x, status, iterations, residual = solver.solve(numpy.zeros(n), b)
"""
import collections
import enum
import logging

import numpy
from scipy import sparse
from scipy.sparse import linalg as sparse_linalg

from .. import config

logger = logging.getLogger(__name__)

class CGStatus(enum.IntEnum):
    """Outcome of a solve or of building a preconditioner. Negative values are
    structural errors."""
    CONVERGED = 0
    ITERATION_LIMIT = 1
    SIZE_MISMATCH = -1
    NO_MATRIX = -2
    MISSING_DIAGONAL = -3
    SINGULAR_PIVOT = -4

CGResult = collections.namedtuple('CGResult', ('x', 'status', 'iterations', 'residual'))


class SolveCG:
    """Conjugate gradient solver for one attached sparse SPD matrix.

    The matrix is stored in compressed sparse row form: values[row_starts[k]:row_starts[k+1]]
    are the nonzeros of row k, and col_indices holds the matching columns (which
    need not be sorted within a row).

    An instance owns its attached matrix and preconditioner; it is not safe to
    solve with the same instance from several threads at once.
    """
    def __init__(self, tolerance=config.CG_TOLERANCE, max_iterations=config.CG_MAX_ITERATIONS):
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self._matrix = None
        self._values = None
        self._col_indices = None
        self._row_starts = None
        self._clear_preconditioner()

    def _clear_preconditioner(self):
        self._omega = None
        self._diagonal = None
        self._precond_values = None
        self._precond_status = None
        self._lower = None
        self._upper = None

    @property
    def size(self):
        """Number of unknowns of the attached system, or None if no matrix is attached."""
        return None if self._matrix is None else self._matrix.shape[0]

    def set_tolerance(self, tolerance=config.CG_TOLERANCE):
        """Set the relative residual tolerance deciding when the solution is reached."""
        self.tolerance = tolerance

    def set_max_iterations(self, max_iterations):
        """Set the maximal number of iterations used by the solver."""
        self.max_iterations = max_iterations

    def attach_matrix(self, values, col_indices, row_starts):
        """Attach the left side of the equation system in compressed sparse row form.

        Any previously attached matrix and its preconditioner are discarded.

        Parameters:
            values: the np nonzero entries of the matrix
            col_indices: the np column indices of the nonzero entries
            row_starts: array of length n+1 with the index in values of the
                first nonzero of each row, and np as last element.
        """
        values = numpy.array(values, dtype=float)
        col_indices = numpy.array(col_indices, dtype=int)
        row_starts = numpy.array(row_starts, dtype=int)
        n = len(row_starts) - 1
        if n < 1:
            raise ValueError('row_starts must have at least two entries.')
        if len(values) != len(col_indices):
            raise ValueError('values and col_indices must have the same length.')
        if row_starts[0] != 0 or row_starts[-1] != len(values) or numpy.any(numpy.diff(row_starts) < 0):
            raise ValueError('row_starts must increase from 0 to the number of nonzeros.')
        if len(col_indices) and (col_indices.min() < 0 or col_indices.max() >= n):
            raise ValueError('Column indices must lie in [0, {}).'.format(n))
        rows = numpy.repeat(numpy.arange(n), numpy.diff(row_starts))
        if len(numpy.unique(rows * n + col_indices)) != len(col_indices):
            raise ValueError('Column indices must not repeat within a row.')
        self._values = values
        self._col_indices = col_indices
        self._row_starts = row_starts
        self._matrix = sparse.csr_matrix((values, col_indices, row_starts), shape=(n, n))
        self._clear_preconditioner()
        logger.debug('Attached %d x %d matrix with %d nonzeros', n, n, len(values))

    def attach_dense(self, matrix):
        """Attach a dense square matrix, keeping only its nonzero entries."""
        matrix = numpy.asarray(matrix, dtype=float)
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise ValueError('Matrix must be square, not of shape {}.'.format(matrix.shape))
        self.attach_sparse(sparse.csr_matrix(matrix))

    def attach_sparse(self, matrix):
        """Attach any scipy sparse matrix."""
        matrix = sparse.csr_matrix(matrix, copy=True)
        if matrix.shape[0] != matrix.shape[1]:
            raise ValueError('Matrix must be square, not of shape {}.'.format(matrix.shape))
        matrix.eliminate_zeros()
        self.attach_matrix(matrix.data, matrix.indices, matrix.indptr)

    def matrix_product(self, x):
        """Return A.x for the attached matrix A."""
        return self._matrix @ x

    def get_index(self, i, j):
        """Return the index in the nonzero array of entry (i, j), or -1 if the
        entry is not part of the sparsity pattern."""
        start, stop = self._row_starts[i:i+2]
        hits = numpy.nonzero(self._col_indices[start:stop] == j)[0]
        return start + hits[0] if len(hits) else -1

    def precondition_rilu(self, relaxation):
        """Build the RILU preconditioner for the attached matrix.

        The incomplete factorization keeps the sparsity pattern of A. Fill-in
        falling outside the pattern is dropped, and 'relaxation' times its value
        is subtracted from the diagonal of the row instead. Thus relaxation=0
        gives standard ILU(0) and relaxation=1 the fully relaxed (modified) ILU.

        Parameters:
            relaxation: relaxation factor in [0, 1].

        Returns: CGStatus.CONVERGED if the factorization succeeded, otherwise a
            negative CGStatus. In that case subsequent solves report the same
            status until the matrix is reattached or a new preconditioner is built.
        """
        if not 0 <= relaxation <= 1:
            raise ValueError('Relaxation factor must be in [0, 1], not {}.'.format(relaxation))
        self._clear_preconditioner()
        if self._matrix is None:
            return CGStatus.NO_MATRIX
        self._omega = relaxation
        n = self.size
        cols = self._col_indices
        starts = self._row_starts

        row_slots = [{cols[s]: s for s in range(starts[i], starts[i+1])} for i in range(n)]
        diagonal = numpy.array([self.get_index(i, i) for i in range(n)])
        if numpy.any(diagonal < 0):
            return self._fail_preconditioner(CGStatus.MISSING_DIAGONAL,
                'row {} has no diagonal entry'.format(numpy.nonzero(diagonal < 0)[0][0]))
        self._diagonal = diagonal

        m = self._values.copy()
        for i in range(n):
            slots = row_slots[i]
            for k in sorted(c for c in slots if c < i):
                pivot = m[diagonal[k]]
                if pivot == 0:
                    return self._fail_preconditioner(CGStatus.SINGULAR_PIVOT, 'zero pivot in row {}'.format(k))
                m[slots[k]] /= pivot
                factor = m[slots[k]]
                for j, s in row_slots[k].items():
                    if j <= k:
                        continue
                    if j in slots:
                        m[slots[j]] -= factor * m[s]
                    else:
                        m[diagonal[i]] -= relaxation * factor * m[s]
            if m[diagonal[i]] == 0:
                return self._fail_preconditioner(CGStatus.SINGULAR_PIVOT, 'zero pivot in row {}'.format(i))
        self._precond_values = m

        rows = numpy.repeat(numpy.arange(n), numpy.diff(starts))
        lower = cols < rows
        upper = cols >= rows
        identity = numpy.arange(n)
        self._lower = sparse.coo_matrix((numpy.concatenate([m[lower], numpy.ones(n)]),
            (numpy.concatenate([rows[lower], identity]), numpy.concatenate([cols[lower], identity]))),
            shape=(n, n)).tocsr()
        self._upper = sparse.coo_matrix((m[upper], (rows[upper], cols[upper])), shape=(n, n)).tocsr()
        self._lower.sort_indices()
        self._upper.sort_indices()
        self._precond_status = CGStatus.CONVERGED
        logger.debug('Built RILU preconditioner with relaxation %g', relaxation)
        return CGStatus.CONVERGED

    def _fail_preconditioner(self, status, reason):
        self._clear_preconditioner()
        self._precond_status = status
        logger.warning('RILU factorization failed: %s', reason)
        return status

    def preconditioner_matrix(self):
        """Return the LU-factorized preconditioning matrix as a csr_matrix (the
        multipliers of L below the diagonal, U on and above it), or None if no
        preconditioner has been built."""
        if self._precond_values is None:
            return None
        n = self.size
        return sparse.csr_matrix((self._precond_values, self._col_indices, self._row_starts), shape=(n, n))

    def forward_back(self, r):
        """Apply the preconditioner: solve M.s = r where M = L.U is the RILU factorization."""
        y = sparse_linalg.spsolve_triangular(self._lower, r, lower=True)
        return sparse_linalg.spsolve_triangular(self._upper, y, lower=False)

    def solve(self, x, b):
        """Solve the equation system by the conjugate gradient method.

        If precondition_rilu() has been called since the matrix was attached,
        the preconditioned method is used.

        Parameters:
            x: initial guess for the solution, shape (n,)
            b: right-hand side, shape (n,)

        Returns: CGResult named tuple (x, status, iterations, residual)
            x: the solution, or the best iterate if not converged. The input
                array is not modified.
            status: CGStatus.CONVERGED, CGStatus.ITERATION_LIMIT, or a negative
                CGStatus for structural errors.
            iterations: number of iterations performed.
            residual: norm of the final residual b - A.x
        """
        x = numpy.array(x, dtype=float)
        b = numpy.asarray(b, dtype=float)
        if self._matrix is None:
            return CGResult(x, CGStatus.NO_MATRIX, 0, numpy.nan)
        if x.shape != (self.size,) or b.shape != (self.size,):
            logger.error('Size mismatch: system has %d unknowns, got x of shape %s and b of shape %s',
                self.size, x.shape, b.shape)
            return CGResult(x, CGStatus.SIZE_MISMATCH, 0, numpy.nan)
        if self._precond_status is not None and self._precond_status < 0:
            return CGResult(x, self._precond_status, 0, numpy.nan)
        b_norm = numpy.linalg.norm(b)
        if b_norm == 0:
            x[:] = 0
            return CGResult(x, CGStatus.CONVERGED, 0, 0.0)
        if self._precond_status == CGStatus.CONVERGED:
            result = self._iterate(x, b, b_norm, self.forward_back)
        else:
            result = self._iterate(x, b, b_norm, None)
        if result.status == CGStatus.ITERATION_LIMIT:
            logger.warning('CG did not converge in %d iterations (residual %g)', result.iterations, result.residual)
        else:
            logger.debug('CG converged in %d iterations (residual %g)', result.iterations, result.residual)
        return result

    def _iterate(self, x, b, b_norm, precondition):
        # With precondition=None this is the standard method (z = r throughout).
        threshold = self.tolerance * b_norm
        r = b - self.matrix_product(x)
        z = r if precondition is None else precondition(r)
        p = z.copy()
        rz = numpy.dot(r, z)
        residual = numpy.linalg.norm(r)
        for iteration in range(self.max_iterations):
            if residual <= threshold:
                return CGResult(x, CGStatus.CONVERGED, iteration, residual)
            ap = self.matrix_product(p)
            pap = numpy.dot(p, ap)
            if pap <= 0:
                logger.warning('CG breakdown: search direction with p.A.p = %g', pap)
                return CGResult(x, CGStatus.ITERATION_LIMIT, iteration, residual)
            alpha = rz / pap
            x += alpha * p
            r -= alpha * ap
            residual = numpy.linalg.norm(r)
            z = r if precondition is None else precondition(r)
            rz_new = numpy.dot(r, z)
            p = z + (rz_new / rz) * p
            rz = rz_new
        status = CGStatus.CONVERGED if residual <= threshold else CGStatus.ITERATION_LIMIT
        return CGResult(x, status, self.max_iterations, residual)
