import numpy
import pytest
from scipy import sparse

from splinekernel.linalg import cg

def laplacian_1d(n):
    return sparse.diags([-numpy.ones(n-1), 2 * numpy.ones(n), -numpy.ones(n-1)], [-1, 0, 1]).tocsr()

def laplacian_2d(m):
    t = laplacian_1d(m)
    identity = sparse.identity(m)
    return (sparse.kron(identity, t) + sparse.kron(t, identity)).tocsr()

def test_diagonal_matrix():
    diagonal = numpy.array([1., 2., 3., 4., 5.])
    b = numpy.array([2., -4., 9., 1., 10.])
    solver = cg.SolveCG()
    solver.attach_matrix(diagonal, numpy.arange(5), numpy.arange(6))
    x, status, iterations, residual = solver.solve(numpy.zeros(5), b)
    assert status == cg.CGStatus.CONVERGED
    assert iterations <= 5
    assert numpy.allclose(x, b / diagonal)

def test_diagonal_matrix_preconditioned():
    diagonal = numpy.array([1., 20., 300.])
    b = numpy.array([1., 1., 1.])
    solver = cg.SolveCG()
    solver.attach_matrix(diagonal, [0, 1, 2], [0, 1, 2, 3])
    assert solver.precondition_rilu(0.5) == cg.CGStatus.CONVERGED
    result = solver.solve(numpy.zeros(3), b)
    assert result.status == cg.CGStatus.CONVERGED
    assert result.iterations == 1
    assert numpy.allclose(result.x, b / diagonal)

def test_matches_direct_solution():
    a = laplacian_2d(6)
    b = numpy.linspace(-1, 1, 36)
    solver = cg.SolveCG(tolerance=1e-10)
    solver.attach_sparse(a)
    result = solver.solve(numpy.zeros(36), b)
    assert result.status == cg.CGStatus.CONVERGED
    assert numpy.allclose(result.x, numpy.linalg.solve(a.toarray(), b))

def test_preconditioning_reduces_iterations():
    a = laplacian_2d(12)
    b = numpy.ones(144)
    plain = cg.SolveCG()
    plain.attach_sparse(a)
    unpreconditioned = plain.solve(numpy.zeros(144), b)
    preconditioned_solver = cg.SolveCG()
    preconditioned_solver.attach_sparse(a)
    assert preconditioned_solver.precondition_rilu(0.95) == cg.CGStatus.CONVERGED
    preconditioned = preconditioned_solver.solve(numpy.zeros(144), b)
    assert unpreconditioned.status == preconditioned.status == cg.CGStatus.CONVERGED
    assert preconditioned.iterations < unpreconditioned.iterations
    exact = numpy.linalg.solve(a.toarray(), b)
    assert numpy.allclose(preconditioned.x, exact, atol=1e-2)
    assert numpy.allclose(unpreconditioned.x, exact, atol=1e-2)

def test_rilu_is_exact_for_tridiagonal():
    # no fill-in occurs, so the incomplete factorization is the complete one
    n = 100
    a = laplacian_1d(n)
    b = numpy.sin(numpy.linspace(0, 3, n))
    solver = cg.SolveCG(tolerance=1e-10)
    solver.attach_sparse(a)
    standard = solver.solve(numpy.zeros(n), b)
    solver.precondition_rilu(0.0)
    preconditioned = solver.solve(numpy.zeros(n), b)
    assert preconditioned.status == cg.CGStatus.CONVERGED
    assert preconditioned.iterations <= 2
    assert standard.iterations > 10
    precond = solver.preconditioner_matrix().toarray()
    lower = numpy.tril(precond, -1) + numpy.eye(n)
    upper = numpy.triu(precond)
    assert numpy.allclose(lower @ upper, a.toarray())

def test_relaxation_moves_dropped_fill_to_diagonal():
    a = laplacian_2d(3)
    solver = cg.SolveCG()
    solver.attach_sparse(a)
    solver.precondition_rilu(0.0)
    ilu = solver.preconditioner_matrix().toarray()
    solver.precondition_rilu(1.0)
    milu = solver.preconditioner_matrix().toarray()
    # the first row has no fill to drop
    assert milu[0, 0] == ilu[0, 0] == 4
    assert numpy.all(numpy.diagonal(milu) <= numpy.diagonal(ilu))
    assert numpy.any(numpy.diagonal(milu) < numpy.diagonal(ilu))
    # fully relaxed ILU preserves row sums
    lower = numpy.tril(milu, -1) + numpy.eye(9)
    upper = numpy.triu(milu)
    assert numpy.allclose((lower @ upper).sum(axis=1), a.toarray().sum(axis=1))

def test_unsorted_columns():
    # row 0: entries (0,1) and (0,0) given in reverse order
    values = [1., 4., 1., 3.]
    col_indices = [1, 0, 0, 1]
    row_starts = [0, 2, 4]
    solver = cg.SolveCG(tolerance=1e-12)
    solver.attach_matrix(values, col_indices, row_starts)
    assert solver.get_index(0, 0) == 1
    assert solver.get_index(1, 1) == 3
    assert solver.precondition_rilu(0.5) == cg.CGStatus.CONVERGED
    result = solver.solve([0., 0.], [1., 2.])
    assert numpy.allclose(result.x, numpy.linalg.solve([[4., 1.], [1., 3.]], [1., 2.]))

def test_get_index_outside_pattern():
    solver = cg.SolveCG()
    solver.attach_sparse(laplacian_1d(5))
    assert solver.get_index(0, 4) == -1
    assert solver.get_index(2, 1) >= 0

def test_attach_dense():
    a = numpy.array([[4., 1., 0.], [1., 3., 1.], [0., 1., 2.]])
    solver = cg.SolveCG(tolerance=1e-12)
    solver.attach_dense(a)
    assert solver.size == 3
    result = solver.solve(numpy.zeros(3), [1., 2., 3.])
    assert numpy.allclose(a @ result.x, [1., 2., 3.])

def test_initial_guess_is_used_and_preserved():
    a = laplacian_1d(10)
    exact = numpy.arange(10.0)
    solver = cg.SolveCG()
    solver.attach_sparse(a)
    guess = exact.copy()
    result = solver.solve(guess, a @ exact)
    assert result.iterations == 0
    assert numpy.all(guess == exact)
    assert result.x is not guess

def test_zero_right_hand_side():
    solver = cg.SolveCG()
    solver.attach_sparse(laplacian_1d(4))
    result = solver.solve(numpy.ones(4), numpy.zeros(4))
    assert result.status == cg.CGStatus.CONVERGED
    assert numpy.all(result.x == 0)

def test_iteration_limit():
    a = laplacian_2d(8)
    solver = cg.SolveCG()
    solver.attach_sparse(a)
    solver.set_max_iterations(2)
    result = solver.solve(numpy.zeros(64), numpy.ones(64))
    assert result.status == cg.CGStatus.ITERATION_LIMIT
    assert result.iterations == 2
    assert numpy.all(numpy.isfinite(result.x))
    assert numpy.any(result.x != 0)

def test_tolerance_setter():
    a = laplacian_2d(8)
    b = numpy.ones(64)
    solver = cg.SolveCG()
    solver.attach_sparse(a)
    solver.set_tolerance(1e-2)
    loose = solver.solve(numpy.zeros(64), b)
    solver.set_tolerance()
    tight = solver.solve(numpy.zeros(64), b)
    assert loose.iterations < tight.iterations
    assert tight.residual <= 1e-6 * numpy.linalg.norm(b)

def test_structural_errors():
    solver = cg.SolveCG()
    assert solver.solve(numpy.zeros(3), numpy.ones(3)).status == cg.CGStatus.NO_MATRIX
    assert solver.precondition_rilu(0.5) == cg.CGStatus.NO_MATRIX
    solver.attach_sparse(laplacian_1d(3))
    result = solver.solve(numpy.zeros(4), numpy.ones(4))
    assert result.status == cg.CGStatus.SIZE_MISMATCH
    assert result.status < 0
    with pytest.raises(ValueError):
        solver.precondition_rilu(1.5)
    with pytest.raises(ValueError):
        solver.attach_matrix([1., 2.], [0, 1], [0, 1])

def test_duplicate_entries_rejected():
    # (0, 0) listed twice: the CSR product would add them, the factorization would not
    solver = cg.SolveCG()
    with pytest.raises(ValueError):
        solver.attach_matrix([1., 1., 1., 2.], [0, 0, 1, 1], [0, 3, 4])
    assert solver.size is None
    # the same column in different rows is fine
    solver.attach_matrix([2., 1., 3.], [0, 0, 1], [0, 1, 3])
    assert solver.size == 2

def test_missing_diagonal():
    a = sparse.csr_matrix(numpy.array([[0., 1.], [1., 2.]]))
    solver = cg.SolveCG()
    solver.attach_sparse(a)
    assert solver.precondition_rilu(0.5) == cg.CGStatus.MISSING_DIAGONAL
    assert solver.solve(numpy.zeros(2), numpy.ones(2)).status == cg.CGStatus.MISSING_DIAGONAL

def test_singular_pivot():
    # pivot of row 1 becomes 1 - 1*1 = 0 during the factorization
    a = numpy.array([[1., 1.], [1., 1.]])
    solver = cg.SolveCG()
    solver.attach_dense(a)
    assert solver.precondition_rilu(0.0) == cg.CGStatus.SINGULAR_PIVOT
    assert solver.solve(numpy.zeros(2), numpy.ones(2)).status == cg.CGStatus.SINGULAR_PIVOT

def test_reattach_discards_preconditioner():
    solver = cg.SolveCG()
    solver.attach_dense([[1., 1.], [1., 1.]])
    solver.precondition_rilu(0.0)
    solver.attach_sparse(laplacian_1d(2))
    assert solver.preconditioner_matrix() is None
    result = solver.solve(numpy.zeros(2), numpy.ones(2))
    assert result.status == cg.CGStatus.CONVERGED
