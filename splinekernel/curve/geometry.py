import numpy

from ..linalg import lu

def closest_point(point, points):
    """Find the closest position in in array 'points' to the provided 'point'."""
    points_arr = numpy.asarray(points)
    distances_squared = ((points_arr - point)**2).sum(axis=1)
    i = numpy.argmin(distances_squared)
    return i, points[i]

def closest_point_to_line_segments(point, lines_start, lines_end):
    """Given a point and a set of line segments (specified by starting
    and ending points), return the point on each line segment that is closest to the
    given point, and the parametric position along each line of that point."""
    v = lines_end - lines_start
    w = point - lines_start
    c1 = (v*w).sum(axis=1)
    c2 = (v*v).sum(axis=1)
    # degenerate segments: any position is as good as the start
    fractional_positions = numpy.divide(c1, c2, out=numpy.zeros_like(c1), where=c2 > 0)
    fractional_positions = fractional_positions.clip(0, 1)
    closest_points = lines_start + fractional_positions[:,numpy.newaxis]*v
    return closest_points, fractional_positions

def closest_point_on_polyline(point, points, parameters):
    """Return the point along a polyline nearest the given point and the parametric
    position of that point along the polyline, interpolated linearly between the
    parameter values given for each vertex."""
    points = numpy.asarray(points, dtype=float)
    closest_points, fractions = closest_point_to_line_segments(point, points[:-1], points[1:])
    distances = numpy.sqrt(((point - closest_points)**2).sum(axis=1))
    point_idx = distances.argmin()
    closest_point = closest_points[point_idx]
    start_u, stop_u = parameters[point_idx:point_idx+2]
    u_val = start_u + fractions[point_idx]*(stop_u - start_u)
    return closest_point, u_val

def angle_between_vectors(v_from, v_to):
    """Calculate the angle in radians between two vectors of any dimension.
    Zero vectors are taken to make a zero angle with everything."""
    norms = numpy.linalg.norm(v_from) * numpy.linalg.norm(v_to)
    if norms == 0:
        return 0.0
    cos_angle = numpy.dot(v_from, v_to) / norms
    return numpy.arccos(numpy.clip(cos_angle, -1, 1))

def project_onto_span(vector, basis):
    """Express 'vector' as a least-squares combination of the given basis vectors.

    Parameters:
    vector: array of shape (m,)
    basis: array of shape (k,m) of k vectors in m dimensions

    Returns (coefficients, projection), where coefficients has shape (k,) and
    projection = numpy.dot(coefficients, basis).

    Raises lu.LUDecompositionError if the basis vectors are linearly dependent
    so exactly that the Gram matrix is singular."""
    basis = numpy.asarray(basis, dtype=float)
    gram = numpy.dot(basis, basis.T)
    coefficients = lu.lu_solve_system(gram, numpy.dot(basis, vector))
    return coefficients, numpy.dot(coefficients, basis)

def angle_to_span(vector, basis):
    """Calculate the angle in radians between a vector and the space spanned by
    a set of basis vectors (shape (k,m)). If the basis is degenerate, the angle
    to the first non-zero basis vector is returned."""
    try:
        coefficients, projection = project_onto_span(vector, basis)
    except lu.LUDecompositionError:
        nonzero = [b for b in basis if numpy.any(b)]
        if not nonzero:
            return 0.0
        angle = angle_between_vectors(vector, nonzero[0])
        return min(angle, numpy.pi - angle)
    if not numpy.any(projection):
        return 0.0 if not numpy.any(vector) else numpy.pi / 2
    return angle_between_vectors(vector, projection)
