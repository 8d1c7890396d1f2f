'''
Curve
-----
Evaluation and closest-point search for parametric curves, and the evaluators that generate fitting data from them.
 - curve.evaluator: the EvalCurve and EvalCurveSet interfaces shared by everything that can be sampled and approximated.
 - curve.spline: B-spline curves and surfaces (using scipy.interpolate.BSpline), and the knot and basis helpers used to fit them.
 - curve.geometry: basic vector and polyline helpers.
 - curve.closest_point: Newton iteration for the closest point on a curve or surface to a given point.
 - curve.projection: projection of a space curve and its cross-tangent curve onto a surface.
 - curve.offset: offset curve along a blend of two cross-tangent curves.
 - curve.approximate: spline approximation of any evaluator to within its own tolerances.
'''
