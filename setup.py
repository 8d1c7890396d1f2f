import setuptools

setuptools.setup(
    name = 'splinekernel',
    version = '1.0',
    description = 'linear solvers, curve evaluators and closest-point search for spline fitting',
    packages = setuptools.find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.8',
    install_requires=['numpy', 'scipy>=1.4'],
    extras_require={'test': ['pytest']},
)
