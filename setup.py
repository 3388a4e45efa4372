from setuptools import setup, find_packages

setup(
    name='constraint_solver',
    version='0.1.0',
    description='Live linear constraint solver that keeps dependent variables up to date',
    author='Constraint Solver Team',
    packages=find_packages(exclude=['tests', 'tests.*', 'examples']),
    install_requires=[
        'numpy>=1.24.0',
    ],
    extras_require={
        'dev': [
            'pytest>=7.0.0',
            'pytest-cov>=4.0.0',
            'scipy>=1.10.0',
        ]
    },
    python_requires='>=3.9',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Topic :: Scientific/Engineering :: Mathematics',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
    ],
)
