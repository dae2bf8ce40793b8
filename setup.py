"""
setup.py for the robonmpc Python package.

The package sources live under python/ and are installed with:

    pip install -e .

Development tools (tests, linters) come with the ``dev`` extra:

    pip install -e ".[dev]"
"""

from setuptools import find_packages, setup

setup(
    name="robonmpc",
    version="0.1.0",
    description="Nonlinear MPC for robotic manipulators with RK4 multiple shooting",
    package_dir={"": "python"},
    packages=find_packages(where="python"),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20",
        "scipy>=1.7",
        "casadi>=3.6",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "hypothesis>=6.0",
            "black>=23.0",
            "ruff>=0.1.0",
            "mypy>=1.0",
        ],
    },
)
