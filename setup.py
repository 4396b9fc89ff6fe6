"""
setup.py for the ambloc package.

ambloc builds scenario samples, dispatches them to an external optimizer
and constructs ambulance location configurations from the results.

Install for development with:
    pip install -e ".[dev]"
"""

from setuptools import find_packages, setup

setup(
    name="ambloc",
    version="0.1.0",
    description="Sample-based ambulance location and assignment under uncertain demand",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20",
        "scipy>=1.9",
        "loguru>=0.7",
        "pyyaml>=6.0",
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
