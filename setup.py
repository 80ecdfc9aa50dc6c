"""Setup file for editable install compatibility."""
from setuptools import setup, find_packages

setup(
    name="predictive-portfolio",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.20",
        "pandas>=1.3",
        "scipy>=1.7",
        "openpyxl>=3.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "pp-analyze=predictive_portfolio.cli.main:main",
        ],
    },
    python_requires=">=3.8",
)
