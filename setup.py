from setuptools import setup, find_packages

setup(
    name="multiclock",
    version="0.1.0",
    description="Clade-specific strict and relaxed molecular clock rates with MCMC-style caching",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy>=1.24",
        "scipy>=1.10",
        "biopython>=1.81",
    ],
    extras_require={
        "dev": ["pytest>=7.4"],
    },
    entry_points={
        "console_scripts": [
            "multiclock=multiclock.cli:main",
        ],
    },
)
