"""MULTICLOCK package.

Per-branch clock rates for rooted binary trees in which declared clades run
their own strict or relaxed clock. ``clock`` holds the models, ``reporting``
writes their trace columns, and ``cli`` prints a rate table.
"""

__all__ = [
    "trees",
    "clades",
    "parameters",
    "distributions",
    "categories",
    "scaling",
    "cache",
    "clock",
    "reporting",
    "exceptions",
    "cli",
]
