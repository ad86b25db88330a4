"""taskgraph: dependency graph maintenance for tasks.json work breakdowns."""

__version__ = "1.0.0"
