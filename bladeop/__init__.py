"""Chaos experiment operator core: experiment types, reconciliation, pod mutation and file-system fault hooks."""

__version__ = "1.7.4"