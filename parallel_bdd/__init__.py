"""Parallel execution of BDD scenarios across a pool of isolated workers."""

__version__ = "0.1.0"
