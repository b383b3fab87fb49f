"""Tools for building and testing distributed systems."""

__version__ = "0.1.0"