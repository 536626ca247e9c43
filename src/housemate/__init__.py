"""Household debt simplification and performance scoring."""

__version__ = "0.1.0"
