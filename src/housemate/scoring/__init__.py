"""Reliability scoring for expense and task obligations."""
