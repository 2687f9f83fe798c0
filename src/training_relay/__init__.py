"""Signed training-data upload relay."""
