"""Allocation engine services."""
