"""Core configuration, logging, errors and datetime helpers."""
