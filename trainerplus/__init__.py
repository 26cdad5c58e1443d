"""Trainer Plus: sports-club management backend."""

__version__ = "0.4.0"
