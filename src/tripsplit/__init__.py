"""Tripsplit - shared trip expenses and minimal settlements."""

__version__ = "0.1.0"
