"""Wellness event tracking: registrations, attendance and evaluations."""

__version__ = "0.3.0"
