"""Adaptive SAT practice: session, grading and scoring core."""

__version__ = "0.1.0"
