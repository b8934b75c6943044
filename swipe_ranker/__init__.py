"""Candidate ranking for gaze/pointer swipe typing."""

__version__ = "0.1.0"
