"""Invigilator Timer: desk-centric exam countdowns with D.P. time."""

__version__ = "0.1.0"
