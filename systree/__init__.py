"""Cycle-free forest index of identified systems."""

__version__ = "0.1.0"
