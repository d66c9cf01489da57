"""Seamless video loop maker."""

__version__ = "0.1.0"
