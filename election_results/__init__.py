"""Cleaning and summarising constituency-level general election results."""

__version__ = "0.1.0"
