"""Persistent project-knowledge store exposed as a set of tools."""

__version__ = "1.0.0"
