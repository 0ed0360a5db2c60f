"""ARVA asset verification registry."""

__version__ = "1.0.0"
