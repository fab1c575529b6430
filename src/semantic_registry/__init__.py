"""Semantic metadata registry for IoT device descriptions."""

__version__ = "0.1.0"
