"""HALCYON Cinema production API."""

__version__ = "0.1.0"
