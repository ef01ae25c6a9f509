"""Shared building blocks for the HALCYON Cinema services."""

__version__ = "0.1.0"
