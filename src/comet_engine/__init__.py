"""Accounting and risk engine for a single-asset money market."""

__version__ = "0.1.0"
