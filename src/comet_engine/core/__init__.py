"""Core math, constants, errors and models."""
