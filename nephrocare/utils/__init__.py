"""Shared helpers for error formatting and correlation-aware logging."""
