"""Shared helpers: logging, errors, identifiers, problem details."""
