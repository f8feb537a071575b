"""Shared helpers: logging, validators, time utilities."""
