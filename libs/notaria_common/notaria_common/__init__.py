"""Shared helpers for notarial compliance services."""
