"""Risk & compliance decision engine for notarial operations."""
