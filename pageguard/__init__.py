"""PageGuard: passive page security heuristics with alert coordination."""

__version__ = "0.1.0"
