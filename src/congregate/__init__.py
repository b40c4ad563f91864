"""Multi-tenant church attendance check-in core."""

__version__ = "0.1.0"
