"""Contract deadline tracking for real estate agents."""

__version__ = "0.1.0"
