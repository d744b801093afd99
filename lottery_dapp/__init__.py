"""Browser client for a pre-deployed lottery contract."""

__version__ = "1.0.0"
