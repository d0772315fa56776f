"""Linear agent webhook service."""

__version__ = "0.1.0"
