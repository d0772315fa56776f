from .linear import LinearAPIError, LinearClient

__all__ = ["LinearAPIError", "LinearClient"]
