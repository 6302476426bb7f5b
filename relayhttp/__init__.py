"""Blocking HTTP/1.1 client with a pool of keep-alive connections."""

__version__ = "0.1.0"
__all__ = ["__version__"]