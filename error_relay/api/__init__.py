"""Operator API"""

from .routes import router, set_reporter

__all__ = ["router", "set_reporter"]
