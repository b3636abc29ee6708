"""AI engine connections."""

from .connections import AIEngineBinder

__all__ = ["AIEngineBinder"]
