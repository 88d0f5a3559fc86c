"""Typing indicator module."""

from .debouncer import TypingDebouncer

__all__ = ["TypingDebouncer"]
