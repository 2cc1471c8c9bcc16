"""Exceptions raised by custmerge."""

from __future__ import annotations


class CustmergeError(Exception):
    """Base class for custmerge errors."""


class EmptyNameError(CustmergeError, ValueError):
    """A customer name was empty or whitespace-only and cannot be scored."""

    code = "EMPTY_NAME"

    def __init__(self, name: object = None) -> None:
        super().__init__(f"{self.code}: customer name is empty ({name!r})")
        self.name = name


class ConfigError(CustmergeError, ValueError):
    """A MatchConfig failed validation."""
