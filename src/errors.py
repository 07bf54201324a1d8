#!/usr/bin/env python3
"""
errors.py - Exceptions raised while building transliteration engines

Only construction can fail. Once an Engine exists, execute() and reset()
accept any symbol without raising.
"""


class LipikaError(Exception):
    """Base class of every error raised by this library."""


class ParseError(LipikaError, ValueError):
    """A mapping, rule or custom mapping definition could not be parsed.

    line_number is 1-based when the offending line is known.
    """

    def __init__(self, message, line_number=None):
        self.message = message
        self.line_number = line_number
        if line_number is not None:
            message = f'Line {line_number}: {message}'
        super().__init__(message)


class InvalidSelectionError(LipikaError, LookupError):
    """The requested scheme, script or custom mapping is not available."""
