"""
Custom exceptions for wiki page extraction.

Separates transport failures from malformed markup so callers can decide
which failures degrade to empty results and which are configuration bugs.
"""


class WikiDexError(Exception):
    pass


class TransportError(WikiDexError):
    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class MalformedInputError(WikiDexError):
    pass


class ConfigurationError(WikiDexError):
    pass
