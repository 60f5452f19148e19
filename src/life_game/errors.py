from __future__ import annotations


class LifeGameError(Exception):
    pass


class ParseError(LifeGameError):
    """Persisted or imported data could not be turned into a snapshot."""


class MigrationError(ParseError):
    pass


class ValidationError(LifeGameError, ValueError):
    """User input rejected before any mutation happened."""


class NotFoundError(ValidationError):
    pass
