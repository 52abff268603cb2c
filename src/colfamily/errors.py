"""Exception hierarchy for finder synthesis and dispatch."""


class FinderError(Exception):
    """Base exception for all colfamily errors."""


class SchemaError(FinderError, ValueError):
    """Raised when a record schema is declared or finalized incorrectly."""


class UnsupportedOperation(FinderError, AttributeError):
    """Raised when a finder name has no synthesized dispatch entry.

    Subclasses AttributeError so ``hasattr`` and ``getattr`` with a default
    treat unknown finders exactly like missing attributes.
    """


class ArgumentTypeError(FinderError, TypeError):
    """Raised when a finder argument cannot be coerced to its column type."""


class QueryError(FinderError):
    """Raised when a scope is composed with unknown columns or bad bounds."""
