"""Exception hierarchy for the semdex indexing core."""


class SemdexError(Exception):
    """Base class for all semdex errors."""


class ConfigurationError(SemdexError, ValueError):
    """Invalid configuration, raised at construction time."""


class ValidationError(SemdexError):
    """Malformed document content or embedding shape."""


class EmbeddingError(SemdexError):
    """The embedding provider could not produce a vector."""


class PersistenceError(SemdexError):
    """A read or write against the key-value store failed."""


class NotFoundError(SemdexError):
    """A referenced document id is not indexed."""
