class EncodingError(ValueError):
    """Raised when serialized JSON cannot be encoded before Base64."""


class SerializationError(ValueError):
    """Raised when a payload cannot be turned into its JSON string form."""


class KeyNotFoundError(KeyError):
    """Raised when a parameter lookup targets an absent key."""


class MissingConfigError(KeyNotFoundError):
    """Raised when a configuration flag is read before it was set."""
