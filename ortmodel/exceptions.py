"""Model related exception hierarchy."""


class ModelError(Exception):
    """Base model exception."""


class InvalidModelError(ModelError, ValueError):
    """Raised when a model envelope violates a structural invariant.

    Typical reasons: no envelope, no graph, no opset imports.
    """


class SchemaRegistryError(ModelError):
    """Raised when a schema source cannot be registered or loaded.

    Reasons: duplicate domain, version range mismatch, invalid manifest.
    """
