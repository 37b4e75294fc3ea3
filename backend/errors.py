"""Error types raised by the Knowledge Vault backend."""


class VaultError(Exception):
    """Base class for errors raised by the retrieval core."""


class InputError(VaultError, ValueError):
    """Invalid arguments to a pure function, e.g. vectors of different length."""


class ModelLoadError(VaultError, RuntimeError):
    """The model or vocabulary could not be loaded. Retrying may succeed."""


class InferenceError(VaultError, RuntimeError):
    """The inference engine failed or produced no usable output."""
