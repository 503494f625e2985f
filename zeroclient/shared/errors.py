"""
Exception hierarchy for the production client.

NetworkError and its subclasses are transient and retried by the model store.
FatalClientError ends the process. EngineError only ends the worker that hit it.
"""


class ClientError(Exception):
    """Base class for all client errors."""


class NetworkError(ClientError):
    """Transient failure talking to the server; safe to retry."""


class TransferError(NetworkError):
    """The transfer agent failed to fetch, download or submit."""


class CorruptModelError(NetworkError):
    """A downloaded model did not hash to its claimed name."""


class FatalClientError(ClientError):
    """Unrecoverable condition; the process must exit with failure status."""


class EngineError(ClientError):
    """The self-play engine process died, timed out or answered with an error."""
