"""
Error taxonomy for the bridge.

Every error carries the HTTP status it maps to and a short, client-safe
reason. Routes raise these; a single exception handler in main.py renders
them as {"error": <type>, "detail": <reason>}.
"""


class BridgeError(Exception):
    status_code = 500

    def __init__(self, reason: str = ""):
        super().__init__(reason)
        self.reason = reason or self.__class__.__name__


class ConfigurationError(BridgeError):
    """Signing key or credentials missing. The affected endpoint refuses to run."""
    status_code = 503


class ValidationError(BridgeError):
    status_code = 400


class NotFoundError(BridgeError):
    status_code = 404


class InvalidSignature(BridgeError):
    status_code = 400


class InvalidToken(BridgeError):
    status_code = 401


class ReplayError(BridgeError):
    """Reference already terminal. Never converted into a second success."""
    status_code = 409


class StorageError(BridgeError):
    status_code = 500


class ExternalServiceError(BridgeError):
    """Settlement authority or storage network unreachable or erroring. Retryable."""
    status_code = 502

    def __init__(self, reason: str = "", timeout: bool = False):
        super().__init__(reason)
        self.timeout = timeout
        if timeout:
            self.status_code = 504
