"""Error taxonomy shared by the credential, polling and CLI layers.

Every error carries a human-readable ``message`` and a ``retryable`` flag.
Only ``TransientError`` is retryable. The wait loop absorbs it; one-shot
commands report it as a failure worth re-running.
"""


class VercelActionError(Exception):
    retryable: bool = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigError(VercelActionError):
    """A required environment variable or input is missing."""


class AuthError(VercelActionError):
    """The identity broker rejected the request or returned an unusable token."""


class DecodeError(VercelActionError):
    """A token could not be parsed for its expiry."""


class ServiceFatalError(VercelActionError):
    """The status service reported something that retrying cannot fix."""


class TransientError(VercelActionError):
    retryable = True


class DeploymentTimeoutError(VercelActionError, TimeoutError):
    """The wait budget ran out before the deployment reached a terminal state."""
