"""Error taxonomy for the assistant service."""


class AssistantError(Exception):
    """Base class for assistant errors."""


class GuardrailRejection(AssistantError):
    """Raised when an inbound message fails the input guardrail.

    The rejected message is discarded and never forwarded to the model.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class StartupResourceError(AssistantError):
    """Raised when a resource required at startup cannot be loaded."""


class BackendDispatchError(AssistantError):
    """Raised when the model backend fails or times out during a call."""
