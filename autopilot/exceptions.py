class AutopilotError(Exception):
    """Base exception for autopilot errors."""


class BackendError(AutopilotError):
    """Raised when the chat completion backend fails or answers with an error."""


class ToolRegistrationError(AutopilotError):
    """Raised when a tool cannot be registered."""


class ToolValidationError(AutopilotError):
    """Raised when tool arguments fail validation."""


class SessionLoadError(AutopilotError):
    """Raised when a session file cannot be read or parsed."""
