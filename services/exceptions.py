"""Error types raised by the orchestration services."""


class OrchestratorError(Exception):
    """Base class for service-level errors."""


class ProviderConfigurationError(OrchestratorError):
    """Provider settings are missing or name an unsupported model. Fatal, never retried."""


class GenerationError(OrchestratorError):
    """The provider call failed (network, auth, or an undecodable response)."""


class NotFoundError(OrchestratorError):
    """A template, session or aggregation does not exist."""

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class SessionStateError(OrchestratorError):
    """The requested operation is not allowed in the session's current status."""
