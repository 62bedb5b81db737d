"""
Failure taxonomy for the content studio.

Every gateway call resolves to a value or one of these classified failures.
Per-item pipeline steps localize them onto the item's status; top-level steps
(analyze, plan) surface them as the global ERROR phase.
"""


class StudioError(Exception):
    """Base class for classified studio failures."""

    default_message = "Unexpected studio error."

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)


class TransportError(StudioError):
    """The backend could not be reached (network, relay, timeout)."""

    default_message = "Backend is unreachable."


class BackendError(StudioError):
    """The backend executed the request but reported a failure."""

    default_message = "Backend reported an unknown error."


class InvalidResponseFormat(StudioError):
    """The backend payload failed to parse against the expected structure."""

    default_message = "Backend returned an invalid response format."


class GenerationFailed(StudioError):
    """The backend succeeded but produced no usable artifact."""

    default_message = "Generation failed: no artifact was returned."


class MissingPrecondition(StudioError):
    """An intent was issued without the state it requires."""

    default_message = "Required state is missing for this action."
