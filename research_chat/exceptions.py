"""Exceptions raised by the research session core and its collaborators."""


class ResearchChatError(Exception):
    """Base exception for all Research Chat errors."""
    pass


class ValidationFailure(ResearchChatError):
    """Malformed or missing input. Nothing has been mutated."""
    pass


class SessionNotFound(ResearchChatError):
    """The session does not exist or belongs to another user."""
    pass


class SessionClosed(ResearchChatError):
    """A transition was attempted on a completed or errored session."""

    def __init__(self, session_id: str, status: str):
        self.session_id = session_id
        self.status = status
        super().__init__(
            "This session is completed or has an error. Please start a new session."
        )


class QuotaExceeded(ResearchChatError):
    """The user reached the daily session creation limit."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(
            f"Daily session limit reached. You can create {limit} sessions per day."
        )


class ProviderFailure(ResearchChatError):
    """A generation provider produced no usable output."""

    def __init__(self, provider: str, step: str, reason: str = ""):
        self.provider = provider
        self.step = step
        self.reason = reason
        super().__init__(f"{provider} failed during {step}: {reason}" if reason else f"{provider} failed during {step}")


class DeliveryFailure(ResearchChatError):
    """The report could not be rendered or delivered."""
    pass
