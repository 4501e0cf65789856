from __future__ import annotations


class UserFacingError(ValueError):
    """Precondition failure whose message is shown to the user verbatim."""


class RemoteCollaboratorFailure(Exception):
    """Base class for failures raised by the chat, bracket or storage ports."""


class MessageNotFoundError(RemoteCollaboratorFailure):
    """Raised when editing a chat message that no longer exists."""


class BlockedRecipientError(RemoteCollaboratorFailure):
    def __init__(self, user_id: str) -> None:
        super().__init__(
            f"User <@{user_id}> does not accept DMs from me! "
            "Please ask them to change their settings to allow this."
        )
        self.user_id = user_id


class BracketProviderError(RemoteCollaboratorFailure):
    """Raised by bracket provider clients for failed API calls."""


class FatalInconsistency(Exception):
    """Bracket, persisted and in-memory state may now disagree.

    The message is addressed to tournament hosts and asks for manual
    intervention.
    """


__all__ = [
    "UserFacingError",
    "RemoteCollaboratorFailure",
    "MessageNotFoundError",
    "BlockedRecipientError",
    "BracketProviderError",
    "FatalInconsistency",
]
