from __future__ import annotations

import enum


class RequestStatus(enum.StrEnum):
    """Persisted states of a PTO request. DRAFT is never stored."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


class Decision(enum.StrEnum):
    """Manager decision on a pending request."""

    APPROVED = "approved"
    DENIED = "denied"

    @property
    def status(self) -> RequestStatus:
        return RequestStatus(self.value)


class SlackAction(enum.StrEnum):
    """Action ids carried by interactive buttons."""

    CONFIRM = "confirm_pto"
    CANCEL = "cancel_pto"
    APPROVE = "approve_pto"
    DENY = "deny_pto"
