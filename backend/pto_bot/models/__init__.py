from sqlmodel import SQLModel

from pto_bot.models.balance import PTOBalanceRecord
from pto_bot.models.base import new_request_id, now_utc
from pto_bot.models.enums import Decision, RequestStatus, SlackAction
from pto_bot.models.request import PTORequestRecord

__all__ = [
    "Decision",
    "PTOBalanceRecord",
    "PTORequestRecord",
    "RequestStatus",
    "SQLModel",
    "SlackAction",
    "new_request_id",
    "now_utc",
]
