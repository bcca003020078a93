"""PTO request state machine.

States: DRAFT (never persisted) -> PENDING -> APPROVED | DENIED.

Every mutating operation is safe to repeat with identical arguments, since
Slack redelivers unacknowledged requests:

* ``submit`` with a known request id returns the stored row untouched.
* ``decide`` on a row that already carries the decision writes nothing.
* the balance increment runs only for the call whose status write won.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING

from pto_bot.exceptions import (
    AppError,
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    UnauthorizedError,
    UpstreamError,
    ValidationError,
)
from pto_bot.models.base import new_request_id, now_utc
from pto_bot.models.enums import Decision, RequestStatus
from pto_bot.schemas.balance import BalanceCheck
from pto_bot.schemas.request import DecisionResult, DraftRequest, PTORequest, SubmitResult
from pto_bot.services import messages
from pto_bot.services.duration import parse_iso_date, today_utc, validate_range
from pto_bot.services.history import summarize_history

if TYPE_CHECKING:
    from collections.abc import Callable

    from pto_bot.schemas.balance import PTOHistory
    from pto_bot.services.balance_store import BalanceStore
    from pto_bot.services.date_extractor import DateExtractor
    from pto_bot.services.notifications import NotificationGateway
    from pto_bot.services.request_store import RequestStore

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Personal"
DEFAULT_MAX_SPAN_DAYS = 30
# Drafts travel inside a Slack button value, which is capped at 2000 characters.
MAX_REASON_LENGTH = 200


class RequestLifecycle:
    """Creation, submission and decision of PTO requests."""

    def __init__(
        self,
        requests: RequestStore,
        balances: BalanceStore,
        extractor: DateExtractor,
        notifier: NotificationGateway,
        *,
        max_span_days: int = DEFAULT_MAX_SPAN_DAYS,
        enforce_balance_on_submit: bool = True,
        operator_channel_id: str = "",
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.requests = requests
        self.balances = balances
        self.extractor = extractor
        self.notifier = notifier
        self.max_span_days = max_span_days
        self.enforce_balance_on_submit = enforce_balance_on_submit
        self.operator_channel_id = operator_channel_id
        self._clock = clock

    # -----------------------------------------------------------------------
    # Draft
    # -----------------------------------------------------------------------

    async def draft(
        self,
        user_id: str,
        text: str,
        today: date | None = None,
        user_name: str = "",
    ) -> DraftRequest:
        """Parse free text into an unpersisted draft.

        Raises ParseError for unusable extractor output or a span longer than
        ``max_span_days``, ValidationError when end precedes start or the range
        has no business days.
        """
        reference = today or today_utc()
        extracted = await self.extractor.extract(text, reference)

        start = parse_iso_date(extracted.start)
        end = parse_iso_date(extracted.end)
        business_days = validate_range(start, end, self.max_span_days)
        reason = (extracted.reason or "").strip()[:MAX_REASON_LENGTH].rstrip() or DEFAULT_REASON

        logger.info(
            "Drafted request for user %s: %s -> %s (%d business days)",
            user_id,
            start.isoformat(),
            end.isoformat(),
            business_days,
        )
        return DraftRequest(
            user_id=user_id,
            user_name=user_name,
            start=start,
            end=end,
            business_days=business_days,
            reason=reason,
        )

    # -----------------------------------------------------------------------
    # Balance
    # -----------------------------------------------------------------------

    async def check_balance(self, user_id: str, business_days: int) -> BalanceCheck:
        """Advisory comparison of requested days with the remaining balance."""
        balance = await self.balances.get_balance(user_id)
        return BalanceCheck(
            allowed=business_days <= balance.remaining,
            remaining=balance.remaining,
            requested=business_days,
        )

    async def history(self, user_id: str, today: date | None = None) -> PTOHistory:
        """Aggregate statistics over the user's approved requests."""
        rows = await self.requests.history_for_user(user_id)
        balance = await self.balances.get_balance(user_id)
        return summarize_history(rows, balance.remaining, today or today_utc())

    # -----------------------------------------------------------------------
    # Submit
    # -----------------------------------------------------------------------

    async def submit(
        self,
        draft: DraftRequest,
        manager_id: str,
        manager_name: str = "",
        request_id: str | None = None,
    ) -> SubmitResult:
        """Persist a draft as a pending request.

        Pass the same ``request_id`` on retries to get the stored row back
        instead of a duplicate. The balance is checked before anything is
        written when ``enforce_balance_on_submit`` is set.
        """
        if not manager_id:
            raise AppError("No approver is configured for PTO requests")

        request_id = request_id or new_request_id()

        existing = await self.requests.get_by_id(request_id)
        if existing is not None:
            logger.info("Submit replay for request %s, returning stored row", request_id)
            return SubmitResult(request_id=request_id, request=existing, created=False)

        if self.enforce_balance_on_submit:
            check = await self.check_balance(draft.user_id, draft.business_days)
            if not check.allowed:
                logger.info(
                    "Rejected request for user %s: %d days requested, %d remaining",
                    draft.user_id,
                    check.requested,
                    check.remaining,
                )
                raise InsufficientBalanceError(check.requested, check.remaining)

        request = PTORequest.from_draft(
            draft,
            request_id=request_id,
            timestamp=self._clock(),
            manager_id=manager_id,
            manager_name=manager_name,
        )
        stored, created = await self.requests.ensure_row(request)
        if created:
            logger.info(
                "Request %s pending for user %s, manager %s",
                request_id,
                draft.user_id,
                manager_id,
            )
        return SubmitResult(request_id=request_id, request=stored, created=created)

    # -----------------------------------------------------------------------
    # Decide
    # -----------------------------------------------------------------------

    async def decide(self, request_id: str, actor_id: str, decision: Decision | str) -> DecisionResult:
        """Approve or deny a pending request.

        1. Load the row (NotFoundError).
        2. Actor must be the assigned manager (UnauthorizedError).
        3. Same decision already recorded: success, nothing written.
           Opposite decision recorded: ConflictError.
        4. Conditional status write, only while the row is still pending.
        5. On approval, increment the balance. A failure there is reported
           but does not undo the approval.
        """
        try:
            decision = Decision(decision)
        except ValueError:
            raise ValidationError(f"Unknown decision {decision!r}") from None

        row = await self.requests.get_by_id(request_id)
        if row is None:
            logger.warning("Decision on unknown request %s by %s", request_id, actor_id)
            raise NotFoundError(request_id)

        if row.manager_id != actor_id:
            logger.warning(
                "Unauthorized %s attempt on request %s by %s (assigned manager %s)",
                decision.value,
                request_id,
                actor_id,
                row.manager_id,
            )
            raise UnauthorizedError(request_id, actor_id)

        if row.status == decision.status:
            logger.info("Request %s already %s, nothing to write", request_id, row.status.value)
            return DecisionResult(request=row, decision=decision, changed=False)
        if row.status.is_terminal:
            logger.warning(
                "Conflicting %s on request %s by %s: already %s",
                decision.value,
                request_id,
                actor_id,
                row.status.value,
            )
            raise ConflictError(request_id, row.status.value)

        decided_at = self._clock()
        applied = await self.requests.update_status(request_id, decision.status, actor_id, decided_at)
        if not applied:
            return await self._resolve_lost_race(request_id, actor_id, decision)

        decided = row.model_copy(
            update={"status": decision.status, "approver_id": actor_id, "decision_ts": decided_at}
        )
        logger.info("Request %s %s by %s", request_id, decision.value, actor_id)
        result = DecisionResult(request=decided, decision=decision, changed=True)

        if decision is Decision.APPROVED:
            result = await self._apply_approval_to_balance(result)
        return result

    async def _resolve_lost_race(self, request_id: str, actor_id: str, decision: Decision) -> DecisionResult:
        """The conditional write found the row no longer pending; report what won."""
        current = await self.requests.get_by_id(request_id)
        if current is None:
            raise NotFoundError(request_id)
        if current.status == decision.status:
            logger.info("Request %s was %s by a concurrent delivery", request_id, decision.value)
            return DecisionResult(request=current, decision=decision, changed=False)
        if current.status == RequestStatus.PENDING:
            logger.error("Status write for request %s by %s was not applied", request_id, actor_id)
            raise UpstreamError("Decision could not be recorded")
        raise ConflictError(request_id, current.status.value)

    async def _apply_approval_to_balance(self, result: DecisionResult) -> DecisionResult:
        request = result.request
        try:
            increment = await self.balances.increment_taken(request.user_id, request.business_days)
        except Exception as exc:
            # The approval is already recorded; the discrepancy goes to a human.
            detail = exc.message if isinstance(exc, AppError) else "Balance store error"
            logger.exception(
                "Request %s approved by %s but balance update for user %s failed: %s",
                request.request_id,
                request.approver_id,
                request.user_id,
                detail,
            )
            target = self.operator_channel_id or request.manager_id
            await self.notifier.notify(target, messages.balance_failure_alert(request, detail))
            return result.model_copy(update={"balance_error": detail})

        logger.info(
            "Balance for user %s: taken %d -> %d (request %s)",
            request.user_id,
            increment.previous,
            increment.new,
            request.request_id,
        )
        return result.model_copy(update={"balance": increment})
