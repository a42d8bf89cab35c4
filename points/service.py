import logging
import math
import re
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Union

from pydantic import TypeAdapter, ValidationError

from .models import (
    EntryType,
    SpendErrorKind,
    Transaction,
    PayerPoints,
    TransactionAccepted,
    ValidationFailure,
    SpendCommitted,
    SpendFailure,
    AddTransactionResult,
    SpendResult,
    SpendPlanResponse,
    LedgerHistoryResponse,
)
from .planner import create_spending_plan, plan_total


logger = logging.getLogger(__name__)

_DATETIME = TypeAdapter(datetime)
_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryStorage:
    """Process-local ledgers keyed by user id. Nothing survives a restart."""

    def __init__(self):
        self.ledgers: dict[str, list[Transaction]] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def get_or_create(self, user_id: str) -> list[Transaction]:
        with self._guard:
            return self.ledgers.setdefault(user_id, [])

    def append(self, user_id: str, transaction: Transaction) -> None:
        self.get_or_create(user_id).append(transaction)

    def snapshot(self, user_id: str) -> tuple[Transaction, ...]:
        return tuple(self.get_or_create(user_id))

    def lock(self, user_id: str) -> threading.RLock:
        with self._guard:
            return self._locks.setdefault(user_id, threading.RLock())


def _parse_payer(value: Any) -> Union[str, ValidationFailure]:
    if not isinstance(value, str):
        return ValidationFailure(error="payer", message="Parameter 'payer' must be a string")
    if not value.strip():
        return ValidationFailure(error="payer", message="Parameter 'payer' must not be empty")
    return value


def _parse_timestamp(value: Any) -> Union[datetime, ValidationFailure]:
    failure = ValidationFailure(error="timestamp", message="Parameter 'timestamp' must be an ISO timestamp")
    if not isinstance(value, (str, datetime)):
        return failure
    # pydantic alone would also take epoch seconds such as "100"
    if isinstance(value, str) and not _ISO_DATE.match(value.strip()):
        return failure
    try:
        parsed = _DATETIME.validate_python(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (ValidationError, OverflowError):
        return failure


def _parse_points(value: Any) -> Union[int, ValidationFailure]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return ValidationFailure(error="points", message="Parameter 'points' must be a number")
    if isinstance(value, int):
        return value
    if not math.isfinite(value):
        return ValidationFailure(error="points", message="Parameter 'points' must be a finite number")
    if value != int(value):
        return ValidationFailure(error="points", message="Parameter 'points' must be a whole number")
    return int(value)


class LedgerService:
    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.storage = storage or InMemoryStorage()
        self.clock = clock or _utcnow

    def add_transaction(self, user_id: str, payer: Any, points: Any, timestamp: Any) -> AddTransactionResult:
        parsed_payer = _parse_payer(payer)
        if isinstance(parsed_payer, ValidationFailure):
            return self._reject(user_id, parsed_payer)

        parsed_timestamp = _parse_timestamp(timestamp)
        if isinstance(parsed_timestamp, ValidationFailure):
            return self._reject(user_id, parsed_timestamp)

        parsed_points = _parse_points(points)
        if isinstance(parsed_points, ValidationFailure):
            return self._reject(user_id, parsed_points)

        with self.storage.lock(user_id):
            self._append(user_id, parsed_payer, parsed_points, parsed_timestamp, EntryType.TRANSACTION)
        return TransactionAccepted()

    def get_balances(self, user_id: str) -> dict[str, int]:
        balances: dict[str, int] = {}
        for transaction in self._snapshot(user_id):
            balances[transaction.payer] = balances.get(transaction.payer, 0) + transaction.points
        return balances

    def get_history(self, user_id: str) -> LedgerHistoryResponse:
        transactions = list(self._snapshot(user_id))
        last = max((t.timestamp for t in transactions), default=None)
        return LedgerHistoryResponse(
            user_id=user_id,
            transactions=transactions,
            total_count=len(transactions),
            balances=self.get_balances(user_id),
            last_transaction_at=last,
        )

    def create_spending_plan(self, user_id: str, points: int) -> dict[str, int]:
        return create_spending_plan(self._snapshot(user_id), points)

    def preview_spend(self, user_id: str, points: Any) -> Union[SpendPlanResponse, SpendFailure]:
        requested = self._parse_spend_amount(points)
        if isinstance(requested, SpendFailure):
            return requested

        plan = self.create_spending_plan(user_id, requested)
        covered = plan_total(plan)
        return SpendPlanResponse(
            user_id=user_id,
            requested=requested,
            covered=covered,
            sufficient=covered >= requested,
            plan=plan,
        )

    def spend(self, user_id: str, points: Any) -> SpendResult:
        requested = self._parse_spend_amount(points)
        if isinstance(requested, SpendFailure):
            return requested

        # Plan and commit must not interleave with another spend for this user.
        with self.storage.lock(user_id):
            plan = self.create_spending_plan(user_id, requested)
            covered = plan_total(plan)
            if covered < requested:
                logger.warning(
                    "Spend rejected for user %s: requested %d, available %d",
                    user_id, requested, covered,
                )
                return SpendFailure(
                    error=SpendErrorKind.INSUFFICIENT,
                    message="Cannot spend more than available points",
                )

            now = self.clock()
            committed = []
            for payer, delta in plan.items():
                self._append(user_id, payer, delta, now, EntryType.SPEND)
                committed.append(PayerPoints(payer=payer, points=delta))

        logger.info("Spent %d points for user %s across %d payer(s)", requested, user_id, len(committed))
        return SpendCommitted(committed=committed)

    def _append(self, user_id: str, payer: str, points: int, timestamp: datetime, entry_type: EntryType) -> Transaction:
        transaction = Transaction(payer=payer, points=points, timestamp=timestamp, entry_type=entry_type)
        self.storage.append(user_id, transaction)
        logger.debug("Recorded %s of %d points from %s for user %s", entry_type.value, points, payer, user_id)
        return transaction

    def _snapshot(self, user_id: str) -> tuple[Transaction, ...]:
        with self.storage.lock(user_id):
            return self.storage.snapshot(user_id)

    def _reject(self, user_id: str, failure: ValidationFailure) -> ValidationFailure:
        logger.info("Rejected transaction for user %s: %s", user_id, failure.message)
        return failure

    def _parse_spend_amount(self, points: Any) -> Union[int, SpendFailure]:
        parsed = _parse_points(points)
        if isinstance(parsed, ValidationFailure):
            return SpendFailure(error=SpendErrorKind.INVALID, message=parsed.message)
        if parsed <= 0:
            return SpendFailure(
                error=SpendErrorKind.INVALID,
                message="Parameter 'points' must be a positive integer",
            )
        return parsed
