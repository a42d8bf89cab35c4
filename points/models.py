from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Union
from uuid import UUID, uuid4
from pydantic import BaseModel, Field, ConfigDict


class EntryType(str, Enum):
    TRANSACTION = "TRANSACTION"
    SPEND = "SPEND"


class SpendErrorKind(str, Enum):
    INSUFFICIENT = "insufficient"
    INVALID = "invalid"


class Transaction(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    payer: str
    points: int
    timestamp: datetime
    spent: int = 0
    entry_type: EntryType = EntryType.TRANSACTION

    model_config = ConfigDict(frozen=True)


class PayerPoints(BaseModel):
    payer: str
    points: int


# Core results: returned, never raised.

class TransactionAccepted(BaseModel):
    status: Literal["ok"] = "ok"

    @property
    def ok(self) -> bool:
        return True


class ValidationFailure(BaseModel):
    status: Literal["error"] = "error"
    error: str = Field(..., description="Name of the offending field")
    message: str

    @property
    def ok(self) -> bool:
        return False


class SpendCommitted(BaseModel):
    status: Literal["ok"] = "ok"
    committed: list[PayerPoints]

    @property
    def ok(self) -> bool:
        return True


class SpendFailure(BaseModel):
    status: Literal["error"] = "error"
    error: SpendErrorKind
    message: str

    @property
    def ok(self) -> bool:
        return False


AddTransactionResult = Union[TransactionAccepted, ValidationFailure]
SpendResult = Union[SpendCommitted, SpendFailure]


# HTTP request / response bodies.
# Request fields stay loose so the service can report which field failed.

class AddTransactionRequest(BaseModel):
    payer: Any = None
    points: Any = None
    timestamp: Any = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "payer": "DANNON",
            "points": 300,
            "timestamp": "2020-10-31T10:00:00Z"
        }
    })


class SpendRequest(BaseModel):
    points: Any = None

    model_config = ConfigDict(json_schema_extra={
        "example": {"points": 5000}
    })


class SpendPlanResponse(BaseModel):
    user_id: str
    requested: int
    covered: int
    sufficient: bool
    plan: dict[str, int]


class LedgerHistoryResponse(BaseModel):
    user_id: str
    transactions: list[Transaction]
    total_count: int
    balances: dict[str, int]
    last_transaction_at: Optional[datetime] = None
