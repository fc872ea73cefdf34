from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, ConfigDict, PlainSerializer

# Decimal in memory, JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class TransactionKind(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"

    def signed(self, magnitude: Decimal) -> Decimal:
        return magnitude if self is TransactionKind.CREDIT else -magnitude


class SignUpRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Unique display name")
    email: EmailStr
    password: str = Field(..., min_length=1)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "maria",
            "email": "maria@example.com",
            "password": "s3cret-pass"
        }
    })


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TransactionRequest(BaseModel):
    # kind stays a plain string so the allow-list check happens in the ledger
    kind: str = Field(..., description="credit or debit")
    magnitude: Decimal
    description: str

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "kind": "credit",
            "magnitude": 100.00,
            "description": "salary"
        }
    })


class User(BaseModel):
    id: UUID
    name: str
    email: str
    password_hash: str
    balance: Decimal = Decimal("0")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserProfile(BaseModel):
    id: UUID
    name: str
    email: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Session(BaseModel):
    token: str
    user_id: UUID
    created_at: datetime
    expires_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class SessionResponse(BaseModel):
    name: str
    token: str
    expires_at: Optional[datetime] = None


class Transaction(BaseModel):
    id: UUID
    user_id: UUID
    kind: TransactionKind
    magnitude: Decimal
    description: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def delta(self) -> Decimal:
        return self.kind.signed(self.magnitude)


class TransactionView(BaseModel):
    kind: TransactionKind
    magnitude: Money
    description: str

    model_config = ConfigDict(from_attributes=True)


class AccountSummary(BaseModel):
    balance: Money
    transactions: list[TransactionView]


class TransactionRecord(BaseModel):
    id: UUID
    kind: TransactionKind
    magnitude: Money
    description: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionHistory(BaseModel):
    user_id: UUID
    entries: list[TransactionRecord]
    total_count: int
    current_balance: Money
