from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from .errors import (
    InternalFailureError,
    InvalidMagnitudeError,
    InvalidTransactionKindError,
    UserNotFoundError,
    ValidationFailedError,
)
from .log import get_logger
from .models import (
    AccountSummary,
    Transaction,
    TransactionHistory,
    TransactionKind,
    TransactionRecord,
    TransactionRequest,
    TransactionView,
)
from .storage import InMemoryStorage, StorageError

logger = get_logger(__name__)

MAX_DECIMAL_PLACES = 2


class LedgerService:
    def __init__(self, storage: InMemoryStorage, max_description_length: int = 255):
        self.storage = storage
        self.max_description_length = max_description_length

    def submit_transaction(self, user_id: UUID, request: TransactionRequest) -> Transaction:
        try:
            kind = self._validate_kind(request.kind)
            magnitude = self._validate_magnitude(request.magnitude)
            description = self._validate_description(request.description)
        except ValidationFailedError as e:
            logger.warning("transaction_rejected", user_id=str(user_id), reason=str(e))
            raise

        self._require_user(user_id)

        transaction = Transaction(
            id=uuid4(),
            user_id=user_id,
            kind=kind,
            magnitude=magnitude,
            description=description,
            created_at=datetime.now(timezone.utc),
        )

        try:
            with self.storage.user_lock(user_id):
                self.storage.insert_transaction(transaction.model_dump())
                try:
                    new_balance = self.storage.increment_balance(user_id, transaction.delta)
                except StorageError:
                    self.storage.discard_transaction(transaction.id)
                    raise
        except StorageError as e:
            logger.error(
                "storage_failure",
                operation="submit_transaction",
                user_id=str(user_id),
                error=str(e),
            )
            raise InternalFailureError("Could not record transaction") from e

        logger.info(
            "transaction_recorded",
            user_id=str(user_id),
            transaction_id=str(transaction.id),
            kind=kind.value,
            magnitude=str(magnitude),
            balance=str(new_balance),
        )
        return transaction

    def get_account_summary(self, user_id: UUID) -> AccountSummary:
        self._require_user(user_id)
        try:
            with self.storage.user_lock(user_id):
                user_data = self.storage.get_user(user_id)
                entries = self.storage.list_transactions(user_id)
        except StorageError as e:
            logger.error("storage_failure", operation="get_account_summary", user_id=str(user_id), error=str(e))
            raise InternalFailureError("Could not load account summary") from e

        return AccountSummary(
            balance=user_data["balance"],
            transactions=[TransactionView(**e) for e in entries],
        )

    def get_transaction_history(self, user_id: UUID, limit: int = 50, offset: int = 0) -> TransactionHistory:
        self._require_user(user_id)
        try:
            with self.storage.user_lock(user_id):
                user_data = self.storage.get_user(user_id)
                entries = self.storage.list_transactions(user_id)
        except StorageError as e:
            logger.error("storage_failure", operation="get_transaction_history", user_id=str(user_id), error=str(e))
            raise InternalFailureError("Could not load transaction history") from e

        newest_first = [TransactionRecord(**e) for e in reversed(entries)]
        return TransactionHistory(
            user_id=user_id,
            entries=newest_first[offset:offset + limit],
            total_count=len(newest_first),
            current_balance=user_data["balance"],
        )

    def recompute_balance(self, user_id: UUID) -> Decimal:
        """Balance derived from the recorded transactions alone."""
        self._require_user(user_id)
        try:
            entries = self.storage.list_transactions(user_id)
        except StorageError as e:
            raise InternalFailureError("Could not load transactions") from e
        return sum((Transaction(**e).delta for e in entries), Decimal("0"))

    def _require_user(self, user_id: UUID) -> dict:
        try:
            user_data = self.storage.get_user(user_id)
        except StorageError as e:
            logger.error("storage_failure", operation="get_user", user_id=str(user_id), error=str(e))
            raise InternalFailureError("Could not load user") from e
        if user_data is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user_data

    def _validate_kind(self, kind: str) -> TransactionKind:
        try:
            return TransactionKind(kind)
        except ValueError:
            raise InvalidTransactionKindError(
                f"Invalid transaction kind '{kind}'. Expected one of: credit, debit"
            )

    def _validate_magnitude(self, magnitude: Decimal) -> Decimal:
        magnitude = Decimal(magnitude)
        if not magnitude.is_finite() or magnitude <= 0:
            raise InvalidMagnitudeError("Magnitude must be a positive number")
        if magnitude.normalize().as_tuple().exponent < -MAX_DECIMAL_PLACES:
            raise InvalidMagnitudeError(f"Magnitude must have at most {MAX_DECIMAL_PLACES} decimal places")
        return magnitude

    def _validate_description(self, description: str) -> str:
        description = description.strip() if isinstance(description, str) else ""
        if not description:
            raise ValidationFailedError("Description must not be empty")
        if len(description) > self.max_description_length:
            raise ValidationFailedError(
                f"Description must be at most {self.max_description_length} characters"
            )
        return description
