import threading
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID


class StorageError(Exception):
    pass


class DuplicateKeyError(StorageError):
    def __init__(self, field: str, value: str):
        super().__init__(f"{field} '{value}' is already taken")
        self.field = field
        self.value = value


class InMemoryStorage:
    """
    Process-wide store for users, transactions and sessions.

    Open it once at startup, close it at shutdown and hand the instance to
    every service that needs it. Every call on a closed store raises
    StorageError.

    Balances are only changed through increment_balance, which applies the
    delta as one step. Callers that need several writes to land together
    hold user_lock(user_id) around them.
    """

    def __init__(self):
        self.users: dict[UUID, dict] = {}
        self.transactions: dict[UUID, dict] = {}
        self.sessions: dict[str, dict] = {}
        self._user_transactions: dict[UUID, list[UUID]] = {}
        self._name_index: dict[str, UUID] = {}
        self._email_index: dict[str, UUID] = {}
        self._user_locks: dict[UUID, threading.Lock] = {}
        self._lock = threading.RLock()
        self._open = False

    def open(self) -> "InMemoryStorage":
        with self._lock:
            self._open = True
        return self

    def close(self) -> None:
        with self._lock:
            self._open = False
            self.users.clear()
            self.transactions.clear()
            self.sessions.clear()
            self._user_transactions.clear()
            self._name_index.clear()
            self._email_index.clear()
            self._user_locks.clear()

    @property
    def is_open(self) -> bool:
        return self._open

    def _ensure_open(self):
        if not self._open:
            raise StorageError("Storage is not open")

    def user_lock(self, user_id: UUID) -> threading.Lock:
        with self._lock:
            self._ensure_open()
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = self._user_locks[user_id] = threading.Lock()
            return lock

    # users

    def insert_user(self, user_data: dict) -> None:
        with self._lock:
            self._ensure_open()
            if user_data["name"] in self._name_index:
                raise DuplicateKeyError("name", user_data["name"])
            if user_data["email"] in self._email_index:
                raise DuplicateKeyError("email", user_data["email"])

            user_id = user_data["id"]
            self.users[user_id] = dict(user_data)
            self._user_transactions[user_id] = []
            self._name_index[user_data["name"]] = user_id
            self._email_index[user_data["email"]] = user_id

    def get_user(self, user_id: UUID) -> Optional[dict]:
        with self._lock:
            self._ensure_open()
            user_data = self.users.get(user_id)
            return dict(user_data) if user_data else None

    def get_user_by_email(self, email: str) -> Optional[dict]:
        with self._lock:
            self._ensure_open()
            user_id = self._email_index.get(email)
            return dict(self.users[user_id]) if user_id else None

    def increment_balance(self, user_id: UUID, delta: Decimal) -> Decimal:
        with self._lock:
            self._ensure_open()
            user_data = self.users.get(user_id)
            if user_data is None:
                raise StorageError(f"User {user_id} vanished during balance update")
            user_data["balance"] = user_data["balance"] + delta
            return user_data["balance"]

    # transactions

    def insert_transaction(self, transaction_data: dict) -> None:
        with self._lock:
            self._ensure_open()
            user_id = transaction_data["user_id"]
            if user_id not in self.users:
                raise StorageError(f"Cannot record transaction for unknown user {user_id}")
            self.transactions[transaction_data["id"]] = dict(transaction_data)
            self._user_transactions[user_id].append(transaction_data["id"])

    def discard_transaction(self, transaction_id: UUID) -> None:
        with self._lock:
            self._ensure_open()
            transaction_data = self.transactions.pop(transaction_id, None)
            if transaction_data:
                self._user_transactions[transaction_data["user_id"]].remove(transaction_id)

    def list_transactions(self, user_id: UUID) -> list[dict]:
        with self._lock:
            self._ensure_open()
            return [dict(self.transactions[tx_id]) for tx_id in self._user_transactions.get(user_id, [])]

    # sessions

    def insert_session(self, session_data: dict) -> None:
        with self._lock:
            self._ensure_open()
            self.sessions[session_data["token"]] = dict(session_data)

    def get_session(self, token: str) -> Optional[dict]:
        with self._lock:
            self._ensure_open()
            session_data = self.sessions.get(token)
            return dict(session_data) if session_data else None

    def delete_session(self, token: str) -> bool:
        with self._lock:
            self._ensure_open()
            return self.sessions.pop(token, None) is not None

    def purge_expired_sessions(self, now: datetime) -> int:
        with self._lock:
            self._ensure_open()
            expired = [token for token, s in self.sessions.items() if now >= s["expires_at"]]
            for token in expired:
                del self.sessions[token]
            return len(expired)
