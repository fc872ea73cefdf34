from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import bcrypt

from .errors import (
    ConflictError,
    InternalFailureError,
    UnauthenticatedError,
    UserNotFoundError,
    ValidationFailedError,
)
from .log import get_logger
from .models import Session, SessionResponse, SignInRequest, SignUpRequest, User, UserProfile
from .storage import DuplicateKeyError, InMemoryStorage, StorageError

logger = get_logger(__name__)

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))


class AuthService:
    """
    Credential and session store.

    Issues opaque session tokens at sign-in and resolves them back to a user
    id. Tokens expire after ``session_ttl`` and can be revoked with sign_out.
    """

    def __init__(
        self,
        storage: InMemoryStorage,
        session_ttl: timedelta = timedelta(hours=24),
        bcrypt_rounds: int = 12,
    ):
        self.storage = storage
        self.session_ttl = session_ttl
        self.bcrypt_rounds = bcrypt_rounds

    def sign_up(self, request: SignUpRequest) -> UserProfile:
        name = request.name.strip()
        if not name:
            raise ValidationFailedError("Name must not be empty")
        if len(request.password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValidationFailedError(f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes")

        user = User(
            id=uuid4(),
            name=name,
            email=request.email.lower(),
            password_hash=hash_password(request.password, self.bcrypt_rounds),
            balance=Decimal("0"),
            created_at=datetime.now(timezone.utc),
        )

        try:
            self.storage.insert_user(user.model_dump())
        except DuplicateKeyError as e:
            logger.info("signup_conflict", field=e.field)
            raise ConflictError(f"The {e.field} is already in use") from e
        except StorageError as e:
            logger.error("storage_failure", operation="sign_up", error=str(e))
            raise InternalFailureError("Could not create user") from e

        logger.info("user_signed_up", user_id=str(user.id))
        return UserProfile.model_validate(user)

    def sign_in(self, request: SignInRequest) -> SessionResponse:
        try:
            user_data = self.storage.get_user_by_email(request.email.lower())
        except StorageError as e:
            logger.error("storage_failure", operation="sign_in", error=str(e))
            raise InternalFailureError("Could not sign in") from e

        if not user_data:
            raise UserNotFoundError("Email is not registered")

        if len(request.password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES or \
                not verify_password(request.password, user_data["password_hash"]):
            logger.info("signin_rejected", user_id=str(user_data["id"]))
            raise UnauthenticatedError("Incorrect password")

        now = datetime.now(timezone.utc)
        session = Session(
            token=str(uuid4()),
            user_id=user_data["id"],
            created_at=now,
            expires_at=now + self.session_ttl,
        )

        try:
            purged = self.storage.purge_expired_sessions(now)
            self.storage.insert_session(session.model_dump())
        except StorageError as e:
            logger.error("storage_failure", operation="sign_in", error=str(e))
            raise InternalFailureError("Could not create session") from e

        if purged:
            logger.info("sessions_purged", count=purged)
        logger.info("session_issued", user_id=str(session.user_id), expires_at=session.expires_at.isoformat())
        return SessionResponse(name=user_data["name"], token=session.token, expires_at=session.expires_at)

    def authenticate(self, token: Optional[str]) -> UUID:
        if not token:
            raise UnauthenticatedError("Authorization token was not sent")

        try:
            session_data = self.storage.get_session(token)
            if not session_data:
                raise UnauthenticatedError("Invalid authorization token")

            session = Session(**session_data)
            if session.is_expired(datetime.now(timezone.utc)):
                self.storage.delete_session(token)
                logger.info("session_expired", user_id=str(session.user_id))
                raise UnauthenticatedError("Authorization token has expired")
        except StorageError as e:
            logger.error("storage_failure", operation="authenticate", error=str(e))
            raise InternalFailureError("Could not verify session") from e

        return session.user_id

    def sign_out(self, token: Optional[str]) -> None:
        user_id = self.authenticate(token)
        try:
            self.storage.delete_session(token)
        except StorageError as e:
            logger.error("storage_failure", operation="sign_out", error=str(e))
            raise InternalFailureError("Could not end session") from e
        logger.info("session_revoked", user_id=str(user_id))
