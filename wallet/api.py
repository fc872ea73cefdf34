from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware

from .auth import AuthService
from .config import Settings, get_settings
from .errors import (
    ConflictError,
    InternalFailureError,
    InvalidTransactionKindError,
    UnauthenticatedError,
    UserNotFoundError,
    ValidationFailedError,
    WalletError,
)
from .log import configure_logging, get_logger
from .models import (
    AccountSummary,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    TransactionHistory,
    TransactionRequest,
    TransactionView,
    UserProfile,
)
from .service import LedgerService
from .storage import InMemoryStorage

logger = get_logger(__name__)


def to_http_exception(error: WalletError) -> HTTPException:
    if isinstance(error, UnauthenticatedError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(error))
    if isinstance(error, UserNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, InvalidTransactionKindError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, ValidationFailedError):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, ConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, InternalFailureError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Unexpected error")


def extract_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, credentials = authorization.strip().partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return authorization.strip()


def get_ledger_service(request: Request) -> LedgerService:
    return request.app.state.ledger_service


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_session_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    return extract_token(authorization)


def get_current_user_id(
    token: Optional[str] = Depends(get_session_token),
    auth_service: AuthService = Depends(get_auth_service),
):
    try:
        return auth_service.authenticate(token)
    except WalletError as e:
        raise to_http_exception(e)


def create_app(settings: Optional[Settings] = None, storage: Optional[InMemoryStorage] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)
        store = (storage or InMemoryStorage()).open()
        app.state.storage = store
        app.state.ledger_service = LedgerService(store, max_description_length=settings.max_description_length)
        app.state.auth_service = AuthService(
            store,
            session_ttl=timedelta(minutes=settings.session_ttl_minutes),
            bcrypt_rounds=settings.bcrypt_rounds,
        )
        logger.info("storage_opened", environment=settings.app_environment)
        try:
            yield
        finally:
            store.close()
            logger.info("storage_closed")

    app = FastAPI(
        title="Wallet API",
        description="Personal ledger: sign up, record credits and debits, follow the running balance",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "wallet"}

    @app.post("/signup", response_model=UserProfile, status_code=status.HTTP_201_CREATED, tags=["Auth"])
    def sign_up(request: SignUpRequest, auth_service: AuthService = Depends(get_auth_service)) -> UserProfile:
        try:
            return auth_service.sign_up(request)
        except WalletError as e:
            raise to_http_exception(e)

    @app.post("/signin", response_model=SessionResponse, tags=["Auth"])
    def sign_in(request: SignInRequest, auth_service: AuthService = Depends(get_auth_service)) -> SessionResponse:
        try:
            return auth_service.sign_in(request)
        except WalletError as e:
            raise to_http_exception(e)

    @app.post("/signout", status_code=status.HTTP_204_NO_CONTENT, tags=["Auth"])
    def sign_out(
        token: Optional[str] = Depends(get_session_token),
        auth_service: AuthService = Depends(get_auth_service),
    ) -> Response:
        try:
            auth_service.sign_out(token)
        except WalletError as e:
            raise to_http_exception(e)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post("/transactions", response_model=TransactionView, status_code=status.HTTP_201_CREATED, tags=["Ledger"])
    def submit_transaction(
        request: TransactionRequest,
        user_id=Depends(get_current_user_id),
        ledger_service: LedgerService = Depends(get_ledger_service),
    ) -> TransactionView:
        try:
            transaction = ledger_service.submit_transaction(user_id, request)
        except WalletError as e:
            raise to_http_exception(e)
        return TransactionView.model_validate(transaction)

    @app.get("/account", response_model=AccountSummary, tags=["Ledger"])
    def get_account(
        user_id=Depends(get_current_user_id),
        ledger_service: LedgerService = Depends(get_ledger_service),
    ) -> AccountSummary:
        try:
            return ledger_service.get_account_summary(user_id)
        except WalletError as e:
            raise to_http_exception(e)

    @app.get("/account/history", response_model=TransactionHistory, tags=["Ledger"])
    def get_account_history(
        limit: int = Query(50, ge=1),
        offset: int = Query(0, ge=0),
        user_id=Depends(get_current_user_id),
        ledger_service: LedgerService = Depends(get_ledger_service),
    ) -> TransactionHistory:
        try:
            return ledger_service.get_transaction_history(user_id, limit, offset)
        except WalletError as e:
            raise to_http_exception(e)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=5000)
