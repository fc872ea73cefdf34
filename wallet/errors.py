class WalletError(Exception):
    pass


class UnauthenticatedError(WalletError):
    pass


class UserNotFoundError(WalletError):
    pass


class ValidationFailedError(WalletError):
    pass


class InvalidTransactionKindError(ValidationFailedError):
    pass


class InvalidMagnitudeError(ValidationFailedError):
    pass


class ConflictError(WalletError):
    pass


class InternalFailureError(WalletError):
    pass
