"""Exceptions raised by the user store and the authentication engine."""


class UserStoreError(Exception):
    """Base class for all errors raised by this package."""


class NotFoundError(UserStoreError):
    """No user matched the ID or name given to a find operation."""

    def __init__(self, message: str = "user name not registered") -> None:
        super().__init__(message)


class AlreadyExistsError(UserStoreError):
    """The normalized user name is already taken."""

    def __init__(self, message: str = "user name already registered") -> None:
        super().__init__(message)


class MissingPasswordError(UserStoreError, ValueError):
    """A password argument was empty or entirely blank."""

    def __init__(self, message: str = "missing password") -> None:
        super().__init__(message)


class ConcurrencyError(UserStoreError):
    """The row was changed or removed since the caller last read it.

    Refetch the user to see what changed, then retry.
    """

    def __init__(self, message: str = "clashing concurrent update") -> None:
        super().__init__(message)


class InvalidCredentialsError(UserStoreError):
    """Authentication failed: unknown user name or wrong password.

    The two causes are deliberately indistinguishable.
    """

    def __init__(self, message: str = "invalid user name or password") -> None:
        super().__init__(message)


class LockedOutError(UserStoreError):
    """The account is inside an active lockout window."""

    def __init__(self, message: str = "user account locked out") -> None:
        super().__init__(message)


class StoreFailureError(UserStoreError):
    """Any database or decoding failure not covered by the other errors."""
