"""Credential checks and account lockout on top of :class:`~aspnetusers.store.Users`."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from prometheus_client import Counter

from .errors import (
    InvalidCredentialsError,
    LockedOutError,
    MissingPasswordError,
    NotFoundError,
    StoreFailureError,
    UserStoreError,
)
from .hasher import EMPTY_HASH, InvalidHashError, decode_hash, hash_password
from .models.user import User, new_stamp
from .store import Users, is_blank

logger = logging.getLogger(__name__)

AUTH_COUNTER = Counter(
    "aspnetusers_authentications_total",
    "Total authentication attempts by outcome",
    ["result"],
)
BOOKKEEPING_FAILURE_COUNTER = Counter(
    "aspnetusers_bookkeeping_failures_total",
    "Failed-login counter updates that could not be stored",
    ["reason"],
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Authenticator:
    """Authenticate users and maintain their lockout state.

    Lockout is not enforced by :meth:`authenticate`; callers combine
    :meth:`check_lockout`, :meth:`lock_out` and ``access_failed_count`` into
    whatever policy they need (for instance, lock for five minutes after five
    consecutive failures).

    Every helper that writes works on a copy of the caller's user and only
    copies the result back once the store accepted it, so the caller's
    record always matches a committed row.
    """

    def __init__(self, users: Users, clock: Callable[[], datetime] | None = None):
        self.users = users
        self.clock = clock or utcnow

    def authenticate(self, name: str, password: str) -> User:
        """Return the user if ``password`` is correct for ``name``.

        Raises :class:`InvalidCredentialsError` for a wrong password and for
        an unknown name alike. Successive failures are counted in
        ``access_failed_count``; a success resets the count.
        """
        found = True
        try:
            user = self.users.find_by_name(name)
        except NotFoundError:
            # compare against a real hash anyway so a miss takes as long as a mismatch
            found = False
            user = User(password_hash=EMPTY_HASH)
        try:
            stored = decode_hash(user.password_hash)
        except InvalidHashError as exc:
            logger.error("user id=%s has an unreadable password hash", user.id)
            raise StoreFailureError(str(exc)) from exc
        # the placeholder matches the empty password, so a miss never succeeds
        ok = stored.verify(password) and found
        if found:
            user = self._access_failed(user, not ok)
        if not ok:
            AUTH_COUNTER.labels(result="failure").inc()
            raise InvalidCredentialsError()
        AUTH_COUNTER.labels(result="success").inc()
        return user

    def _access_failed(self, user: User, bad: bool) -> User:
        """Count a failure or reset the count after a success.

        Best effort: the outcome of the authentication matters more than the
        count, so a failed write is logged rather than raised.
        """
        staged = user.model_copy()
        staged.access_failed_count = user.access_failed_count + 1 if bad else 0
        try:
            self.users.update(staged)
        except UserStoreError as exc:
            BOOKKEEPING_FAILURE_COUNTER.labels(reason=type(exc).__name__).inc()
            logger.warning(
                "could not record authentication outcome for user id=%r: %s", user.id, exc
            )
            return user
        return staged

    def check_lockout(self, user: User) -> None:
        """Raise :class:`LockedOutError` iff ``user`` is still locked out."""
        if user.lockout_enabled and user.lockout_end is not None and self.clock() < user.lockout_end:
            raise LockedOutError()

    def reset_lockout(self, user: User) -> None:
        """Clear the lockout end for ``user``; nothing is written if it is already clear."""
        if user.lockout_end is None:
            return
        staged = user.model_copy()
        staged.lockout_end = None
        self.users.update(staged)
        user.lockout_end = None
        user.concurrency_stamp = staged.concurrency_stamp

    def lock_out(self, user: User, duration: timedelta) -> None:
        """Lock ``user`` out for ``duration`` from now."""
        staged = user.model_copy()
        staged.lockout_end = self.clock() + duration
        self.users.update(staged)
        user.lockout_end = staged.lockout_end
        user.concurrency_stamp = staged.concurrency_stamp
        logger.info("user id=%s locked out until %s", user.id, user.lockout_end.isoformat())

    def change_password(self, user: User, password: str) -> None:
        """Replace the password of ``user``, rejecting blank ones.

        A new security stamp is issued with the new hash. Both ``user`` and
        the stored row are left unchanged on failure.
        """
        if is_blank(password):
            raise MissingPasswordError()
        staged = user.model_copy()
        staged.password_hash = hash_password(password)
        staged.security_stamp = new_stamp()
        self.users.update(staged)
        user.password_hash = staged.password_hash
        user.security_stamp = staged.security_stamp
        user.concurrency_stamp = staged.concurrency_stamp

    def confirm_email(self, user: User) -> None:
        """Mark the email address of ``user`` as confirmed."""
        staged = user.model_copy()
        staged.email_confirmed = True
        self.users.update(staged)
        user.email_confirmed = True
        user.concurrency_stamp = staged.concurrency_stamp
