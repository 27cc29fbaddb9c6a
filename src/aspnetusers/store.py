"""Access to the users table shared with an ASP.NET Core application.

Every write is guarded by the row's ``ConcurrencyStamp`` instead of locks or
transactions: an update only matches the row if the stamp is still the one
the caller read, and replaces it with a new one. Duplicate user names are
rejected by the unique index on ``NormalizedUserName``.
"""

from __future__ import annotations

import logging
from typing import Any, List, NoReturn, Sequence

from prometheus_client import Counter
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .dialects import MYSQL, Dialect
from .errors import (
    AlreadyExistsError,
    ConcurrencyError,
    MissingPasswordError,
    NotFoundError,
    StoreFailureError,
)
from .hasher import hash_password
from .models.user import ATTRIBUTES, BOOL_COLUMNS, COLUMNS, User, new_stamp, normalise

logger = logging.getLogger(__name__)

USER_CREATED_COUNTER = Counter(
    "aspnetusers_users_created_total", "Total users added to the users table"
)
CONCURRENCY_CONFLICT_COUNTER = Counter(
    "aspnetusers_concurrency_conflicts_total",
    "Total updates rejected because the row changed underfoot",
)


def is_blank(password: str) -> bool:
    return password.strip() == ""


def _handle_store_error(exc: Exception, action: str) -> NoReturn:
    """Log a database or decoding failure and raise it as StoreFailureError."""
    logger.error("%s failed", action, exc_info=exc)
    raise StoreFailureError(f"{action}: {exc}") from exc


class Users:
    """The table of registered users, usually called ``aspnetusers``.

    Parameters
    ----------
    engine:
        SQLAlchemy engine for the database holding the table. Connection
        pooling and timeouts are left to it.
    table:
        Name of the users table.
    dialect:
        Conventions of the database engine. Defaults to MySQL.
    """

    def __init__(self, engine: Engine, table: str = "aspnetusers", dialect: Dialect | None = None):
        if dialect is None:
            dialect = MYSQL
        self.engine = engine
        self.table = table
        self.dialect = dialect

        q = dialect.quote
        name = q(table)
        columns = ", ".join(q(c) for c in COLUMNS)
        select = f"SELECT {q('Id')}, {columns} FROM {name} WHERE"
        self.query_id = f"{select} {q('Id')} = {dialect.param(1)}"
        self.query_name = f"{select} {q('NormalizedUserName')} = {dialect.param(1)}"
        self.insert = (
            f"INSERT INTO {name} ({q('Id')}, {columns}) "
            f"VALUES ({self._params(len(COLUMNS) + 1)})"
        )
        n = len(COLUMNS)
        self.update_stmt = (
            f"UPDATE {name} SET {self._assign(COLUMNS)} "
            f"WHERE {q('Id')} = {dialect.param(n + 1)} "
            f"AND {q('ConcurrencyStamp')} = {dialect.param(n + 2)}"
        )

    def __repr__(self) -> str:
        return f"Users(table={self.table!r}, dialect={self.dialect!r})"

    def _params(self, n: int) -> str:
        return ", ".join(self.dialect.param(i) for i in range(1, n + 1))

    def _assign(self, columns: Sequence[str]) -> str:
        return ", ".join(
            f"{self.dialect.quote(c)} = {self.dialect.param(i)}"
            for i, c in enumerate(columns, 1)
        )

    def _values(self, user: User, concurrency_stamp: str) -> List[Any]:
        """Bind values for COLUMNS, with the given stamp in place of the user's."""
        values: List[Any] = []
        for column in COLUMNS:
            if column == "ConcurrencyStamp":
                values.append(concurrency_stamp)
            elif column == "LockoutEnd":
                values.append(self.dialect.time_param(user.lockout_end))
            else:
                values.append(getattr(user, ATTRIBUTES[column]))
        return values

    def _unpack(self, row: Sequence[Any]) -> User:
        fields = dict(zip(["Id", *COLUMNS], row))
        for column, value in fields.items():
            if column in BOOL_COLUMNS:
                # bit(1) and friends need the dialect's help
                fields[column] = self.dialect.bool_val(value)
            elif column == "LockoutEnd":
                fields[column] = self.dialect.time_val(value)
            elif value is None:
                fields[column] = "" if column != "AccessFailedCount" else 0
        return User.model_validate(fields)

    def _find(self, stmt: str, key: str) -> User:
        try:
            with self.engine.connect() as conn:
                row = conn.exec_driver_sql(stmt, (key,)).first()
        except SQLAlchemyError as exc:
            _handle_store_error(exc, "find user")
        if row is None:
            raise NotFoundError()
        try:
            return self._unpack(row)
        except (TypeError, ValueError) as exc:
            _handle_store_error(exc, "find user")

    def find_by_id(self, user_id: str) -> User:
        """Return the user with the given primary key.

        Raises :class:`NotFoundError` if there is none.
        """
        return self._find(self.query_id, user_id)

    def find_by_name(self, name: str) -> User:
        """Return the user registered under ``name`` (typically an email address).

        The lookup uses the normalized (upper-cased) form, so it ignores case.
        Raises :class:`NotFoundError` if there is none.
        """
        return self._find(self.query_name, normalise(name))

    def new_user(self, name: str, email: str, password: str) -> User:
        """Add a user with a freshly hashed password and return it.

        Raises :class:`MissingPasswordError` for a blank password and
        :class:`AlreadyExistsError` if the normalized name is taken. The
        insert itself decides the latter, so concurrent registrations of the
        same name cannot both succeed.
        """
        if is_blank(password):
            raise MissingPasswordError()
        try:
            self.find_by_name(name)
        except NotFoundError:
            pass
        else:
            # not conclusive on its own; the unique index has the final word
            logger.debug("new user %s: name appears to be taken", normalise(name))

        user = User(
            id=new_stamp(),
            user_name=name,
            normalized_user_name=normalise(name),
            email=email,
            normalized_email=normalise(email),
            password_hash=hash_password(password),
            security_stamp=new_stamp(),
            concurrency_stamp=new_stamp(),
        )
        params = (user.id, *self._values(user, user.concurrency_stamp))
        try:
            with self.engine.begin() as conn:
                conn.exec_driver_sql(self.insert, params)
        except SQLAlchemyError as exc:
            if self.dialect.is_duplicate(exc):
                raise AlreadyExistsError() from exc
            _handle_store_error(exc, "adding new user")
        USER_CREATED_COUNTER.inc()
        logger.info("added user id=%s", user.id)
        return user

    def update(self, user: User) -> None:
        """Replace the stored values for ``user``, matched by its ID.

        The write only applies if the row still carries
        ``user.concurrency_stamp``. If another writer got there first (or
        removed the row) :class:`ConcurrencyError` is raised and ``user`` is
        left as it was; refetch it to see the current values. On success
        ``user.concurrency_stamp`` holds the new stamp for the next update.
        """
        stamp = new_stamp()
        params = (*self._values(user, stamp), user.id, user.concurrency_stamp)
        try:
            with self.engine.begin() as conn:
                affected = conn.exec_driver_sql(self.update_stmt, params).rowcount
        except SQLAlchemyError as exc:
            if self.dialect.is_duplicate(exc):
                raise AlreadyExistsError() from exc
            _handle_store_error(exc, "update user")
        if affected == 0:
            # lost the race: updated (hence new stamp) or deleted by another process
            CONCURRENCY_CONFLICT_COUNTER.inc()
            logger.info("update user id=%s: concurrency stamp mismatch", user.id)
            raise ConcurrencyError()
        user.concurrency_stamp = stamp
