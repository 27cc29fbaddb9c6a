"""Per-engine conventions for the users table.

SQL engines and their Python drivers disagree on a handful of essentials:
the marker used for a statement parameter, how a boolean column comes back
from a query, and how a duplicate key is reported on insert. A
:class:`Dialect` gathers those differences so that :mod:`aspnetusers.store`
never has to know which engine it is talking to.

Porting to a new engine means subclassing :class:`Dialect` (or picking one of
the instances below) and passing it to :class:`aspnetusers.store.Users`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict

from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError


def driver_error(err: BaseException) -> BaseException:
    """Return the DBAPI exception behind ``err``.

    SQLAlchemy wraps driver errors in :class:`~sqlalchemy.exc.DBAPIError`
    with the original kept in ``orig``; anything else is returned as is.
    """
    if isinstance(err, DBAPIError) and err.orig is not None:
        return err.orig
    return err


def numbered(prefix: str) -> Callable[[int], str]:
    """Build a ``param`` function for engines with numbered markers (``:1``, ``$1``)."""

    def param(n: int) -> str:
        return f"{prefix}{n}"

    return param


class Dialect:
    """Engine conventions used when building and running statements.

    The defaults suit an engine with ``?`` markers, native booleans and
    timezone-aware timestamps. Subclasses override what differs.
    """

    name = "generic"

    def param(self, n: int) -> str:
        """Return the marker for the n'th (1-based) statement parameter."""
        return "?"

    def bool_var(self) -> Any:
        """Return the engine's representation of ``False`` for a boolean column."""
        return False

    def bool_val(self, value: Any) -> bool:
        """Interpret a boolean column value as returned by the driver."""
        if value is None:
            value = self.bool_var()
        return bool(value)

    def is_duplicate(self, err: BaseException) -> bool:
        """Return True iff ``err`` reports an attempt to store a duplicate key."""
        return False

    def quote(self, identifier: str) -> str:
        return identifier

    def time_param(self, value: datetime | None) -> Any:
        """Convert an aware UTC instant to what the driver expects."""
        return value

    def time_val(self, value: Any) -> datetime | None:
        """Convert a timestamp column value to an aware UTC instant."""
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def _naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class MySQLDialect(Dialect):
    """MySQL through PyMySQL or mysqlclient.

    ASP.NET's MySQL schema stores flags as ``bit(1)``, which the drivers
    return as a one byte ``bytes`` value rather than a bool. ``datetime(6)``
    has no zone, so instants are stored as naive UTC.
    """

    name = "mysql"

    # "duplicate value entered to a unique column" (in INSERT or UPDATE)
    ER_DUP_ENTRY = 1062

    def param(self, n: int) -> str:
        return "%s"

    def bool_var(self) -> Any:
        return b"\x00"

    def bool_val(self, value: Any) -> bool:
        if value is None:
            value = self.bool_var()
        if isinstance(value, (bytes, bytearray)):
            return len(value) > 0 and value[0] != 0
        return bool(value)

    def is_duplicate(self, err: BaseException) -> bool:
        orig = driver_error(err)
        code = getattr(orig, "errno", None)
        if code is None and orig.args:
            code = orig.args[0]
        return code == self.ER_DUP_ENTRY

    def time_param(self, value: datetime | None) -> Any:
        return _naive_utc(value)


class SQLiteDialect(Dialect):
    """SQLite through the standard library driver.

    Booleans are stored as 0/1 integers and timestamps as ISO text.
    """

    name = "sqlite"

    SQLITE_CONSTRAINT_PRIMARYKEY = 1555
    SQLITE_CONSTRAINT_UNIQUE = 2067

    def bool_var(self) -> Any:
        return 0

    def is_duplicate(self, err: BaseException) -> bool:
        orig = driver_error(err)
        code = getattr(orig, "sqlite_errorcode", None)
        if code is not None:
            return code in (
                self.SQLITE_CONSTRAINT_UNIQUE,
                self.SQLITE_CONSTRAINT_PRIMARYKEY,
            )
        return "UNIQUE constraint failed" in str(orig)

    def time_param(self, value: datetime | None) -> Any:
        value = _naive_utc(value)
        if value is None:
            return None
        return value.isoformat(sep=" ")


class PostgreSQLDialect(Dialect):
    """PostgreSQL through psycopg (3) or psycopg2.

    The Npgsql provider creates the table with quoted mixed-case names
    (``"AspNetUsers"``, ``"UserName"``), so identifiers are quoted here too.
    """

    name = "postgresql"

    UNIQUE_VIOLATION = "23505"

    def param(self, n: int) -> str:
        return "%s"

    def is_duplicate(self, err: BaseException) -> bool:
        orig = driver_error(err)
        state = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        return state == self.UNIQUE_VIOLATION

    def quote(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'


class SQLServerDialect(Dialect):
    """Microsoft SQL Server through pyodbc."""

    name = "mssql"

    # 2601: duplicate key row in unique index; 2627: unique constraint violation
    DUPLICATE_ERRORS = (2601, 2627)

    def bool_var(self) -> Any:
        return 0

    def is_duplicate(self, err: BaseException) -> bool:
        orig = driver_error(err)
        if orig.args and orig.args[0] in self.DUPLICATE_ERRORS:
            # pymssql reports the native number first
            return True
        message = " ".join(str(a) for a in orig.args)
        return any(f"({code})" in message for code in self.DUPLICATE_ERRORS)

    def quote(self, identifier: str) -> str:
        return "[" + identifier.replace("]", "]]") + "]"

    def time_param(self, value: datetime | None) -> Any:
        return _naive_utc(value)


MYSQL = MySQLDialect()
SQLITE = SQLiteDialect()
POSTGRESQL = PostgreSQLDialect()
SQLSERVER = SQLServerDialect()

DIALECTS: Dict[str, Dialect] = {
    "mysql": MYSQL,
    "mariadb": MYSQL,
    "sqlite": SQLITE,
    "postgresql": POSTGRESQL,
    "postgres": POSTGRESQL,
    "mssql": SQLSERVER,
    "sqlserver": SQLSERVER,
}


def dialect_for(target: str | Engine) -> Dialect:
    """Return the built-in dialect for a name or a SQLAlchemy engine."""
    name = target.dialect.name if isinstance(target, Engine) else target
    try:
        return DIALECTS[name.lower()]
    except KeyError:
        raise ValueError(f"Unsupported database dialect: {name}") from None
