"""ASP.NET Core Identity compatible user store.

Password handling and the ``aspnetusers`` table are kept bit-compatible with
ASP.NET Core Identity, so a Python service and an ASP.NET Core application
can run side by side on the same user database, and switching between them
does not force anyone to reset a password.

:class:`User` corresponds to ``IdentityUser``. It has a primary key ``Id``,
a unique ``UserName`` (matched through ``NormalizedUserName``) and an
``Email`` that need not be unique. Add users with :meth:`Users.new_user`,
find them with :meth:`Users.find_by_id` or :meth:`Users.find_by_name` and
store changes with :meth:`Users.update`. :class:`Authenticator` checks
passwords and keeps track of failed attempts and lockout.

The MySQL definition of the table, a guide for other engines::

    CREATE TABLE `aspnetusers` (
      `Id` varchar(127) NOT NULL,
      `AccessFailedCount` int(11) NOT NULL,
      `ConcurrencyStamp` longtext,
      `Email` varchar(256) DEFAULT NULL,
      `EmailConfirmed` bit(1) NOT NULL,
      `LockoutEnabled` bit(1) NOT NULL,
      `LockoutEnd` datetime(6) DEFAULT NULL,
      `NormalizedEmail` varchar(256) DEFAULT NULL,
      `NormalizedUserName` varchar(256) DEFAULT NULL,
      `PasswordHash` longtext,
      `PhoneNumber` longtext,
      `PhoneNumberConfirmed` bit(1) NOT NULL,
      `SecurityStamp` longtext,
      `TwoFactorEnabled` bit(1) NOT NULL,
      `UserName` varchar(256) DEFAULT NULL,
      PRIMARY KEY (`Id`),
      KEY `EmailIndex` (`NormalizedEmail`),
      UNIQUE KEY `UserNameIndex` (`NormalizedUserName`)
    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;
"""

from .auth import Authenticator
from .dialects import MYSQL, POSTGRESQL, SQLITE, SQLSERVER, Dialect, dialect_for
from .errors import (
    AlreadyExistsError,
    ConcurrencyError,
    InvalidCredentialsError,
    LockedOutError,
    MissingPasswordError,
    NotFoundError,
    StoreFailureError,
    UserStoreError,
)
from .models.user import User
from .store import Users

__all__ = [
    "AlreadyExistsError",
    "Authenticator",
    "ConcurrencyError",
    "Dialect",
    "InvalidCredentialsError",
    "LockedOutError",
    "MYSQL",
    "MissingPasswordError",
    "NotFoundError",
    "POSTGRESQL",
    "SQLITE",
    "SQLSERVER",
    "StoreFailureError",
    "User",
    "UserStoreError",
    "Users",
    "dialect_for",
]
