"""Engine wiring and a table definition matching the ASP.NET users schema."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine

from .config import Settings, settings
from .dialects import dialect_for
from .store import Users

engine = create_engine(settings.database_url, future=True)


def users_table(name: str = "aspnetusers", metadata: MetaData | None = None) -> Table:
    """Describe the users table as ASP.NET Core Identity creates it.

    Useful for tests and local development; production schemas belong to
    the ASP.NET application's migrations.
    """
    if metadata is None:
        metadata = MetaData()
    return Table(
        name,
        metadata,
        Column("Id", String(127), primary_key=True),
        Column("AccessFailedCount", Integer, nullable=False),
        Column("ConcurrencyStamp", Text),
        Column("Email", String(256)),
        Column("EmailConfirmed", Boolean, nullable=False),
        Column("LockoutEnabled", Boolean, nullable=False),
        Column("LockoutEnd", DateTime),
        Column("NormalizedEmail", String(256)),
        Column("NormalizedUserName", String(256)),
        Column("PasswordHash", Text),
        Column("PhoneNumber", Text),
        Column("PhoneNumberConfirmed", Boolean, nullable=False),
        Column("SecurityStamp", Text),
        Column("TwoFactorEnabled", Boolean, nullable=False),
        Column("UserName", String(256)),
        Index("EmailIndex", "NormalizedEmail"),
        Index("UserNameIndex", "NormalizedUserName", unique=True),
    )


def init_db(bind: Engine | None = None, name: str | None = None) -> Table:
    """Create the users table if it does not exist."""
    if bind is None:
        bind = engine
    table = users_table(name or settings.users_table)
    table.metadata.create_all(bind=bind)
    return table


def open_users(config: Settings | None = None, bind: Engine | None = None) -> Users:
    """Build a :class:`~aspnetusers.store.Users` store from configuration.

    Without an explicit engine the module level one is used, or a new one is
    created when ``config`` names a different database.
    """
    if config is None:
        config = settings
    if bind is None:
        bind = engine if config.database_url == settings.database_url else create_engine(
            config.database_url, future=True
        )
    dialect = dialect_for(config.dialect or bind)
    return Users(bind, config.users_table, dialect)
