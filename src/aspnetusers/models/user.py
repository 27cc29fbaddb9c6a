import uuid
from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


def new_stamp() -> str:
    """Return a fresh random token for IDs, security and concurrency stamps."""
    return str(uuid.uuid4())


def normalise(value: str) -> str:
    """Return the upper-cased form used for NormalizedUserName and NormalizedEmail."""
    return value.upper()


class User(BaseModel):
    """One row of the ASP.NET users table (``IdentityUser`` in ASP.NET).

    Nullable text columns read back as empty strings. ``lockout_end`` is an
    aware UTC instant; a value in the past means the user is not locked out.
    Field aliases are the table's column names.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: str = Field("", alias="Id")
    user_name: str = Field("", alias="UserName")
    normalized_user_name: str = Field("", alias="NormalizedUserName")
    email: str = Field("", alias="Email")
    normalized_email: str = Field("", alias="NormalizedEmail")
    email_confirmed: bool = Field(False, alias="EmailConfirmed")
    password_hash: str = Field("", alias="PasswordHash")
    # changes whenever credentials change (password changed, login removed)
    security_stamp: str = Field("", alias="SecurityStamp")
    # changes on every stored update
    concurrency_stamp: str = Field("", alias="ConcurrencyStamp")
    phone_number: str = Field("", alias="PhoneNumber")
    phone_number_confirmed: bool = Field(False, alias="PhoneNumberConfirmed")
    two_factor_enabled: bool = Field(False, alias="TwoFactorEnabled")
    lockout_end: datetime | None = Field(None, alias="LockoutEnd")
    lockout_enabled: bool = Field(False, alias="LockoutEnabled")
    access_failed_count: int = Field(0, alias="AccessFailedCount")

    @field_validator("lockout_end")
    @classmethod
    def lockout_end_utc(cls, value: datetime | None) -> datetime | None:
        # naive values are taken to be UTC already
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# Every column except Id, in lexical order. Statements list columns in this
# order and bind values in the same order.
COLUMNS: List[str] = sorted(
    field.alias for name, field in User.model_fields.items() if name != "id"
)

# column name -> attribute name
ATTRIBUTES = {field.alias: name for name, field in User.model_fields.items()}

BOOL_COLUMNS = frozenset(
    field.alias for field in User.model_fields.values() if field.annotation is bool
)
