"""Password hashes in the format of ASP.NET Core Identity's ``PasswordHasher``.

The stored ``PasswordHash`` column is base64 text of one of two layouts:

* version 3 (marker ``0x01``): PRF, iteration count and salt length as
  big-endian 32-bit integers, then the salt, then the PBKDF2 subkey;
* version 2 (marker ``0x00``): a 16 byte salt and a 32 byte subkey derived
  with PBKDF2-HMAC-SHA1 over 1000 iterations.

New hashes are always written as version 3 with HMAC-SHA256, so the
ASP.NET application accepts them unchanged. Version 2 is read only.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import secrets
import struct
from dataclasses import dataclass
from typing import Dict

from .config import settings

V2_MARKER = 0x00
V3_MARKER = 0x01

V2_ITERATIONS = 1000
SALT_SIZE = 16
SUBKEY_SIZE = 32

# KeyDerivationPrf values used in the version 3 header
PRF_NAMES: Dict[int, str] = {0: "sha1", 1: "sha256", 2: "sha512"}
PRF_SHA256 = 1

_V3_HEADER = struct.Struct(">BIII")


class InvalidHashError(ValueError):
    """The stored text is not a password hash this module can read."""


@dataclass(frozen=True)
class PasswordHash:
    """A decoded password hash."""

    version: int
    prf: int
    iterations: int
    salt: bytes
    subkey: bytes

    def verify(self, password: str) -> bool:
        """Return True iff ``password`` derives the stored subkey.

        The comparison takes the same time wherever the first mismatch is.
        """
        actual = hashlib.pbkdf2_hmac(
            PRF_NAMES[self.prf],
            password.encode("utf-8"),
            self.salt,
            self.iterations,
            len(self.subkey),
        )
        return hmac.compare_digest(actual, self.subkey)

    def encode(self) -> str:
        if self.version == V2_MARKER:
            raw = bytes([V2_MARKER]) + self.salt + self.subkey
        else:
            header = _V3_HEADER.pack(V3_MARKER, self.prf, self.iterations, len(self.salt))
            raw = header + self.salt + self.subkey
        return base64.b64encode(raw).decode("ascii")


def derive(password: str, iterations: int | None = None) -> PasswordHash:
    """Hash ``password`` with a fresh random salt as a version 3 hash."""
    if iterations is None:
        iterations = settings.hash_iterations
    salt = secrets.token_bytes(SALT_SIZE)
    subkey = hashlib.pbkdf2_hmac(
        PRF_NAMES[PRF_SHA256], password.encode("utf-8"), salt, iterations, SUBKEY_SIZE
    )
    return PasswordHash(V3_MARKER, PRF_SHA256, iterations, salt, subkey)


def hash_password(password: str, iterations: int | None = None) -> str:
    """Return the encoded text of a new hash of ``password``."""
    return derive(password, iterations).encode()


def decode_hash(text: str) -> PasswordHash:
    """Parse the encoded text stored in the ``PasswordHash`` column."""
    try:
        raw = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidHashError(f"password encoding: {exc}") from exc
    if not raw:
        raise InvalidHashError("password encoding: empty hash")

    marker = raw[0]
    if marker == V2_MARKER:
        if len(raw) != 1 + SALT_SIZE + SUBKEY_SIZE:
            raise InvalidHashError("password encoding: bad version 2 length")
        salt = raw[1 : 1 + SALT_SIZE]
        return PasswordHash(V2_MARKER, 0, V2_ITERATIONS, salt, raw[1 + SALT_SIZE :])

    if marker != V3_MARKER:
        raise InvalidHashError(f"password encoding: unknown format marker {marker}")
    if len(raw) < _V3_HEADER.size:
        raise InvalidHashError("password encoding: truncated version 3 header")
    _, prf, iterations, salt_len = _V3_HEADER.unpack_from(raw)
    if prf not in PRF_NAMES:
        raise InvalidHashError(f"password encoding: unknown PRF {prf}")
    if iterations == 0:
        raise InvalidHashError("password encoding: zero iteration count")
    # ASP.NET insists on at least 128 bits of salt and subkey
    if salt_len < 16:
        raise InvalidHashError("password encoding: salt too short")
    body = raw[_V3_HEADER.size :]
    salt, subkey = body[:salt_len], body[salt_len:]
    if len(salt) != salt_len or len(subkey) < 16:
        raise InvalidHashError("password encoding: subkey too short")
    return PasswordHash(V3_MARKER, prf, iterations, salt, subkey)


def verify_password(text: str, password: str) -> bool:
    """Decode ``text`` and check ``password`` against it.

    Raises :class:`InvalidHashError` if ``text`` cannot be decoded; a
    mismatched password is simply ``False``.
    """
    return decode_hash(text).verify(password)


# Hash of the empty password, compared against when a user name is unknown
# so that the miss costs the same as a wrong password.
EMPTY_HASH = hash_password("")
