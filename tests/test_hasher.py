import base64
import hashlib

import pytest

from aspnetusers import hasher
from aspnetusers.hasher import (
    EMPTY_HASH,
    InvalidHashError,
    PasswordHash,
    decode_hash,
    hash_password,
    verify_password,
)

# Produced by ASP.NET Core Identity's default PasswordHasher (version 3,
# HMAC-SHA256, 10000 iterations).
ASPNET_HASHES = [
    (
        "AQAAAAEAACcQAAAAEO4k5r1SgFuCYAS8xfu/Mnu5iZUqh+DgSRU4IyJpD+mVo4KdbI1BwiF3KcY1V6AapQ==",
        "In2Egypt!",
    ),
    (
        "AQAAAAEAACcQAAAAEHhGT2mW9BMcWhMNA4lNj80h8OULQyuvqbSR99lZ+GWsuhA2H6HLxcZI8+RhtxV5FA==",
        "REdNuIlsAnyejH3",
    ),
]


@pytest.mark.parametrize("text, password", ASPNET_HASHES)
def test_aspnet_hashes(text, password):
    decoded = decode_hash(text)
    assert decoded.version == hasher.V3_MARKER
    assert decoded.prf == hasher.PRF_SHA256
    assert decoded.iterations == 10000
    assert len(decoded.salt) == 16
    assert len(decoded.subkey) == 32
    assert decoded.encode() == text
    assert verify_password(text, password)
    assert not verify_password(text, password.lower())
    assert not verify_password(text, "")


def test_hash_password_format():
    text = hash_password("woofy")
    raw = base64.b64decode(text)
    assert raw[0] == hasher.V3_MARKER
    assert len(raw) == 13 + 16 + 32
    decoded = decode_hash(text)
    assert decoded.iterations == hasher.settings.hash_iterations
    assert decoded.verify("woofy")
    assert not decoded.verify("waffy")


def test_hash_password_iterations(monkeypatch):
    assert decode_hash(hash_password("woofy", iterations=1234)).iterations == 1234
    monkeypatch.setattr(hasher.settings, "hash_iterations", 2000)
    assert decode_hash(hash_password("woofy")).iterations == 2000


def test_hashes_are_salted():
    assert hash_password("woofy") != hash_password("woofy")


def test_empty_hash():
    assert verify_password(EMPTY_HASH, "")
    assert not verify_password(EMPTY_HASH, " ")


def test_version_2_hashes_verify():
    salt = bytes(range(16))
    subkey = hashlib.pbkdf2_hmac("sha1", "woofy".encode(), salt, 1000, 32)
    text = PasswordHash(hasher.V2_MARKER, 0, 1000, salt, subkey).encode()
    assert len(base64.b64decode(text)) == 49
    assert decode_hash(text).iterations == 1000
    assert verify_password(text, "woofy")
    assert not verify_password(text, "waffy")


@pytest.mark.parametrize(
    "text",
    [
        "",
        "not a hash!",
        base64.b64encode(b"\x05" + bytes(60)).decode(),
        base64.b64encode(b"\x00" + bytes(20)).decode(),
        base64.b64encode(b"\x01\x00\x00").decode(),
        # unknown PRF
        base64.b64encode(b"\x01" + (9).to_bytes(4, "big") + (1000).to_bytes(4, "big")
                         + (16).to_bytes(4, "big") + bytes(48)).decode(),
        # salt shorter than 128 bits
        base64.b64encode(b"\x01" + (1).to_bytes(4, "big") + (1000).to_bytes(4, "big")
                         + (8).to_bytes(4, "big") + bytes(40)).decode(),
        # subkey missing
        base64.b64encode(b"\x01" + (1).to_bytes(4, "big") + (1000).to_bytes(4, "big")
                         + (16).to_bytes(4, "big") + bytes(16)).decode(),
    ],
)
def test_invalid_hashes(text):
    with pytest.raises(InvalidHashError):
        decode_hash(text)
