"""Schnorr signatures over NIST P-256 with SHA-256 and deterministic nonces."""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional, Tuple

SCALAR_LENGTH = 32

_P = 0xFFFFFFFF00000001000000000000000000000000FFFFFFFFFFFFFFFFFFFFFFFF
_A = _P - 3
_B = 0x5AC635D8AA3A93E7B3EBBD55769886BC651D06B0CC53B0F63BCE3C3E27D2604B
_N = 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551
_G = (
    0x6B17D1F2E12C4247F8BCE6E563A440F277037D812DEB33A0F4A13945D898C296,
    0x4FE342E2FE1A7F9B8EE7EB4A7C0F9E162BCE33576B315ECECBB6406837BF51F5,
)

_Point = Optional[Tuple[int, int]]


class InvalidSignatureError(ValueError):
    """Raised when a signature does not verify."""

    def __init__(self, message: str = "invalid signature") -> None:
        super().__init__(message)


class InvalidPublicKeyError(ValueError):
    """Raised when a public key is not a valid P-256 point."""

    def __init__(self, message: str = "invalid public key") -> None:
        super().__init__(message)


def _add(p: _Point, q: _Point) -> _Point:
    if p is None:
        return q
    if q is None:
        return p
    x1, y1 = p
    x2, y2 = q
    if x1 == x2:
        if (y1 + y2) % _P == 0:
            return None
        slope = (3 * x1 * x1 + _A) * pow(2 * y1, -1, _P) % _P
    else:
        slope = (y2 - y1) * pow((x2 - x1) % _P, -1, _P) % _P
    x3 = (slope * slope - x1 - x2) % _P
    y3 = (slope * (x1 - x3) - y1) % _P
    return (x3, y3)


def _mul(k: int, point: _Point) -> _Point:
    k %= _N
    result: _Point = None
    addend = point
    while k:
        if k & 1:
            result = _add(result, addend)
        addend = _add(addend, addend)
        k >>= 1
    return result


def _on_curve(x: int, y: int) -> bool:
    return (y * y - (x * x * x + _A * x + _B)) % _P == 0


def _encode(point: Tuple[int, int]) -> bytes:
    x, y = point
    return b"\x04" + x.to_bytes(SCALAR_LENGTH, "big") + y.to_bytes(SCALAR_LENGTH, "big")


def _decode(data: bytes) -> _Point:
    if len(data) != 1 + 2 * SCALAR_LENGTH or data[0] != 0x04:
        return None
    x = int.from_bytes(data[1:1 + SCALAR_LENGTH], "big")
    y = int.from_bytes(data[1 + SCALAR_LENGTH:], "big")
    if x >= _P or y >= _P or not _on_curve(x, y):
        return None
    return (x, y)


def _length_value(buf: bytes) -> bytes:
    return len(buf).to_bytes(4, "big") + buf


def _challenge(public_nonce: bytes, sender_public: bytes, message: bytes) -> bytes:
    h = hashlib.sha256()
    for part in (_encode(_G), public_nonce, sender_public, message):
        h.update(_length_value(part))
    return h.digest()


def public_key_bytes(scalar: bytes) -> bytes:
    """Return the uncompressed public key for a 32-byte private scalar."""
    scalar = bytes(scalar)
    if len(scalar) != SCALAR_LENGTH:
        raise ValueError("invalid private key length")
    value = int.from_bytes(scalar, "big")
    if not 0 < value < _N:
        raise ValueError("invalid private key")
    return _encode(_mul(value, _G))


def verify(public_key: bytes, message: bytes, signature: bytes) -> None:
    """Check ``signature`` over ``message``; raise if it is not valid."""
    public_key = bytes(public_key)
    message = bytes(message)
    signature = bytes(signature)
    point = _decode(public_key)
    if point is None:
        raise InvalidPublicKeyError()
    if len(signature) != 3 * SCALAR_LENGTH:
        raise InvalidSignatureError()
    vx = int.from_bytes(signature[:SCALAR_LENGTH], "big")
    vy = int.from_bytes(signature[SCALAR_LENGTH:2 * SCALAR_LENGTH], "big")
    r = int.from_bytes(signature[2 * SCALAR_LENGTH:], "big")
    c = int.from_bytes(
        _challenge(b"\x04" + signature[:2 * SCALAR_LENGTH], public_key, message), "big"
    )
    total = _add(_mul(c, point), _mul(r, _G))
    # The point at infinity compares as (0, 0).
    if (total or (0, 0)) != (vx, vy):
        raise InvalidSignatureError()


def _hmac(key: bytes, *parts: bytes) -> bytes:
    return hmac.new(key, b"".join(parts), hashlib.sha256).digest()


def deterministic_nonce(scalar: bytes, message_hash: bytes) -> bytes:
    """Derive a nonce per RFC 6979 for P-256/SHA-256."""
    scalar = bytes(scalar)
    if len(message_hash) != hashlib.sha256().digest_size:
        raise ValueError("message hash must be a SHA-256 digest")
    h1 = (int.from_bytes(message_hash, "big") % _N).to_bytes(SCALAR_LENGTH, "big")

    k = bytes(32)
    v = b"\x01" * 32
    k = _hmac(k, v, b"\x00", scalar, h1)
    v = _hmac(k, v)
    k = _hmac(k, v, b"\x01", scalar, h1)
    v = _hmac(k, v)
    while True:
        v = _hmac(k, v)
        if 0 < int.from_bytes(v, "big") < _N:
            return v
        k = _hmac(k, v, b"\x00")
        v = _hmac(k, v)


def sign(scalar: bytes, message: bytes) -> bytes:
    """Sign ``message`` with a 32-byte private scalar.

    The signature is the nonce point's X and Y coordinates followed by r.
    """
    scalar = bytes(scalar)
    message = bytes(message)
    sender_public = public_key_bytes(scalar)
    digest = hashlib.sha256(message).digest()
    v = int.from_bytes(deterministic_nonce(scalar, digest), "big")
    public_nonce = _encode(_mul(v, _G))
    c = int.from_bytes(_challenge(public_nonce, sender_public, message), "big")
    a = int.from_bytes(scalar, "big")
    r = (v - a * c) % _N
    return public_nonce[1:] + r.to_bytes(SCALAR_LENGTH, "big")