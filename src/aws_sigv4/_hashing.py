# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import hmac
from collections.abc import Iterable
from hashlib import sha256

from .interfaces.io import Seekable

UNSIGNED_PAYLOAD: str = "UNSIGNED-PAYLOAD"
EMPTY_SHA256_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def sha256_hex(value: str | bytes) -> str:
    if isinstance(value, str):
        value = value.encode()
    return sha256(value).hexdigest()


def hmac_sha256(key: bytes, value: str | bytes) -> bytes:
    if isinstance(value, str):
        value = value.encode()
    return hmac.new(key=key, msg=value, digestmod=sha256).digest()


def compute_payload_hash(body: bytes | Iterable[bytes] | None) -> str:
    """Hex encoded SHA-256 digest of a request body.

    ``None`` and empty bodies hash to :data:`EMPTY_SHA256_HASH`. Seekable bodies are
    returned to their starting position once read, so they can still be sent. Any
    other iterable is consumed.
    """
    if body is None:
        return EMPTY_SHA256_HASH
    if isinstance(body, bytes | bytearray):
        return sha256(body).hexdigest()

    checksum = sha256()
    if isinstance(body, Seekable):
        position = body.tell()
        for chunk in body:
            checksum.update(chunk)
        body.seek(position)
    else:
        for chunk in body:
            checksum.update(chunk)
    return checksum.hexdigest()
