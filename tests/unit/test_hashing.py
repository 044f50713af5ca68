import io
from collections.abc import Iterator

import pytest
from aws_sigv4 import EMPTY_SHA256_HASH, compute_payload_hash
from aws_sigv4._hashing import hmac_sha256, sha256_hex

FOO_BAR_HASH = "7a38bf81f383f69433ad6e900d35b3e2385593f76a7b7ab5d4355b8ba41ee24b"


@pytest.mark.parametrize(
    "body,expected",
    [
        (None, EMPTY_SHA256_HASH),
        (b"", EMPTY_SHA256_HASH),
        (bytearray(), EMPTY_SHA256_HASH),
        ([], EMPTY_SHA256_HASH),
        (b'{"foo":"bar"}', FOO_BAR_HASH),
        ([b'{"foo"', b':"bar"}'], FOO_BAR_HASH),
    ],
)
def test_compute_payload_hash(body: object, expected: str) -> None:
    assert compute_payload_hash(body) == expected  # type: ignore


def test_seekable_body_is_rewound() -> None:
    body = io.BytesIO(b'xx{"foo":"bar"}')
    body.seek(2)
    assert compute_payload_hash(body) == FOO_BAR_HASH
    assert body.tell() == 2
    assert body.read() == b'{"foo":"bar"}'


def test_iterator_body_is_consumed() -> None:
    def chunks() -> Iterator[bytes]:
        yield b'{"foo"'
        yield b':"bar"}'

    body = chunks()
    assert compute_payload_hash(body) == FOO_BAR_HASH
    assert list(body) == []


def test_sha256_hex() -> None:
    assert sha256_hex("") == EMPTY_SHA256_HASH
    assert sha256_hex(b"") == EMPTY_SHA256_HASH


def test_hmac_sha256_accepts_text_and_bytes() -> None:
    assert hmac_sha256(b"key", "value") == hmac_sha256(b"key", b"value")
    assert len(hmac_sha256(b"key", "value")) == 32
