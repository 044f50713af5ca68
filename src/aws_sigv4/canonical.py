# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Pure functions that reduce a request to its SigV4 canonical form.

The canonical request is defined as::

    <HTTPMethod>\\n
    <CanonicalURI>\\n
    <CanonicalQueryString>\\n
    <CanonicalHeaders>\\n
    <SignedHeaders>\\n
    <HashedPayload>

where ``<CanonicalHeaders>`` carries its own trailing newline, leaving a blank line
before the signed header list.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import cached_property
from urllib.parse import parse_qsl, quote

from ._hashing import sha256_hex
from .exceptions import InvalidRequestError
from .interfaces.http import Fields

HEADERS_EXCLUDED_FROM_SIGNING: tuple[str, ...] = (
    "authorization",
    "x-amzn-trace-id",
)
HOST_HEADERS: tuple[str, ...] = ("host", ":authority")
AMZ_HEADER_PREFIX = "x-amz-"

# x-amz-* headers that must remain headers (and signed) on a presigned request.
# Any other x-amz-* header is moved into the query string when presigning.
PRESIGN_REQUIRED_HEADER_PREFIXES: tuple[str, ...] = ("x-amz-meta-",)
PRESIGN_REQUIRED_HEADERS: frozenset[str] = frozenset(
    {
        "x-amz-acl",
        "x-amz-content-sha256",
        "x-amz-copy-source",
        "x-amz-copy-source-if-match",
        "x-amz-copy-source-if-modified-since",
        "x-amz-copy-source-if-none-match",
        "x-amz-copy-source-if-unmodified-since",
        "x-amz-copy-source-range",
        "x-amz-copy-source-server-side-encryption-customer-algorithm",
        "x-amz-copy-source-server-side-encryption-customer-key",
        "x-amz-copy-source-server-side-encryption-customer-key-md5",
        "x-amz-expected-bucket-owner",
        "x-amz-grant-full-control",
        "x-amz-grant-read",
        "x-amz-grant-read-acp",
        "x-amz-grant-write",
        "x-amz-grant-write-acp",
        "x-amz-metadata-directive",
        "x-amz-mfa",
        "x-amz-object-lock-legal-hold",
        "x-amz-object-lock-mode",
        "x-amz-object-lock-retain-until-date",
        "x-amz-request-payer",
        "x-amz-server-side-encryption",
        "x-amz-server-side-encryption-aws-kms-key-id",
        "x-amz-server-side-encryption-context",
        "x-amz-server-side-encryption-customer-algorithm",
        "x-amz-server-side-encryption-customer-key",
        "x-amz-server-side-encryption-customer-key-md5",
        "x-amz-storage-class",
        "x-amz-tagging",
        "x-amz-website-redirect-location",
    }
)


@dataclass(frozen=True)
class CanonicalRequest:
    method: str
    uri: str
    query: str
    headers: str
    """Newline terminated ``name:value`` lines."""

    signed_headers: tuple[str, ...]
    payload_hash: str

    @property
    def signed_headers_string(self) -> str:
        return ";".join(self.signed_headers)

    @cached_property
    def hash(self) -> str:
        """Hex encoded SHA-256 digest of the canonical request string."""
        return sha256_hex(str(self))

    def __str__(self) -> str:
        return (
            f"{self.method}\n"
            f"{self.uri}\n"
            f"{self.query}\n"
            f"{self.headers}\n"
            f"{self.signed_headers_string}\n"
            f"{self.payload_hash}"
        )


def uri_encode(value: str, *, keep_slash: bool = False) -> str:
    """Percent-encode everything outside the RFC 3986 unreserved set.

    Uppercase hex digits are used and a space becomes ``%20``.
    """
    return quote(value, safe="/" if keep_slash else "")


def canonical_uri(path: str | None, *, encoded: bool = False) -> str:
    """Canonical form of a request path.

    :param path: The path component of the request URI.
    :param encoded: Whether ``path`` is already percent-encoded. Encoded paths are
        used as given so they aren't escaped twice.
    """
    if not path:
        return "/"
    if encoded:
        return path
    return uri_encode(path, keep_slash=True)


def parse_query(query: str | None) -> list[tuple[str, str]]:
    """Split a raw query string into decoded pairs, keeping value-less names."""
    if not query:
        return []
    return parse_qsl(query, keep_blank_values=True)


def canonical_query(params: Iterable[tuple[str, str]]) -> str:
    """Encode and sort query pairs.

    Pairs are ordered by encoded name, then by encoded value for repeated names.
    """
    query_parts = ((uri_encode(key), uri_encode(value)) for key, value in params)
    # key-value pairs must be in sorted order for their encoded forms.
    return "&".join(f"{key}={value}" for key, value in sorted(query_parts))


def is_presign_hoistable(name: str) -> bool:
    """Whether a header moves into the query string of a presigned request."""
    lowered = name.lower()
    if not lowered.startswith(AMZ_HEADER_PREFIX):
        return False
    if lowered in PRESIGN_REQUIRED_HEADERS:
        return False
    return not lowered.startswith(PRESIGN_REQUIRED_HEADER_PREFIXES)


def normalize_header_value(value: str) -> str:
    """Trim the value and collapse every interior whitespace run to one space."""
    return " ".join(value.split())


def canonical_headers(
    fields: Fields,
    *,
    host: str,
    sign_all_headers: bool = True,
    additional_signed_headers: Sequence[str] = (),
) -> tuple[str, tuple[str, ...]]:
    """Select and normalize the headers covered by a signature.

    ``host`` (or ``:authority``) and ``x-amz-*`` headers are always covered, as are
    names in ``additional_signed_headers``. With ``sign_all_headers`` every other
    header is covered too. ``authorization`` and ``x-amzn-trace-id`` never are.

    :param fields: The request headers.
    :param host: Value for the ``host`` line when ``fields`` carries no host header.
    :returns: The newline terminated header block and the sorted signed names.
    """
    forced = {name.lower() for name in additional_signed_headers}
    selected: dict[str, list[str]] = {}
    for field in fields:
        name = field.name.lower()
        if not _should_sign(name, sign_all_headers=sign_all_headers, forced=forced):
            continue
        selected.setdefault(name, []).extend(
            normalize_header_value(_header_text(field.name, value))
            for value in field.values
        )

    if not any(name in selected for name in HOST_HEADERS):
        if not host:
            raise InvalidRequestError(
                "Unable to determine the host to sign. Provide a Host header or a "
                "destination with a host."
            )
        selected["host"] = [normalize_header_value(host)]

    names = tuple(sorted(selected))
    block = "".join(f"{name}:{','.join(selected[name])}\n" for name in names)
    return block, names


def build_canonical_request(
    *,
    method: str,
    path: str | None,
    path_encoded: bool,
    query_params: Iterable[tuple[str, str]],
    headers: str,
    signed_headers: Sequence[str],
    payload_hash: str,
) -> CanonicalRequest:
    """Assemble a canonical request around a header block from
    :func:`canonical_headers`.

    Headers are selected in a separate step because a presigned request carries the
    signed header list in its query string.
    """
    return CanonicalRequest(
        method=canonical_method(method),
        uri=canonical_uri(path, encoded=path_encoded),
        query=canonical_query(query_params),
        headers=headers,
        signed_headers=tuple(signed_headers),
        payload_hash=payload_hash,
    )


def canonical_method(method: str) -> str:
    if not method or not method.strip():
        raise InvalidRequestError("A request method is required for signing.")
    return method.strip().upper()


def header_pairs(fields: Fields) -> list[tuple[str, str]]:
    """Flatten headers to (name, value) pairs, rejecting non-string values."""
    return [
        (field.name, _header_text(field.name, value))
        for field in fields
        for value in field.values
    ]


def _should_sign(name: str, *, sign_all_headers: bool, forced: set[str]) -> bool:
    if name in HEADERS_EXCLUDED_FROM_SIGNING:
        return False
    if sign_all_headers or name in forced or name in HOST_HEADERS:
        return True
    return name.startswith(AMZ_HEADER_PREFIX)


def _header_text(name: str, value: object) -> str:
    if not isinstance(value, str):
        raise InvalidRequestError(
            f"Header {name!r} has a value of type {type(value).__name__}; header "
            "values must be strings to be signed."
        )
    return value
