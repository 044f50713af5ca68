# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from typing import Final, Protocol, Required, TypedDict, TypeVar

from ._hashing import EMPTY_SHA256_HASH, hmac_sha256
from ._http import URI as _URI
from ._http import Field, Fields, format_host
from ._time import Clock, SigningTime, utc_now
from .canonical import (
    CanonicalRequest,
    build_canonical_request,
    canonical_headers,
    canonical_query,
    header_pairs,
    is_presign_hoistable,
    parse_query,
)
from .exceptions import ConfigurationError, InvalidRequestError
from .interfaces.http import Request, URI
from .interfaces.identity import AWSCredentialsIdentity
from .keys import DerivedKeyCache

logger: Final = logging.getLogger(__name__)

SIGV4_ALGORITHM: Final = "AWS4-HMAC-SHA256"
SIGV4_TERMINATOR: Final = "aws4_request"
DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}

AUTHORIZATION_HEADER: Final = "Authorization"
AMZ_DATE_KEY: Final = "X-Amz-Date"
AMZ_SECURITY_TOKEN_KEY: Final = "X-Amz-Security-Token"
AMZ_ALGORITHM_KEY: Final = "X-Amz-Algorithm"
AMZ_CREDENTIAL_KEY: Final = "X-Amz-Credential"
AMZ_SIGNED_HEADERS_KEY: Final = "X-Amz-SignedHeaders"
AMZ_SIGNATURE_KEY: Final = "X-Amz-Signature"
AMZ_EXPIRES_KEY: Final = "X-Amz-Expires"

# Query parameters a presigned URL owns. Request headers or query parameters with
# these names are replaced.
_PRESIGN_QUERY_KEYS: frozenset[str] = frozenset(
    key.lower()
    for key in (
        AMZ_ALGORITHM_KEY,
        AMZ_CREDENTIAL_KEY,
        AMZ_DATE_KEY,
        AMZ_SIGNED_HEADERS_KEY,
        AMZ_SIGNATURE_KEY,
        AMZ_SECURITY_TOKEN_KEY,
    )
)


class SigV4SigningProperties(TypedDict, total=False):
    region: Required[str]
    service: Required[str]
    sign_all_headers: bool
    additional_signed_headers: Sequence[str]


@dataclass(frozen=True)
class PresignedRequest:
    """Material needed to send a presigned request.

    Sending a request to ``url`` with exactly ``fields`` as headers reproduces what
    was signed.
    """

    url: str
    fields: Fields


@dataclass(frozen=True)
class _SigningContext:
    identity: AWSCredentialsIdentity
    signing_time: SigningTime
    scope: str

    @property
    def credential(self) -> str:
        return f"{self.identity.access_key_id}/{self.scope}"


@dataclass(frozen=True)
class _ComputedSignature:
    canonical_request: CanonicalRequest
    signature: str
    fields: Fields
    query_params: list[tuple[str, str]]
    host: str


T = TypeVar("T")


class _SignatureSink(Protocol[T]):
    """Where a signature ends up, and what has to be staged before computing it."""

    def prepare_fields(self, fields: Fields, context: _SigningContext) -> None: ...

    def prepare_query(
        self,
        params: list[tuple[str, str]],
        signed_headers: Sequence[str],
        context: _SigningContext,
    ) -> None: ...

    def finish(
        self, request: Request, computed: _ComputedSignature, context: _SigningContext
    ) -> T: ...


class _HeaderSink:
    """Writes the date, token, and ``Authorization`` header onto the request."""

    def prepare_fields(self, fields: Fields, context: _SigningContext) -> None:
        fields.set_field(
            Field(name=AMZ_DATE_KEY, values=[context.signing_time.timestamp])
        )
        if context.identity.session_token is not None:
            fields.set_field(
                Field(
                    name=AMZ_SECURITY_TOKEN_KEY,
                    values=[context.identity.session_token],
                )
            )

    def prepare_query(
        self,
        params: list[tuple[str, str]],
        signed_headers: Sequence[str],
        context: _SigningContext,
    ) -> None:
        return None

    def finish(
        self, request: Request, computed: _ComputedSignature, context: _SigningContext
    ) -> None:
        authorization = generate_authorization_field(
            credential=context.credential,
            signed_headers=computed.canonical_request.signed_headers,
            signature=computed.signature,
        )
        request.fields.set_field(computed.fields[AMZ_DATE_KEY])
        if AMZ_SECURITY_TOKEN_KEY in computed.fields:
            request.fields.set_field(computed.fields[AMZ_SECURITY_TOKEN_KEY])
        request.fields.set_field(authorization)


class _QuerySink:
    """Moves signing material into a copy of the query string."""

    def __init__(self, *, expires_in: int | None = None):
        self._expires_in = expires_in
        self._hoisted: list[tuple[str, str]] = []

    def prepare_fields(self, fields: Fields, context: _SigningContext) -> None:
        for field in list(fields):
            name = field.name.lower()
            if name in _PRESIGN_QUERY_KEYS:
                del fields[field.name]
            elif is_presign_hoistable(name):
                self._hoisted.extend((field.name, value) for value in field.values)
                del fields[field.name]

    def prepare_query(
        self,
        params: list[tuple[str, str]],
        signed_headers: Sequence[str],
        context: _SigningContext,
    ) -> None:
        hoisted_names = {name.lower() for name, _ in self._hoisted}
        replaced = _PRESIGN_QUERY_KEYS | hoisted_names
        if self._expires_in is not None:
            replaced = replaced | {AMZ_EXPIRES_KEY.lower()}
        params[:] = [(k, v) for k, v in params if k.lower() not in replaced]

        params.extend(self._hoisted)
        params.append((AMZ_ALGORITHM_KEY, SIGV4_ALGORITHM))
        params.append((AMZ_CREDENTIAL_KEY, context.credential))
        params.append((AMZ_DATE_KEY, context.signing_time.timestamp))
        params.append((AMZ_SIGNED_HEADERS_KEY, ";".join(signed_headers)))
        if context.identity.session_token is not None:
            params.append((AMZ_SECURITY_TOKEN_KEY, context.identity.session_token))
        if self._expires_in is not None:
            params.append((AMZ_EXPIRES_KEY, str(self._expires_in)))

    def finish(
        self, request: Request, computed: _ComputedSignature, context: _SigningContext
    ) -> PresignedRequest:
        params = [*computed.query_params, (AMZ_SIGNATURE_KEY, computed.signature)]
        url = _with_query(request.destination, canonical_query(params))

        signed = set(computed.canonical_request.signed_headers)
        headers = Fields(
            Field(name=field.name, values=field.values)
            for field in computed.fields
            if field.name.lower() in signed
        )
        if "host" in signed and "host" not in headers:
            headers.set_field(Field(name="Host", values=[computed.host]))
        return PresignedRequest(url=url, fields=headers)


class SigV4Signer:
    """Request signer for applying the AWS Signature Version 4 algorithm.

    A signer is bound to one identity and one region/service pair. It holds no
    per-request state, so a single instance may sign from many threads.
    """

    def __init__(
        self,
        *,
        identity: AWSCredentialsIdentity | None = None,
        properties: SigV4SigningProperties | None = None,
        key_cache: DerivedKeyCache | None = None,
        clock: Clock | None = None,
    ):
        """
        :param identity: The credentials requests are signed with.
        :param properties: SigV4SigningProperties naming the target region and
            service, plus optional header selection settings.
        :param key_cache: A cache of derived signing keys. Pass the same cache to
            several signers to share it; each signer gets its own by default.
        :param clock: Source of the current time, used when a signing time isn't
            supplied. Defaults to the system clock in UTC.

        :raises ConfigurationError: If the identity or properties are missing or
            incomplete.
        """
        self._identity = self._validate_identity(identity=identity)
        self._properties = self._validate_properties(properties=properties)
        self._clock: Clock = clock if clock is not None else utc_now
        self._key_cache = (
            key_cache if key_cache is not None else DerivedKeyCache(clock=self._clock)
        )

    @property
    def region(self) -> str:
        return self._properties["region"]

    @property
    def service(self) -> str:
        return self._properties["service"]

    @property
    def key_cache(self) -> DerivedKeyCache:
        return self._key_cache

    def sign(
        self,
        request: Request,
        payload_hash: str = EMPTY_SHA256_HASH,
        signing_time: SigningTime | None = None,
    ) -> None:
        """Sign a request in place by adding SigV4 headers.

        ``X-Amz-Date``, ``X-Amz-Security-Token`` (when the identity carries a session
        token) and ``Authorization`` are set. No other part of the request changes.
        If signing fails the request is left untouched.

        :param request: The request to sign.
        :param payload_hash: Hex encoded SHA-256 digest of the body, or
            ``UNSIGNED-PAYLOAD``. Defaults to the digest of an empty body.
        :param signing_time: The time to sign at. Defaults to the signer's clock.
        """
        self._compute_signature(
            request=request,
            payload_hash=payload_hash,
            signing_time=signing_time,
            sink=_HeaderSink(),
        )

    def presign(
        self,
        request: Request,
        payload_hash: str = EMPTY_SHA256_HASH,
        signing_time: SigningTime | None = None,
        *,
        expires_in: int | None = None,
    ) -> PresignedRequest:
        """Build a presigned URL for a request without modifying it.

        Signing material is placed in the query string. ``x-amz-*`` headers that
        services accept as query parameters are moved there too.

        :param request: The request to presign.
        :param payload_hash: Hex encoded SHA-256 digest of the body, or
            ``UNSIGNED-PAYLOAD``. Defaults to the digest of an empty body.
        :param signing_time: The time to sign at. Defaults to the signer's clock.
        :param expires_in: Seconds the URL stays valid, sent as ``X-Amz-Expires``.
            An ``X-Amz-Expires`` already in the request's query is kept when unset.
        :returns: The signed URL and the headers that must accompany it.
        """
        if expires_in is not None and expires_in <= 0:
            raise InvalidRequestError(
                f"expires_in must be a positive number of seconds, got {expires_in}."
            )
        return self._compute_signature(
            request=request,
            payload_hash=payload_hash,
            signing_time=signing_time,
            sink=_QuerySink(expires_in=expires_in),
        )

    def string_to_sign(
        self, *, canonical_request: CanonicalRequest, signing_time: SigningTime
    ) -> str:
        """The string to sign is the second step of our signing algorithm which
        concatenates the formal identifier of our signing algorithm, the signing
        DateTime, the scope of our credentials, and a hash of our previously generated
        canonical request.

        The SigV4 specification defines the string to sign as:
            Algorithm \\n
            RequestDateTime \\n
            CredentialScope  \\n
            HashedCanonicalRequest
        """
        return (
            f"{SIGV4_ALGORITHM}\n"
            f"{signing_time.timestamp}\n"
            f"{self._scope(signing_time)}\n"
            f"{canonical_request.hash}"
        )

    def _compute_signature(
        self,
        *,
        request: Request,
        payload_hash: str,
        signing_time: SigningTime | None,
        sink: _SignatureSink[T],
    ) -> T:
        if signing_time is None:
            signing_time = SigningTime.now(self._clock)
        context = _SigningContext(
            identity=self._identity,
            signing_time=signing_time,
            scope=self._scope(signing_time),
        )

        # Work on copies so nothing reaches the caller's request until the
        # signature exists.
        fields = Fields.from_pairs(header_pairs(request.fields))
        params = parse_query(request.destination.query)
        sink.prepare_fields(fields, context)

        host = self._normalize_host(uri=request.destination)
        headers, signed_headers = canonical_headers(
            fields,
            host=host,
            sign_all_headers=self._properties.get("sign_all_headers", True),
            additional_signed_headers=self._properties.get(
                "additional_signed_headers", ()
            ),
        )
        # The signed header list is itself a query parameter when presigning, so
        # the query can only be canonicalized after the headers.
        sink.prepare_query(params, signed_headers, context)
        canonical_request = build_canonical_request(
            method=request.method,
            path=request.destination.path,
            path_encoded=request.destination.path_encoded,
            query_params=params,
            headers=headers,
            signed_headers=signed_headers,
            payload_hash=payload_hash,
        )

        string_to_sign = self.string_to_sign(
            canonical_request=canonical_request, signing_time=signing_time
        )
        signing_key = self._key_cache.get(
            self._identity.access_key_id,
            self._identity.secret_access_key,
            self.service,
            self.region,
            signing_time,
        )
        signature = hmac_sha256(signing_key, string_to_sign).hex()
        logger.debug(
            "Signed %s request to %s with scope %s and signed headers %s.",
            canonical_request.method,
            host,
            context.scope,
            canonical_request.signed_headers_string,
        )

        computed = _ComputedSignature(
            canonical_request=canonical_request,
            signature=signature,
            fields=fields,
            query_params=params,
            host=host,
        )
        return sink.finish(request, computed, context)

    def _scope(self, signing_time: SigningTime) -> str:
        # Scope format: <YYYYMMDD>/<AWS Region>/<AWS Service>/aws4_request
        return (
            f"{signing_time.short_date}/{self.region}/{self.service}/"
            f"{SIGV4_TERMINATOR}"
        )

    def _normalize_host(self, *, uri: URI) -> str:
        host = format_host(uri.host)
        if uri.port is None or DEFAULT_PORTS.get(uri.scheme) == uri.port:
            return host
        return f"{host}:{uri.port}"

    def _validate_identity(
        self, *, identity: AWSCredentialsIdentity | None
    ) -> AWSCredentialsIdentity:
        if identity is None:
            raise ConfigurationError("A credential identity is required for signing.")
        if not isinstance(identity, AWSCredentialsIdentity):  # pyright: ignore
            raise ConfigurationError(
                "Received unexpected value for identity parameter. Expected "
                f"AWSCredentialIdentity but received {type(identity)}."
            )
        if not identity.access_key_id or not identity.secret_access_key:
            raise ConfigurationError(
                "The credential identity must have a non-empty access_key_id and "
                "secret_access_key."
            )
        return identity

    def _validate_properties(
        self, *, properties: SigV4SigningProperties | None
    ) -> SigV4SigningProperties:
        if properties is None:
            raise ConfigurationError(
                "Signing properties with a region and service are required."
            )
        for key in ("region", "service"):
            if not properties.get(key):
                raise ConfigurationError(
                    f"Signing properties must include a non-empty {key!r}."
                )
        # Copy to avoid picking up later changes to the caller's dict.
        return SigV4SigningProperties(**properties)


def generate_authorization_field(
    *, credential: str, signed_headers: Sequence[str], signature: str
) -> Field:
    """Generate the `Authorization` field.

    :param credential:
        Credential scope string for generating the Authorization header.
        Defined as:
            <access_key>/<date>/<region>/<service>/<request_type>
    :param signed_headers:
        A list of the field names used in signing.
    :param signature:
        Final hash of the SigV4 signing algorithm generated from the
        canonical request and string to sign.
    """
    signed_headers_str = ";".join(signed_headers)
    auth_str = (
        f"{SIGV4_ALGORITHM} Credential={credential}, "
        f"SignedHeaders={signed_headers_str}, Signature={signature}"
    )
    return Field(name=AUTHORIZATION_HEADER, values=[auth_str])


def _with_query(uri: URI, query: str) -> str:
    if isinstance(uri, _URI):
        return replace(uri, query=query).build()
    return _URI(
        scheme=uri.scheme,
        host=uri.host,
        port=uri.port,
        path=uri.path,
        path_encoded=uri.path_encoded,
        query=query,
        fragment=uri.fragment,
    ).build()
