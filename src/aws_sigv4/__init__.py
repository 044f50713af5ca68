# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""AWS SigV4 provides stand-alone Signature Version 4 request signing for use with
HTTP tools such as AioHTTP, Curl, Requests, urllib3, etc."""

from __future__ import annotations

from ._hashing import EMPTY_SHA256_HASH, UNSIGNED_PAYLOAD, compute_payload_hash
from ._http import AWSRequest, Field, Fields, URI
from ._identity import AWSCredentialIdentity
from ._time import SIGV4_TIMESTAMP_FORMAT, SigningTime
from .canonical import CanonicalRequest, build_canonical_request
from .exceptions import BaseSigV4Exception, ConfigurationError, InvalidRequestError
from .keys import CacheStatus, DerivedKeyCache, derive_key
from .signers import PresignedRequest, SigV4Signer, SigV4SigningProperties

__license__ = "Apache-2.0"
__version__ = "0.1.0"

__all__ = (
    "EMPTY_SHA256_HASH",
    "SIGV4_TIMESTAMP_FORMAT",
    "UNSIGNED_PAYLOAD",
    "URI",
    "AWSCredentialIdentity",
    "AWSRequest",
    "BaseSigV4Exception",
    "CacheStatus",
    "CanonicalRequest",
    "ConfigurationError",
    "DerivedKeyCache",
    "Field",
    "Fields",
    "InvalidRequestError",
    "PresignedRequest",
    "SigV4Signer",
    "SigV4SigningProperties",
    "SigningTime",
    "build_canonical_request",
    "compute_payload_hash",
    "derive_key",
)
