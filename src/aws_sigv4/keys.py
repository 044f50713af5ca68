# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Final, TypeAlias

from ._hashing import hmac_sha256
from ._time import Clock, SigningTime, utc_now

logger: Final = logging.getLogger(__name__)

KeyDeriver: TypeAlias = Callable[[str, str, str, str], bytes]
"""Callable with the signature of :func:`derive_key`."""


def derive_key(secret: str, service: str, region: str, short_date: str) -> bytes:
    """Compute the SigV4 signing key scoped to a day, region, and service.

    :param secret: The secret access key.
    :param service: The signing name of the target service.
    :param region: The signing region.
    :param short_date: The signing day formatted as ``YYYYMMDD``.
    """
    # Components of Signing Key Calculation
    #
    # DateKey              = HMAC-SHA256("AWS4"+"<SecretAccessKey>", "<YYYYMMDD>")
    # DateRegionKey        = HMAC-SHA256(<DateKey>, "<aws-region>")
    # DateRegionServiceKey = HMAC-SHA256(<DateRegionKey>, "<aws-service>")
    # SigningKey = HMAC-SHA256(<DateRegionServiceKey>, "aws4_request")
    k_date = hmac_sha256(f"AWS4{secret}".encode(), short_date)
    k_region = hmac_sha256(k_date, region)
    k_service = hmac_sha256(k_region, service)
    return hmac_sha256(k_service, "aws4_request")


class CacheStatus(Enum):
    """Outcome of looking up a composite key in a :class:`DerivedKeyCache`."""

    HIT = 0
    """A key derived today is present."""

    MISS = 1
    """Nothing is stored under the composite key."""

    STALE = 2
    """A key is stored but was derived on an earlier day."""


@dataclass(frozen=True)
class _CacheEntry:
    signing_key: bytes
    created: date


class DerivedKeyCache:
    """Thread safe memo of derived signing keys.

    Entries are keyed by ``access_key_id/YYYYMMDD/region/service`` and are only
    served on the UTC day they were created. A stale entry is replaced the next
    time its key is requested. One cache may be shared by any number of signers.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        deriver: KeyDeriver | None = None,
    ):
        """
        :param clock: Source of the current time, used to decide staleness.
            Defaults to the system clock in UTC.
        :param deriver: Function that computes a signing key on a miss. Defaults to
            :func:`derive_key`.
        """
        self._clock: Clock = clock if clock is not None else utc_now
        self._deriver: KeyDeriver = deriver if deriver is not None else derive_key
        self._entries: dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(
        self,
        access_key_id: str,
        secret: str,
        service: str,
        region: str,
        signing_time: SigningTime,
    ) -> bytes:
        """Return the signing key for the scope, deriving it if needed."""
        key = self.lookup_key(
            access_key_id=access_key_id,
            short_date=signing_time.short_date,
            region=region,
            service=service,
        )
        signing_key, status = self.lookup(key)
        if signing_key is not None:
            return signing_key

        logger.debug("Deriving signing key for %s (cache %s).", key, status.name)
        # Derivation is pure, so concurrent misses for one key may each compute it
        # and the last store wins.
        signing_key = self._deriver(
            secret, service, region, signing_time.short_date
        )
        entry = _CacheEntry(signing_key=signing_key, created=self._today())
        with self._lock:
            self._entries[key] = entry
        return signing_key

    def lookup(self, key: str) -> tuple[bytes | None, CacheStatus]:
        """Look up a composite key without deriving anything.

        Stale entries are discarded as a side effect.
        """
        today = self._today()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, CacheStatus.MISS
            if entry.created != today:
                del self._entries[key]
                return None, CacheStatus.STALE
        logger.debug("Using cached signing key for %s.", key)
        return entry.signing_key, CacheStatus.HIT

    @staticmethod
    def lookup_key(
        *, access_key_id: str, short_date: str, region: str, service: str
    ) -> str:
        return f"{access_key_id}/{short_date}/{region}/{service}"

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def _today(self) -> date:
        return SigningTime(self._clock()).value.date()
