# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import cached_property
from typing import TypeAlias

SIGV4_TIMESTAMP_FORMAT: str = "%Y%m%dT%H%M%SZ"
SIGV4_DATE_FORMAT: str = "%Y%m%d"

Clock: TypeAlias = Callable[[], datetime]
"""A zero-argument callable returning the current time."""


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class SigningTime:
    """The instant a request is signed, with the two string forms SigV4 needs.

    Naive datetimes are taken to already be in UTC. Aware datetimes are converted.
    """

    value: datetime

    def __post_init__(self) -> None:
        if self.value.tzinfo is None:
            normalized = self.value.replace(tzinfo=UTC)
        else:
            normalized = self.value.astimezone(UTC)
        object.__setattr__(self, "value", normalized)

    @classmethod
    def now(cls, clock: Clock = utc_now) -> "SigningTime":
        return cls(clock())

    # Formatted lazily, at most once per instance.
    @cached_property
    def timestamp(self) -> str:
        """Full timestamp, ``YYYYMMDDThhmmssZ``."""
        return self.value.strftime(SIGV4_TIMESTAMP_FORMAT)

    @cached_property
    def short_date(self) -> str:
        """Calendar day, ``YYYYMMDD``."""
        return self.value.strftime(SIGV4_DATE_FORMAT)
