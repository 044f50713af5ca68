# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0


class BaseSigV4Exception(Exception):
    """Top-level exception to capture signing-related errors."""


class ConfigurationError(BaseSigV4Exception, ValueError):
    """A signer was constructed without a usable identity, region, or service."""


class InvalidRequestError(BaseSigV4Exception, ValueError):
    """The request can't be canonicalized as supplied."""
