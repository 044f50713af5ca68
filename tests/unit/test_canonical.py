# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest
from aws_sigv4 import (
    EMPTY_SHA256_HASH,
    Field,
    Fields,
    InvalidRequestError,
    build_canonical_request,
)
from aws_sigv4.canonical import (
    canonical_headers,
    canonical_method,
    canonical_query,
    canonical_uri,
    is_presign_hoistable,
    normalize_header_value,
    parse_query,
)


def test_canonical_request_string() -> None:
    fields = Fields.from_pairs(
        [
            ("fooInnerSpace", "   inner      space    "),
            ("fooMultipleSpace", "no-space"),
            ("fooMultipleSpace", "\ttab-space\t"),
            ("fooMultipleSpace", "trailing-space    "),
            ("Host", "mockAPI.mock-region.amazonaws.com"),
            ("X-Amz-Date", "20211020T124200Z"),
        ]
    )
    headers, signed_headers = canonical_headers(fields, host="ignored.example.com")
    canonical_request = build_canonical_request(
        method="POST",
        path="/",
        path_encoded=False,
        query_params=[],
        headers=headers,
        signed_headers=signed_headers,
        payload_hash=EMPTY_SHA256_HASH,
    )
    assert str(canonical_request) == (
        "POST\n"
        "/\n"
        "\n"
        "fooinnerspace:inner space\n"
        "foomultiplespace:no-space,tab-space,trailing-space\n"
        "host:mockAPI.mock-region.amazonaws.com\n"
        "x-amz-date:20211020T124200Z\n"
        "\n"
        "fooinnerspace;foomultiplespace;host;x-amz-date\n"
        f"{EMPTY_SHA256_HASH}"
    )
    assert canonical_request.signed_headers_string == (
        "fooinnerspace;foomultiplespace;host;x-amz-date"
    )
    assert len(canonical_request.hash) == 64


@pytest.mark.parametrize(
    "value,expected",
    [
        ("plain", "plain"),
        ("  leading", "leading"),
        ("trailing \t", "trailing"),
        ("inner \t\n  run", "inner run"),
        ("", ""),
    ],
)
def test_normalize_header_value(value: str, expected: str) -> None:
    assert normalize_header_value(value) == expected


class TestCanonicalHeaders:
    def test_excluded_headers_are_never_signed(self) -> None:
        fields = Fields(
            [
                Field(name="Authorization", values=["AWS4-HMAC-SHA256 stale"]),
                Field(name="X-Amzn-Trace-Id", values=["Root=1-abc"]),
                Field(name="Accept", values=["*/*"]),
            ]
        )
        block, names = canonical_headers(
            fields,
            host="example.com",
            additional_signed_headers=["Authorization", "X-Amzn-Trace-Id"],
        )
        assert names == ("accept", "host")
        assert block == "accept:*/*\nhost:example.com\n"

    def test_host_is_synthesized(self) -> None:
        block, names = canonical_headers(Fields(), host="example.com:8443")
        assert names == ("host",)
        assert block == "host:example.com:8443\n"

    def test_authority_replaces_host(self) -> None:
        fields = Fields([Field(name=":authority", values=["example.com"])])
        block, names = canonical_headers(fields, host="other.example.com")
        assert names == (":authority",)
        assert block == ":authority:example.com\n"

    def test_missing_host(self) -> None:
        with pytest.raises(InvalidRequestError):
            canonical_headers(Fields(), host="")

    def test_only_required_headers(self) -> None:
        fields = Fields.from_pairs(
            [
                ("Content-Type", "application/json"),
                ("User-Agent", "test"),
                ("X-Amz-Target", "Service.Operation"),
                ("X-Amz-Date", "20150830T123600Z"),
            ]
        )
        _, names = canonical_headers(
            fields, host="example.com", sign_all_headers=False
        )
        assert names == ("host", "x-amz-date", "x-amz-target")

    def test_additional_signed_headers(self) -> None:
        fields = Fields.from_pairs(
            [("Content-Type", "application/json"), ("User-Agent", "test")]
        )
        _, names = canonical_headers(
            fields,
            host="example.com",
            sign_all_headers=False,
            additional_signed_headers=["content-type"],
        )
        assert names == ("content-type", "host")

    def test_non_string_value(self) -> None:
        fields = Fields([Field(name="X-Count", values=[3])])  # type: ignore
        with pytest.raises(InvalidRequestError):
            canonical_headers(fields, host="example.com")


class TestCanonicalQuery:
    @pytest.mark.parametrize(
        "query",
        [
            "Foo=z&Foo=o&Foo=m&Foo=a",
            "Foo=a&Foo=m&Foo=o&Foo=z",
            "Foo=o&Foo=z&Foo=a&Foo=m",
        ],
    )
    def test_repeated_names_sorted_by_value(self, query: str) -> None:
        assert canonical_query(parse_query(query)) == "Foo=a&Foo=m&Foo=o&Foo=z"

    def test_sorted_by_name_first(self) -> None:
        query = "b=1&a=2&A=3"
        assert canonical_query(parse_query(query)) == "A=3&a=2&b=1"

    def test_value_less_parameter(self) -> None:
        assert canonical_query(parse_query("name")) == "name="
        assert canonical_query(parse_query("name=")) == "name="

    def test_encoding(self) -> None:
        params = [("key with space", "a/b c~d"), ("star", "*")]
        assert canonical_query(params) == "key%20with%20space=a%2Fb%20c~d&star=%2A"

    def test_plus_is_decoded_as_space(self) -> None:
        assert canonical_query(parse_query("q=a+b")) == "q=a%20b"

    def test_empty(self) -> None:
        assert parse_query(None) == []
        assert canonical_query([]) == ""


class TestCanonicalUri:
    @pytest.mark.parametrize(
        "path,encoded,expected",
        [
            (None, False, "/"),
            ("", False, "/"),
            ("/", False, "/"),
            ("/path with space/", False, "/path%20with%20space/"),
            ("/a-._~b", False, "/a-._~b"),
            ("/%20already", True, "/%20already"),
            ("/bucket/key-._~,!@$%^&*()", True, "/bucket/key-._~,!@$%^&*()"),
            (
                "/bucket/key-._~,!@#$%^&*()",
                False,
                "/bucket/key-._~%2C%21%40%23%24%25%5E%26%2A%28%29",
            ),
            ("/double//slash", False, "/double//slash"),
        ],
    )
    def test_canonical_uri(self, path: str | None, encoded: bool, expected: str) -> None:
        assert canonical_uri(path, encoded=encoded) == expected


@pytest.mark.parametrize(
    "method,expected",
    [("get", "GET"), ("POST", "POST"), (" put ", "PUT")],
)
def test_canonical_method(method: str, expected: str) -> None:
    assert canonical_method(method) == expected


@pytest.mark.parametrize("method", ["", "   "])
def test_canonical_method_required(method: str) -> None:
    with pytest.raises(InvalidRequestError):
        canonical_method(method)


@pytest.mark.parametrize(
    "name,hoistable",
    [
        ("X-Amz-Target", True),
        ("x-amz-user-agent", True),
        ("X-Amz-Meta-Custom", False),
        ("x-amz-content-sha256", False),
        ("x-amz-server-side-encryption", False),
        ("Content-Type", False),
        ("Host", False),
    ],
)
def test_is_presign_hoistable(name: str, hoistable: bool) -> None:
    assert is_presign_hoistable(name) is hoistable
