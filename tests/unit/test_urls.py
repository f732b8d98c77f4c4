"""Unit tests for target URL normalization (scriptguard/proxy/urls.py)."""

from __future__ import annotations

import pytest

from scriptguard.constants import USAGE_EXAMPLE
from scriptguard.models.errors import InvalidTarget
from scriptguard.proxy.urls import normalize_target


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("https://example.com", "https://example.com/"),
        ("HTTPS://Example.COM/Path", "https://example.com/Path"),
        ("  https://example.com/a?b=1  ", "https://example.com/a?b=1"),
        ("http://example.com:80/", "http://example.com/"),
        ("https://example.com:443/x", "https://example.com/x"),
        ("https://example.com:8443/x", "https://example.com:8443/x"),
        ("https://example.com/a b", "https://example.com/a%20b"),
        ("https://example.com/a%20b", "https://example.com/a%20b"),
        ("https://example.com/?q=a b#frag ment", "https://example.com/?q=a%20b#frag%20ment"),
        ("https://bücher.de/", "https://xn--bcher-kva.de/"),
        ("http://[::1]:8080/", "http://[::1]:8080/"),
        ("https://user:pw@example.com/", "https://user:pw@example.com/"),
    ],
)
def test_normalizes(raw: str, expected: str) -> None:
    assert normalize_target(raw) == expected


def test_normalization_is_idempotent() -> None:
    once = normalize_target("https://Example.com/a b?x=ü")
    assert normalize_target(once) == once


@pytest.mark.parametrize(
    "raw",
    [
        "example.com",
        "/relative/path",
        "not a url",
        "https://",
        "http://example.com:99999/",
    ],
)
def test_rejects_non_absolute(raw: str) -> None:
    with pytest.raises(InvalidTarget) as exc_info:
        normalize_target(raw)
    error = exc_info.value
    assert error.status_code == 400
    assert error.message.startswith("Invalid URL")
    assert error.body()["example"] == USAGE_EXAMPLE
