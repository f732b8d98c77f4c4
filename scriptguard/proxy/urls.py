"""Target URL validation and normalization.

``normalize_target()`` turns the caller's ``?url=`` value into the absolute,
normalized form used both for the upstream fetch and for the injected
``<base href>``:

  - surrounding whitespace stripped
  - scheme and host lowercased, host IDNA-encoded
  - default port (80 for http, 443 for https) dropped
  - empty path becomes ``/`` for http(s)
  - unsafe characters in path, query and fragment percent-encoded;
    existing ``%XX`` escapes are kept as they are

Anything without both a scheme and a host is rejected with InvalidTarget.
"""

from __future__ import annotations

from urllib.parse import quote, urlsplit, urlunsplit

from scriptguard.constants import USAGE_EXAMPLE
from scriptguard.models.errors import InvalidTarget

_DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443, "ws": 80, "wss": 443}
_HIERARCHICAL_SCHEMES = frozenset({"http", "https", "ws", "wss", "ftp"})

# RFC 3986 reserved + unreserved characters, plus '%' so escapes survive.
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"
_QUERY_SAFE = "/?%:@!$&'()*+,;=-._~"


def normalize_target(raw: str) -> str:
    """Validate ``raw`` as an absolute URL and return its normalized form.

    Raises:
        InvalidTarget: no scheme, no host, invalid port or unencodable host.
    """
    candidate = raw.strip()
    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError as exc:
        raise _invalid(f"{exc}") from exc

    scheme = parts.scheme.lower()
    host = parts.hostname
    if not scheme or not host:
        raise _invalid("an absolute URL with scheme and host is required")

    try:
        host = host.encode("idna").decode("ascii")
    except UnicodeError as exc:
        raise _invalid(f"host cannot be encoded: {exc}") from exc
    if ":" in host:
        host = f"[{host}]"

    netloc = host
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{port}"
    if parts.username is not None:
        userinfo = quote(parts.username, safe="%!$&'()*+,;=-._~")
        if parts.password is not None:
            userinfo += ":" + quote(parts.password, safe="%!$&'()*+,;=-._~")
        netloc = f"{userinfo}@{netloc}"

    path = quote(parts.path, safe=_PATH_SAFE)
    if not path and scheme in _HIERARCHICAL_SCHEMES:
        path = "/"

    return urlunsplit(
        (
            scheme,
            netloc,
            path,
            quote(parts.query, safe=_QUERY_SAFE),
            quote(parts.fragment, safe=_QUERY_SAFE),
        )
    )


def _invalid(reason: str) -> InvalidTarget:
    return InvalidTarget(f"Invalid URL: {reason}", example=USAGE_EXAMPLE)
