"""Config loading for ScriptGuard.

Reads `.scriptguard/config.yaml` (or `~/.scriptguard/config.yaml`).
Raises SystemExit on parse errors, a missing `version` field or an invalid
block list. If no config file is found, returns default values (an empty block
list, port 3000 on all interfaces) — the service runs without any config.

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. SCRIPTGUARD_CONFIG environment variable (if set)
  3. `.scriptguard/config.yaml` (working directory)
  4. `~/.scriptguard/config.yaml` (home directory)

Environment variable overrides (applied after the file):
  PORT — overrides server.port
  HOST — overrides server.host

Example file:

    version: 1
    server:
      port: 3000
    fetch:
      document_timeout_s: 10
      relay_timeout_s: 15
    blocklist:
      bvtpk.com: substring
      /assets/jquery/css.js: path
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import yaml

from scriptguard.blocklist.rules import BlockRule, BlockRuleError, parse_block_rules
from scriptguard.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DOCUMENT_FETCH_TIMEOUT_S,
    DOCUMENT_USER_AGENT,
    RELAY_DEFAULT_USER_AGENT,
    RELAY_FETCH_TIMEOUT_S,
)
from scriptguard.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# Default config search paths (SCRIPTGUARD_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".scriptguard/config.yaml",
    os.path.expanduser("~/.scriptguard/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class ServerConfig:
    """Listening socket. Binds on all interfaces unless told otherwise."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass
class FetchConfig:
    """Upstream request policy shared by both pipelines.

    document_timeout_s:  whole-request bound for GET / (connect + transfer)
    relay_timeout_s:     bound for obtaining the upstream response on GET /proxy
    document_user_agent: browser identity presented when fetching documents
    relay_user_agent:    fallback when the caller sends no User-Agent
    """

    document_timeout_s: float = DOCUMENT_FETCH_TIMEOUT_S
    relay_timeout_s: float = RELAY_FETCH_TIMEOUT_S
    document_user_agent: str = DOCUMENT_USER_AGENT
    relay_user_agent: str = RELAY_DEFAULT_USER_AGENT


@dataclass
class Config:
    """Root configuration object populated from .scriptguard/config.yaml.

    All fields have safe defaults. ``blocklist`` is an immutable tuple fixed for
    the lifetime of the process.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    server: ServerConfig = field(default_factory=ServerConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)
    blocklist: tuple[BlockRule, ...] = ()
    path: Optional[str] = None

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are ignored.

        Raises:
            SystemExit(1): invalid block list or non-positive timeout.
        """
        # ── Server ────────────────────────────────────────────────────────────
        server_raw = raw.get("server") or {}
        server = ServerConfig(
            host=str(server_raw.get("host", DEFAULT_HOST)),
            port=_as_port(server_raw.get("port", DEFAULT_PORT), source="server.port"),
        )

        # ── Fetch ─────────────────────────────────────────────────────────────
        fetch_raw = raw.get("fetch") or {}
        fetch = FetchConfig(
            document_timeout_s=_as_timeout(
                fetch_raw.get("document_timeout_s", DOCUMENT_FETCH_TIMEOUT_S),
                "fetch.document_timeout_s",
            ),
            relay_timeout_s=_as_timeout(
                fetch_raw.get("relay_timeout_s", RELAY_FETCH_TIMEOUT_S),
                "fetch.relay_timeout_s",
            ),
            document_user_agent=fetch_raw.get("document_user_agent", DOCUMENT_USER_AGENT),
            relay_user_agent=fetch_raw.get("relay_user_agent", RELAY_DEFAULT_USER_AGENT),
        )

        # ── Block list ────────────────────────────────────────────────────────
        try:
            blocklist = parse_block_rules(raw.get("blocklist"))
        except BlockRuleError as exc:
            _refuse(f"CONFIG ERROR: Invalid blocklist in {path or '<config>'}: {exc}")

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            server=server,
            fetch=fetch,
            blocklist=blocklist,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate ScriptGuard configuration.

    If no file is found at any search path, returns default Config (not an
    error). If a file is found but invalid, writes the error to stderr and
    raises SystemExit(1).

    After loading (or defaulting), ``PORT`` and ``HOST`` env vars are applied
    as overrides regardless of whether a config file was found.

    Raises:
        SystemExit(1): YAML parse error, missing/unsupported ``version``,
                       invalid block list, bad timeout, or invalid ``PORT``.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("SCRIPTGUARD_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _refuse(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "ScriptGuard refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _refuse(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _refuse(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _refuse(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _refuse(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )
    if version not in SUPPORTED_VERSIONS:
        _refuse(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        block_rules=len(config.blocklist),
        port=config.server.port,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply PORT / HOST environment overrides to a Config in-place.

    Raises:
        SystemExit(1): If PORT is set but not a valid port number.
    """
    env_port = os.environ.get("PORT")
    if env_port is not None and env_port.strip():
        config.server.port = _as_port(env_port, source="PORT environment variable")

    env_host = os.environ.get("HOST")
    if env_host:
        config.server.host = env_host


def _as_port(value: object, source: str) -> int:
    try:
        port = int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        _refuse(f"CONFIG ERROR: {source} is not a valid integer: '{value}'")
    if not 0 < port < 65536:
        _refuse(f"CONFIG ERROR: {source} is out of range (1-65535): {port}")
    return port


def _as_timeout(value: object, source: str) -> float:
    try:
        timeout = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        _refuse(f"CONFIG ERROR: {source} is not a number: '{value}'")
    if timeout <= 0:
        _refuse(f"CONFIG ERROR: {source} must be positive, got {timeout}")
    return timeout


def _refuse(message: str) -> NoReturn:
    print(message, file=sys.stderr)
    raise SystemExit(1)
