"""Root test configuration for ScriptGuard.

Isolates every test from the developer's environment: no config file is picked
up from the working directory or home directory, and PORT / HOST /
SCRIPTGUARD_CONFIG are cleared. Tests that exercise config loading write their
own file under tmp_path and pass it explicitly.
"""

import pytest


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("PORT", "HOST", "SCRIPTGUARD_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("scriptguard.config.DEFAULT_CONFIG_PATHS", [])
