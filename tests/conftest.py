from __future__ import annotations

from pathlib import Path

import pytest

TOKEN_CONFIG = """CurrentContext: master
Contexts:
  master:
    Host: http://lenses.local:9991
    User: ""
    Password: ""
    Token: test-token
    Timeout: 15s
    Debug: false
"""


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("LENSES_CLI_CONFIG", raising=False)
    monkeypatch.setattr(
        "lenses_cli.cli.config.DEFAULT_CONFIG_PATH",
        tmp_path / "home" / ".lenses" / "lenses-cli.yml",
    )
    monkeypatch.setattr(
        "lenses_cli.cli.main.DEFAULT_CONFIG_PATH",
        tmp_path / "home" / ".lenses" / "lenses-cli.yml",
    )
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def config_file(tmp_path) -> Path:
    path = tmp_path / "lenses-cli.yml"
    path.write_text(TOKEN_CONFIG, encoding="utf-8")
    return path
