"""Configuration contexts for the lenses-cli."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable

from lenses_cli.crypto import decrypt_password, encrypt_password
from lenses_cli.errors import EncryptionError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".lenses"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "lenses-cli.yml"
LOCAL_CONFIG_FILENAME = "lenses-cli.yml"
CONFIG_PATH_ENV_VAR = "LENSES_CLI_CONFIG"
DEFAULT_CONTEXT_NAME = "master"
DEFAULT_TIMEOUT = "15s"
MASK = "****"

_BARE_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")
# Go duration segments, e.g. the parts of 2h45m or 1m30.5s.
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|μs|ms|s|m|h)")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


class ConfigError(ValueError):
    """Raised when the CLI configuration is invalid."""


def parse_timeout(value: Any) -> float:
    """Parse a duration such as `15s`, `1m30s`, `500ms` or a bare number of seconds.

    An empty value means the default timeout.
    """
    if isinstance(value, bool):
        raise ConfigError("timeout must be a duration such as 15s")
    if value is None or (isinstance(value, str) and not value.strip()):
        value = DEFAULT_TIMEOUT
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        if _BARE_NUMBER_RE.match(text):
            seconds = float(text)
        else:
            parts = _DURATION_PART_RE.findall(text)
            if not parts or "".join(number + unit for number, unit in parts) != text:
                raise ConfigError(f"invalid timeout '{value}', expected a duration such as 15s")
            seconds = sum(float(number) * _DURATION_UNITS[unit] for number, unit in parts)
    if seconds <= 0:
        raise ConfigError("timeout must be greater than zero")
    return seconds


def _to_bool(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes", "on"}:
            return True
        if lowered in {"false", "0", "no", "off", ""}:
            return False
    raise ConfigError(f"{field_name} must be a boolean")


@dataclass
class ContextConfig:
    host: str = ""
    user: str = ""
    password: str = ""
    token: str = ""
    timeout: str = DEFAULT_TIMEOUT
    debug: bool = False

    def format_host(self) -> None:
        host = self.host.strip()
        if not host:
            self.host = ""
            return
        host = host.rstrip("/")
        if "://" not in host:
            host = f"http://{host}"
        self.host = host

    def is_valid(self) -> bool:
        if not self.host:
            return False
        return bool(self.token) or bool(self.user and self.password)

    @property
    def timeout_seconds(self) -> float:
        return parse_timeout(self.timeout)

    def masked(self) -> "ContextConfig":
        return replace(
            self,
            password=MASK if self.password else "",
            token=MASK if self.token else "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "Host": self.host,
            "User": self.user,
            "Password": self.password,
            "Token": self.token,
            "Timeout": self.timeout,
            "Debug": self.debug,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any], *, name: str) -> "ContextConfig":
        if not isinstance(payload, dict):
            raise ConfigError(f"context '{name}' must be a mapping")
        timeout = payload.get("Timeout")
        if timeout is None or not str(timeout).strip():
            timeout = DEFAULT_TIMEOUT
        parse_timeout(timeout)
        return cls(
            host=str(payload.get("Host") or ""),
            user=str(payload.get("User") or ""),
            password=str(payload.get("Password") or ""),
            token=str(payload.get("Token") or ""),
            timeout=str(timeout),
            debug=_to_bool(payload.get("Debug", False), f"{name}.Debug"),
        )


@dataclass
class ConfigManager:
    filepath: Path | None = None
    current_context: str = ""
    contexts: dict[str, ContextConfig] = field(default_factory=dict)

    def get_current(self) -> ContextConfig:
        """Return the current context, creating an empty one if needed."""
        if not self.current_context:
            self.current_context = DEFAULT_CONTEXT_NAME
        return self.contexts.setdefault(self.current_context, ContextConfig())

    def set_current(self, name: str) -> None:
        self.current_context = name

    def current_context_exists(self) -> bool:
        return bool(self.current_context) and self.current_context in self.contexts

    def is_valid(self) -> bool:
        if not self.current_context_exists():
            return False
        return self.contexts[self.current_context].is_valid()

    def remove_context(
        self,
        name: str,
        *,
        validator: Callable[[str], bool] | None = None,
    ) -> bool:
        """Delete a context, moving the current context elsewhere if needed.

        Returns False when the context is unknown or when it is the current
        context and no other valid context is left to switch to.
        """
        if name not in self.contexts:
            return False

        if name == self.current_context:
            check = validator or (lambda candidate: self.contexts[candidate].is_valid())
            replacement = next(
                (
                    candidate
                    for candidate in sorted(self.contexts)
                    if candidate != name and check(candidate)
                ),
                None,
            )
            if replacement is None:
                return False
            self.current_context = replacement

        del self.contexts[name]
        self.save()
        return True

    def to_dict(self) -> dict[str, Any]:
        contexts: dict[str, Any] = {}
        for name, cfg in sorted(self.contexts.items()):
            stored = cfg.to_dict()
            if cfg.password:
                try:
                    stored["Password"] = encrypt_password(cfg)
                except EncryptionError as exc:
                    raise ConfigError(f"context '{name}': {exc}") from exc
            contexts[name] = stored
        return {"CurrentContext": self.current_context, "Contexts": contexts}

    def save(self) -> Path:
        yaml = _load_yaml_module()
        config_path = self.filepath or DEFAULT_CONFIG_PATH
        payload = self.to_dict()
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            config_path.write_text(
                yaml.safe_dump(payload, default_flow_style=False, sort_keys=False),
                encoding="utf-8",
            )
        except OSError as exc:
            raise ConfigError(f"failed to write config file: {config_path}: {exc}") from exc
        _chmod_owner_only(config_path)
        self.filepath = config_path
        logger.debug("configuration saved to %s", config_path)
        return config_path


def _chmod_owner_only(path: Path) -> None:
    if os.name != "posix":
        return
    path.chmod(0o600)


def _load_yaml_module() -> Any:
    try:
        import yaml
    except Exception as exc:  # pragma: no cover
        raise ConfigError("YAML parser not available. Install PyYAML to use lenses-cli.") from exc
    return yaml


def load_yaml_file(path: str | Path) -> Any:
    """Read a JSON or YAML document (JSON is valid YAML)."""
    yaml = _load_yaml_module()
    file_path = Path(path)
    try:
        raw = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"unable to read file: {file_path}") from exc
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML/JSON in {file_path}: {exc}") from exc


def resolve_config_path(path: str | Path | None = None) -> tuple[Path | None, bool]:
    """Locate the configuration file.

    Returns the path and whether it was chosen explicitly (flag or env).
    """
    if path:
        return Path(path).expanduser(), True
    env_path = os.getenv(CONFIG_PATH_ENV_VAR)
    if env_path and env_path.strip():
        return Path(env_path.strip()).expanduser(), True
    for candidate in (DEFAULT_CONFIG_PATH, Path.cwd() / LOCAL_CONFIG_FILENAME):
        if candidate.exists():
            return candidate, False
    return None, False


def _decrypt_stored_password(name: str, cfg: ContextConfig) -> None:
    if not cfg.password:
        return
    try:
        cfg.password = decrypt_password(cfg)
    except EncryptionError as exc:
        logger.warning("context '%s': unable to decrypt stored password: %s", name, exc)
        cfg.password = ""


def load_config_manager(path: str | Path | None = None) -> ConfigManager:
    config_path, explicit = resolve_config_path(path)
    if config_path is None or not config_path.exists():
        return ConfigManager(filepath=config_path if explicit else None)

    parsed = load_yaml_file(config_path)
    if parsed is None:
        parsed = {}
    if not isinstance(parsed, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    raw_contexts = parsed.get("Contexts")
    if raw_contexts is None and "Host" in parsed:
        # Single-context layout written by older releases.
        raw_contexts = {DEFAULT_CONTEXT_NAME: parsed}
        current = DEFAULT_CONTEXT_NAME
    else:
        current = str(parsed.get("CurrentContext") or "")
    if raw_contexts is None:
        raw_contexts = {}
    if not isinstance(raw_contexts, dict):
        raise ConfigError("Contexts must be a mapping of context names")

    contexts: dict[str, ContextConfig] = {}
    for name, raw in raw_contexts.items():
        cfg = ContextConfig.from_dict(raw, name=str(name))
        # The stored password is keyed by the host exactly as written.
        _decrypt_stored_password(str(name), cfg)
        cfg.format_host()
        contexts[str(name)] = cfg

    return ConfigManager(filepath=config_path, current_context=current, contexts=contexts)
