"""Kafka Connect connector payload helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from lenses_cli.errors import ValidationError

UNKNOWN_PLUGIN_VERSION = "X.X.X"


@dataclass
class ConnectorPayload:
    cluster_name: str = ""
    name: str = ""
    config: dict[str, str] = field(default_factory=dict)

    def apply_and_validate_name(self) -> None:
        """Make `name` and `config["name"]` agree, filling whichever is missing."""
        config_name = self.config.get("name")
        if not self.name and config_name:
            self.name = str(config_name)
        if not self.name:
            raise ValidationError("connector name is required")
        if config_name is not None and str(config_name) != self.name:
            raise ValidationError(
                f"connector config[\"name\"] '{config_name}' does not match with the "
                f"connector name '{self.name}'"
            )
        self.config["name"] = self.name

    def merge(self, payload: dict[str, Any]) -> None:
        """Overlay values loaded from a payload file; explicit flags win."""
        if not isinstance(payload, dict):
            raise ValidationError("connector payload must be an object")
        if not self.cluster_name:
            self.cluster_name = str(payload.get("clusterName") or "")
        if not self.name:
            self.name = str(payload.get("name") or "")
        config = payload.get("config")
        if config is not None:
            self.config = {**normalize_connector_config(config), **self.config}


def normalize_connector_config(config: Any) -> dict[str, str]:
    if not isinstance(config, dict):
        raise ValidationError("connector config must be an object of string values")
    return {str(key): _config_value(value) for key, value in config.items()}


def _config_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def normalize_plugin_versions(plugins: list[dict]) -> list[dict]:
    normalized = []
    for plugin in plugins:
        item = dict(plugin)
        version = item.get("version")
        if version in (None, "", "null"):
            item["version"] = UNKNOWN_PLUGIN_VERSION
        normalized.append(item)
    return normalized
