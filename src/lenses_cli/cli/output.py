"""Output helpers shared by the lenses-cli commands."""

from __future__ import annotations

import dataclasses
import json
from typing import Any

import jmespath
from jmespath.exceptions import JMESPathError

from lenses_cli.errors import ValidationError


def to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        if hasattr(value, "to_dict"):
            return value.to_dict()
        return dataclasses.asdict(value)
    return value


def apply_query(data: Any, query: str | None) -> Any:
    if not query:
        return data
    try:
        return jmespath.search(query, data)
    except JMESPathError as exc:
        raise ValidationError(f"invalid query '{query}': {exc}") from exc


def print_json(data: Any, *, stdout, pretty: bool = True, query: str | None = None) -> None:
    payload = apply_query(to_jsonable(data), query)
    if pretty:
        print(json.dumps(payload, indent=4, ensure_ascii=False), file=stdout)
    else:
        print(json.dumps(payload, ensure_ascii=False, separators=(",", ":")), file=stdout)


def outline_string_results(key: str, values: list[str]) -> list[dict[str, str]]:
    return [{key: value} for value in values]


def echo(message: str, *, stdout, silent: bool = False) -> None:
    if silent:
        return
    print(message, file=stdout)
