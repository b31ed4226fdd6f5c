"""Interactive prompts used by `configure` and the context commands."""

from __future__ import annotations

from typing import Any, Sequence

from lenses_cli.cli.config import ConfigError, ContextConfig


class PromptAborted(RuntimeError):
    """Raised when the user cancels an interactive prompt."""


def _import_questionary() -> Any:
    """Import questionary lazily for interactive prompts."""
    try:
        import questionary
    except ModuleNotFoundError as exc:
        raise ConfigError(
            "questionary is not installed. Install with: pip install questionary"
        ) from exc
    return questionary


def _answered(value: Any) -> Any:
    # questionary returns None on Ctrl+C / Esc.
    if value is None:
        raise PromptAborted("prompt cancelled")
    return value


def _required(value: str) -> bool | str:
    return True if value.strip() else "Value is required"


def ask_context_settings(current: ContextConfig) -> ContextConfig:
    """Ask for host, user, password and debug mode, starting from `current`."""
    questionary = _import_questionary()

    host = _answered(
        questionary.text(
            "Host",
            default=current.host,
            instruction="(lenses address including scheme and port)",
            validate=_required,
        ).ask()
    )
    user = _answered(
        questionary.text("User", default=current.user, validate=_required).ask()
    )
    password = _answered(questionary.password("Password", validate=_required).ask())
    debug = _answered(
        questionary.confirm("Enable debug mode?", default=current.debug).ask()
    )

    updated = ContextConfig(
        host=host.strip(),
        user=user.strip(),
        password=password,
        token=current.token,
        timeout=current.timeout,
        debug=bool(debug),
    )
    updated.format_host()
    return updated


def ask_save_location(default: str) -> str:
    questionary = _import_questionary()
    answer = _answered(
        questionary.text(
            "Save configuration file to",
            default=default,
            validate=_required,
        ).ask()
    )
    return answer.strip()


def ask_select(message: str, options: Sequence[str]) -> str:
    questionary = _import_questionary()
    return _answered(questionary.select(message, choices=list(options)).ask())


def ask_confirm(message: str, *, default: bool = True) -> bool:
    questionary = _import_questionary()
    return bool(_answered(questionary.confirm(message, default=default).ask()))
