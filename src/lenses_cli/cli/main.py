"""Command-line interface for lenses-cli."""

from __future__ import annotations

import argparse
import contextlib
import json
import logging
import re
import shlex
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Sequence

from lenses_cli.acl import ACL
from lenses_cli.cli.config import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    ConfigManager,
    ContextConfig,
    load_config_manager,
    load_yaml_file,
    parse_timeout,
)
from lenses_cli.cli.output import echo, outline_string_results, print_json
from lenses_cli.cli.prompts import (
    PromptAborted,
    ask_confirm,
    ask_context_settings,
    ask_save_location,
    ask_select,
)
from lenses_cli.client import LensesClient
from lenses_cli.connectors import (
    ConnectorPayload,
    normalize_connector_config,
    normalize_plugin_versions,
)
from lenses_cli.errors import (
    CredentialsError,
    EncryptionError,
    LensesError,
    LensesUnavailableError,
    ResourceNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 1
EXIT_NETWORK_ERROR = 2
EXIT_NOT_FOUND = 3
EXIT_CREDENTIALS_ERROR = 4

# Commands that work on the local configuration only.
LOCAL_COMMANDS = ("version", "configure", "contexts", "context")
SESSION_BLOCKED_COMMANDS = ("login", "configure")
CONTEXT_SET_ALIASES = ("set", "edit", "update", "create", "add")
ACL_SET_ALIASES = ("set", "create", "update")

_SENSITIVE_FIELDS = (
    "password",
    "pass",
    "token",
    "secret",
    "authorization",
    "api_key",
)

BANNER = r"""
 ___      _______  __    _  _______  _______  _______
|   |    |       ||  |  | ||       ||       ||       |
|   |    |    ___||   |_| ||  _____||    ___||  _____|
|   |    |   |___ |       || |_____ |   |___ | |_____
|   |___ |    ___||  _    ||_____  ||    ___||_____  |
|       ||   |___ | | |   | _____| ||   |___  _____| |
|_______||_______||_|  |__||_______||_______||_______|
"""

_log_handler: logging.Handler | None = None


def _cli_version() -> str:
    try:
        return pkg_version("lenses-cli")
    except PackageNotFoundError:
        return "0.0.0+local"


def _add_json_flags(parser: argparse.ArgumentParser, *, inherit: bool = False) -> None:
    # Subcommands inherit the values given on their parent command.
    parser.add_argument(
        "--no-pretty",
        action="store_true",
        default=argparse.SUPPRESS if inherit else False,
        help="Print compact JSON",
    )
    parser.add_argument(
        "-q",
        "--query",
        default=argparse.SUPPRESS if inherit else None,
        help="JMESPath query to further filter results",
    )


def _add_silent_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--silent",
        action="store_true",
        help="Run in silent mode, no printable info output or interactive prompts",
    )


def _add_connector_flags(parser: argparse.ArgumentParser, *, inherit: bool = False) -> None:
    default = argparse.SUPPRESS if inherit else ""
    parser.add_argument(
        "--clusterName",
        dest="cluster_name",
        default=default,
        help="Connect cluster name",
    )
    parser.add_argument("--name", dest="name", default=default, help="Connector name")


def _add_acl_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "file",
        nargs="?",
        default=None,
        help="Optional JSON or YAML file holding the ACL",
    )
    parser.add_argument(
        "--resourceType",
        dest="resource_type",
        default="",
        help="The resource type: Topic, Cluster, Group, TransactionalId",
    )
    parser.add_argument(
        "--resourceName",
        dest="resource_name",
        default="",
        help="The name of the resource",
    )
    parser.add_argument("--principal", default="", help="The name of the principal")
    parser.add_argument(
        "--permissionType",
        dest="permission_type",
        default="",
        help="Allow or Deny",
    )
    parser.add_argument("--host", dest="acl_host", default="", help="The ACL host (default: *)")
    parser.add_argument(
        "--operation",
        default="",
        help=(
            "The allowed operation: All, Read, Write, Describe, Create, Delete, Alter, "
            "DescribeConfigs, AlterConfigs, ClusterAction, IdempotentWrite"
        ),
    )
    _add_silent_flag(parser)


def _add_connector_payload_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "file",
        nargs="?",
        default=None,
        help="Optional JSON or YAML file with clusterName, name and config",
    )
    _add_connector_flags(parser, inherit=True)
    parser.add_argument(
        "--config",
        dest="connector_config",
        default=None,
        help='Connector config as inline JSON (\'{"key": "value"}\') or a file path',
    )
    _add_silent_flag(parser)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lenses-cli",
        description="Command-line client for the Lenses Kafka management platform",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"lenses-cli {_cli_version()}",
    )
    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to the configuration file (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--context", default=None, help="Configuration context to use")
    parser.add_argument("--host", default=None, help="Lenses host, overrides the context")
    parser.add_argument("--user", default=None, help="Lenses user, overrides the context")
    parser.add_argument(
        "--pass",
        dest="password",
        default=None,
        help="Lenses password, overrides the context",
    )
    parser.add_argument("--token", default=None, help="Access token, overrides the context")
    parser.add_argument("--timeout", default=None, help="Request timeout, e.g. 15s, 1m or 1m30s")
    parser.add_argument("--debug", action="store_true", help="Print debug output")

    sub = parser.add_subparsers(dest="command", required=True, metavar="<command>")

    version = sub.add_parser("version", help="Show CLI version")
    version.add_argument("--json", action="store_true", help="Print version details as JSON")

    acls = sub.add_parser("acls", help="Print the list of the available Kafka ACLs")
    _add_json_flags(acls)

    acl = sub.add_parser("acl", help="Work with a Kafka Access Control List")
    acl_sub = acl.add_subparsers(dest="acl_command", required=True)
    acl_set = acl_sub.add_parser(
        "set",
        aliases=["create", "update"],
        help="Set (create or update) a Kafka ACL",
    )
    _add_acl_flags(acl_set)
    acl_delete = acl_sub.add_parser("delete", help="Delete a Kafka ACL")
    _add_acl_flags(acl_delete)

    connectors = sub.add_parser(
        "connectors",
        aliases=["connect"],
        help="List connectors, their plugins and the Connect clusters",
    )
    connectors.add_argument(
        "--clusterName",
        dest="cluster_name",
        default="",
        help='Connect cluster name, "*" or empty for all clusters',
    )
    connectors.add_argument(
        "--names",
        action="store_true",
        help="Print only the connector names",
    )
    connectors.add_argument(
        "--no-json",
        action="store_true",
        help="With --names, print one name per line instead of JSON",
    )
    _add_json_flags(connectors)
    connectors_sub = connectors.add_subparsers(dest="connectors_command", required=False)
    plugins = connectors_sub.add_parser("plugins", help="List the available connector plugins")
    plugins.add_argument(
        "--clusterName",
        dest="cluster_name",
        default=argparse.SUPPRESS,
        help='Connect cluster name, "*" or empty for all clusters',
    )
    _add_json_flags(plugins, inherit=True)
    clusters = connectors_sub.add_parser("clusters", help="List the Connect clusters")
    clusters.add_argument(
        "--names",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Print only the cluster names",
    )
    clusters.add_argument(
        "--no-newline",
        action="store_true",
        help="With --names, print the names on a single line separated by a space",
    )
    _add_json_flags(clusters, inherit=True)

    connector = sub.add_parser("connector", help="Work with a particular connector")
    _add_connector_flags(connector)
    _add_json_flags(connector)
    connector_sub = connector.add_subparsers(dest="connector_command", required=False)

    connector_create = connector_sub.add_parser("create", help="Create a new connector")
    _add_connector_payload_flags(connector_create)
    connector_update = connector_sub.add_parser(
        "update", help="Update a connector's configuration"
    )
    _add_connector_payload_flags(connector_update)
    _add_json_flags(connector_update, inherit=True)

    for name, help_text in (
        ("config", "Get connector config"),
        ("status", "Get connector status"),
        ("tasks", "List connector tasks"),
    ):
        command = connector_sub.add_parser(name, help=help_text)
        _add_connector_flags(command, inherit=True)
        _add_json_flags(command, inherit=True)

    for name, help_text in (
        ("pause", "Pause a connector"),
        ("resume", "Resume a paused connector"),
        ("restart", "Restart a connector"),
        ("delete", "Delete a running connector"),
    ):
        command = connector_sub.add_parser(name, help=help_text)
        _add_connector_flags(command, inherit=True)
        _add_silent_flag(command)

    task = connector_sub.add_parser("task", help="Work with a particular connector task")
    task_sub = task.add_subparsers(dest="task_command", required=True)
    task_status = task_sub.add_parser("status", help="Get current status of a task")
    _add_connector_flags(task_status, inherit=True)
    task_status.add_argument("--task", dest="task_id", type=int, required=True, help="Task id")
    _add_json_flags(task_status, inherit=True)
    task_restart = task_sub.add_parser("restart", help="Restart a connector task")
    _add_connector_flags(task_restart, inherit=True)
    task_restart.add_argument("--task", dest="task_id", type=int, required=True, help="Task id")
    _add_silent_flag(task_restart)

    user = sub.add_parser("user", help="Print information about the logged in user")
    _add_json_flags(user)

    license_cmd = sub.add_parser("license", help="Print the license information")
    _add_json_flags(license_cmd)

    contexts = sub.add_parser("contexts", help="Print and validate all configuration contexts")
    _add_silent_flag(contexts)

    context = sub.add_parser(
        "context",
        help="Print the current context or modify/delete a configuration context",
    )
    _add_silent_flag(context)
    context_sub = context.add_subparsers(dest="context_command", required=False)
    context_delete = context_sub.add_parser("delete", help="Delete a configuration context")
    context_delete.add_argument("name", help="Context name")
    context_set = context_sub.add_parser(
        "set",
        aliases=list(CONTEXT_SET_ALIASES[1:]),
        help="Edit an existing or add a configuration context",
    )
    context_set.add_argument("name", help="Context name")

    configure = sub.add_parser(
        "configure",
        help="Interactively create and save the CLI configuration and credentials",
    )
    configure.add_argument("--reset", action="store_true", help="Reset the current context")
    configure.add_argument("--no-banner", action="store_true", help="Do not print the banner")
    configure.add_argument(
        "--default-location",
        action="store_true",
        help=f"Do not ask where to save, use {DEFAULT_CONFIG_PATH}",
    )

    # Hidden: no help entry.
    sub.add_parser("login")

    return parser


def _configure_logging(*, debug: bool, stderr) -> None:
    global _log_handler

    package_logger = logging.getLogger("lenses_cli")
    if _log_handler is not None:
        package_logger.removeHandler(_log_handler)
    _log_handler = logging.StreamHandler(stderr)
    _log_handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s: %(message)s"))
    package_logger.addHandler(_log_handler)
    package_logger.setLevel(logging.DEBUG if debug else logging.WARNING)


def _sanitize_error_text(value: str) -> str:
    redacted = value
    for field in _SENSITIVE_FIELDS:
        redacted = re.sub(
            rf"(?i)\b({field}\s*[=:]\s*)([^,\s]+)",
            r"\1[REDACTED]",
            redacted,
        )
    return redacted


def _print_error(stderr, prefix: str, message: str, *, code: int) -> int:
    print(f"{prefix}: {_sanitize_error_text(message)}", file=stderr)
    return code


def _print_lenses_error(stderr, exc: LensesError, *, not_found: str | None = None) -> int:
    if isinstance(exc, ResourceNotFoundError):
        return _print_error(stderr, "not found", not_found or str(exc), code=EXIT_NOT_FOUND)
    if isinstance(exc, CredentialsError):
        return _print_error(
            stderr,
            "credentials error",
            f"{exc}; check the context with `lenses-cli context` or run `lenses-cli configure`",
            code=EXIT_CREDENTIALS_ERROR,
        )
    if isinstance(exc, LensesUnavailableError):
        return _print_error(stderr, "lenses error", str(exc), code=EXIT_NETWORK_ERROR)
    if isinstance(exc, ValidationError):
        return _print_error(stderr, "validation error", str(exc), code=EXIT_VALIDATION_ERROR)
    if isinstance(exc, EncryptionError):
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)
    return _print_error(stderr, "error", str(exc), code=EXIT_NETWORK_ERROR)


def _check_required_flags(stderr, **flags: object) -> int | None:
    missing = [f"--{name}" for name, value in flags.items() if not value]
    if missing:
        return _print_error(
            stderr,
            "validation error",
            f"required flags missing: {', '.join(missing)}",
            code=EXIT_VALIDATION_ERROR,
        )
    return None


def _json_options(args) -> dict:
    return {"pretty": not getattr(args, "no_pretty", False), "query": getattr(args, "query", None)}


def _apply_overrides(manager: ConfigManager, args) -> bool:
    """Apply --host/--user/--pass/--token/--timeout/--debug to the current context."""
    overrides = {
        "host": args.host,
        "user": args.user,
        "password": args.password,
        "token": args.token,
        "timeout": args.timeout,
    }
    given = {key: value for key, value in overrides.items() if value is not None}
    if not given and not args.debug:
        return False

    cfg = manager.get_current()
    if "timeout" in given:
        parse_timeout(given["timeout"])
    for key, value in given.items():
        setattr(cfg, key, value)
    if args.debug:
        cfg.debug = True
    cfg.format_host()
    return True


def _open_client(cfg: ContextConfig) -> LensesClient:
    client = LensesClient(
        host=cfg.host,
        user=cfg.user,
        password=cfg.password,
        token=cfg.token,
        timeout=cfg.timeout_seconds,
    )
    client.login()
    return client


def _is_valid_context(manager: ConfigManager, name: str) -> bool:
    cfg = manager.contexts.get(name)
    if cfg is None or not cfg.is_valid():
        return False
    try:
        _open_client(cfg)
    except (LensesError, ConfigError) as exc:
        logger.debug("context '%s' failed validation: %s", name, exc)
        return False
    return True


def _run_version(*, as_json: bool, stdout) -> int:
    payload = {"cli": "lenses-cli", "version": _cli_version()}
    if as_json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
    else:
        print(f"lenses-cli {payload['version']}", file=stdout)
    return EXIT_SUCCESS


# ACLs.


def _acl_from_args(args) -> ACL:
    acl = ACL()
    if args.file:
        acl = ACL.from_dict(load_yaml_file(args.file))
    for attr, value in (
        ("resource_type", args.resource_type),
        ("resource_name", args.resource_name),
        ("principal", args.principal),
        ("permission_type", args.permission_type),
        ("host", args.acl_host),
        ("operation", args.operation),
    ):
        if value:
            setattr(acl, attr, value)
    return acl


def _run_acls(*, args, client: LensesClient, stdout, stderr) -> int:
    try:
        acls = client.get_acls()
    except LensesError as exc:
        return _print_lenses_error(stderr, exc)
    print_json(acls, stdout=stdout, **_json_options(args))
    return EXIT_SUCCESS


def _run_acl_set(*, args, client: LensesClient, stdout, stderr) -> int:
    try:
        acl = _acl_from_args(args)
        client.create_or_update_acl(acl)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)
    except LensesError as exc:
        return _print_lenses_error(stderr, exc)
    echo("ACL created", stdout=stdout, silent=args.silent)
    return EXIT_SUCCESS


def _run_acl_delete(*, args, client: LensesClient, stdout, stderr) -> int:
    try:
        acl = _acl_from_args(args)
        client.delete_acl(acl)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)
    except LensesError as exc:
        return _print_lenses_error(stderr, exc, not_found="ACL does not exist")
    echo("ACL deleted", stdout=stdout, silent=args.silent)
    return EXIT_SUCCESS


# Connectors.


def _all_cluster_names(client: LensesClient) -> list[str]:
    return [str(cluster.get("name")) for cluster in client.get_connect_clusters()]


def _run_connectors(*, args, client: LensesClient, stdout, stderr) -> int:
    cluster_name = args.cluster_name
    connector_names: dict[str, list[str]] = {}

    if cluster_name in ("", "*"):
        try:
            for name in _all_cluster_names(client):
                connector_names.setdefault(name, []).extend(client.get_connectors(name))
        except LensesError as exc:
            return _print_lenses_error(stderr, exc)
    else:
        try:
            connector_names[cluster_name] = client.get_connectors(cluster_name)
        except LensesError as exc:
            return _print_lenses_error(
                stderr,
                exc,
                not_found=(
                    f"unable to retrieve connectors, cluster with name '{cluster_name}' "
                    "does not exist"
                ),
            )

    if args.names:
        names = sorted(name for names in connector_names.values() for name in names)
        if args.no_json:
            for name in names:
                print(name, file=stdout)
            return EXIT_SUCCESS
        print_json(outline_string_results("name", names), stdout=stdout, **_json_options(args))
        return EXIT_SUCCESS

    connectors: dict[str, list] = {}
    for cluster, names in connector_names.items():
        for name in names:
            try:
                connectors.setdefault(cluster, []).append(client.get_connector(cluster, name))
            except LensesError as exc:
                print(f"get connector error: {_sanitize_error_text(str(exc))}", file=stderr)

    print_json(connectors, stdout=stdout, **_json_options(args))
    return EXIT_SUCCESS


def _run_connectors_plugins(*, args, client: LensesClient, stdout, stderr) -> int:
    cluster_name = args.cluster_name
    plugins: list[dict] = []
    try:
        if cluster_name in ("", "*"):
            for name in _all_cluster_names(client):
                plugins.extend(client.get_connector_plugins(name))
        else:
            plugins = list(client.get_connector_plugins(cluster_name))
    except LensesError as exc:
        return _print_lenses_error(
            stderr,
            exc,
            not_found=f"unable to retrieve plugins, cluster with name '{cluster_name}' does not exist",
        )

    print_json(normalize_plugin_versions(plugins), stdout=stdout, **_json_options(args))
    return EXIT_SUCCESS


def _run_connectors_clusters(*, args, client: LensesClient, stdout, stderr) -> int:
    try:
        clusters = client.get_connect_clusters()
    except LensesError as exc:
        return _print_lenses_error(stderr, exc)

    clusters = sorted(clusters, key=lambda cluster: str(cluster.get("name", "")))
    if args.names:
        names = [str(cluster.get("name", "")) for cluster in clusters]
        separator = " " if args.no_newline else "\n"
        print(separator.join(names), file=stdout)
        return EXIT_SUCCESS

    print_json(clusters, stdout=stdout, **_json_options(args))
    return EXIT_SUCCESS


def _run_connector(*, args, client: LensesClient, stdout, stderr) -> int:
    rc = _check_required_flags(stderr, clusterName=args.cluster_name, name=args.name)
    if rc is not None:
        return rc
    try:
        connector = client.get_connector(args.cluster_name, args.name)
    except LensesError as exc:
        return _print_lenses_error(
            stderr,
            exc,
            not_found=f"connector '{args.cluster_name}:{args.name}' does not exist",
        )
    print_json(connector, stdout=stdout, **_json_options(args))
    return EXIT_SUCCESS


def _load_inline_config(raw: str) -> dict[str, str]:
    if raw.lstrip().startswith("{"):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"--config is not valid JSON: {exc}") from exc
    else:
        parsed = load_yaml_file(raw)
    return normalize_connector_config(parsed)


def _connector_payload_from_args(args) -> ConnectorPayload:
    payload = ConnectorPayload(cluster_name=args.cluster_name, name=args.name)
    if args.connector_config:
        payload.config = _load_inline_config(args.connector_config)
    if args.file:
        payload.merge(load_yaml_file(args.file))
    payload.apply_and_validate_name()
    return payload


def _run_connector_create(*, args, client: LensesClient, stdout, stderr) -> int:
    try:
        payload = _connector_payload_from_args(args)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)
    except LensesError as exc:
        return _print_lenses_error(stderr, exc)

    rc = _check_required_flags(stderr, clusterName=payload.cluster_name, name=payload.name)
    if rc is not None:
        return rc

    try:
        client.create_connector(payload.cluster_name, payload.name, payload.config)
    except LensesError as exc:
        # A 404 may come from the cluster or from the connector class; keep the raw message.
        return _print_lenses_error(stderr, exc)

    echo(f"Connector {payload.name} created", stdout=stdout, silent=args.silent)
    return EXIT_SUCCESS


def _run_connector_update(*, args, client: LensesClient, stdout, stderr) -> int:
    try:
        payload = _connector_payload_from_args(args)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)
    except LensesError as exc:
        return _print_lenses_error(stderr, exc)

    rc = _check_required_flags(stderr, clusterName=payload.cluster_name, name=payload.name)
    if rc is not None:
        return rc

    try:
        existing = client.get_connector(payload.cluster_name, payload.name)
    except LensesError as exc:
        return _print_lenses_error(
            stderr,
            exc,
            not_found=f"connector '{payload.cluster_name}:{payload.name}' does not exist",
        )

    existing_config = existing.get("config") if isinstance(existing, dict) else None
    if existing_config:
        existing_name = existing_config.get("name")
        if existing_name != payload.name:
            return _print_error(
                stderr,
                "validation error",
                (
                    f"connector config[\"name\"] '{payload.name}' does not match with the "
                    f"existing one '{existing_name}'"
                ),
                code=EXIT_VALIDATION_ERROR,
            )

    try:
        updated = client.update_connector(payload.cluster_name, payload.name, payload.config)
    except LensesError as exc:
        return _print_lenses_error(stderr, exc)

    if args.silent:
        return EXIT_SUCCESS
    print(f"Connector {payload.name} updated\n", file=stdout)
    print_json(updated, stdout=stdout, **_json_options(args))
    return EXIT_SUCCESS


def _run_connector_read(*, args, client: LensesClient, stdout, stderr) -> int:
    rc = _check_required_flags(stderr, clusterName=args.cluster_name, name=args.name)
    if rc is not None:
        return rc

    readers = {
        "config": (client.get_connector_config, "unable to retrieve config"),
        "status": (client.get_connector_status, "unable to retrieve status"),
        "tasks": (client.get_connector_tasks, "unable to retrieve tasks"),
    }
    reader, failure = readers[args.connector_command]
    try:
        payload = reader(args.cluster_name, args.name)
    except LensesError as exc:
        return _print_lenses_error(
            stderr,
            exc,
            not_found=f"{failure}, connector '{args.cluster_name}:{args.name}' does not exist",
        )
    print_json(payload, stdout=stdout, **_json_options(args))
    return EXIT_SUCCESS


def _run_connector_action(*, args, client: LensesClient, stdout, stderr) -> int:
    rc = _check_required_flags(stderr, clusterName=args.cluster_name, name=args.name)
    if rc is not None:
        return rc

    actions = {
        "pause": (client.pause_connector, "pause", "paused"),
        "resume": (client.resume_connector, "resume", "resumed"),
        "restart": (client.restart_connector, "restart", "restarted"),
        "delete": (client.delete_connector, "delete", "deleted"),
    }
    action, verb, past = actions[args.connector_command]
    try:
        action(args.cluster_name, args.name)
    except LensesError as exc:
        return _print_lenses_error(
            stderr,
            exc,
            not_found=f"unable to {verb}, connector '{args.cluster_name}:{args.name}' does not exist",
        )
    echo(
        f"Connector {args.cluster_name}:{args.name} {past}",
        stdout=stdout,
        silent=args.silent,
    )
    return EXIT_SUCCESS


def _run_connector_task_status(*, args, client: LensesClient, stdout, stderr) -> int:
    rc = _check_required_flags(stderr, clusterName=args.cluster_name, name=args.name)
    if rc is not None:
        return rc
    try:
        status = client.get_connector_task_status(args.cluster_name, args.name, args.task_id)
    except LensesError as exc:
        return _print_lenses_error(stderr, exc, not_found="task does not exist")
    print_json(status, stdout=stdout, **_json_options(args))
    return EXIT_SUCCESS


def _run_connector_task_restart(*, args, client: LensesClient, stdout, stderr) -> int:
    rc = _check_required_flags(stderr, clusterName=args.cluster_name, name=args.name)
    if rc is not None:
        return rc
    try:
        client.restart_connector_task(args.cluster_name, args.name, args.task_id)
    except LensesError as exc:
        return _print_lenses_error(stderr, exc, not_found="task does not exist")
    echo(
        f"Connector task {args.cluster_name}:{args.name}:{args.task_id} restarted",
        stdout=stdout,
        silent=args.silent,
    )
    return EXIT_SUCCESS


# Account.


def _run_user(*, args, client: LensesClient, stdout) -> int:
    user = client.user_info
    # Token-only sessions carry no user details.
    if user.get("id"):
        print_json(user, stdout=stdout, **_json_options(args))
    return EXIT_SUCCESS


def _run_license(*, args, client: LensesClient, stdout, stderr) -> int:
    try:
        license_info = client.get_license_info()
    except LensesError as exc:
        return _print_lenses_error(stderr, exc)
    print_json(license_info, stdout=stdout, **_json_options(args))
    return EXIT_SUCCESS


# Configuration contexts.


def _print_context(*, manager: ConfigManager, name: str, stdout) -> bool:
    cfg = manager.contexts[name]
    is_valid = _is_valid_context(manager, name)
    info = "valid" if is_valid else "invalid"
    if name == manager.current_context:
        info += ", current"
    print(f"{name} [{info}]", file=stdout)
    print_json(cfg.masked(), stdout=stdout)
    return is_valid


def _show_context_options(*, manager: ConfigManager, name: str, stdout, stderr) -> int:
    try:
        action = ask_select(
            f"Would you like to skip, edit or delete the '{name}' invalid configuration context?",
            ("skip", "edit", "delete"),
        )
    except PromptAborted:
        return EXIT_SUCCESS
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)

    if action == "delete":
        return _run_context_delete(manager=manager, name=name, silent=False, stdout=stdout, stderr=stderr)
    if action == "edit":
        return _run_context_set(manager=manager, name=name, stdout=stdout, stderr=stderr)
    return EXIT_SUCCESS


def _run_contexts(*, args, manager: ConfigManager, stdout, stderr) -> int:
    result = EXIT_SUCCESS
    for name in sorted(manager.contexts):
        if name not in manager.contexts:
            # Removed while handling an earlier invalid context.
            continue
        if not _print_context(manager=manager, name=name, stdout=stdout) and not args.silent:
            rc = _show_context_options(manager=manager, name=name, stdout=stdout, stderr=stderr)
            if rc != EXIT_SUCCESS:
                # The failure is already reported; keep listing the other contexts.
                logger.debug("context '%s' action exited with %s", name, rc)
                if result == EXIT_SUCCESS:
                    result = rc
    return result


def _run_context(*, args, manager: ConfigManager, stdout, stderr) -> int:
    if not manager.current_context_exists():
        return _print_error(
            stderr,
            "config error",
            "current context does not exist, please use the `configure` command first",
            code=EXIT_VALIDATION_ERROR,
        )
    name = manager.current_context
    if not _print_context(manager=manager, name=name, stdout=stdout) and not args.silent:
        return _show_context_options(manager=manager, name=name, stdout=stdout, stderr=stderr)
    return EXIT_SUCCESS


def _run_context_delete(*, manager: ConfigManager, name: str, silent: bool, stdout, stderr) -> int:
    changes_current = manager.current_context == name
    try:
        deleted = manager.remove_context(
            name,
            validator=lambda candidate: _is_valid_context(manager, candidate),
        )
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)

    if not deleted:
        return _print_error(
            stderr,
            "config error",
            f"unable to delete context '{name}', at least one more valid context should be present",
            code=EXIT_VALIDATION_ERROR,
        )

    message = f"'{name}' context deleted"
    if changes_current:
        message = f"{message}, current context set to '{manager.current_context}'"
    echo(message, stdout=stdout, silent=silent)
    return EXIT_SUCCESS


def _run_context_set(*, manager: ConfigManager, name: str, stdout, stderr) -> int:
    while True:
        manager.set_current(name)
        rc = _run_configure(
            manager=manager,
            reset=True,
            no_banner=True,
            default_location=True,
            overrides_given=False,
            stdout=stdout,
            stderr=stderr,
        )
        if rc != EXIT_SUCCESS:
            return rc

        if _is_valid_context(manager, name):
            print(
                f"{name} was successfully validated and saved, it is the current context now",
                file=stdout,
            )
            return EXIT_SUCCESS

        try:
            retry = ask_confirm(f"{name} is still invalid, do you mind to retry fixing it?")
        except PromptAborted:
            return EXIT_SUCCESS
        except ConfigError as exc:
            return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)
        if not retry:
            return EXIT_SUCCESS


def _run_configure(
    *,
    manager: ConfigManager,
    reset: bool,
    no_banner: bool,
    default_location: bool,
    overrides_given: bool,
    stdout,
    stderr,
) -> int:
    if manager.is_valid() and not reset:
        if not overrides_given:
            return _print_error(
                stderr,
                "config error",
                "configuration already exists, try 'configure --reset' instead",
                code=EXIT_VALIDATION_ERROR,
            )
    else:
        if not no_banner:
            print(BANNER, file=stdout)
        current = manager.get_current()
        try:
            manager.contexts[manager.current_context] = ask_context_settings(current)
            if manager.filepath is None and not default_location:
                location = ask_save_location(str(DEFAULT_CONFIG_PATH))
                manager.filepath = Path(location).expanduser()
        except PromptAborted:
            return _print_error(
                stderr,
                "config error",
                "configuration cancelled",
                code=EXIT_VALIDATION_ERROR,
            )
        except ConfigError as exc:
            return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)

    try:
        config_path = manager.save()
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)

    if not no_banner:
        print(f"configuration saved to {config_path}", file=stdout)
    return EXIT_SUCCESS


# Interactive session.


def _run_login(*, manager: ConfigManager, client: LensesClient, stdout, stderr, stdin) -> int:
    user = client.user_info
    roles = ", ".join(str(role) for role in user.get("roles") or [])
    print(
        f"Welcome {user.get('name') or client.user}[{roles}],\n"
        "type 'help' to learn more about the available commands or 'exit' to terminate.",
        file=stdout,
    )

    parser = _build_parser()
    while True:
        print("> ", end="", file=stdout, flush=True)
        line = stdin.readline()
        if not line:
            print(file=stdout)
            return EXIT_SUCCESS

        line = line.rstrip("\r\n").strip()
        if line == "exit":
            return EXIT_SUCCESS
        if not line:
            continue
        if line == "help":
            parser.print_help(file=stdout)
            print(file=stdout)
            continue

        try:
            argv = shlex.split(line)
        except ValueError as exc:
            print(f"unable to parse command: {exc}", file=stdout)
            continue

        try:
            with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
                args = parser.parse_args(argv)
        except SystemExit:
            # argparse already reported the usage error or printed help.
            print(file=stdout)
            continue

        if args.command in SESSION_BLOCKED_COMMANDS:
            print("unable to run inside a started session", file=stdout)
            continue

        rc = _dispatch(
            args,
            manager=manager,
            client=client,
            stdout=stdout,
            stderr=stderr,
        )
        logger.debug("session command %r exited with %s", line, rc)
        print(file=stdout)


def _connect(manager: ConfigManager, stderr) -> tuple[LensesClient | None, int]:
    if not manager.current_context_exists():
        name = manager.current_context or "<none>"
        return None, _print_error(
            stderr,
            "config error",
            f"current context '{name}' does not exist, please use the `configure` command first",
            code=EXIT_VALIDATION_ERROR,
        )
    cfg = manager.get_current()
    if not cfg.is_valid():
        return None, _print_error(
            stderr,
            "config error",
            "credentials missing or invalid, please use the `configure` command first",
            code=EXIT_VALIDATION_ERROR,
        )
    try:
        return _open_client(cfg), EXIT_SUCCESS
    except ConfigError as exc:
        return None, _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)
    except LensesError as exc:
        return None, _print_lenses_error(stderr, exc)


def _dispatch(
    args,
    *,
    manager: ConfigManager,
    client: LensesClient | None,
    stdout,
    stderr,
) -> int:
    try:
        return _route(args, manager=manager, client=client, stdout=stdout, stderr=stderr)
    except ValidationError as exc:
        # Raised while rendering, e.g. a bad --query expression.
        return _print_lenses_error(stderr, exc)


def _route(
    args,
    *,
    manager: ConfigManager,
    client: LensesClient | None,
    stdout,
    stderr,
) -> int:
    if args.command == "version":
        return _run_version(as_json=args.json, stdout=stdout)

    if args.command == "contexts":
        return _run_contexts(args=args, manager=manager, stdout=stdout, stderr=stderr)

    if args.command == "context":
        if args.context_command is None:
            return _run_context(args=args, manager=manager, stdout=stdout, stderr=stderr)
        if args.context_command == "delete":
            return _run_context_delete(
                manager=manager,
                name=args.name,
                silent=args.silent,
                stdout=stdout,
                stderr=stderr,
            )
        if args.context_command in CONTEXT_SET_ALIASES:
            return _run_context_set(manager=manager, name=args.name, stdout=stdout, stderr=stderr)

    if args.command == "acls":
        return _run_acls(args=args, client=client, stdout=stdout, stderr=stderr)

    if args.command == "acl":
        if args.acl_command in ACL_SET_ALIASES:
            return _run_acl_set(args=args, client=client, stdout=stdout, stderr=stderr)
        if args.acl_command == "delete":
            return _run_acl_delete(args=args, client=client, stdout=stdout, stderr=stderr)

    if args.command in ("connectors", "connect"):
        if args.connectors_command is None:
            return _run_connectors(args=args, client=client, stdout=stdout, stderr=stderr)
        if args.connectors_command == "plugins":
            return _run_connectors_plugins(args=args, client=client, stdout=stdout, stderr=stderr)
        if args.connectors_command == "clusters":
            return _run_connectors_clusters(args=args, client=client, stdout=stdout, stderr=stderr)

    if args.command == "connector":
        command = args.connector_command
        if command is None:
            return _run_connector(args=args, client=client, stdout=stdout, stderr=stderr)
        if command == "create":
            return _run_connector_create(args=args, client=client, stdout=stdout, stderr=stderr)
        if command == "update":
            return _run_connector_update(args=args, client=client, stdout=stdout, stderr=stderr)
        if command in ("config", "status", "tasks"):
            return _run_connector_read(args=args, client=client, stdout=stdout, stderr=stderr)
        if command in ("pause", "resume", "restart", "delete"):
            return _run_connector_action(args=args, client=client, stdout=stdout, stderr=stderr)
        if command == "task":
            if args.task_command == "status":
                return _run_connector_task_status(
                    args=args, client=client, stdout=stdout, stderr=stderr
                )
            if args.task_command == "restart":
                return _run_connector_task_restart(
                    args=args, client=client, stdout=stdout, stderr=stderr
                )

    if args.command == "user":
        return _run_user(args=args, client=client, stdout=stdout)

    if args.command == "license":
        return _run_license(args=args, client=client, stdout=stdout, stderr=stderr)

    print("unknown command", file=stderr)
    return EXIT_VALIDATION_ERROR


def main(
    argv: Sequence[str] | None = None,
    *,
    stdout=sys.stdout,
    stderr=sys.stderr,
    stdin=sys.stdin,
) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(debug=args.debug, stderr=stderr)

    try:
        manager = load_config_manager(args.config)
        if args.context:
            manager.set_current(args.context)
        overrides_given = _apply_overrides(manager, args)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)

    if manager.current_context_exists() and manager.get_current().debug:
        _configure_logging(debug=True, stderr=stderr)

    if args.command == "configure":
        return _run_configure(
            manager=manager,
            reset=args.reset,
            no_banner=args.no_banner,
            default_location=args.default_location,
            overrides_given=overrides_given,
            stdout=stdout,
            stderr=stderr,
        )

    if args.command in LOCAL_COMMANDS:
        return _dispatch(args, manager=manager, client=None, stdout=stdout, stderr=stderr)

    client, rc = _connect(manager, stderr)
    if client is None:
        return rc

    if args.command == "login":
        return _run_login(
            manager=manager,
            client=client,
            stdout=stdout,
            stderr=stderr,
            stdin=stdin,
        )

    return _dispatch(args, manager=manager, client=client, stdout=stdout, stderr=stderr)


if __name__ == "__main__":
    raise SystemExit(main())
