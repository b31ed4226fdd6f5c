from __future__ import annotations

import io
import json

import pytest

from lenses_cli.cli.main import main
from lenses_cli.errors import LensesUnavailableError, ResourceNotFoundError

CLUSTERS = [
    {"name": "prod", "url": "http://connect-prod:8083"},
    {"name": "dev", "url": "http://connect-dev:8083"},
]

CONNECTORS = {
    "dev": {"sink": {"name": "sink", "config": {"name": "sink"}, "tasks": []}},
    "prod": {
        "audit": {"name": "audit", "config": {"name": "audit"}, "tasks": []},
        "billing": {"name": "billing", "config": {"name": "billing"}, "tasks": []},
    },
}


class _Client:
    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.calls: list[tuple] = []
        _Client.last = self

    def login(self) -> dict:
        return {}

    def get_connect_clusters(self) -> list[dict]:
        return [dict(cluster) for cluster in CLUSTERS]

    def get_connectors(self, cluster_name: str) -> list[str]:
        if cluster_name not in CONNECTORS:
            raise ResourceNotFoundError("lenses request failed: 404", status_code=404)
        return list(CONNECTORS[cluster_name])

    def get_connector(self, cluster_name: str, name: str) -> dict:
        try:
            return CONNECTORS[cluster_name][name]
        except KeyError:
            raise ResourceNotFoundError("lenses request failed: 404", status_code=404) from None

    def get_connector_plugins(self, cluster_name: str) -> list[dict]:
        return [{"class": f"{cluster_name}.Sink", "type": "sink", "version": "null"}]

    def create_connector(self, cluster_name: str, name: str, config: dict) -> dict:
        self.calls.append(("create", cluster_name, name, config))
        return {"name": name, "config": config}

    def update_connector(self, cluster_name: str, name: str, config: dict) -> dict:
        self.calls.append(("update", cluster_name, name, config))
        return {"name": name, "config": config, "tasks": [{"connector": name, "task": 0}]}

    def get_connector_config(self, cluster_name: str, name: str) -> dict:
        return self.get_connector(cluster_name, name)["config"]

    def get_connector_status(self, cluster_name: str, name: str) -> dict:
        self.get_connector(cluster_name, name)
        return {"name": name, "connector": {"state": "RUNNING"}}

    def get_connector_tasks(self, cluster_name: str, name: str) -> list:
        return [{"id": {"connector": name, "task": 0}, "config": {}}]

    def get_connector_task_status(self, cluster_name: str, name: str, task_id: int) -> dict:
        if task_id > 0:
            raise ResourceNotFoundError("lenses request failed: 404", status_code=404)
        return {"id": task_id, "state": "RUNNING"}

    def restart_connector_task(self, cluster_name: str, name: str, task_id: int) -> None:
        self.calls.append(("restart-task", cluster_name, name, task_id))

    def pause_connector(self, cluster_name: str, name: str) -> None:
        self.get_connector(cluster_name, name)
        self.calls.append(("pause", cluster_name, name))

    def resume_connector(self, cluster_name: str, name: str) -> None:
        self.calls.append(("resume", cluster_name, name))

    def restart_connector(self, cluster_name: str, name: str) -> None:
        self.calls.append(("restart", cluster_name, name))

    def delete_connector(self, cluster_name: str, name: str) -> None:
        self.get_connector(cluster_name, name)
        self.calls.append(("delete", cluster_name, name))


def _run(monkeypatch, config_file, *argv: str) -> tuple[int, str, str]:
    monkeypatch.setattr("lenses_cli.cli.main.LensesClient", _Client)
    out = io.StringIO()
    err = io.StringIO()
    rc = main(["--config", str(config_file), *argv], stdout=out, stderr=err)
    return rc, out.getvalue(), err.getvalue()


def test_connectors_all_clusters_full_details(monkeypatch, config_file) -> None:
    rc, out, _ = _run(monkeypatch, config_file, "connectors")
    assert rc == 0
    payload = json.loads(out)
    assert sorted(payload) == ["dev", "prod"]
    assert [c["name"] for c in payload["prod"]] == ["audit", "billing"]


def test_connectors_names_sorted_as_json(monkeypatch, config_file) -> None:
    rc, out, _ = _run(monkeypatch, config_file, "connectors", "--clusterName=*", "--names")
    assert rc == 0
    assert json.loads(out) == [{"name": "audit"}, {"name": "billing"}, {"name": "sink"}]


def test_connectors_names_plain_lines(monkeypatch, config_file) -> None:
    rc, out, _ = _run(
        monkeypatch, config_file, "connect", "--clusterName", "prod", "--names", "--no-json"
    )
    assert rc == 0
    assert out.splitlines() == ["audit", "billing"]


def test_connectors_unknown_cluster_message(monkeypatch, config_file) -> None:
    rc, _, err = _run(monkeypatch, config_file, "connectors", "--clusterName", "qa")
    assert rc == 3
    assert "unable to retrieve connectors, cluster with name 'qa' does not exist" in err


def test_connectors_skips_failed_connector_fetch(monkeypatch, config_file) -> None:
    def get_connector(self, cluster_name, name):  # noqa: ANN001
        if name == "billing":
            raise LensesUnavailableError("timeout")
        return CONNECTORS[cluster_name][name]

    monkeypatch.setattr(_Client, "get_connector", get_connector)
    rc, out, err = _run(monkeypatch, config_file, "connectors", "--clusterName", "prod")
    assert rc == 0
    assert [c["name"] for c in json.loads(out)["prod"]] == ["audit"]
    assert "get connector error: timeout" in err


def test_plugins_from_all_clusters_with_unknown_versions(monkeypatch, config_file) -> None:
    rc, out, _ = _run(monkeypatch, config_file, "connectors", "plugins", "--clusterName=*")
    assert rc == 0
    plugins = json.loads(out)
    assert [p["class"] for p in plugins] == ["prod.Sink", "dev.Sink"]
    assert {p["version"] for p in plugins} == {"X.X.X"}


def test_clusters_sorted_json_and_names(monkeypatch, config_file) -> None:
    rc, out, _ = _run(monkeypatch, config_file, "connectors", "clusters")
    assert rc == 0
    assert [c["name"] for c in json.loads(out)] == ["dev", "prod"]

    rc, out, _ = _run(monkeypatch, config_file, "connectors", "clusters", "--names")
    assert out == "dev\nprod\n"

    rc, out, _ = _run(
        monkeypatch, config_file, "connectors", "clusters", "--names", "--no-newline"
    )
    assert out == "dev prod\n"


def test_connector_details_requires_flags(monkeypatch, config_file) -> None:
    rc, _, err = _run(monkeypatch, config_file, "connector", "--clusterName", "dev")
    assert rc == 1
    assert "required flags missing: --name" in err


def test_connector_details_not_found(monkeypatch, config_file) -> None:
    rc, _, err = _run(monkeypatch, config_file, "connector", "--clusterName=dev", "--name=nope")
    assert rc == 3
    assert "connector 'dev:nope' does not exist" in err


def test_connector_create_inline_json(monkeypatch, config_file) -> None:
    rc, out, _ = _run(
        monkeypatch,
        config_file,
        "connector",
        "create",
        "--clusterName=dev",
        "--name=orders-sink",
        '--config={"connector.class": "FileStreamSink", "tasks.max": 1}',
    )
    assert rc == 0
    assert out.strip() == "Connector orders-sink created"
    assert _Client.last.calls == [
        (
            "create",
            "dev",
            "orders-sink",
            {"connector.class": "FileStreamSink", "tasks.max": "1", "name": "orders-sink"},
        )
    ]


def test_connector_create_from_file(monkeypatch, config_file, tmp_path) -> None:
    payload_file = tmp_path / "connector.yml"
    payload_file.write_text(
        "clusterName: dev\n"
        "name: file-sink\n"
        "config:\n"
        "  connector.class: FileStreamSink\n"
        "  topics: orders\n",
        encoding="utf-8",
    )
    rc, out, _ = _run(monkeypatch, config_file, "connector", "create", str(payload_file), "--silent")
    assert rc == 0
    assert out == ""
    assert _Client.last.calls[0][1:3] == ("dev", "file-sink")


def test_connector_create_config_name_mismatch(monkeypatch, config_file) -> None:
    rc, _, err = _run(
        monkeypatch,
        config_file,
        "connector",
        "create",
        "--clusterName=dev",
        "--name=a",
        '--config={"name": "b"}',
    )
    assert rc == 1
    assert "does not match" in err


def test_connector_update_prints_updated_connector(monkeypatch, config_file) -> None:
    rc, out, _ = _run(
        monkeypatch,
        config_file,
        "connector",
        "update",
        "--clusterName=dev",
        "--name=sink",
        '--config={"tasks.max": "2"}',
    )
    assert rc == 0
    assert out.startswith("Connector sink updated\n")
    body = out.split("\n\n", 1)[1]
    assert json.loads(body)["tasks"] == [{"connector": "sink", "task": 0}]


def test_connector_update_missing_connector(monkeypatch, config_file) -> None:
    rc, _, err = _run(
        monkeypatch,
        config_file,
        "connector",
        "update",
        "--clusterName=prod",
        "--name=ghost",
        '--config={"tasks.max": "2"}',
    )
    assert rc == 3
    assert "connector 'prod:ghost' does not exist" in err


def test_connector_update_existing_name_mismatch(monkeypatch, config_file) -> None:
    def get_connector(self, cluster_name, name):  # noqa: ANN001
        return {"name": name, "config": {"name": "other"}}

    monkeypatch.setattr(_Client, "get_connector", get_connector)
    rc, _, err = _run(
        monkeypatch,
        config_file,
        "connector",
        "update",
        "--clusterName=dev",
        "--name=sink",
        '--config={"tasks.max": "2"}',
    )
    assert rc == 1
    assert "does not match with the existing one 'other'" in err


def test_connector_read_commands(monkeypatch, config_file) -> None:
    rc, out, _ = _run(monkeypatch, config_file, "connector", "config", "--clusterName=dev", "--name=sink")
    assert rc == 0
    assert json.loads(out) == {"name": "sink"}

    rc, out, _ = _run(
        monkeypatch, config_file, "connector", "--clusterName=dev", "--name=sink", "status"
    )
    assert rc == 0
    assert json.loads(out)["connector"]["state"] == "RUNNING"

    rc, out, _ = _run(
        monkeypatch,
        config_file,
        "connector",
        "tasks",
        "--clusterName=dev",
        "--name=sink",
        "-q",
        "[0].id.task",
    )
    assert rc == 0
    assert out.strip() == "0"


def test_connector_status_not_found(monkeypatch, config_file) -> None:
    rc, _, err = _run(monkeypatch, config_file, "connector", "status", "--clusterName=dev", "--name=x")
    assert rc == 3
    assert "unable to retrieve status, connector 'dev:x' does not exist" in err


def test_connector_actions(monkeypatch, config_file) -> None:
    for action, past in (
        ("pause", "paused"),
        ("resume", "resumed"),
        ("restart", "restarted"),
        ("delete", "deleted"),
    ):
        rc, out, _ = _run(
            monkeypatch, config_file, "connector", action, "--clusterName=dev", "--name=sink"
        )
        assert rc == 0
        assert out.strip() == f"Connector dev:sink {past}"
        assert _Client.last.calls == [(action, "dev", "sink")]


def test_connector_delete_not_found(monkeypatch, config_file) -> None:
    rc, _, err = _run(monkeypatch, config_file, "connector", "delete", "--clusterName=dev", "--name=x")
    assert rc == 3
    assert "unable to delete, connector 'dev:x' does not exist" in err


def test_connector_task_status_and_restart(monkeypatch, config_file) -> None:
    rc, out, _ = _run(
        monkeypatch,
        config_file,
        "connector",
        "task",
        "status",
        "--clusterName=dev",
        "--name=sink",
        "--task=0",
    )
    assert rc == 0
    assert json.loads(out) == {"id": 0, "state": "RUNNING"}

    rc, _, err = _run(
        monkeypatch,
        config_file,
        "connector",
        "task",
        "status",
        "--clusterName=dev",
        "--name=sink",
        "--task=5",
    )
    assert rc == 3
    assert "task does not exist" in err

    rc, out, _ = _run(
        monkeypatch,
        config_file,
        "connector",
        "task",
        "restart",
        "--clusterName=dev",
        "--name=sink",
        "--task=1",
    )
    assert rc == 0
    assert out.strip() == "Connector task dev:sink:1 restarted"
    assert _Client.last.calls == [("restart-task", "dev", "sink", 1)]


def test_clusters_no_newline_help_names_separator(capsys) -> None:
    with pytest.raises(SystemExit):
        main(["connectors", "clusters", "--help"], stdout=io.StringIO(), stderr=io.StringIO())
    help_text = " ".join(capsys.readouterr().out.split())
    assert "print the names on a single line separated by a space" in help_text
