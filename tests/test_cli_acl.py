from __future__ import annotations

import io
import json

from lenses_cli.cli.main import main
from lenses_cli.errors import LensesRequestError


class _Client:
    acls: list = []
    created: list = []
    deleted: list = []

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs

    def login(self) -> dict:
        return {}

    def get_acls(self) -> list:
        return self.acls

    def create_or_update_acl(self, acl) -> None:
        acl.validate()
        type(self).created.append(acl.to_dict())

    def delete_acl(self, acl) -> None:
        acl.validate()
        type(self).deleted.append(acl.to_dict())


def _install(monkeypatch, **attrs) -> type[_Client]:
    client_cls = type("FakeClient", (_Client,), {"created": [], "deleted": [], **attrs})
    monkeypatch.setattr("lenses_cli.cli.main.LensesClient", client_cls)
    return client_cls


def test_acls_prints_pretty_json(monkeypatch, config_file) -> None:
    acls = [
        {
            "resourceType": "Topic",
            "resourceName": "transactions",
            "principal": "User:alice",
            "permissionType": "Allow",
            "host": "*",
            "operation": "Read",
        }
    ]
    _install(monkeypatch, acls=acls)
    out = io.StringIO()
    err = io.StringIO()

    rc = main(["--config", str(config_file), "acls"], stdout=out, stderr=err)

    assert rc == 0
    assert json.loads(out.getvalue()) == acls
    assert "\n    " in out.getvalue()
    assert err.getvalue() == ""


def test_acls_query_and_no_pretty(monkeypatch, config_file) -> None:
    _install(
        monkeypatch,
        acls=[
            {"resourceName": "orders", "operation": "Read"},
            {"resourceName": "payments", "operation": "Write"},
        ],
    )
    out = io.StringIO()

    rc = main(
        ["--config", str(config_file), "acls", "--no-pretty", "-q", "[?operation=='Write'].resourceName"],
        stdout=out,
        stderr=io.StringIO(),
    )

    assert rc == 0
    assert out.getvalue().strip() == '["payments"]'


def test_acls_invalid_query_is_validation_error(monkeypatch, config_file) -> None:
    _install(monkeypatch, acls=[])
    err = io.StringIO()

    rc = main(
        ["--config", str(config_file), "acls", "--query", "[?"],
        stdout=io.StringIO(),
        stderr=err,
    )

    assert rc == 1
    assert "invalid query" in err.getvalue()


def test_acl_set_from_flags(monkeypatch, config_file) -> None:
    client_cls = _install(monkeypatch)
    out = io.StringIO()

    rc = main(
        [
            "--config",
            str(config_file),
            "acl",
            "set",
            "--resourceType=topic",
            "--resourceName=transactions",
            "--principal=User:alice",
            "--permissionType=allow",
            "--operation=read",
        ],
        stdout=out,
        stderr=io.StringIO(),
    )

    assert rc == 0
    assert out.getvalue().strip() == "ACL created"
    assert client_cls.created == [
        {
            "resourceType": "Topic",
            "resourceName": "transactions",
            "principal": "User:alice",
            "permissionType": "Allow",
            "host": "*",
            "operation": "Read",
        }
    ]


def test_acl_create_alias_from_yaml_file_with_flag_override(monkeypatch, config_file, tmp_path) -> None:
    client_cls = _install(monkeypatch)
    acl_file = tmp_path / "acl.yml"
    acl_file.write_text(
        "resourceType: Group\n"
        "resourceName: consumers\n"
        "principal: User:bob\n"
        "permissionType: Deny\n"
        "host: 10.0.0.1\n"
        "operation: Read\n",
        encoding="utf-8",
    )
    out = io.StringIO()

    rc = main(
        ["--config", str(config_file), "acl", "create", str(acl_file), "--operation=Describe", "--silent"],
        stdout=out,
        stderr=io.StringIO(),
    )

    assert rc == 0
    assert out.getvalue() == ""
    assert client_cls.created[0]["operation"] == "Describe"
    assert client_cls.created[0]["host"] == "10.0.0.1"


def test_acl_delete_from_json_file(monkeypatch, config_file, tmp_path) -> None:
    client_cls = _install(monkeypatch)
    acl_file = tmp_path / "acl.json"
    acl_file.write_text(
        json.dumps(
            {
                "resourceType": "Cluster",
                "resourceName": "kafka-cluster",
                "principal": "User:ops",
                "permissionType": "Allow",
                "operation": "IdempotentWrite",
            }
        ),
        encoding="utf-8",
    )
    out = io.StringIO()

    rc = main(["--config", str(config_file), "acl", "delete", str(acl_file)], stdout=out, stderr=io.StringIO())

    assert rc == 0
    assert out.getvalue().strip() == "ACL deleted"
    assert client_cls.deleted[0]["resourceType"] == "Cluster"


def test_acl_set_invalid_operation_for_resource(monkeypatch, config_file) -> None:
    client_cls = _install(monkeypatch)
    err = io.StringIO()

    rc = main(
        [
            "--config",
            str(config_file),
            "acl",
            "update",
            "--resourceType=Group",
            "--resourceName=consumers",
            "--principal=User:bob",
            "--permissionType=Allow",
            "--operation=Write",
        ],
        stdout=io.StringIO(),
        stderr=err,
    )

    assert rc == 1
    assert "validation error: operation 'Write' is not valid for resource type 'Group'" in err.getvalue()
    assert client_cls.created == []


def test_acl_missing_file_is_config_error(monkeypatch, config_file, tmp_path) -> None:
    _install(monkeypatch)
    err = io.StringIO()

    rc = main(
        ["--config", str(config_file), "acl", "set", str(tmp_path / "nope.yml")],
        stdout=io.StringIO(),
        stderr=err,
    )

    assert rc == 1
    assert "unable to read file" in err.getvalue()


def test_acl_server_error_is_network_error(monkeypatch, config_file) -> None:
    def create_or_update_acl(self, acl) -> None:  # noqa: ARG001
        raise LensesRequestError("lenses request failed: 500 boom", status_code=500)

    _install(monkeypatch, create_or_update_acl=create_or_update_acl)
    err = io.StringIO()

    rc = main(
        [
            "--config",
            str(config_file),
            "acl",
            "set",
            "--resourceType=Topic",
            "--resourceName=t",
            "--principal=User:a",
            "--permissionType=Allow",
            "--operation=Read",
        ],
        stdout=io.StringIO(),
        stderr=err,
    )

    assert rc == 2
    assert "lenses error: lenses request failed: 500 boom" in err.getvalue()
