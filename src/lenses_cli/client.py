"""Typed client for the Lenses REST API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from lenses_cli.acl import ACL
from lenses_cli.errors import (
    CredentialsError,
    LensesRequestError,
    LensesUnavailableError,
    ResourceNotFoundError,
)

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-Kafka-Lenses-Token"
DEFAULT_TIMEOUT = 15.0
CONNECT_CLUSTERS_CONFIG_KEY = "lenses.connect.clusters"


def _segment(value: str) -> str:
    return quote(str(value), safe="")


@dataclass
class LensesClient:
    host: str
    user: str = ""
    password: str = ""
    token: str = ""
    timeout: float = DEFAULT_TIMEOUT
    retries: int = 2
    _user_info: dict = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        try:
            import requests
            from requests.adapters import HTTPAdapter
            from urllib3.util.retry import Retry
        except Exception as exc:  # pragma: no cover
            raise LensesUnavailableError(f"requests stack unavailable: {exc}") from exc

        self._requests = requests
        self._session = requests.Session()
        retry = Retry(
            total=max(0, int(self.retries)),
            connect=max(0, int(self.retries)),
            read=max(0, int(self.retries)),
            status=max(0, int(self.retries)),
            status_forcelist=(429, 500, 502, 503, 504),
            backoff_factor=0.2,
            allowed_methods=("GET", "PUT", "DELETE"),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)

    def _url(self, path: str) -> str:
        return f"{self.host.rstrip('/')}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, *, json_payload: Any = None) -> Any:
        headers = {TOKEN_HEADER: self.token} if self.token else None
        url = self._url(path)
        logger.debug("%s %s", method, url)
        try:
            response = self._session.request(
                method,
                url,
                json=json_payload,
                headers=headers,
                timeout=self.timeout,
            )
        except Exception as exc:
            raise LensesUnavailableError(str(exc)) from exc
        logger.debug("%s %s -> %s", method, url, response.status_code)

        if response.status_code >= 400:
            raise _request_error(response)
        return _decode_body(response)

    # Authentication.

    def login(self) -> dict:
        """Exchange user/password for an access token.

        A preconfigured token is used as-is and no login call is made.
        """
        if self.token:
            return {}
        if not self.user or not self.password:
            raise CredentialsError("credentials missing or invalid", status_code=None)
        payload = self._request(
            "POST",
            "/api/login",
            json_payload={"user": self.user, "password": self.password},
        )
        if not isinstance(payload, dict) or not payload.get("token"):
            raise CredentialsError("login response did not include an access token")
        self.token = str(payload["token"])
        user = payload.get("user")
        self._user_info = dict(user) if isinstance(user, dict) else {}
        return payload

    @property
    def user_info(self) -> dict:
        return dict(self._user_info)

    def get_license_info(self) -> Any:
        return self._request("GET", "/api/license")

    def get_config(self) -> dict:
        payload = self._request("GET", "/api/config")
        return payload if isinstance(payload, dict) else {}

    # ACLs.

    def get_acls(self) -> list:
        return self._request("GET", "/api/acl") or []

    def create_or_update_acl(self, acl: ACL) -> None:
        acl.validate()
        self._request("PUT", "/api/acl", json_payload=acl.to_dict())

    def delete_acl(self, acl: ACL) -> None:
        acl.validate()
        self._request("DELETE", "/api/acl", json_payload=acl.to_dict())

    # Kafka Connect.

    def get_connect_clusters(self) -> list[dict]:
        clusters = self.get_config().get(CONNECT_CLUSTERS_CONFIG_KEY) or []
        return [cluster for cluster in clusters if isinstance(cluster, dict)]

    def _connect_path(self, cluster_name: str, *parts: object) -> str:
        path = f"/api/proxy-connect/{_segment(cluster_name)}"
        for part in parts:
            path += f"/{_segment(str(part))}"
        return path

    def get_connector_plugins(self, cluster_name: str) -> list:
        return self._request("GET", self._connect_path(cluster_name, "connector-plugins")) or []

    def get_connectors(self, cluster_name: str) -> list[str]:
        names = self._request("GET", self._connect_path(cluster_name, "connectors")) or []
        return [str(name) for name in names]

    def get_connector(self, cluster_name: str, name: str) -> dict:
        return self._request("GET", self._connect_path(cluster_name, "connectors", name))

    def create_connector(self, cluster_name: str, name: str, config: dict) -> dict:
        return self._request(
            "POST",
            self._connect_path(cluster_name, "connectors"),
            json_payload={"name": name, "config": config},
        )

    def update_connector(self, cluster_name: str, name: str, config: dict) -> dict:
        return self._request(
            "PUT",
            self._connect_path(cluster_name, "connectors", name, "config"),
            json_payload=config,
        )

    def get_connector_config(self, cluster_name: str, name: str) -> dict:
        return self._request("GET", self._connect_path(cluster_name, "connectors", name, "config"))

    def get_connector_status(self, cluster_name: str, name: str) -> dict:
        return self._request("GET", self._connect_path(cluster_name, "connectors", name, "status"))

    def pause_connector(self, cluster_name: str, name: str) -> None:
        self._request("PUT", self._connect_path(cluster_name, "connectors", name, "pause"))

    def resume_connector(self, cluster_name: str, name: str) -> None:
        self._request("PUT", self._connect_path(cluster_name, "connectors", name, "resume"))

    def restart_connector(self, cluster_name: str, name: str) -> None:
        self._request("POST", self._connect_path(cluster_name, "connectors", name, "restart"))

    def get_connector_tasks(self, cluster_name: str, name: str) -> list:
        return (
            self._request("GET", self._connect_path(cluster_name, "connectors", name, "tasks"))
            or []
        )

    def get_connector_task_status(self, cluster_name: str, name: str, task_id: int) -> dict:
        return self._request(
            "GET",
            self._connect_path(cluster_name, "connectors", name, "tasks", task_id, "status"),
        )

    def restart_connector_task(self, cluster_name: str, name: str, task_id: int) -> None:
        self._request(
            "POST",
            self._connect_path(cluster_name, "connectors", name, "tasks", task_id, "restart"),
        )

    def delete_connector(self, cluster_name: str, name: str) -> None:
        self._request("DELETE", self._connect_path(cluster_name, "connectors", name))


def _decode_body(response) -> Any:
    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _request_error(response) -> LensesRequestError:
    body: object | None = None
    try:
        body = response.json()
    except ValueError:
        body = None

    detail: object | None = None
    if isinstance(body, dict):
        detail = body.get("message") or body.get("detail") or body.get("error")
    elif body is None:
        text = (response.text or "").strip()
        detail = text or None

    status_code = response.status_code
    if isinstance(detail, str):
        message = f"lenses request failed: {status_code} {detail}"
    else:
        message = f"lenses request failed: {status_code} {response.text}"

    if status_code == 404:
        error_cls: type[LensesRequestError] = ResourceNotFoundError
    elif status_code in (401, 403):
        error_cls = CredentialsError
    else:
        error_cls = LensesRequestError
    return error_cls(message, status_code=status_code, detail=detail, body=body)


__all__ = ["LensesClient", "TOKEN_HEADER"]
