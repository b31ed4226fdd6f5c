"""Kafka Access Control List payloads and validation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from lenses_cli.errors import ValidationError

ResourceType = Literal["Topic", "Group", "Cluster", "TransactionalId"]
PermissionType = Literal["Allow", "Deny"]

ALLOWED_RESOURCE_TYPES: tuple[ResourceType, ...] = (
    "Topic",
    "Group",
    "Cluster",
    "TransactionalId",
)

ALLOWED_PERMISSION_TYPES: tuple[PermissionType, ...] = ("Allow", "Deny")

ALLOWED_OPERATIONS: tuple[str, ...] = (
    "All",
    "Read",
    "Write",
    "Describe",
    "Create",
    "Delete",
    "Alter",
    "DescribeConfigs",
    "AlterConfigs",
    "ClusterAction",
    "IdempotentWrite",
)

# Operations Kafka accepts per resource type.
OPERATIONS_BY_RESOURCE_TYPE: dict[str, tuple[str, ...]] = {
    "Topic": ("All", "Read", "Write", "Describe", "Delete", "DescribeConfigs", "AlterConfigs"),
    "Group": ("All", "Read", "Describe", "Delete"),
    "Cluster": (
        "All",
        "Create",
        "ClusterAction",
        "DescribeConfigs",
        "AlterConfigs",
        "IdempotentWrite",
        "Alter",
        "Describe",
    ),
    "TransactionalId": ("All", "Describe", "Write"),
}

DEFAULT_ACL_HOST = "*"


def _normalize_choice(value: str, allowed: tuple[str, ...], field_name: str) -> str:
    lowered = value.strip().lower()
    for candidate in allowed:
        if candidate.lower() == lowered:
            return candidate
    raise ValidationError(f"{field_name} must be one of: {', '.join(allowed)}")


def normalize_resource_type(value: str) -> str:
    return _normalize_choice(value, ALLOWED_RESOURCE_TYPES, "resourceType")


def normalize_permission_type(value: str) -> str:
    return _normalize_choice(value, ALLOWED_PERMISSION_TYPES, "permissionType")


def normalize_operation(value: str) -> str:
    return _normalize_choice(value, ALLOWED_OPERATIONS, "operation")


@dataclass
class ACL:
    resource_type: str = ""
    resource_name: str = ""
    principal: str = ""
    permission_type: str = ""
    host: str = DEFAULT_ACL_HOST
    operation: str = ""

    def validate(self) -> None:
        """Normalize enum fields in place and check the operation fits the resource."""
        missing = [
            flag
            for flag, value in (
                ("resourceType", self.resource_type),
                ("resourceName", self.resource_name),
                ("principal", self.principal),
                ("permissionType", self.permission_type),
                ("operation", self.operation),
            )
            if not str(value or "").strip()
        ]
        if missing:
            raise ValidationError(f"required flags missing: {', '.join(missing)}")

        self.resource_type = normalize_resource_type(self.resource_type)
        self.permission_type = normalize_permission_type(self.permission_type)
        self.operation = normalize_operation(self.operation)
        if not (self.host or "").strip():
            self.host = DEFAULT_ACL_HOST

        allowed = OPERATIONS_BY_RESOURCE_TYPE[self.resource_type]
        if self.operation not in allowed:
            raise ValidationError(
                f"operation '{self.operation}' is not valid for resource type "
                f"'{self.resource_type}', allowed: {', '.join(allowed)}"
            )

    def to_dict(self) -> dict[str, str]:
        return {
            "resourceType": self.resource_type,
            "resourceName": self.resource_name,
            "principal": self.principal,
            "permissionType": self.permission_type,
            "host": self.host,
            "operation": self.operation,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ACL":
        if not isinstance(payload, dict):
            raise ValidationError("ACL payload must be an object")
        return cls(
            resource_type=str(payload.get("resourceType") or ""),
            resource_name=str(payload.get("resourceName") or ""),
            principal=str(payload.get("principal") or ""),
            permission_type=str(payload.get("permissionType") or ""),
            host=str(payload.get("host") or DEFAULT_ACL_HOST),
            operation=str(payload.get("operation") or ""),
        )
