"""lenses-cli public surface."""

from lenses_cli.acl import ACL, ALLOWED_OPERATIONS, ALLOWED_RESOURCE_TYPES
from lenses_cli.client import LensesClient
from lenses_cli.connectors import ConnectorPayload
from lenses_cli.crypto import decrypt_string, encrypt_string
from lenses_cli.errors import (
    CredentialsError,
    EncryptionError,
    LensesError,
    LensesRequestError,
    LensesUnavailableError,
    ResourceNotFoundError,
    ValidationError,
)

__all__ = [
    "ACL",
    "ALLOWED_OPERATIONS",
    "ALLOWED_RESOURCE_TYPES",
    "LensesClient",
    "ConnectorPayload",
    "encrypt_string",
    "decrypt_string",
    "LensesError",
    "LensesUnavailableError",
    "LensesRequestError",
    "ResourceNotFoundError",
    "CredentialsError",
    "ValidationError",
    "EncryptionError",
]
