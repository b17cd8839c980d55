from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from utils.errors import NoIdeaError
from utils.logger import logger

KEYRING_NAMESPACE = "noidea"


class CredentialStore:
    """
    Thin wrapper around the system keyring.

    Secrets are stored under the ``noidea`` keyring namespace, keyed by a
    service name such as ``noidea-github-token``.
    """

    def __init__(self, namespace: str = KEYRING_NAMESPACE):
        self.namespace = namespace

    def get(self, service_name: str) -> Optional[str]:
        """Returns the stored secret, or None if absent or the keyring is unavailable."""
        try:
            return keyring.get_password(self.namespace, service_name)
        except KeyringError as e:
            logger.warning(f"Could not read '{service_name}' from keyring: {e}")
            return None

    def store(self, service_name: str, secret: str) -> None:
        try:
            keyring.set_password(self.namespace, service_name, secret)
        except KeyringError as e:
            raise NoIdeaError(f"Failed to store '{service_name}' in keyring: {e}") from e

    def delete(self, service_name: str) -> None:
        """Removes a secret. Deleting a missing secret is not an error."""
        try:
            keyring.delete_password(self.namespace, service_name)
        except PasswordDeleteError:
            logger.debug(f"No '{service_name}' entry to delete from keyring.")
        except KeyringError as e:
            raise NoIdeaError(f"Failed to delete '{service_name}' from keyring: {e}") from e


def mask_secret(secret: str) -> str:
    """Masks a secret for display, keeping the first and last four characters."""
    if len(secret) <= 8:
        return "****"
    return f"{secret[:4]}...{secret[-4:]}"
