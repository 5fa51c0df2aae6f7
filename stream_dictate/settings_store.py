"""Persistent settings storage for stream-dictate."""

import json
import logging
from pathlib import Path
from typing import Any

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from stream_dictate.config import (
    DEFAULT_LLM_DEBUG,
    DEFAULT_LLM_ENABLED,
    DEFAULT_LLM_ENDPOINT,
    DEFAULT_LLM_MODEL,
    DEFAULT_LLM_TEMP,
    DEFAULT_LLM_TIMEOUT,
    ReconcilerConfig,
)

logger = logging.getLogger(__name__)

SETTINGS_FILE = Path.home() / ".stream_dictate/stream_dictate_settings.json"

# Service name for keyring storage
SERVICE_NAME = "StreamDictate"
LLM_API_KEY = "llm_api_key"

# Settings keys that are kept in the system keyring instead of the JSON file
SECURE_KEYS = {"llm_key": LLM_API_KEY}


class CredentialStorageError(Exception):
    """Raised when the system keyring cannot be used."""


def default_settings() -> dict[str, Any]:
    """Settings used when nothing (or something unreadable) is saved."""
    defaults: dict[str, Any] = {
        "llm_enabled": DEFAULT_LLM_ENABLED,
        "llm_endpoint": DEFAULT_LLM_ENDPOINT,
        "llm_model": DEFAULT_LLM_MODEL,
        "llm_temp": DEFAULT_LLM_TEMP,
        "llm_timeout": DEFAULT_LLM_TIMEOUT,
        "llm_debug": DEFAULT_LLM_DEBUG,
        "block_mode": False,
        "shortcuts_enabled": True,
    }
    defaults.update(ReconcilerConfig().to_settings())
    return defaults


def load_settings() -> dict[str, Any]:
    """Load saved settings from disk, returning defaults on failure.

    A plaintext API key found in the file is moved into the keyring.
    """
    defaults = default_settings()

    try:
        if SETTINGS_FILE.is_file():
            settings = json.loads(SETTINGS_FILE.read_text(encoding="utf-8"))
            if not isinstance(settings, dict):
                raise ValueError("settings file does not contain an object")

            for key, value in defaults.items():
                settings.setdefault(key, value)

            _migrate_secure_settings(settings)
            return settings
    except (OSError, UnicodeDecodeError, ValueError) as e:
        # OSError: File access errors
        # UnicodeDecodeError: Invalid UTF-8 encoding
        # ValueError: Invalid JSON (JSONDecodeError) or unexpected structure
        logger.error(f"Could not read saved settings: {e}")
    return defaults


def save_settings(settings: dict[str, Any]) -> bool:
    """Persist settings to disk. Returns True on success, False otherwise.

    Secure settings go to the keyring and never reach the JSON file.
    """
    try:
        for key, credential_key in SECURE_KEYS.items():
            value = settings.get(key)
            if isinstance(value, str) and value.strip():
                try:
                    store_credential(credential_key, value)
                except CredentialStorageError as e:
                    logger.warning(f"Failed to store {key} in keyring: {e}")

        to_save = {k: v for k, v in settings.items() if k not in SECURE_KEYS}
        SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
        SETTINGS_FILE.write_text(json.dumps(to_save, indent=2), encoding="utf-8")
        return True
    except (OSError, UnicodeEncodeError, TypeError, ValueError) as e:
        # TypeError/ValueError: Non-serializable values in settings
        logger.error(f"Could not save settings: {e}")
        return False


def get_llm_api_key() -> str | None:
    """Return the stored LLM API key, or None when unavailable."""
    try:
        return retrieve_credential(LLM_API_KEY)
    except CredentialStorageError as e:
        logger.warning(f"Failed to retrieve LLM API key: {e}")
        return None


def _migrate_secure_settings(settings: dict[str, Any]) -> None:
    """Move plaintext secure values into the keyring (modifies ``settings``)."""
    for key, credential_key in SECURE_KEYS.items():
        value = settings.get(key)
        if not isinstance(value, str) or not value.strip():
            continue
        try:
            store_credential(credential_key, value)
        except CredentialStorageError as e:
            logger.warning(f"Failed to migrate {key}: {e}")
            continue
        del settings[key]
        logger.info(f"Migrated {key} to secure storage")


# ----------------------------------------------------------------------
# Keyring helpers
# ----------------------------------------------------------------------
def store_credential(key: str, value: str) -> None:
    """Store a credential in the system keyring.

    Raises:
        CredentialStorageError: If the keyring rejects the value
    """
    try:
        keyring.set_password(SERVICE_NAME, key, value)
        logger.info(f"Stored credential: {key}")
    except KeyringError as e:
        raise CredentialStorageError(f"Failed to store credential: {e}") from e


def retrieve_credential(key: str) -> str | None:
    """Fetch a credential from the system keyring, None when absent."""
    try:
        return keyring.get_password(SERVICE_NAME, key)
    except KeyringError as e:
        raise CredentialStorageError(f"Failed to retrieve credential: {e}") from e


def delete_credential(key: str) -> None:
    """Remove a credential; a missing credential is not an error."""
    try:
        keyring.delete_password(SERVICE_NAME, key)
        logger.info(f"Deleted credential: {key}")
    except PasswordDeleteError:
        logger.debug(f"No credential to delete: {key}")
    except KeyringError as e:
        raise CredentialStorageError(f"Failed to delete credential: {e}") from e
