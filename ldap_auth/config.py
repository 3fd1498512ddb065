import logging
import os
from typing import Any, Dict, List, Optional

import keyring
from dotenv import load_dotenv
from keyring.errors import KeyringError

load_dotenv()

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = ("search_password", "password")


def _split(value: Optional[str], separator: str) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(separator) if part.strip()]


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class LDAPConfig:
    """Centralized LDAP configuration management."""

    @staticmethod
    def get_config() -> Dict[str, Any]:
        """Get LDAP configuration from environment variables."""
        connector = os.getenv("LDAP_CONNECTOR", "ldap").lower()

        config = {
            "connection_string": os.getenv("LDAP_CONNECTION_STRING", ""),
            "encryption": os.getenv("LDAP_ENCRYPTION", "ssl").lower(),
            "version": int(os.getenv("LDAP_VERSION", "3")),
            "connector": connector,
            "debug": _as_bool(os.getenv("LDAP_DEBUG")),
            "options": {
                "network_timeout": int(os.getenv("LDAP_NETWORK_TIMEOUT", "3")),
                "referrals": _as_bool(os.getenv("LDAP_REFERRALS")),
                "tls_validate": _as_bool(os.getenv("LDAP_TLS_VALIDATE"), default=True),
            },
            "timeout": int(os.getenv("LDAP_TIMEOUT", "3")),
            "search_base": _split(os.getenv("LDAP_SEARCH_BASE"), ";"),
            "search_scope": os.getenv("LDAP_SEARCH_SCOPE", "sub").lower(),
            "search_enable": _as_bool(os.getenv("LDAP_SEARCH_ENABLE")),
            "search_username": os.getenv("LDAP_SEARCH_USERNAME"),
            "search_password": os.getenv("LDAP_SEARCH_PASSWORD"),
            "search_attributes": _split(os.getenv("LDAP_SEARCH_ATTRIBUTES", "uid"), ","),
            "search_filter": os.getenv("LDAP_SEARCH_FILTER"),
            "dn_pattern": os.getenv("LDAP_DN_PATTERN"),
            "keyring_service": os.getenv("LDAP_KEYRING_SERVICE"),
            "product": os.getenv("LDAP_PRODUCT"),
            "attribute_policy": os.getenv("LDAP_ATTRIBUTE_POLICY", "merge").lower(),
            "binary_attributes": _split(os.getenv("LDAP_BINARY_ATTRIBUTES"), ","),
        }

        ca_certs_file = os.getenv("LDAP_CA_CERTS_FILE")
        if ca_certs_file:
            config["options"]["ca_certs_file"] = ca_certs_file

        return config

    @staticmethod
    def get_password(
        username: Optional[str],
        password: Optional[str] = None,
        keyring_service: Optional[str] = None,
    ) -> Optional[str]:
        """
        Return the password for a service account.

        An explicitly configured password wins; otherwise the password stored in
        the keyring under ``keyring_service``/``username`` is used.

        Args:
            username: Account the password belongs to
            password: Explicitly configured password, if any
            keyring_service: Keyring service name to look the password up in

        Returns:
            Optional[str]: The password, or None if none is available
        """
        if password is not None:
            return password

        if not keyring_service or not username:
            return None

        try:
            stored = keyring.get_password(keyring_service, username)
        except KeyringError as e:
            logger.warning(f"Could not retrieve password from keyring: {e}")
            return None

        if stored:
            logger.debug("Using password from keyring")
        return stored

    @staticmethod
    def mask(config: Dict[str, Any]) -> Dict[str, Any]:
        """Copy of ``config`` safe to log: passwords replaced by asterisks."""
        masked = dict(config)
        for key in SENSITIVE_KEYS:
            if key in masked:
                masked[key] = "********" if masked[key] else ""
        return masked
