import logging
from typing import Any, Dict, Optional

from ..diagnostics.invalid_credential_result import CodeMap
from ..exceptions import ConfigurationError
from ..models.server_set import DEFAULT_OPTIONS, ServerSet
from .active_directory_adapter import ActiveDirectoryAdapter
from .ldap_adapter import LDAPAdapter

logger = logging.getLogger(__name__)

CONNECTORS = {
    "ldap": LDAPAdapter,
    "activedirectory": ActiveDirectoryAdapter,
}


def create_server_set(config: Dict[str, Any]) -> ServerSet:
    """
    Build a ServerSet from a configuration dictionary.

    Required keys:
        - 'connection_string': space separated endpoint URIs (or a list)

    Optional keys with defaults:
        - 'encryption': 'none', 'ssl' or 'tls' (default: 'ssl')
        - 'version': protocol version (default: 3)
        - 'extension': backend library (default: 'ldap3')
        - 'debug': enable backend debug logging (default: False)
        - 'options': backend options (default: network_timeout=3, referrals=False)
    """
    if not isinstance(config, dict):
        raise TypeError("Configuration must be a dictionary")

    if "connection_string" not in config:
        raise ConfigurationError("Missing required configuration key: 'connection_string'")

    return ServerSet(
        connection_strings=config["connection_string"],
        encryption=config.get("encryption", "ssl"),
        version=config.get("version", 3),
        extension=config.get("extension", "ldap3"),
        debug=config.get("debug", False),
        options=config.get("options", dict(DEFAULT_OPTIONS)),
    )


def create_adapter(config: Dict[str, Any], code_map: Optional[CodeMap] = None) -> LDAPAdapter:
    """
    Create the adapter selected by the 'connector' key ('ldap' or 'activedirectory').

    Args:
        config: Connection configuration, see create_server_set
        code_map: Bind error category table for the Active Directory adapter

    Returns:
        LDAPAdapter: A configured, unbound adapter

    Raises:
        ConfigurationError: If the configuration or the connector name is invalid
    """
    server_set = create_server_set(config)

    connector = str(config.get("connector", "ldap")).lower()
    if connector not in CONNECTORS:
        raise ConfigurationError(
            f"Unsupported connector '{connector}', expected one of: {list(CONNECTORS.keys())}"
        )

    logger.debug(f"Creating '{connector}' connector")

    if connector == "activedirectory":
        return ActiveDirectoryAdapter(server_set, code_map=code_map)
    return CONNECTORS[connector](server_set)
