import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Sequence, Tuple, Union

from ..exceptions import ConfigurationError

ENDPOINT_PATTERN = re.compile(r"^ldaps?://", re.IGNORECASE)
ENCRYPTION_MODES = ("none", "ssl", "tls")

DEFAULT_OPTIONS = {
    "network_timeout": 3,
    "referrals": False,
}


@dataclass(frozen=True)
class ServerSet:
    """
    Ordered set of directory endpoints plus the settings to reach them.

    Endpoints are validated on construction so a bad URI fails before any
    network I/O is attempted.
    """

    connection_strings: Union[str, Sequence[str]]
    encryption: str = "ssl"
    version: int = 3
    extension: str = "ldap3"
    debug: bool = False
    options: Mapping[str, Any] = field(default_factory=lambda: dict(DEFAULT_OPTIONS))

    def __post_init__(self) -> None:
        endpoints = self.connection_strings
        if isinstance(endpoints, str):
            endpoints = endpoints.split()
        endpoints = tuple(endpoints)

        if not endpoints:
            raise ConfigurationError("At least one LDAP endpoint must be configured")

        for endpoint in endpoints:
            if not isinstance(endpoint, str) or not ENDPOINT_PATTERN.match(endpoint):
                raise ConfigurationError(
                    f"Invalid LDAP endpoint '{endpoint}': expected an ldap:// or ldaps:// URI"
                )

        if self.encryption not in ENCRYPTION_MODES:
            raise ConfigurationError(
                f"encryption must be one of: {list(ENCRYPTION_MODES)}, got '{self.encryption}'"
            )

        if isinstance(self.version, bool) or not isinstance(self.version, int) or self.version < 1:
            raise ConfigurationError(f"version must be a positive integer, got {self.version!r}")

        object.__setattr__(self, "connection_strings", endpoints)
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    @property
    def endpoints(self) -> Tuple[str, ...]:
        return self.connection_strings

    @property
    def network_timeout(self) -> Any:
        return self.options.get("network_timeout", DEFAULT_OPTIONS["network_timeout"])

    @property
    def referrals(self) -> bool:
        return bool(self.options.get("referrals", DEFAULT_OPTIONS["referrals"]))
