"""
LDAP Facade

Orchestrates the connector, the group resolver and the attribute merger into
the operations a login page needs: authenticate a user, look up a user's
attributes, add attributes from further searches and add group memberships.
"""

import logging
from typing import Any, Dict, List, Optional

from ldap3.utils.dn import escape_rdn

from .. import error_codes
from ..adapters.factory import create_adapter
from ..config import LDAPConfig
from ..diagnostics.invalid_credential_result import CodeMap
from ..exceptions import (
    ConfigurationError,
    EntryNotFoundError,
    InvalidCredentialsError,
    ServiceBindError,
)
from ..models.entry import Entry
from ..models.search_spec import DEFAULT_TIMEOUT
from ..services.attribute_merger import AttributeMerger, encode_binary
from ..services.group_resolver import GroupResolver

logger = logging.getLogger(__name__)

USERNAME_PLACEHOLDER = "%username%"
SEARCH_SCOPES = ("base", "one", "sub")


class LDAPFacade:
    """
    LDAP Facade providing login and attribute lookup on top of one connector.

    Configuration keys (besides the connection keys read by create_adapter):
        - 'search_base': list of base DNs
        - 'search_scope': 'base', 'one' or 'sub' (default: 'sub')
        - 'timeout': per search timeout in seconds (default: 3)
        - 'search_enable': find the user's DN by searching (default: False)
        - 'search_username' / 'search_password' / 'keyring_service': service account
        - 'search_attributes': attributes matched against the username
        - 'search_filter': extra filter AND-ed to the user search
        - 'dn_pattern': DN template with %username%, used when search_enable is False
        - 'attributes': attributes returned for the user (None for all)
        - 'binary_attributes': attributes to base64 encode
        - 'attribute_policy': 'merge', 'add' or 'replace'
        - 'product', 'attribute_map', 'type_map': group resolution settings
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, code_map: Optional[CodeMap] = None) -> None:
        """
        Initialize the facade.

        Args:
            config: Configuration dictionary. If None, loads from environment.
            code_map: Bind error category table for Active Directory connectors

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        self.config = config if config is not None else LDAPConfig.get_config()

        logger.debug(f"Initializing LDAP Facade: {LDAPConfig.mask(self.config)}")

        self.adapter = create_adapter(self.config, code_map=code_map)

        search_base = self.config.get("search_base", [])
        self.search_base: List[str] = [search_base] if isinstance(search_base, str) else list(search_base)

        scope = self.config.get("search_scope", "sub")
        if scope not in SEARCH_SCOPES:
            raise ConfigurationError(f"search_scope must be one of: {list(SEARCH_SCOPES)}")

        timeout = self.config.get("timeout", DEFAULT_TIMEOUT)
        if not isinstance(timeout, int) or timeout < 0:
            raise ConfigurationError(f"timeout must be a non-negative integer, got {timeout!r}")

        self.options = {"scope": scope, "timeout": timeout}

        self.search_username: Optional[str] = self.config.get("search_username")
        self._search_password: Optional[str] = None

        self.merger = AttributeMerger(
            binary_attributes=self.config.get("binary_attributes", []),
            policy=self.config.get("attribute_policy", "merge"),
        )

        self._group_resolver: Optional[GroupResolver] = None

    def __enter__(self) -> "LDAPFacade":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        self.adapter.unbind()

    def _get_search_password(self) -> Optional[str]:
        if self._search_password is None:
            self._search_password = LDAPConfig.get_password(
                self.search_username,
                self.config.get("search_password"),
                self.config.get("keyring_service"),
            )
        return self._search_password

    def _service_bind(self) -> None:
        try:
            self.adapter.bind(self.search_username, self._get_search_password())
        except InvalidCredentialsError as e:
            raise ServiceBindError(
                "Unable to bind using the configured search username and password."
            ) from e

    @property
    def group_resolver(self) -> GroupResolver:
        if self._group_resolver is None:
            self._group_resolver = GroupResolver(
                self.adapter,
                self.search_base,
                product=self.config.get("product"),
                attribute_map=self.config.get("attribute_map"),
                type_map=self.config.get("type_map"),
                options=self.options,
                search_username=self.search_username,
                search_password=self._get_search_password(),
            )
        return self._group_resolver

    # Authentication

    def _build_search_filter(self, username: str) -> str:
        search_attributes = self.config.get("search_attributes") or []
        if not search_attributes:
            raise ConfigurationError("search_attributes must name at least one attribute")

        escaped = self.adapter.escape_filter_value(username, True)
        search_filter = "(|" + "".join(f"({attr}={escaped})" for attr in search_attributes) + ")"

        extra_filter = self.config.get("search_filter")
        if extra_filter:
            search_filter = f"(&{search_filter}{extra_filter})"

        return search_filter

    def _dn_from_pattern(self, username: str) -> str:
        dn_pattern = self.config.get("dn_pattern")
        if not dn_pattern:
            raise ConfigurationError("dn_pattern is required when search_enable is False")
        return dn_pattern.replace(USERNAME_PLACEHOLDER, escape_rdn(username))

    def _find_user(self, search_filter: str) -> Entry:
        try:
            return self.adapter.search(self.search_base, search_filter, self.options, False)
        except EntryNotFoundError as e:
            logger.debug(f"User lookup failed: {e}")
            raise InvalidCredentialsError(error_codes.WRONGUSERPASS) from e

    def login(self, username: str, password: str) -> Dict[str, List[Any]]:
        """
        Authenticate a user and return their attributes.

        Args:
            username: The username the user typed
            password: The password the user typed

        Returns:
            Dict[str, List[Any]]: The user's attributes

        Raises:
            InvalidCredentialsError: If the user is unknown or the bind was rejected
            AmbiguousResultError: If the username matched more than one entry
            ServiceBindError: If the service account could not bind
            DirectoryConnectionError: If no server could be reached
        """
        if self.config.get("search_enable", False):
            self._service_bind()
            dn = self._find_user(self._build_search_filter(username)).dn
        else:
            dn = self._dn_from_pattern(username)

        self.adapter.bind(dn, password)
        logger.info(f"User '{username}' authenticated as '{dn}'")

        options = dict(self.options, scope="base")
        entry = self.adapter.search([dn], "(objectClass=*)", options, False)

        return self._process_attributes(entry)

    def get_attributes(self, username: str) -> Dict[str, List[Any]]:
        """
        Look up a user's attributes using the service account.

        Raises:
            InvalidCredentialsError: If the user cannot be found
        """
        self._service_bind()

        if self.config.get("search_enable", False):
            search_filter = self._build_search_filter(username)
        else:
            search_filter = f"({self._dn_from_pattern(username)})"

        return self._process_attributes(self._find_user(search_filter))

    def _process_attributes(self, entry: Entry) -> Dict[str, List[Any]]:
        wanted = self.config.get("attributes")
        if wanted is None:
            result = {name: list(values) for name, values in entry.attributes.items()}
        else:
            result = {
                name: list(values) for name, values in entry.attributes.items() if name in wanted
            }

        for name in self.merger.binary_attributes:
            if name in result:
                raw = entry.get_raw(name)
                result[name] = encode_binary(raw if raw is not None else result[name])

        return result

    # Attribute enrichment

    def add_attributes_from_ldap(
        self,
        attributes: Dict[str, List[Any]],
        search_filter: str,
        search_attributes: Optional[Dict[str, str]] = None,
        policy: Optional[str] = None,
    ) -> Dict[str, List[Any]]:
        """
        Search the directory and merge the results into the user's attributes.

        Placeholders of the form %name% in ``search_filter`` are replaced by the
        escaped first value of that attribute. If a placeholder cannot be
        resolved nothing is searched and a copy of ``attributes`` is returned.

        Args:
            attributes: The user's current attributes
            search_filter: Filter template, e.g. '(member=%distinguishedName%)'
            search_attributes: LDAP attribute -> target attribute to copy (None for all)
            policy: 'merge', 'add' or 'replace' (defaults to the configured policy)

        Returns:
            Dict[str, List[Any]]: The merged attributes
        """
        search_filter = self._fill_placeholders(search_filter, attributes)
        if "%" in search_filter:
            logger.info(f"There are non-existing attributes in the search filter. ({search_filter})")
            return self.merger.merge(attributes, {})

        self._service_bind()

        options = dict(self.options)
        if search_attributes is not None:
            options["attributes"] = list(search_attributes.keys())

        entries = self.adapter.search_for_multiple(self.search_base, search_filter, options, True)

        merger = AttributeMerger(
            attribute_map=search_attributes,
            binary_attributes=self.merger.binary_attributes,
            policy=policy or self.merger.policy,
        )
        return merger.merge_entries(attributes, entries)

    def _fill_placeholders(self, search_filter: str, attributes: Dict[str, List[Any]]) -> str:
        for name, values in attributes.items():
            placeholder = f"%{name}%"
            if placeholder not in search_filter:
                continue
            first = values[0] if isinstance(values, list) and values else None
            replacement = self.adapter.escape_filter_value(first, True) if first else ""
            search_filter = search_filter.replace(placeholder, replacement)
        return search_filter

    def add_groups(self, attributes: Dict[str, List[Any]]) -> Dict[str, List[Any]]:
        """Add the user's groups to their attributes. See GroupResolver.add_groups."""
        return self.group_resolver.add_groups(attributes)

    def resolve_groups(self, attributes: Dict[str, List[Any]]) -> List[str]:
        return self.group_resolver.resolve_groups(attributes)


class LDAPMultiFacade:
    """
    Pick one of several LDAP facades by organization.

    ``mapping`` maps an organization id to {'config': {...}, 'description': '...'}.
    """

    def __init__(
        self,
        mapping: Dict[str, Dict[str, Any]],
        include_organization_in_username: bool = False,
    ) -> None:
        if not mapping:
            raise ConfigurationError("At least one organization must be configured")

        self.include_organization_in_username = include_organization_in_username
        self.organizations: Dict[str, str] = {}
        self._configs: Dict[str, Dict[str, Any]] = {}

        for organization, entry in mapping.items():
            if "config" not in entry:
                raise ConfigurationError(f"Organization '{organization}' has no 'config'")
            self._configs[organization] = entry["config"]
            self.organizations[organization] = entry.get("description", organization)

        logger.info(f"LDAP Multi Facade initialized with {len(self.organizations)} organization(s)")

    def get_organizations(self) -> Dict[str, str]:
        return dict(self.organizations)

    def login(self, username: str, password: str, organization: str) -> Dict[str, List[Any]]:
        """
        Authenticate against the directory of ``organization``.

        Raises:
            InvalidCredentialsError: If the organization is unknown or authentication fails
        """
        if organization not in self._configs:
            logger.debug(f"Unknown organization '{organization}'")
            raise InvalidCredentialsError(error_codes.WRONGUSERPASS)

        if self.include_organization_in_username:
            username = f"{username}@{organization}"

        with LDAPFacade(self._configs[organization]) as facade:
            return facade.login(username, password)
