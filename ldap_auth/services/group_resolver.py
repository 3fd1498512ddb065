"""
Group Resolver

Finds the groups a user belongs to, using the best method the directory
product offers:

- ActiveDirectory: one search using the LDAP_MATCHING_RULE_IN_CHAIN rule, the
  server computes nested membership itself
- OpenLDAP: one search on the group membership attribute, no nesting
- anything else: walk the user's memberOf values and each group's own memberOf
  values, one base-scope lookup per DN, visiting every DN at most once

Every strategy ends with a list of group entries; the resolver turns those into
a de-duplicated list of identifiers taken from the configured return attribute.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Set

from ..adapters.ldap_adapter import LDAPAdapter
from ..exceptions import ConfigurationError
from ..models.entry import Entry

logger = logging.getLogger(__name__)

# LDAP_MATCHING_RULE_IN_CHAIN
AD_MATCHING_RULE_IN_CHAIN = "1.2.840.113556.1.4.1941"

DEFAULT_ATTRIBUTE_MAP = {
    "dn": "distinguishedName",
    "groups": "groups",
    "member": "member",
    "memberOf": "memberOf",
    "name": "name",
    "return": "distinguishedName",
    "type": "objectClass",
    "username": "sAMAccountName",
}

DEFAULT_TYPE_MAP = {
    "group": "group",
    "user": "user",
}

DEFAULT_OPTIONS = {
    "scope": "sub",
    "timeout": 3,
}


class GroupResolutionState:
    """DNs already looked at, and the groups found so far, for one resolution call."""

    def __init__(self) -> None:
        self.visited: Set[str] = set()
        self.groups: List[Entry] = []

    def visit(self, dn: str) -> bool:
        """Mark ``dn`` as visited. Returns False if it was visited before."""
        if dn in self.visited:
            return False
        self.visited.add(dn)
        return True


class ResolutionStrategy(ABC):
    """Shared interface of the product specific membership lookups."""

    product: Optional[str] = None

    def __init__(
        self,
        adapter: LDAPAdapter,
        search_base: List[str],
        attribute_map: Dict[str, str],
        type_map: Dict[str, str],
        options: Dict[str, Any],
    ):
        self.adapter = adapter
        self.search_base = search_base
        self.attribute_map = attribute_map
        self.type_map = type_map
        self.options = options

    @abstractmethod
    def find_group_entries(self, attributes: Dict[str, Any]) -> List[Entry]:
        """Return the entries of every group the user described by ``attributes`` belongs to."""
        pass

    @staticmethod
    def _first_value(values: Any) -> Optional[str]:
        if isinstance(values, (list, tuple)):
            return values[0] if values else None
        return values


class ActiveDirectoryStrategy(ResolutionStrategy):
    """Let Active Directory compute transitive membership with the in-chain matching rule."""

    product = "ActiveDirectory"

    def find_group_entries(self, attributes: Dict[str, Any]) -> List[Entry]:
        dn_attribute = self.attribute_map["dn"]

        if dn_attribute not in attributes:
            logger.warning(
                f"The DN attribute [{dn_attribute}] is not defined in the user's attributes: "
                f"{', '.join(attributes.keys())}"
            )
            return []

        user_dn = self._first_value(attributes[dn_attribute])
        if not user_dn:
            logger.warning(
                f"The DN attribute [{dn_attribute}] does not have a value: {attributes[dn_attribute]!r}"
            )
            return []

        logger.debug(
            f"Searching ActiveDirectory group membership. DN: {user_dn} "
            f"DN Attribute: {dn_attribute} Member Attribute: {self.attribute_map['member']} "
            f"Type Attribute: {self.attribute_map['type']} Type Value: {self.type_map['group']} "
            f"Base: {'; '.join(self.search_base)}"
        )

        search_filter = (
            f"(&({self.attribute_map['type']}={self.type_map['group']})"
            f"({self.attribute_map['member']}:{AD_MATCHING_RULE_IN_CHAIN}:="
            f"{self.adapter.escape_filter_value(user_dn, True)}))"
        )

        return self.adapter.search_for_multiple(self.search_base, search_filter, self.options, True)


class OpenLDAPStrategy(ResolutionStrategy):
    """Reverse lookup on the group membership attribute, without nesting."""

    product = "OpenLDAP"

    def find_group_entries(self, attributes: Dict[str, Any]) -> List[Entry]:
        username_attribute = self.attribute_map["username"]
        member_of_attribute = self.attribute_map["memberOf"]

        username = self._first_value(attributes.get(username_attribute))
        if not username:
            logger.warning(
                f"The username attribute [{username_attribute}] is not defined in the user's attributes: "
                f"{', '.join(attributes.keys())}"
            )
            return []

        logger.debug(
            f"Searching for groups in base [{', '.join(self.search_base)}] with filter "
            f"({member_of_attribute}={username})"
        )

        search_filter = (
            f"(&({member_of_attribute}={self.adapter.escape_filter_value(username, True)}))"
        )

        return self.adapter.search_for_multiple(self.search_base, search_filter, self.options, True)


class GenericStrategy(ResolutionStrategy):
    """
    Walk memberOf values client side.

    Each DN is looked up with a base-scope search. Entries whose type attribute
    does not contain the group type are dropped and not descended into. A DN is
    marked visited before it is fetched, so membership cycles terminate.
    """

    def find_group_entries(self, attributes: Dict[str, Any]) -> List[Entry]:
        member_of_attribute = self.attribute_map["memberOf"]

        if member_of_attribute not in attributes:
            raise ConfigurationError(
                f"The memberOf attribute [{member_of_attribute}] is not defined in the user's "
                f"attributes: [{', '.join(attributes.keys())}]"
            )

        member_of = attributes[member_of_attribute]
        if not isinstance(member_of, (list, tuple)):
            raise ConfigurationError(
                f"The memberOf attribute [{member_of_attribute}] is not a list of group DNs; {member_of!r}"
            )

        logger.debug(
            f"Checking DNs for groups. DNs: {'; '.join(member_of)} Attributes: "
            f"{member_of_attribute}, {self.attribute_map['type']} Group Type: {self.type_map['group']}"
        )

        state = GroupResolutionState()
        self._walk(member_of, state)
        return state.groups

    def _walk(self, member_of: Sequence[str], state: GroupResolutionState) -> None:
        # Depth first, in the same order a recursive descent would visit the DNs
        stack = list(reversed(member_of))

        while stack:
            dn = stack.pop()
            if not state.visit(dn):
                continue

            entry = self._fetch(dn)
            if entry is None or not self._is_group(entry):
                continue

            state.groups.append(entry)
            sub_groups = entry.get_attribute(self.attribute_map["memberOf"], [])
            stack.extend(reversed(sub_groups))

    def _fetch(self, dn: str) -> Optional[Entry]:
        options = dict(self.options)
        options["scope"] = "base"
        options["attributes"] = list(
            dict.fromkeys(
                [
                    self.attribute_map["type"],
                    self.attribute_map["name"],
                    self.attribute_map["memberOf"],
                    self.attribute_map["return"],
                ]
            )
        )

        entry = self.adapter.search(
            [dn],
            f"({self.attribute_map['type']}={self.type_map['group']})",
            options,
            True,
        )
        if entry is None:
            # Probably the DN does not exist within the reach of this connection
            logger.debug(f"No group found at DN '{dn}'")
        return entry

    def _is_group(self, entry: Entry) -> bool:
        types = entry.get_attribute(self.attribute_map["type"])
        if not types:
            # Server did not return the type; the filter already required it
            return True
        group_type = self.type_map["group"].lower()
        return any(str(value).lower() == group_type for value in types)


PRODUCT_STRATEGIES = {
    "activedirectory": ActiveDirectoryStrategy,
    "openldap": OpenLDAPStrategy,
}


class GroupResolver:
    """
    Resolve a user's group memberships into a list of group identifiers.

    The strategy is picked once, from the product label, when the resolver is
    created. Each call to resolve_groups owns its own resolution state.
    """

    def __init__(
        self,
        adapter: LDAPAdapter,
        search_base: Sequence[str],
        product: Optional[str] = None,
        attribute_map: Optional[Dict[str, str]] = None,
        type_map: Optional[Dict[str, str]] = None,
        options: Optional[Dict[str, Any]] = None,
        search_username: Optional[str] = None,
        search_password: Optional[str] = None,
    ):
        """
        Initialize the resolver.

        Args:
            adapter: Connector used for every search
            search_base: Base DNs to search for groups
            product: 'ActiveDirectory', 'OpenLDAP' or None for the generic walk
            attribute_map: Overrides for DEFAULT_ATTRIBUTE_MAP
            type_map: Overrides for DEFAULT_TYPE_MAP
            options: Search options ('scope', 'timeout', ...)
            search_username: DN to bind as before searching (None for anonymous)
            search_password: Password for search_username
        """
        if isinstance(search_base, str):
            search_base = [search_base]

        self.adapter = adapter
        self.search_base = list(search_base or [])
        self.product = product
        self.attribute_map = {**DEFAULT_ATTRIBUTE_MAP, **(attribute_map or {})}
        self.type_map = {**DEFAULT_TYPE_MAP, **(type_map or {})}
        self.options = {**DEFAULT_OPTIONS, **(options or {})}
        self.search_username = search_username
        self.search_password = search_password

        strategy_class = PRODUCT_STRATEGIES.get(str(product or "").lower(), GenericStrategy)
        self.strategy: ResolutionStrategy = strategy_class(
            adapter, self.search_base, self.attribute_map, self.type_map, self.options
        )

        logger.debug(f"Attribute map created: {self.attribute_map}")
        logger.debug(f"Type map created: {self.type_map}")

    def resolve_groups(self, attributes: Dict[str, Any]) -> List[str]:
        """
        Find the groups of the user described by ``attributes``.

        The adapter is bound with the configured search credentials first,
        unless none are configured and the adapter already holds a session.

        Args:
            attributes: The user's attributes, name -> list of values

        Returns:
            List[str]: Group identifiers, de-duplicated, in discovery order

        Raises:
            ConfigurationError: If the generic strategy lacks a usable memberOf attribute
            DirectoryConnectionError: If the directory cannot be reached
        """
        logger.debug(
            f"Checking for groups using the {type(self.strategy).__name__} for product '{self.product}'"
        )

        if self.search_username is not None or not self.adapter.is_bound:
            self.adapter.bind(self.search_username, self.search_password)

        entries = self.strategy.find_group_entries(attributes)

        groups: List[str] = []
        for entry in entries:
            identifier = self._group_identifier(entry)
            if identifier is not None and identifier not in groups:
                groups.append(identifier)

        logger.debug(
            f"User found to be a member of the following groups: "
            f"{'; '.join(groups) if groups else 'none'}"
        )
        return groups

    def _group_identifier(self, entry: Entry) -> Optional[str]:
        return_attribute = self.attribute_map["return"]

        for name in (return_attribute, return_attribute.lower()):
            if entry.has_attribute(name) and entry.attributes[name]:
                return entry.attributes[name][-1]

        if entry.dn:
            return entry.dn

        logger.info(
            f"The return attribute [{', '.join(dict.fromkeys([return_attribute, return_attribute.lower()]))}] "
            f"could not be found in entry `{entry.dn}`."
        )
        logger.debug(f"Entry was: {entry!r}")
        return None

    def add_groups(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Add the user's groups to the groups attribute.

        Args:
            attributes: The user's attributes

        Returns:
            Dict[str, Any]: A copy of attributes with the groups attribute extended

        Raises:
            ConfigurationError: If the existing groups attribute is not a list
        """
        groups_attribute = self.attribute_map["groups"]
        result = {name: list(values) if isinstance(values, list) else values for name, values in attributes.items()}

        groups = self.resolve_groups(attributes)
        if not groups:
            return result

        existing = result.setdefault(groups_attribute, [])
        if not isinstance(existing, list):
            raise ConfigurationError(
                f"The group attribute [{groups_attribute}] is not a list of group DNs. {existing!r}"
            )

        for group in groups:
            if group not in existing:
                existing.append(group)

        logger.debug(
            f"Added users groups to the group attribute [{groups_attribute}]: {'; '.join(groups)}"
        )
        return result
