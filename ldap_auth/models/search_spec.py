from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..exceptions import ConfigurationError

# Accepted scope spellings mapped to the ldap3 constant names
SCOPES = {
    "base": "BASE",
    "one": "LEVEL",
    "level": "LEVEL",
    "sub": "SUBTREE",
    "subtree": "SUBTREE",
}

# Alias dereferencing modes mapped to the ldap3 constant names
DEREF_MODES = {
    "never": "DEREF_NEVER",
    "search": "DEREF_SEARCH",
    "find": "DEREF_BASE",
    "always": "DEREF_ALWAYS",
}

OPTION_KEYS = ("attributes", "filter", "scope", "timeout", "size_limit", "deref")

DEFAULT_SCOPE = "sub"
DEFAULT_DEREF = "always"
DEFAULT_TIMEOUT = 3

# RFC 4511 "no attributes"
NO_ATTRIBUTES = "1.1"


@dataclass
class SearchSpec:
    """
    One search request: where to look, what to match and what to return.

    ``attributes`` of ``None`` means "all user attributes", an empty list means
    "no attributes at all"; the two are not interchangeable.
    """

    bases: List[str]
    filter: str
    scope: str = DEFAULT_SCOPE
    timeout: int = DEFAULT_TIMEOUT
    attributes: Optional[List[str]] = None
    size_limit: int = 0
    deref: str = DEFAULT_DEREF

    @classmethod
    def from_options(cls, bases, search_filter: str, options: Optional[Dict[str, Any]]) -> "SearchSpec":
        """
        Build a spec from the option dictionary accepted by the adapters.

        Raises:
            ConfigurationError: If an option is not one of OPTION_KEYS
        """
        options = dict(options or {})
        unknown = sorted(set(options) - set(OPTION_KEYS))
        if unknown:
            raise ConfigurationError(f"Unknown search option(s): {unknown}, expected: {list(OPTION_KEYS)}")

        if isinstance(bases, str):
            bases = [bases]

        if "attributes" in options:
            attributes = options.pop("attributes")
        else:
            attributes = options.pop("filter", None)

        return cls(
            bases=list(bases or []),
            filter=search_filter,
            scope=options.pop("scope", DEFAULT_SCOPE),
            timeout=options.pop("timeout", DEFAULT_TIMEOUT),
            attributes=list(attributes) if attributes is not None else None,
            size_limit=options.pop("size_limit", 0),
            deref=options.pop("deref", DEFAULT_DEREF),
        )

    def validate(self) -> None:
        if not self.bases:
            raise ConfigurationError("A search needs at least one base DN")
        if not self.filter or not isinstance(self.filter, str):
            raise ConfigurationError("search filter must be a non-empty string")
        if str(self.scope).lower() not in SCOPES:
            raise ConfigurationError(f"scope must be one of: {list(SCOPES.keys())}")
        if self.timeout is not None and (not isinstance(self.timeout, int) or self.timeout < 0):
            raise ConfigurationError(f"timeout must be a non-negative integer, got {self.timeout!r}")
        if str(self.deref).lower() not in DEREF_MODES:
            raise ConfigurationError(f"deref must be one of: {list(DEREF_MODES.keys())}")

    @property
    def ldap3_scope(self) -> str:
        return SCOPES[str(self.scope).lower()]

    @property
    def ldap3_deref(self) -> str:
        return DEREF_MODES[str(self.deref).lower()]

    @property
    def requested_attributes(self) -> List[str]:
        if self.attributes is None:
            return ["*"]
        if len(self.attributes) == 0:
            return [NO_ATTRIBUTES]
        return list(self.attributes)

    def for_base(self, base: str) -> "SearchSpec":
        """Return a copy restricted to a single base DN."""
        return SearchSpec(
            bases=[base],
            filter=self.filter,
            scope=self.scope,
            timeout=self.timeout,
            attributes=None if self.attributes is None else list(self.attributes),
            size_limit=self.size_limit,
            deref=self.deref,
        )
