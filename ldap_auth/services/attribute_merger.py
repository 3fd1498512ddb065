"""
Attribute Merger

Folds attribute values fetched from the directory into an existing attribute
set. Three policies decide what happens when the target attribute already has
values:

- add: append everything, duplicates included
- merge: append only values not present yet (default)
- replace: drop the existing values, then append the new ones

Values of attributes flagged as binary are base64 encoded before merging.
"""

import base64
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..exceptions import ConfigurationError
from ..models.entry import Entry

logger = logging.getLogger(__name__)

POLICY_ADD = "add"
POLICY_MERGE = "merge"
POLICY_REPLACE = "replace"
POLICIES = (POLICY_ADD, POLICY_MERGE, POLICY_REPLACE)


def _as_values(values: Any) -> List[Any]:
    return list(values) if isinstance(values, (list, tuple)) else [values]


def _copy_attributes(attributes: Mapping[str, Any]) -> Dict[str, List[Any]]:
    return {name: _as_values(values) for name, values in attributes.items()}


def encode_binary(values: Iterable[Any]) -> List[str]:
    """Base64 encode attribute values; strings are UTF-8 encoded first."""
    encoded = []
    for value in values:
        if isinstance(value, str):
            value = value.encode("utf-8")
        encoded.append(base64.b64encode(value).decode("ascii"))
    return encoded


class AttributeMerger:
    """Merge retrieved directory attributes into a caller owned attribute map."""

    def __init__(
        self,
        attribute_map: Optional[Mapping[str, str]] = None,
        binary_attributes: Optional[Sequence[str]] = None,
        policy: str = POLICY_MERGE,
    ):
        """
        Args:
            attribute_map: LDAP attribute name -> target attribute name. LDAP
                attributes without a mapping keep their own name.
            binary_attributes: LDAP attribute names whose values are base64 encoded
            policy: Default merge policy: 'add', 'merge' or 'replace'

        Raises:
            ConfigurationError: If the policy is unknown
        """
        self.attribute_map = dict(attribute_map or {})
        self.binary_attributes = set(binary_attributes or [])
        self.policy = self._check_policy(policy)

    @staticmethod
    def _check_policy(policy: str) -> str:
        if policy not in POLICIES:
            raise ConfigurationError(f"attribute policy must be one of: {list(POLICIES)}, got '{policy}'")
        return policy

    def target_name(self, ldap_name: str) -> str:
        return self.attribute_map.get(ldap_name, ldap_name)

    def encode(self, retrieved: Mapping[str, Sequence[Any]]) -> Dict[str, List[Any]]:
        """Return a copy of ``retrieved`` with binary attributes base64 encoded."""
        encoded = {}
        for name, values in retrieved.items():
            values = _as_values(values)
            if name in self.binary_attributes:
                encoded[name] = encode_binary(values)
            else:
                encoded[name] = values
        return encoded

    def merge(
        self,
        target: Mapping[str, List[Any]],
        retrieved: Mapping[str, Sequence[Any]],
        policy: Optional[str] = None,
    ) -> Dict[str, List[Any]]:
        """
        Merge ``retrieved`` values into a copy of ``target``.

        Args:
            target: Existing attributes, name -> list of values
            retrieved: Values fetched from the directory, LDAP name -> list of values
            policy: Overrides the merger's default policy for this call

        Returns:
            Dict[str, List[Any]]: The merged attributes; ``target`` is left untouched

        Examples:
            >>> AttributeMerger().merge({"mail": ["a@x"]}, {"mail": ["a@x", "b@x"]})
            {'mail': ['a@x', 'b@x']}
        """
        policy = self._check_policy(policy or self.policy)
        result = _copy_attributes(target)

        for ldap_name, values in self.encode(retrieved).items():
            target_name = self.target_name(ldap_name)
            if policy == POLICY_REPLACE or target_name not in result:
                result[target_name] = []

            existing = result[target_name]
            for value in values:
                if policy == POLICY_MERGE and value in existing:
                    continue
                existing.append(value)

        return result

    def merge_entries(
        self,
        target: Mapping[str, List[Any]],
        entries: Iterable[Entry],
        policy: Optional[str] = None,
    ) -> Dict[str, List[Any]]:
        """
        Merge the wanted attributes of several search results, in order.

        Only LDAP attributes named in the attribute map are taken from the
        entries; with an empty map every attribute is taken. Binary attributes
        use the raw bytes the server sent when they are available.
        """
        result = _copy_attributes(target)
        wanted = set(self.attribute_map.keys())

        for entry in entries:
            retrieved: Dict[str, List[Any]] = {}
            for name, values in entry.attributes.items():
                if wanted and name not in wanted:
                    continue
                raw = entry.get_raw(name) if name in self.binary_attributes else None
                retrieved[name] = raw if raw is not None else values

            logger.debug(f"Merging {len(retrieved)} attribute(s) from '{entry.dn}'")
            result = self.merge(result, retrieved, policy)

        return result
