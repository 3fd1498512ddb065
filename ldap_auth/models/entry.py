from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Entry:
    """
    A directory entry: its DN plus attribute values, always as lists.

    ``raw_attributes`` keeps the undecoded bytes the server sent, which is what
    binary attributes (photos, SIDs, GUIDs) need.
    """

    dn: str
    attributes: Dict[str, List[Any]] = field(default_factory=dict)
    raw_attributes: Dict[str, List[bytes]] = field(default_factory=dict)

    @classmethod
    def from_ldap3_response(cls, item: Dict[str, Any]) -> "Entry":
        """Create an Entry from one ``searchResEntry`` item of an ldap3 response."""
        attributes = {
            name: _as_list(value) for name, value in (item.get("attributes") or {}).items()
        }
        raw_attributes = {
            name: _as_list(value) for name, value in (item.get("raw_attributes") or {}).items()
        }
        return cls(dn=item.get("dn", ""), attributes=attributes, raw_attributes=raw_attributes)

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def get_attribute(self, name: str, default: Optional[List[Any]] = None) -> Optional[List[Any]]:
        """Return a copy of the attribute values, or ``default`` when absent."""
        if name not in self.attributes:
            return default
        return list(self.attributes[name])

    def get_raw(self, name: str) -> Optional[List[bytes]]:
        if name not in self.raw_attributes:
            return None
        return list(self.raw_attributes[name])


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]
