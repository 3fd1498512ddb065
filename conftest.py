"""
Shared pytest fixtures.

FakeConnection stands in for an ldap3 Connection: it answers searches from an
in-memory {base DN: [(dn, attributes), ...]} directory and records which bases
were queried. Bases listed in ``referrals`` answer with a referral (result 10).
"""

from typing import Any, Dict, List, Optional, Tuple

import pytest

from ldap_auth.adapters.ldap_adapter import LDAPAdapter
from ldap_auth.models.server_set import ServerSet


class FakeConnection:
    def __init__(
        self,
        directory: Optional[Dict[str, List[Tuple[str, Dict[str, Any]]]]] = None,
        referrals: Optional[Dict[str, List[str]]] = None,
    ):
        self.directory = directory or {}
        self.referrals = referrals or {}
        self.searched_bases: List[str] = []
        self.searches: List[Dict[str, Any]] = []
        self.result: Dict[str, Any] = {"result": 0, "description": "success"}
        self.response: List[Dict[str, Any]] = []
        self.modify_calls: List[Tuple[str, Dict[str, Any]]] = []
        self.modify_result = True
        self.unbound = False

    def search(
        self,
        search_base,
        search_filter,
        search_scope,
        attributes,
        size_limit=0,
        time_limit=0,
        dereference_aliases="ALWAYS",
    ):
        self.searched_bases.append(search_base)
        self.searches.append(
            {
                "search_base": search_base,
                "search_filter": search_filter,
                "search_scope": search_scope,
                "attributes": attributes,
                "size_limit": size_limit,
                "time_limit": time_limit,
                "dereference_aliases": dereference_aliases,
            }
        )

        if search_base in self.referrals:
            self.result = {"result": 10, "description": "referral", "referrals": self.referrals[search_base]}
            self.response = []
            return False

        if search_base not in self.directory:
            self.result = {"result": 32, "description": "noSuchObject"}
            self.response = []
            return False

        self.result = {"result": 0, "description": "success"}
        self.response = [
            {"type": "searchResEntry", "dn": dn, "attributes": attrs, "raw_attributes": {}}
            for dn, attrs in self.directory[search_base]
        ]
        self.response.append({"type": "searchResRef", "uri": ["ldap://elsewhere/"]})
        return len(self.directory[search_base]) > 0

    def modify(self, dn, changes):
        self.modify_calls.append((dn, changes))
        if not self.modify_result:
            self.result = {"result": 50, "description": "insufficientAccessRights"}
        return self.modify_result

    def unbind(self):
        self.unbound = True
        return True


@pytest.fixture
def server_set():
    return ServerSet("ldap://ldap1.example.org ldaps://ldap2.example.org", encryption="none")


@pytest.fixture
def bound_adapter(server_set):
    """Factory returning (adapter, fake connection) bound as a service account."""

    def _make(directory=None, adapter_class=LDAPAdapter, referrals=None, **kwargs):
        adapter = adapter_class(server_set, **kwargs)
        connection = FakeConnection(directory, referrals)
        adapter._connection = connection
        adapter.is_bound = True
        adapter.bound_dn = "cn=service,dc=example,dc=org"
        return adapter, connection

    return _make
