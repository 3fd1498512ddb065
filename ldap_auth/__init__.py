"""
LDAP Auth
=========

Authenticate users and resolve their group memberships against one or more
LDAP directory servers.

This package provides:
- Adapters: bind, single and multi result searches, entry updates (ldap3)
- Diagnostics: classification of Active Directory bind failures
- Services: group resolution and attribute merging
- Facade: login and attribute lookup built from the pieces above
"""

from . import error_codes
from .adapters import ActiveDirectoryAdapter, LDAPAdapter, create_adapter
from .config import LDAPConfig
from .diagnostics import CodeMap, InvalidCredentialResult
from .exceptions import (
    AmbiguousResultError,
    ConfigurationError,
    DirectoryConnectionError,
    EntryNotFoundError,
    InvalidCredentialsError,
    LDAPAuthError,
    ServiceBindError,
)
from .facade import LDAPFacade, LDAPMultiFacade
from .models import Entry, SearchSpec, ServerSet
from .services import AttributeMerger, GroupResolver
from .utils import escape_filter_value

__version__ = "0.1.0"

__all__ = [
    'ActiveDirectoryAdapter',
    'AmbiguousResultError',
    'AttributeMerger',
    'CodeMap',
    'ConfigurationError',
    'DirectoryConnectionError',
    'Entry',
    'EntryNotFoundError',
    'GroupResolver',
    'InvalidCredentialResult',
    'InvalidCredentialsError',
    'LDAPAdapter',
    'LDAPAuthError',
    'LDAPConfig',
    'LDAPFacade',
    'LDAPMultiFacade',
    'SearchSpec',
    'ServerSet',
    'ServiceBindError',
    'create_adapter',
    'error_codes',
    'escape_filter_value',
]
