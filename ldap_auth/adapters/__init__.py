from .active_directory_adapter import ActiveDirectoryAdapter
from .factory import create_adapter, create_server_set
from .ldap_adapter import LDAPAdapter

__all__ = ['LDAPAdapter', 'ActiveDirectoryAdapter', 'create_adapter', 'create_server_set']
