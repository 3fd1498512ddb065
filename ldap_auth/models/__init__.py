from .entry import Entry
from .search_spec import SearchSpec
from .server_set import ServerSet

__all__ = ['Entry', 'SearchSpec', 'ServerSet']
