from .filter_escape import asc2hex32, escape_filter_value

__all__ = ['asc2hex32', 'escape_filter_value']
