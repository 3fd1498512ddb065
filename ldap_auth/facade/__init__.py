from .ldap_facade import LDAPFacade, LDAPMultiFacade

__all__ = ['LDAPFacade', 'LDAPMultiFacade']
