class LDAPAuthError(Exception):
    """Base exception for directory authentication errors."""
    pass

class ConfigurationError(LDAPAuthError, ValueError):
    """Raised when a server set, search or filter configuration is malformed."""
    pass

class DirectoryConnectionError(LDAPAuthError):
    """Raised when none of the configured directory servers could be used."""
    pass

class InvalidCredentialsError(LDAPAuthError):
    """
    Raised when a bind is rejected.

    The ``code`` is one of the error codes in ``ldap_auth.error_codes`` and is
    meant to be shown to the user, not treated as a program fault.
    """

    def __init__(self, code: str, classification=None):
        super().__init__(code)
        self.code = code
        self.classification = classification

class AmbiguousResultError(LDAPAuthError):
    """Raised when a single-result search matched more than one entry in a base."""
    pass

class EntryNotFoundError(LDAPAuthError):
    """Raised when a search found nothing and missing results were not allowed."""
    pass

class ServiceBindError(DirectoryConnectionError):
    """Raised when the configured service account cannot bind."""
    pass
