"""
Classification of Active Directory bind failures.

When a simple bind against Active Directory is rejected the server returns a
diagnostic message such as::

    80090308: LdapErr: DSID-0C09044E, comment: AcceptSecurityContext error, data 52e, v2580

The hex token after ``data`` (or the NT status name for Samba style
"Simple Bind Failed" messages) tells whether the password was wrong, expired,
or whether the account is locked or restricted.

See https://ldapwiki.com/wiki/Common%20Active%20Directory%20Bind%20Errors
"""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

# Active Directory bind error codes ("data <hex>,")
LDAP_NO_SUCH_OBJECT = "525"
ERROR_LOGON_FAILURE = "52e"
ERROR_ACCOUNT_RESTRICTION = "52f"
ERROR_INVALID_LOGON_HOURS = "530"
ERROR_INVALID_WORKSTATION = "531"
ERROR_PASSWORD_EXPIRED = "532"
ERROR_ACCOUNT_DISABLED = "533"
ERROR_TOO_MANY_CONTEXT_IDS = "568"
ERROR_ACCOUNT_EXPIRED = "701"
ERROR_PASSWORD_MUST_CHANGE = "773"
ERROR_ACCOUNT_LOCKED_OUT = "775"

# Simple bind (NT_STATUS_*) codes, incomplete
NT_STATUS_PASSWORD_EXPIRED = "PASSWORD_EXPIRED"
NT_STATUS_PASSWORD_MUST_CHANGE = "PASSWORD_MUST_CHANGE"
NT_STATUS_LOGON_FAILURE = "LOGON_FAILURE"

KEY_INVALID_CREDENTIAL = "invalid_credential"
KEY_PASSWORD_ERROR = "password_error"
KEY_ACCOUNT_ERROR = "account_error"
KEY_RESTRICTION = "restriction"

CATEGORIES = (
    KEY_INVALID_CREDENTIAL,
    KEY_PASSWORD_ERROR,
    KEY_ACCOUNT_ERROR,
    KEY_RESTRICTION,
)

SIMPLE_BIND_MARKER = "Simple Bind Failed:"
NT_STATUS_PREFIX = "NT_STATUS_"

_DATA_CODE_PATTERN = re.compile(r"data\s([0-9a-fA-F]+),")


def _normalize(code: str) -> str:
    # Hex codes compare case-insensitively, NT status names are upper case
    code = str(code).strip()
    if re.fullmatch(r"[0-9a-fA-F]+", code):
        return code.lower()
    return code


@dataclass(frozen=True)
class CodeMap:
    """
    Immutable mapping of error category to the codes belonging to it.

    ``merged`` and ``replaced`` return new maps so a map can be shared between
    classifications without any of them observing a change mid-flight.
    """

    categories: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen = {
            name: tuple(_normalize(code) for code in codes)
            for name, codes in self.categories.items()
        }
        object.__setattr__(self, "categories", MappingProxyType(frozen))

    @classmethod
    def default(cls) -> "CodeMap":
        return cls(DEFAULT_CODE_MAP)

    def merged(self, codes: Mapping[str, Iterable[str]]) -> "CodeMap":
        """Return a new map with ``codes`` appended to the existing categories."""
        combined = {name: list(values) for name, values in self.categories.items()}
        for name, values in codes.items():
            combined.setdefault(name, []).extend(values)
        return CodeMap(combined)

    def replaced(self, codes: Mapping[str, Iterable[str]]) -> "CodeMap":
        """Return a new map holding only ``codes``."""
        return CodeMap({name: list(values) for name, values in codes.items()})

    def contains(self, category: str, code: Optional[str]) -> bool:
        if code is None:
            return False
        return _normalize(code) in self.categories.get(category, ())


DEFAULT_CODE_MAP = {
    KEY_INVALID_CREDENTIAL: (
        ERROR_LOGON_FAILURE,
        LDAP_NO_SUCH_OBJECT,
        NT_STATUS_LOGON_FAILURE,
    ),
    KEY_PASSWORD_ERROR: (
        ERROR_PASSWORD_EXPIRED,
        ERROR_PASSWORD_MUST_CHANGE,
        NT_STATUS_PASSWORD_EXPIRED,
        NT_STATUS_PASSWORD_MUST_CHANGE,
    ),
    KEY_ACCOUNT_ERROR: (
        ERROR_ACCOUNT_DISABLED,
        ERROR_ACCOUNT_EXPIRED,
        ERROR_ACCOUNT_LOCKED_OUT,
    ),
    KEY_RESTRICTION: (
        ERROR_ACCOUNT_RESTRICTION,
        ERROR_INVALID_LOGON_HOURS,
        ERROR_INVALID_WORKSTATION,
        ERROR_TOO_MANY_CONTEXT_IDS,
    ),
}


class InvalidCredentialResult:
    """
    Parsed diagnostic message of a rejected bind.

    The code is extracted once, at construction, and never changes. Category
    checks consult the ``CodeMap`` the result was created with.
    """

    def __init__(
        self, code: Optional[str], raw_message: str, code_map: Optional[CodeMap] = None
    ):
        self._code = code
        self._raw_message = raw_message
        self.code_map = code_map if code_map is not None else CodeMap.default()

    @classmethod
    def from_diagnostic_message(
        cls, message: Optional[str], code_map: Optional[CodeMap] = None
    ) -> "InvalidCredentialResult":
        """
        Parse a raw diagnostic message into a classification.

        Args:
            message: Diagnostic text as returned by the server (may be empty)
            code_map: Category table to test the code against (defaults to CodeMap.default())

        Returns:
            InvalidCredentialResult: holding the extracted code (or None) and the raw text
        """
        message = message or ""

        if message.startswith(SIMPLE_BIND_MARKER):
            _, tail = message.split(":", 1)
            code = tail.replace(NT_STATUS_PREFIX, "").strip()
        else:
            match = _DATA_CODE_PATTERN.search(message)
            code = match.group(1) if match else None

        return cls(code, message, code_map)

    @property
    def code(self) -> Optional[str]:
        return self._code

    @property
    def raw_message(self) -> str:
        return self._raw_message

    def is_invalid_credential(self) -> bool:
        return self.code_map.contains(KEY_INVALID_CREDENTIAL, self._code)

    def is_password_error(self) -> bool:
        return self.code_map.contains(KEY_PASSWORD_ERROR, self._code)

    def is_account_error(self) -> bool:
        return self.code_map.contains(KEY_ACCOUNT_ERROR, self._code)

    def is_restricted(self) -> bool:
        return self.code_map.contains(KEY_RESTRICTION, self._code)

    def __repr__(self) -> str:
        return f"InvalidCredentialResult(code={self._code!r}, raw_message={self._raw_message!r})"
