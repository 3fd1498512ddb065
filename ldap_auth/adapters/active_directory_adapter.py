import logging
from typing import Any, Dict, Optional

from .. import error_codes
from ..diagnostics.invalid_credential_result import CodeMap, InvalidCredentialResult
from ..models.server_set import ServerSet
from .ldap_adapter import LDAPAdapter

logger = logging.getLogger(__name__)


class ActiveDirectoryAdapter(LDAPAdapter):
    """
    LDAP adapter that reads Active Directory's diagnostic message on a rejected
    bind to tell a wrong password apart from an expired password, a locked
    account or a logon restriction.
    """

    def __init__(self, server_set: ServerSet, code_map: Optional[CodeMap] = None):
        super().__init__(server_set)
        self.code_map = code_map if code_map is not None else CodeMap.default()

    def _diagnose_bind_error(self, result: Dict[str, Any]) -> InvalidCredentialResult:
        message = result.get("message") or ""
        logger.debug(f"Active Directory bind diagnostic message: '{message}'")
        return InvalidCredentialResult.from_diagnostic_message(message, self.code_map)

    def _resolve_bind_error(
        self, result: Dict[str, Any], classification: Optional[InvalidCredentialResult] = None
    ) -> str:
        if classification is None:
            classification = self._diagnose_bind_error(result)

        if classification.is_invalid_credential():
            return error_codes.WRONGUSERPASS
        elif classification.is_password_error():
            return error_codes.RESETPASSWORD
        elif classification.is_account_error():
            return error_codes.RESETACCOUNT
        elif classification.is_restricted():
            return error_codes.LOGONRESTRICTION

        # default to the wrong user pass
        return error_codes.WRONGUSERPASS
