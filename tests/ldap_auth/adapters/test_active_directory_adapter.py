import unittest
from unittest.mock import MagicMock, patch

from ldap_auth import error_codes
from ldap_auth.adapters.active_directory_adapter import ActiveDirectoryAdapter
from ldap_auth.diagnostics.invalid_credential_result import KEY_RESTRICTION, CodeMap, InvalidCredentialResult
from ldap_auth.exceptions import InvalidCredentialsError
from ldap_auth.models.server_set import ServerSet


def _ad_message(code):
    return f"80090308: LdapErr: DSID-0C09044E, comment: AcceptSecurityContext error, data {code}, v4563"


class TestActiveDirectoryAdapter(unittest.TestCase):
    """Unit tests for Active Directory bind error classification."""

    def setUp(self):
        self.server_set = ServerSet("ldaps://dc1.example.org ldaps://dc2.example.org")
        self.adapter = ActiveDirectoryAdapter(self.server_set)

    def tearDown(self):
        patch.stopall()

    def _reject_bind(self, adapter, message):
        connection = MagicMock()
        connection.bind.return_value = False
        connection.result = {"result": 49, "description": "invalidCredentials", "message": message}
        patch.object(adapter, "_open_connection", return_value=connection).start()
        return connection

    def _bind_error(self, adapter, message):
        self._reject_bind(adapter, message)
        with self.assertRaises(InvalidCredentialsError) as context:
            adapter.bind("jdoe@example.org", "secret")
        return context.exception

    # ----- Test bind error codes -----

    def test_wrong_password(self):
        error = self._bind_error(self.adapter, _ad_message("52e"))
        self.assertEqual(error.code, error_codes.WRONGUSERPASS)
        self.assertIsInstance(error.classification, InvalidCredentialResult)
        self.assertEqual(error.classification.code, "52e")

    def test_expired_password(self):
        error = self._bind_error(self.adapter, _ad_message("532"))
        self.assertEqual(error.code, error_codes.RESETPASSWORD)

    def test_must_change_password(self):
        error = self._bind_error(self.adapter, _ad_message("773"))
        self.assertEqual(error.code, error_codes.RESETPASSWORD)

    def test_locked_account(self):
        error = self._bind_error(self.adapter, _ad_message("775"))
        self.assertEqual(error.code, error_codes.RESETACCOUNT)

    def test_logon_restriction(self):
        error = self._bind_error(self.adapter, _ad_message("530"))
        self.assertEqual(error.code, error_codes.LOGONRESTRICTION)

    def test_samba_message(self):
        error = self._bind_error(self.adapter, "Simple Bind Failed: NT_STATUS_PASSWORD_EXPIRED")
        self.assertEqual(error.code, error_codes.RESETPASSWORD)

    def test_unknown_message_defaults_to_wrong_password(self):
        error = self._bind_error(self.adapter, "Invalid credentials")
        self.assertEqual(error.code, error_codes.WRONGUSERPASS)

    def test_custom_code_map(self):
        adapter = ActiveDirectoryAdapter(self.server_set, CodeMap.default().replaced({KEY_RESTRICTION: ["52e"]}))
        error = self._bind_error(adapter, _ad_message("52e"))
        self.assertEqual(error.code, error_codes.LOGONRESTRICTION)

    def test_resolve_without_classification(self):
        code = self.adapter._resolve_bind_error({"result": 49, "message": _ad_message("533")})
        self.assertEqual(code, error_codes.RESETACCOUNT)

    def test_error_code_titles(self):
        self.assertEqual(error_codes.get_title(error_codes.RESETPASSWORD), error_codes.TITLES[error_codes.RESETPASSWORD])
        self.assertEqual(error_codes.get_description("unknown"), error_codes.DESCRIPTIONS[error_codes.WRONGUSERPASS])


if __name__ == "__main__":
    unittest.main()
