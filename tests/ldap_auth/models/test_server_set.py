import pytest

from ldap_auth.exceptions import ConfigurationError
from ldap_auth.models.server_set import ServerSet


class TestServerSet:
    def test_space_separated_string_keeps_order(self):
        server_set = ServerSet("ldaps://dc2.example.org ldap://dc1.example.org:389")
        assert server_set.endpoints == ("ldaps://dc2.example.org", "ldap://dc1.example.org:389")

    def test_list_of_endpoints(self):
        server_set = ServerSet(["ldap://a.example.org", "LDAPS://b.example.org"])
        assert len(server_set.endpoints) == 2

    def test_defaults(self):
        server_set = ServerSet("ldaps://dc.example.org")
        assert server_set.encryption == "ssl"
        assert server_set.version == 3
        assert server_set.extension == "ldap3"
        assert server_set.debug is False
        assert server_set.network_timeout == 3
        assert server_set.referrals is False

    @pytest.mark.parametrize("endpoints", ["", "   ", [], "dc.example.org", "http://dc.example.org"])
    def test_invalid_endpoints_rejected(self, endpoints):
        with pytest.raises(ConfigurationError):
            ServerSet(endpoints)

    def test_one_bad_endpoint_rejects_the_set(self):
        with pytest.raises(ConfigurationError):
            ServerSet("ldap://ok.example.org not-a-uri")

    def test_invalid_encryption(self):
        with pytest.raises(ConfigurationError):
            ServerSet("ldap://dc.example.org", encryption="starttls")

    @pytest.mark.parametrize("version", [0, -3, "3", True])
    def test_invalid_version(self, version):
        with pytest.raises(ConfigurationError):
            ServerSet("ldap://dc.example.org", version=version)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            ServerSet("nonsense")

    def test_is_immutable(self):
        server_set = ServerSet("ldap://dc.example.org")
        with pytest.raises(AttributeError):
            server_set.encryption = "none"
        with pytest.raises(TypeError):
            server_set.options["referrals"] = True

    def test_options_are_copied(self):
        options = {"network_timeout": 10, "referrals": True}
        server_set = ServerSet("ldap://dc.example.org", options=options)
        options["network_timeout"] = 1
        assert server_set.network_timeout == 10
        assert server_set.referrals is True
