import logging
import ssl
from typing import Any, Dict, List, Optional, Sequence, Union

import ldap3
from ldap3 import FIRST, MODIFY_REPLACE, NONE, Connection, Server, ServerPool, Tls
from ldap3.core.exceptions import LDAPException, LDAPPasswordIsMandatoryError
from ldap3.core.results import (
    RESULT_INVALID_CREDENTIALS,
    RESULT_NO_SUCH_OBJECT,
    RESULT_REFERRAL,
    RESULT_SIZE_LIMIT_EXCEEDED,
    RESULT_SUCCESS,
)
from ldap3.utils.log import EXTENDED, set_library_log_detail_level

from .. import error_codes
from ..exceptions import (
    AmbiguousResultError,
    ConfigurationError,
    DirectoryConnectionError,
    EntryNotFoundError,
    InvalidCredentialsError,
)
from ..models.entry import Entry
from ..models.search_spec import SearchSpec
from ..models.server_set import ServerSet
from ..utils.filter_escape import escape_filter_value

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ("ldap3",)


class LDAPAdapter:
    """
    Directory connector providing bind, search and update operations.

    One adapter owns one logical session against a ServerSet. Endpoints are
    tried strictly in the configured order when the session is opened; the
    first reachable one wins. The adapter is meant to live for one operation
    chain (bind, search, search...) and is not shared between requests.

    Subclasses can refine how rejected binds are reported by overriding
    ``_diagnose_bind_error`` and ``_resolve_bind_error``.
    """

    def __init__(self, server_set: ServerSet):
        """
        Initialize the adapter with a validated server set.

        Args:
            server_set: The endpoints, encryption mode, protocol version and options

        Raises:
            ConfigurationError: If the server set selects an unsupported backend
            TypeError: If server_set is not a ServerSet
        """
        if not isinstance(server_set, ServerSet):
            raise TypeError("server_set must be a ServerSet")

        if server_set.extension not in SUPPORTED_EXTENSIONS:
            raise ConfigurationError(
                f"Unsupported LDAP extension '{server_set.extension}', "
                f"expected one of: {list(SUPPORTED_EXTENSIONS)}"
            )

        self.server_set = server_set

        # Created on first bind
        self._server_pool: Optional[ServerPool] = None
        self._connection: Optional[Connection] = None
        self.bound_dn: Optional[str] = None
        self.is_bound = False

        if server_set.debug:
            set_library_log_detail_level(EXTENDED)

        logger.debug(
            f"Setting up LDAP connection: host='{' '.join(server_set.endpoints)}', "
            f"encryption={server_set.encryption}, version={server_set.version}, "
            f"debug={server_set.debug}, timeout={server_set.network_timeout}, "
            f"referrals={server_set.referrals}."
        )

    def __enter__(self) -> "LDAPAdapter":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.unbind()

    # Connection Management

    def _create_tls(self) -> Optional[Tls]:
        if self.server_set.encryption == "none":
            return None

        options = self.server_set.options
        tls_kwargs: Dict[str, Any] = {
            "validate": ssl.CERT_REQUIRED if options.get("tls_validate", True) else ssl.CERT_NONE,
        }
        if options.get("ca_certs_file"):
            tls_kwargs["ca_certs_file"] = options["ca_certs_file"]
        return Tls(**tls_kwargs)

    def _create_server_pool(self) -> ServerPool:
        """
        Create the ldap3 server pool, one Server per endpoint in configured order.

        The pool uses the FIRST strategy and makes a single pass over the
        endpoints, so a dead endpoint only delays failover to the next one.
        """
        if not self._server_pool:
            tls = self._create_tls()
            servers = []
            for endpoint in self.server_set.endpoints:
                # The URI scheme decides between ldap:// and ldaps://
                servers.append(
                    Server(
                        endpoint,
                        use_ssl=endpoint.lower().startswith("ldaps://"),
                        tls=tls,
                        get_info=NONE,
                        connect_timeout=self.server_set.network_timeout,
                    )
                )

            self._server_pool = ServerPool(servers, pool_strategy=FIRST, active=1, exhaust=False)
            logger.debug(f"LDAP server pool created with {len(servers)} endpoint(s)")

        return self._server_pool

    def _open_connection(self, username: Optional[str], password: Optional[str]) -> Connection:
        """Open a socket to the first reachable endpoint, without binding yet."""
        pool = self._create_server_pool()

        connection_kwargs: Dict[str, Any] = {
            "version": self.server_set.version,
            "auto_bind": ldap3.AUTO_BIND_NONE,
            "auto_referrals": self.server_set.referrals,
            "receive_timeout": self.server_set.network_timeout,
            "raise_exceptions": False,
        }
        if username is not None:
            connection_kwargs["user"] = username
            connection_kwargs["password"] = password if password is not None else ""
            connection_kwargs["authentication"] = ldap3.SIMPLE
        else:
            connection_kwargs["authentication"] = ldap3.ANONYMOUS

        connection = Connection(pool, **connection_kwargs)
        connection.open()

        if self.server_set.encryption == "tls":
            connection.start_tls()

        return connection

    def _close(self, connection: Optional[Connection]) -> None:
        if connection is None:
            return
        try:
            connection.unbind()
        except LDAPException as e:
            logger.debug(f"Ignoring error while closing LDAP connection: {e}")

    def unbind(self) -> None:
        """Close the current session, if any."""
        self._close(self._connection)
        self._connection = None
        self.bound_dn = None
        self.is_bound = False

    def _require_connection(self) -> Connection:
        if self._connection is None or not self.is_bound:
            raise DirectoryConnectionError("No bound LDAP session; call bind() first")
        return self._connection

    # Bind

    def bind(self, username: Optional[str], password: Optional[str]) -> None:
        """
        Bind to the directory, anonymously when no username is given.

        Any previous session held by this adapter is closed first.

        Args:
            username: DN (or other bind identity) to bind as, None for an anonymous bind
            password: The secret for username; ignored for anonymous binds

        Raises:
            InvalidCredentialsError: If the server rejected the credentials
            DirectoryConnectionError: If no endpoint could be reached or the bind failed otherwise
        """
        self.unbind()

        connection = None
        try:
            connection = self._open_connection(username, password)
            bound = connection.bind()
        except LDAPPasswordIsMandatoryError as e:
            # Refuse unauthenticated binds (named user, empty password)
            self._close(connection)
            logger.debug(f"LDAP bind(): Empty password given for DN '{username}'")
            raise InvalidCredentialsError(error_codes.WRONGUSERPASS) from e
        except LDAPException as e:
            self._close(connection)
            logger.error(f"LDAP bind(): Unable to contact any of the configured servers: {e}")
            raise DirectoryConnectionError(f"Unable to connect to LDAP server: {e}") from e

        if not bound:
            result = dict(connection.result or {})
            self._close(connection)

            if result.get("result") == RESULT_INVALID_CREDENTIALS:
                classification = self._diagnose_bind_error(result)
                code = self._resolve_bind_error(result, classification)
                logger.debug(f"LDAP bind(): Credentials rejected for DN '{username}': {code}")
                raise InvalidCredentialsError(code, classification)

            logger.error(f"LDAP bind(): Bind failed: {result}")
            raise DirectoryConnectionError(
                f"LDAP bind failed: {result.get('description')} {result.get('message', '')}".strip()
            )

        self._connection = connection
        self.bound_dn = username
        self.is_bound = True

        if username is None:
            logger.debug("LDAP bind(): Anonymous bind successful.")
        else:
            logger.debug(f"LDAP bind(): Bind successful for DN '{username}'.")

    def _diagnose_bind_error(self, result: Dict[str, Any]):
        """Hook for subclasses that can classify a rejected bind. Returns None here."""
        return None

    def _resolve_bind_error(self, result: Dict[str, Any], classification=None) -> str:
        """
        Map a rejected bind to an error code for the login page.

        Args:
            result: The ldap3 result dictionary of the failed bind
            classification: Whatever _diagnose_bind_error returned

        Returns:
            str: Always the generic wrong username/password code
        """
        return error_codes.WRONGUSERPASS

    # Search

    def _execute_query(self, spec: SearchSpec) -> List[Entry]:
        """
        Execute a search against the single base DN of ``spec``.

        Args:
            spec: A search restricted to one base (see SearchSpec.for_base)

        Returns:
            List[Entry]: Matches found in that base, in server order

        Raises:
            DirectoryConnectionError: On communication errors or error results
        """
        connection = self._require_connection()
        base = spec.bases[0]

        try:
            connection.search(
                search_base=base,
                search_filter=spec.filter,
                search_scope=getattr(ldap3, spec.ldap3_scope),
                attributes=spec.requested_attributes,
                size_limit=spec.size_limit,
                time_limit=spec.timeout or 0,
                dereference_aliases=getattr(ldap3, spec.ldap3_deref),
            )
        except LDAPException as e:
            logger.error(f"LDAP search failed for base '{base}': {e}")
            raise DirectoryConnectionError(f"Search operation failed: {e}") from e

        result = dict(connection.result or {})
        result_code = result.get("result", RESULT_SUCCESS)

        if result_code == RESULT_NO_SUCH_OBJECT:
            logger.debug(f"Search base '{base}' does not exist")
            return []
        elif result_code == RESULT_REFERRAL:
            # Outside the reach of this connection
            logger.debug(f"Search base '{base}' returned a referral to: {result.get('referrals')}")
            return []
        elif result_code == RESULT_SIZE_LIMIT_EXCEEDED:
            logger.warning(
                f"Search results truncated due to server size limit for base '{base}'. "
                f"Results may be incomplete."
            )
        elif result_code != RESULT_SUCCESS:
            logger.error(f"LDAP search failed for base '{base}': {result}")
            raise DirectoryConnectionError(
                f"Search operation failed: {result.get('description')} {result.get('message', '')}".strip()
            )

        return [
            Entry.from_ldap3_response(item)
            for item in (connection.response or [])
            if item.get("type") == "searchResEntry"
        ]

    def search(
        self,
        search_base: Union[str, Sequence[str]],
        search_filter: str,
        options: Optional[Dict[str, Any]] = None,
        allow_missing: bool = False,
    ) -> Optional[Entry]:
        """
        Search for exactly one object.

        Bases are searched in the given order. The first base holding exactly
        one match wins and later bases are never queried, so a conflicting
        entry that only exists in a later base goes unnoticed. This
        first-match-wins ordering is intentional; callers relying on
        uniqueness across bases must use search_for_multiple instead. A base
        that does not exist or answers with a referral counts as no match.

        Args:
            search_base: Base DN or list of base DNs
            search_filter: LDAP filter string
            options: Search options: 'scope', 'timeout', 'attributes' (or 'filter'),
                'size_limit', 'deref'
            allow_missing: Return None instead of raising when nothing matches

        Returns:
            Optional[Entry]: The single matching entry, or None if allowed

        Raises:
            ConfigurationError: If no base DN was given or the options are invalid
            AmbiguousResultError: If a base contains more than one match
            EntryNotFoundError: If no base contains a match and allow_missing is False
            DirectoryConnectionError: On communication errors
        """
        spec = SearchSpec.from_options(search_base, search_filter, options)
        spec.validate()

        for base in spec.bases:
            entries = self._execute_query(spec.for_base(base))

            if len(entries) > 1:
                raise AmbiguousResultError(
                    f"LDAP search(): Found {len(entries)} entries searching base "
                    f"'{base}' for '{spec.filter}'"
                )
            elif len(entries) == 1:
                return entries[0]

            logger.debug(f"LDAP search(): Found no entries searching base '{base}' for '{spec.filter}'")

        if not allow_missing:
            raise EntryNotFoundError(
                f"Object not found using search base [{', '.join(spec.bases)}] "
                f"and filter '{spec.filter}'"
            )

        return None

    def search_for_multiple(
        self,
        search_base: Union[str, Sequence[str]],
        search_filter: str,
        options: Optional[Dict[str, Any]] = None,
        allow_missing: bool = False,
    ) -> List[Entry]:
        """
        Search every base and return all matches, in base order.

        Args:
            search_base: Base DN or list of base DNs
            search_filter: LDAP filter string
            options: Search options, as for search()
            allow_missing: Return an empty list instead of raising when nothing matches

        Returns:
            List[Entry]: Matches of all bases, concatenated

        Raises:
            ConfigurationError: If no base DN was given or the options are invalid
            EntryNotFoundError: If nothing matched and allow_missing is False
            DirectoryConnectionError: On communication errors
        """
        spec = SearchSpec.from_options(search_base, search_filter, options)
        spec.validate()

        results: List[Entry] = []
        for base in spec.bases:
            entries = self._execute_query(spec.for_base(base))
            results.extend(entries)

            logger.debug(
                f"LDAP search_for_multiple(): Found {len(entries)} entries searching base "
                f"'{base}' for '{spec.filter}'"
            )

        if not results and not allow_missing:
            raise EntryNotFoundError(
                f"No objects found using search base [{', '.join(spec.bases)}] "
                f"and filter '{spec.filter}'"
            )

        return results

    # Helpers

    def escape_filter_value(
        self, values: Union[None, str, Sequence[Optional[str]]] = None, single_value: bool = True
    ) -> Union[str, List[str]]:
        """Escape values for use in a search filter. See utils.filter_escape."""
        return escape_filter_value(values, single_value)

    def update_entry(self, entry: Entry) -> bool:
        """
        Write the attributes of a modified entry back to the directory.

        Every attribute present on the entry replaces the stored values. A
        rejection by the server is logged, not raised.

        Args:
            entry: The entry to write

        Returns:
            bool: True if the server accepted the change
        """
        try:
            connection = self._require_connection()
            changes = {
                name: [(MODIFY_REPLACE, list(values))]
                for name, values in entry.attributes.items()
            }
            if connection.modify(entry.dn, changes):
                logger.debug(f"LDAP update_entry(): Updated '{entry.dn}'")
                return True

            logger.warning(f"LDAP update_entry(): Update of '{entry.dn}' rejected: {connection.result}")
            return False
        except (LDAPException, DirectoryConnectionError) as e:
            logger.warning(f"LDAP update_entry(): Update of '{entry.dn}' failed: {e}")
            return False

    def get_connection_info(self) -> Dict[str, Any]:
        """
        Get information about the current LDAP configuration.

        Returns:
            Dict[str, Any]: Configuration information (passwords excluded)
        """
        return {
            "endpoints": list(self.server_set.endpoints),
            "encryption": self.server_set.encryption,
            "version": self.server_set.version,
            "extension": self.server_set.extension,
            "debug": self.server_set.debug,
            "options": dict(self.server_set.options),
            "bound_dn": self.bound_dn,
            "is_bound": self.is_bound,
        }

    def __str__(self) -> str:
        """String representation of the LDAP adapter."""
        identity = self.bound_dn if self.bound_dn is not None else "anonymous"
        state = f"bound as {identity}" if self.is_bound else "unbound"
        return (
            f"{type(self).__name__}({' '.join(self.server_set.endpoints)}, "
            f"{self.server_set.encryption}, {state})"
        )

    def __repr__(self) -> str:
        """Detailed string representation for debugging."""
        return (
            f"{type(self).__name__}(endpoints={list(self.server_set.endpoints)!r}, "
            f"encryption='{self.server_set.encryption}', version={self.server_set.version}, "
            f"bound_dn={self.bound_dn!r})"
        )
