"""
.. module:: LDAPClient
   :platform: Unix
   :synopsis: For managing an LDAP session.

"""
import logging
from contextlib import suppress
from typing import Any, List, NamedTuple, Optional, Union

import ldap

from .credentials import bind, create_credentials
from .errors import (
    DeleteError,
    NoSuchObjectError,
    NotConnected,
    TLSError,
    UnbindError,
    UrlParseError,
    WhoamiError,
    _from_ldap_exc,
)
from .ldapentry import LDAPEntry
from .ldapsearch import LDAPSearchScope, SearchRequest, execute
from .ldapurl import DEFAULT_URL, LDAPURL

logger = logging.getLogger(__name__)

ROOT_DSE_ATTRS = [
    "namingContexts",
    "altServer",
    "supportedExtension",
    "supportedControl",
    "supportedSASLMechanisms",
    "supportedLDAPVersion",
]


class _Disconnected:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<Disconnected>"


class _Connected(NamedTuple):
    conn: Any
    url: LDAPURL


_DISCONNECTED = _Disconnected()


class LDAPClient:
    """
    A session with a single directory server. The client owns one
    connection, that is opened by :meth:`LDAPClient.connect` and
    released by :meth:`LDAPClient.close`. Only one operation can be in
    progress at a time: using the same client from multiple threads must
    be serialized by the caller.

    :param str uri: an LDAP URL. The default is `ldap://localhost:389/`.
    :param bool tls: Set `True` to upgrade the connection with StartTLS. \
    It is ignored for `ldaps` URLs.
    :raises UrlParseError: if the `uri` is not a valid LDAP URL.
    :raises TypeError: if the parameters have a wrong type.
    """

    def __init__(self, uri: Optional[str] = None, tls: bool = False) -> None:
        """Init method."""
        self.__state = _DISCONNECTED  # type: Union[_Disconnected, _Connected]
        if not isinstance(tls, bool):
            raise TypeError("The tls parameter must be bool.")
        self.__url = LDAPURL(uri)
        self.__uri = uri if uri is not None else DEFAULT_URL
        # Avoid a duplicated TLS session over LDAPS.
        self.__tls = tls and self.__url.scheme != "ldaps"
        self.__raw_list = []  # type: List[str]
        self.__cert_policy = -1
        self.__ca_cert = None  # type: Optional[str]
        self.__ca_cert_dir = None  # type: Optional[str]
        self.__client_cert = None  # type: Optional[str]
        self.__client_key = None  # type: Optional[str]
        self.__network_timeout = None  # type: Optional[float]

    def __enter__(self) -> "LDAPClient":
        """ Context manager entry point. """
        return self

    def __exit__(self, type, value, traceback) -> None:
        """ Context manager exit point. """
        self.close()

    def __del__(self) -> None:
        state = getattr(self, "_LDAPClient__state", _DISCONNECTED)
        if isinstance(state, _Connected):
            self.__state = _DISCONNECTED
            with suppress(ldap.LDAPError):
                state.conn.unbind_ext_s()

    def set_raw_attributes(self, raw_list: List[str]) -> None:
        """
        By default the values of the LDAPEntry are in string format. The
        values of the listed LDAP attribute's names in `raw_list` will be
        kept in bytes format.

        :param list raw_list: a list of LDAP attribute's names. \
        The elements must be string and unique.

        :raises TypeError: if any of the list's element is not a \
        string.
        :raises ValueError: if the item in the lit is not a unique \
        element.
        """
        for elem in raw_list:
            if not isinstance(elem, str):
                raise TypeError("All element of raw_list must be string.")
        if len(raw_list) > len(set(map(str.lower, raw_list))):
            raise ValueError("Attribute names must be different from each other.")
        self.__raw_list = list(raw_list)

    def set_cert_policy(self, policy: str) -> None:
        """
        Set policy about server certification.

        :param str policy: the cert policy could be one of the following \
        strings:

            - `try` or `demand`: the server cert will be verified, and if it \
            fail, then the :meth:`LDAPClient.connect` will raise an error.
            - `never` or `allow`: the server cert will be used without any \
            verification.

        :raises TypeError: if the `policy` parameter is not a string.
        :raises ValueError: if the `policy` not one of the four above.
        """
        tls_options = {
            "never": ldap.OPT_X_TLS_NEVER,
            "demand": ldap.OPT_X_TLS_DEMAND,
            "allow": ldap.OPT_X_TLS_ALLOW,
            "try": ldap.OPT_X_TLS_TRY,
        }
        if not isinstance(policy, str):
            raise TypeError("Policy parameter must be string.")
        policy = policy.lower()
        if policy not in tls_options.keys():
            raise ValueError("'%s' is an invalid policy." % policy)
        self.__cert_policy = tls_options[policy]

    def set_ca_cert(self, name: Optional[str]) -> None:
        """
        Set the path of the CA certificate file.

        :param str name: the name of the CA cert.
        :raises TypeError: if `name` parameter is not a string or not None.
        """
        if name is not None and not isinstance(name, str):
            raise TypeError("Name parameter must be string or None.")
        self.__ca_cert = name

    def set_ca_cert_dir(self, path: Optional[str]) -> None:
        """
        Set the directory of the CA certificates.

        :param str path: the path to the CA directory.
        :raises TypeError: if `path` parameter is not a string or not None.
        """
        if path is not None and not isinstance(path, str):
            raise TypeError("Path parameter must be string or None.")
        self.__ca_cert_dir = path

    def set_client_cert(self, name: Optional[str]) -> None:
        """
        Set the path of the client certificate file.

        :param str name: the name of the client cert.
        :raises TypeError: if `name` parameter is not a string or not None.
        """
        if name is not None and not isinstance(name, str):
            raise TypeError("Name parameter must be string or None.")
        self.__client_cert = name

    def set_client_key(self, name: Optional[str]) -> None:
        """
        Set the file that contains the private key that matches the \
        certificate of the client that specified with \
        :meth:`LDAPClient.set_client_cert`).

        :param str name: the name of the key file.
        :raises TypeError: if `name` parameter is not a string or not None.
        """
        if name is not None and not isinstance(name, str):
            raise TypeError("Name parameter must be string or None.")
        self.__client_key = name

    def set_network_timeout(self, timeout: Optional[float]) -> None:
        """
        Set the time limit in seconds for establishing the TCP connection.
        `None` means the default of the LDAP library.

        :param float timeout: the time limit in seconds.
        :raises TypeError: if `timeout` is not a number or None.
        :raises ValueError: if `timeout` is negative.
        """
        if timeout is not None:
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
                raise TypeError("Timeout parameter must be a number or None.")
            if timeout < 0:
                raise ValueError("Timeout parameter must be greater or equal to 0.")
            timeout = float(timeout)
        self.__network_timeout = timeout

    @property
    def uri(self) -> str:
        """The LDAP URI of the directory server. It cannot be set."""
        return self.__uri

    @property
    def url(self) -> LDAPURL:
        """The parsed :class:`LDAPURL` of the directory server."""
        return self.__url

    @property
    def tls(self) -> bool:
        """A bool about StartTLS is required. It cannot be set."""
        return self.__tls

    @property
    def connected(self) -> bool:
        """True, if the client is bound to the server."""
        return isinstance(self.__state, _Connected)

    @property
    def raw_attributes(self) -> List[str]:
        """A list of attributes that should be kept in byte format."""
        return self.__raw_list

    @raw_attributes.setter
    def raw_attributes(self, value: List[str]) -> None:
        self.set_raw_attributes(value)

    @property
    def cert_policy(self) -> int:
        """The certification policy."""
        return self.__cert_policy

    @cert_policy.setter
    def cert_policy(self, value: str) -> None:
        self.set_cert_policy(value)

    @property
    def ca_cert(self) -> Optional[str]:
        """The name of the CA certificate."""
        return self.__ca_cert

    @ca_cert.setter
    def ca_cert(self, value: Optional[str]) -> None:
        self.set_ca_cert(value)

    @property
    def ca_cert_dir(self) -> Optional[str]:
        """The path to the CA certificate."""
        return self.__ca_cert_dir

    @ca_cert_dir.setter
    def ca_cert_dir(self, value: Optional[str]) -> None:
        self.set_ca_cert_dir(value)

    @property
    def client_cert(self) -> Optional[str]:
        """The name of the client certificate."""
        return self.__client_cert

    @client_cert.setter
    def client_cert(self, value: Optional[str]) -> None:
        self.set_client_cert(value)

    @property
    def client_key(self) -> Optional[str]:
        """The key file to the client's certificate."""
        return self.__client_key

    @client_key.setter
    def client_key(self, value: Optional[str]) -> None:
        self.set_client_key(value)

    @property
    def network_timeout(self) -> Optional[float]:
        """The time limit for establishing the connection."""
        return self.__network_timeout

    @network_timeout.setter
    def network_timeout(self, value: Optional[float]) -> None:
        self.set_network_timeout(value)

    def __require_conn(self) -> Any:
        state = self.__state
        if isinstance(state, _Connected):
            return state.conn
        raise NotConnected("Client has to connect to the server first.")

    def __set_tls_options(self, conn: Any) -> None:
        """Apply the TLS settings and create a new TLS context."""
        if self.__cert_policy != -1:
            conn.set_option(ldap.OPT_X_TLS_REQUIRE_CERT, self.__cert_policy)
        if self.__ca_cert:
            conn.set_option(ldap.OPT_X_TLS_CACERTFILE, self.__ca_cert)
        if self.__ca_cert_dir:
            conn.set_option(ldap.OPT_X_TLS_CACERTDIR, self.__ca_cert_dir)
        if self.__client_cert:
            conn.set_option(ldap.OPT_X_TLS_CERTFILE, self.__client_cert)
        if self.__client_key:
            conn.set_option(ldap.OPT_X_TLS_KEYFILE, self.__client_key)
        conn.set_option(ldap.OPT_X_TLS_NEWCTX, 0)

    def __open(self, url: LDAPURL, use_tls: bool) -> Any:
        """
        Initialize the connection handle and upgrade it to TLS when
        `use_tls` is set.
        """
        try:
            conn = ldap.initialize(self.__uri)
        except ldap.LDAPError as exc:
            raise _from_ldap_exc(exc, UrlParseError, refine=False) from None
        try:
            conn.set_option(ldap.OPT_PROTOCOL_VERSION, ldap.VERSION3)
            conn.set_option(ldap.OPT_REFERRALS, 0)
            if self.__network_timeout is not None:
                conn.set_option(ldap.OPT_NETWORK_TIMEOUT, self.__network_timeout)
            if url.scheme == "ldaps" or use_tls:
                try:
                    self.__set_tls_options(conn)
                    if use_tls:
                        logger.debug("Start TLS with %s.", url.get_address())
                        conn.start_tls_s()
                except ldap.LDAPError as exc:
                    raise _from_ldap_exc(exc, TLSError, refine=False) from None
                except ValueError as exc:
                    raise TLSError(str(exc)) from None
        except Exception:
            with suppress(ldap.LDAPError):
                conn.unbind_ext_s()
            raise
        return conn

    def connect(
        self,
        binddn: Optional[str] = None,
        password: Optional[str] = None,
        mechanism: Optional[str] = None,
        username: Optional[str] = None,
        realm: Optional[str] = None,
        authname: Optional[str] = None,
        tls: Optional[bool] = None,
    ) -> None:
        """
        Open a connection to the LDAP server and bind. If `mechanism` is
        set, SASL interactive bind is used with the `username` as
        authorization ID, `authname` as authentication ID, `realm` and
        `password`, otherwise simple bind with `binddn` and `password`.
        A previously opened connection is closed first.

        :param str binddn: the DN of the binding user.
        :param str password: the password of the user.
        :param str mechanism: the name of the SASL mechanism.
        :param str username: the SASL authorization ID.
        :param str realm: the SASL realm.
        :param str authname: the SASL authentication ID.
        :param bool tls: overrides the client's TLS setting for this \
        connection. It is ignored for `ldaps` URLs.
        :raises UrlParseError: if the uri is not a valid LDAP URL.
        :raises TLSError: if the TLS upgrade is failed.
        :raises BindError: if the authentication is failed.
        """
        creds = create_credentials(
            binddn, password, mechanism, username, realm, authname
        )
        if tls is not None and not isinstance(tls, bool):
            raise TypeError("The tls parameter must be bool or None.")
        url = LDAPURL(self.__uri)
        use_tls = (self.__tls if tls is None else tls) and url.scheme != "ldaps"
        with suppress(UnbindError):
            self.close()
        logger.debug("Connect to %s (tls=%s).", url.get_address(), use_tls)
        conn = self.__open(url, use_tls)
        try:
            bind(conn, creds)
        except Exception:
            with suppress(ldap.LDAPError):
                conn.unbind_ext_s()
            raise
        self.__state = _Connected(conn, url)
        logger.debug("Connected to %s.", url.get_address())

    def close(self) -> None:
        """
        Close the connection with the LDAP server. Closing an already
        closed client does nothing.

        :raises UnbindError: if the unbind reports an error. The client \
        is disconnected anyway.
        """
        state = self.__state
        if not isinstance(state, _Connected):
            return
        self.__state = _DISCONNECTED
        logger.debug("Close connection to %s.", state.url.get_address())
        try:
            state.conn.unbind_ext_s()
        except ldap.LDAPError as exc:
            raise _from_ldap_exc(exc, UnbindError, refine=False) from None

    def search(
        self,
        base: str,
        scope: Union[LDAPSearchScope, int],
        filter_exp: Optional[str] = None,
        attrlist: Optional[List[str]] = None,
        timeout: Optional[int] = None,
        sizelimit: int = 0,
        attrsonly: bool = False,
        *,
        filter: Optional[str] = None,
    ) -> List[LDAPEntry]:
        """
        Search for LDAP entries. The filter expression can be passed by the
        `filter` keyword as well.

        :param str base: the base DN of the search.
        :param int scope: the scope of the search, an \
        :class:`LDAPSearchScope` or its int value.
        :param str filter_exp: the filter expression, empty or None \
        matches every entry.
        :param str filter: alias of `filter_exp`.
        :param list attrlist: the names of the requested attributes, \
        None for all of them.
        :param int timeout: time limit in seconds, 0 or None for no limit.
        :param int sizelimit: the maximum number of entries, 0 for no limit.
        :param bool attrsonly: get the attribute names without values.
        :return: the entries in the order the server sent them.
        :rtype: list
        :raises NotConnected: if the client is not connected.
        :raises NoSuchObjectError: if the base entry does not exist.
        :raises SearchError: if the search is failed.
        """
        conn = self.__require_conn()
        if filter is not None:
            if filter_exp is not None:
                raise TypeError("Only one of filter_exp and filter can be set.")
            filter_exp = filter
        request = self.__create_request(
            base, scope, filter_exp, attrlist, timeout, sizelimit, attrsonly
        )
        return execute(conn, request, self.__raw_list)

    @staticmethod
    def __create_request(
        base: str,
        scope: Union[LDAPSearchScope, int],
        filter_exp: Optional[str],
        attrlist: Optional[List[str]],
        timeout: Optional[int],
        sizelimit: int,
        attrsonly: bool,
        firstonly: bool = False,
    ) -> SearchRequest:
        if not isinstance(base, str):
            raise TypeError("The base parameter must be a string.")
        if filter_exp is not None and not isinstance(filter_exp, str):
            raise TypeError("The filter_exp parameter must be a string or None.")
        if attrlist is not None:
            if not isinstance(attrlist, (list, tuple)) or not all(
                isinstance(attr, str) for attr in attrlist
            ):
                raise TypeError("The attrlist parameter must be a list of strings.")
            attrlist = list(attrlist)
        if timeout is not None:
            if isinstance(timeout, bool) or not isinstance(timeout, int):
                raise TypeError("The timeout parameter must be int or None.")
            if timeout < 0:
                raise ValueError("The timeout parameter must be greater or equal to 0.")
        if isinstance(sizelimit, bool) or not isinstance(sizelimit, int):
            raise TypeError("The sizelimit parameter must be int.")
        if sizelimit < 0:
            raise ValueError("The sizelimit parameter must be greater or equal to 0.")
        if not isinstance(attrsonly, bool):
            raise TypeError("The attrsonly parameter must be bool.")
        return SearchRequest(
            base,
            LDAPSearchScope(scope),
            filter_exp,
            attrlist,
            attrsonly,
            timeout,
            sizelimit,
            firstonly,
        )

    def get_entry(self, dn: str) -> Optional[LDAPEntry]:
        """
        Return the LDAPEntry with the given distinguished name.

        :param str dn: the DN of the entry.
        :return: the entry, or None if the entry doesn't exist.
        :rtype: :class:`LDAPEntry`
        :raises NotConnected: if the client is not connected.
        """
        conn = self.__require_conn()
        request = self.__create_request(
            dn, LDAPSearchScope.BASE, None, None, None, 0, False, True
        )
        try:
            return execute(conn, request, self.__raw_list)
        except NoSuchObjectError:
            return None

    def get_rootDSE(self) -> Optional[LDAPEntry]:
        """
        Returns the server's root DSE entry. The root DSE may contain
        information about the naming contexts, the supported extensions,
        controls, SASL mechanisms and LDAP versions.

        :return: the root DSE entry.
        :rtype: :class:`LDAPEntry`
        :raises NotConnected: if the client is not connected.
        """
        conn = self.__require_conn()
        request = SearchRequest(
            "",
            LDAPSearchScope.BASE,
            "(objectclass=*)",
            list(ROOT_DSE_ATTRS),
            firstonly=True,
        )
        try:
            return execute(conn, request, self.__raw_list)
        except NoSuchObjectError:
            return None

    def del_entry(self, dn: Optional[str]) -> None:
        """
        Remove the entry with the given distinguished name from the
        server. An empty or None `dn` is silently ignored.

        :param str dn: the DN of the entry.
        :raises NotConnected: if the client is not connected.
        :raises DeleteError: if the server refuses the deletion.
        """
        conn = self.__require_conn()
        if dn is not None and not isinstance(dn, str):
            raise TypeError("The dn parameter must be a string or None.")
        if not dn:
            return
        logger.debug("Delete %s.", dn)
        try:
            conn.delete_ext_s(dn)
        except ldap.LDAPError as exc:
            raise _from_ldap_exc(exc, DeleteError) from None

    def whoami(self) -> str:
        """
        LDAPv3 Who Am I? operation to obtain the authorization identity.

        :return: the authorization ID, `anonym` for anonymous sessions.
        :rtype: str
        :raises NotConnected: if the client is not connected.
        :raises WhoamiError: if the operation is failed.
        """
        conn = self.__require_conn()
        try:
            authzid = conn.whoami_s()
        except ldap.LDAPError as exc:
            raise _from_ldap_exc(exc, WhoamiError) from None
        if isinstance(authzid, bytes):
            authzid = authzid.decode("utf-8")
        if not authzid:
            authzid = "anonym"
        logger.debug("Authorization ID: %s", authzid)
        return authzid

    def __repr__(self) -> str:
        return "<LDAPClient %s %r>" % (self.__uri, self.__state)
