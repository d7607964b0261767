from ipaddress import IPv6Address
from typing import List, Optional, Tuple

import re
import urllib.parse

import ldap.dn

from .errors import UrlParseError

DEFAULT_URL = "ldap://localhost:389/"


class LDAPURL:
    """
    Immutable LDAP URL object that describes where and how to connect:
    scheme, hostname and port, along with the base DN, attributes, scope
    and filter hints of the URL. If `strurl` is None, then the default
    url is `ldap://localhost:389/`.

    :param str strurl: string representation of a valid LDAP URL. Must \
    be started with `ldap://` or `ldaps://`.

    :raises UrlParseError: if the string parameter is not a valid LDAP URL.
    """

    __slots__ = ("__hostinfo", "__searchinfo", "__ipv6")

    def __init__(self, strurl: Optional[str] = None) -> None:
        """Init method."""
        if strurl is None:
            strurl = DEFAULT_URL
        if not isinstance(strurl, str):
            raise TypeError("The url must be a string.")
        self.__hostinfo = ("ldap", "localhost", 389)  # type: Tuple[str, str, int]
        # Default values to the search parameters.
        self.__searchinfo = ("", [], "", "")  # type: Tuple[str, List[str], str, str]
        self.__ipv6 = False
        self.__str2url(strurl)

    def __setattr__(self, attr: str, value: object) -> None:
        """Only the parser can set the private slots."""
        if not attr.startswith("_LDAPURL__"):
            raise AttributeError("%s cannot be set." % attr)
        super().__setattr__(attr, value)

    def __delattr__(self, attr: str) -> None:
        """None of the attributes can be deleted."""
        raise AttributeError("%s cannot be deleted." % attr)

    def __str2url(self, strurl: str) -> None:
        """Parsing string url to LDAPURL."""
        # Form: [scheme]://[host]:[port]/[basedn]?[attrs]?[scope]?[filter]?[exts]
        scheme, host, port = self.__hostinfo
        basedn, attrlist, scope, filter_exp = self.__searchinfo
        parsed_url = urllib.parse.urlparse(strurl)
        scheme = parsed_url.scheme.lower()
        if scheme not in ("ldap", "ldaps") or not strurl.lower().startswith(
            scheme + "://"
        ):
            raise UrlParseError("'%s' is not a valid LDAP URL." % strurl)
        if scheme == "ldaps":
            port = 636
        try:
            if parsed_url.hostname:
                host = parsed_url.hostname
            if parsed_url.port is not None:
                port = parsed_url.port
        except ValueError as exc:
            msg = "'%s' has an invalid port: %s" % (strurl, exc)
            raise UrlParseError(msg) from None
        if port == 0:
            raise UrlParseError("'%s' has an invalid port: 0" % strurl)
        valid, ipv6 = self.is_valid_hostname(host)
        if not valid:
            raise UrlParseError("'%s' has an invalid hostname." % strurl)
        basedn = urllib.parse.unquote(parsed_url.path[1:])
        if basedn and not ldap.dn.is_dn(basedn):
            raise UrlParseError("'%s' has an invalid base DN." % strurl)
        params = parsed_url.query.split("?")
        # Attribute
        if len(params) > 0 and len(params[0]) > 0:
            attrlist = params[0].split(",")
        # Scope (base/one/sub)
        if len(params) > 1 and params[1]:
            _scope = params[1].lower()
            if _scope not in ("base", "one", "sub"):
                raise UrlParseError("'%s' has an invalid scope type." % strurl)
            scope = _scope
        # Filter
        if len(params) > 2:
            filter_exp = urllib.parse.unquote(params[2])
        self.__hostinfo = (scheme, host, port)
        self.__searchinfo = (basedn, attrlist, scope, filter_exp)
        self.__ipv6 = ipv6

    @staticmethod
    def is_valid_hostname(hostname: str) -> Tuple[bool, bool]:
        """Validate a hostname."""
        hostname_regex = re.compile(
            r"^(([a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9\-]"
            r"*[a-zA-Z0-9])\.)*([A-Za-z0-9]|"
            r"[A-Za-z0-9][A-Za-z0-9\-]*[A-Za-z0-9])$"
        )
        try:
            # Try parsing IPv6 address.
            IPv6Address(hostname)
            return (True, True)
        except ValueError:
            # Try IPv4 and standard hostname.
            if hostname_regex.match(hostname):
                return (True, False)
            return (False, False)

    @property
    def scheme(self) -> str:
        """The URL scheme, `ldap` or `ldaps`."""
        return self.__hostinfo[0]

    @property
    def host(self) -> str:
        """The hostname."""
        return self.__hostinfo[1]

    @property
    def port(self) -> int:
        """The portnumber."""
        return self.__hostinfo[2]

    @property
    def basedn(self) -> str:
        """The base DN hint of the URL."""
        return self.__searchinfo[0]

    @property
    def attributes(self) -> List[str]:
        """The searching attributes."""
        return list(self.__searchinfo[1])

    @property
    def scope(self) -> str:
        """The searching scope."""
        return self.__searchinfo[2]

    @property
    def filter_exp(self) -> str:
        """The searching filter expression."""
        return self.__searchinfo[3]

    def get_address(self) -> str:
        """
        Return the full address of the host.
        """
        if self.__ipv6:
            return "%s://[%s]:%d" % self.__hostinfo
        return "%s://%s:%d" % self.__hostinfo

    def __eq__(self, other: object) -> bool:
        """
        Check equality of two LDAPURL or an LDAPURL and a string.
        """
        if isinstance(other, LDAPURL):
            return (
                self.scheme == other.scheme
                and self.host.lower() == other.host.lower()
                and self.port == other.port
                and self.basedn.lower() == other.basedn.lower()
                and self.scope == other.scope
                and self.filter_exp == other.filter_exp
                and self.attributes == other.attributes
            )
        elif isinstance(other, str):
            try:
                other = LDAPURL(other)
            except UrlParseError:
                return False
            return self == other
        else:
            return NotImplemented

    def __hash__(self) -> int:
        return hash((self.scheme, self.host.lower(), self.port))

    def __str__(self) -> str:
        """Returns the full format of LDAP URL."""
        strurl = self.get_address()
        strbind = "?".join(
            (
                urllib.parse.quote(self.basedn, safe="=,"),
                ",".join(self.__searchinfo[1]),
                self.scope,
                urllib.parse.quote(self.filter_exp, safe="=,()*"),
            )
        )
        # Remove unnecessary question marks at the end of the string.
        strbind = strbind.rstrip("?")
        if strbind:
            strurl = "%s/%s" % (strurl, strbind)
        return strurl

    def __repr__(self) -> str:
        """The LDAPURL representation."""
        return "<LDAPURL %s>" % str(self)
