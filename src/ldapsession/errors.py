from typing import Any, Optional, Type

import ldap


class LDAPError(Exception):
    """General LDAP error."""

    code = 0

    def __init__(
        self, msg: str = "", info: Optional[str] = None, code: Optional[int] = None
    ) -> None:
        super().__init__(msg)
        self.info = info
        if code is not None:
            self.code = code

    @property
    def hexcode(self) -> int:
        """ Error code in 16 bit length hexadecimal format. """
        return (self.code + (1 << 16)) % (1 << 16)

    def __str__(self) -> str:
        msg = self.args[0] if self.args else ""
        if self.info:
            msg = "{}: {}".format(msg, self.info) if msg else self.info
        return "{} (0x{:04X} [{:d}])".format(msg, self.hexcode, self.code)


class UrlParseError(LDAPError, ValueError):
    """Raised, when the connection string is not a valid LDAP URL."""

    code = -9


class TLSError(LDAPError):
    """Raised, when the TLS upgrade or the StartTLS negotiation fails."""

    code = -11


class BindError(LDAPError):
    """
    Raised, when the server rejects the authentication or the SASL
    negotiation is failed.
    """

    code = 0x31


class AuthMethodNotSupported(BindError):
    """Raised, when the chosen authentication method is not supported. """

    code = 0x07


class NotConnected(LDAPError):
    """Raised, when an operation needs an open LDAP connection."""

    code = -101


class SearchError(LDAPError):
    """Raised, when a search operation is failed."""

    code = 0x01


class SizeLimitError(SearchError):
    """
    Raised, when the search operation exceeds the client side size
    limit or server side size limit that's applied to the bound user.
    """

    code = 0x04


class NoSuchObjectError(LDAPError):
    """Raised, when the operation's target entry is not in the directory."""

    code = 0x20


class DeleteError(LDAPError):
    """Raised, when the server refuses to remove an entry."""

    code = 0x01


class NotAllowedOnNonleaf(DeleteError):
    """Raised, when the operation is not allowed on a nonleaf object."""

    code = 0x42


class UnbindError(LDAPError):
    """Raised, when closing the connection reports an error."""

    code = 0x01


class WhoamiError(LDAPError):
    """Raised, when the Who Am I? extended operation is failed."""

    code = 0x01


class OutOfMemoryError(LDAPError, MemoryError):
    """Raised, when the search result cannot be assembled in memory."""

    code = -10


class ConnectionError(LDAPError):
    """Raised, when client is not able to connect to the server."""

    code = -1


class TimeoutError(LDAPError):
    """Raised, when the specified timeout is exceeded. """

    code = -5


class InsufficientAccess(LDAPError):
    """Raised, when the user has insufficient access rights."""

    code = 0x32


class InvalidDN(LDAPError):
    """Raised, when dn string is not a valid distinguished name."""

    code = 0x22


class UnwillingToPerform(LDAPError):
    """Raised, when the server is not willing to handle requests."""

    code = 0x35


def _get_error(code: int, default: Type[LDAPError] = LDAPError) -> Type[LDAPError]:
    """ Return an error by code number, or `default` for unmapped codes. """
    if code == -1 or code == 0x51 or code == -11:
        # OpenLDAP returns -1 for Server Down and -11 for Connection error.
        return ConnectionError
    elif code == 0x03 or code == 0x55 or code == -5:
        return TimeoutError
    elif code == 0x04:
        return SizeLimitError
    elif code == 0x07:
        return AuthMethodNotSupported
    elif code == 0x20:
        return NoSuchObjectError
    elif code == 0x22:
        return InvalidDN
    elif code == 0x32:
        return InsufficientAccess
    elif code == 0x35:
        return UnwillingToPerform
    elif code == 0x42:
        return NotAllowedOnNonleaf
    else:
        return default


_OPERATION_ERRORS = (BindError, SearchError, DeleteError, UnbindError, WhoamiError)


def _from_ldap_exc(
    exc: ldap.LDAPError, default: Type[LDAPError], refine: bool = True
) -> LDAPError:
    """
    Convert a python-ldap exception to an LDAPError, keeping the result
    code and the server's diagnostic texts. With `refine` the result code
    can select a more specific error than `default`, but never one that
    belongs to another operation.
    """
    details = exc.args[0] if exc.args else {}  # type: Any
    if not isinstance(details, dict):
        details = {"desc": str(details)}
    code = details.get("result", default.code)
    cls = _get_error(code, default)
    if not issubclass(cls, default) and (
        not refine or issubclass(cls, _OPERATION_ERRORS)
    ):
        cls = default
    return cls(details.get("desc", ""), details.get("info") or None, code)
