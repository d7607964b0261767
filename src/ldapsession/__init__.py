from .ldapurl import LDAPURL
from .ldapentry import LDAPEntry
from .ldapreference import LDAPReference
from .ldapsearch import LDAPSearchScope, SearchRequest
from .credentials import SaslCredentials, SimpleCredentials
from .ldapclient import LDAPClient
from .errors import *
from .utils import *

__version__ = "0.3.0"

__all__ = [
    "LDAPClient",
    "LDAPEntry",
    "LDAPReference",
    "LDAPSearchScope",
    "LDAPURL",
    "SaslCredentials",
    "SearchRequest",
    "SimpleCredentials",
    # Errors
    "LDAPError",
    "UrlParseError",
    "TLSError",
    "BindError",
    "AuthMethodNotSupported",
    "NotConnected",
    "SearchError",
    "SizeLimitError",
    "NoSuchObjectError",
    "DeleteError",
    "NotAllowedOnNonleaf",
    "UnbindError",
    "WhoamiError",
    "OutOfMemoryError",
    "ConnectionError",
    "TimeoutError",
    "InsufficientAccess",
    "InvalidDN",
    "UnwillingToPerform",
    # Util functions
    "escape_attribute_value",
    "escape_filter_exp",
    "get_vendor_info",
    "set_debug",
]
