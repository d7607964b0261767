import logging
import sys
from typing import Optional, Tuple

import ldap
import ldap.dn
import ldap.filter

_DEBUG_HANDLER = None  # type: Optional[logging.Handler]


def set_debug(debug: bool, level: int = 0) -> None:
    """
    Turn debug messages on or off. The messages of the package are
    written to the standard error, `level` is passed to the underlying
    LDAP library as its own debug level.

    :param bool debug: enabling/disabling debug messages.
    :param int level: the debug level of the LDAP library.
    :raises TypeError: if `debug` is not bool or `level` is not int.
    """
    global _DEBUG_HANDLER
    if not isinstance(debug, bool):
        raise TypeError("Debug parameter must be bool.")
    if not isinstance(level, int):
        raise TypeError("Level parameter must be int.")
    logger = logging.getLogger("ldapsession")
    if debug:
        if _DEBUG_HANDLER is None:
            _DEBUG_HANDLER = logging.StreamHandler(sys.stderr)
            _DEBUG_HANDLER.setFormatter(
                logging.Formatter("DBG: %(funcName)s %(message)s")
            )
            logger.addHandler(_DEBUG_HANDLER)
        logger.setLevel(logging.DEBUG)
    else:
        if _DEBUG_HANDLER is not None:
            logger.removeHandler(_DEBUG_HANDLER)
            _DEBUG_HANDLER = None
        logger.setLevel(logging.NOTSET)
        level = 0
    ldap.set_option(ldap.OPT_DEBUG_LEVEL, level)


def get_vendor_info() -> Tuple[str, int]:
    """
    Return the vendor's name and the version number of the LDAP library.

    :return: the vendor name and version.
    :rtype: tuple
    """
    info = ldap.get_option(ldap.OPT_API_INFO)
    return (info["vendor_name"], info["vendor_version"])


def escape_attribute_value(attrval: str) -> str:
    """
    Escapes the special character in an attribute value
    based on RFC 4514.

    :param str attrval: the attribute value.
    :return: The escaped attribute value.
    :rtype: str
    """
    return ldap.dn.escape_dn_chars(attrval)


def escape_filter_exp(filter_exp: str) -> str:
    """
    Escapes the special characters in an LDAP filter based on RFC 4515.

    :param str filter_exp: the unescaped filter expression.
    :return: the escaped filter expression.
    :rtype: str
    """
    return ldap.filter.escape_filter_chars(filter_exp)
