"""
.. module:: credentials
   :synopsis: Binding strategies for simple and SASL authentication.

"""
import logging
from typing import Any, NamedTuple, Optional, Union

import ldap
import ldap.sasl

from .errors import BindError, _from_ldap_exc

logger = logging.getLogger(__name__)


class SimpleCredentials(NamedTuple):
    """Bind DN and password for LDAP simple bind."""

    binddn: Optional[str] = None
    password: Optional[str] = None


class SaslCredentials(NamedTuple):
    """Parameters of a SASL interactive bind."""

    mechanism: str
    binddn: Optional[str] = None
    authzid: Optional[str] = None
    realm: Optional[str] = None
    authcid: Optional[str] = None
    password: Optional[str] = None


Credentials = Union[SimpleCredentials, SaslCredentials]


class SaslInteraction(ldap.sasl.sasl):
    """
    Interaction defaults for SASL binding. Every prompt of the mechanism
    is answered from the values given here, missing values are answered
    with an empty string. It never falls back to the default answer of
    the SASL library or to the terminal.

    :param SaslCredentials creds: the SASL credentials.
    """

    def __init__(self, creds: SaslCredentials) -> None:
        cb_value_dict = {
            ldap.sasl.CB_AUTHNAME: creds.authcid or "",
            ldap.sasl.CB_USER: creds.authzid or "",
            ldap.sasl.CB_GETREALM: creds.realm or "",
            ldap.sasl.CB_PASS: creds.password or "",
        }
        super().__init__(cb_value_dict, creds.mechanism)

    def callback(
        self, cb_id: int, challenge: Any, prompt: Any, defresult: Any
    ) -> bytes:
        logger.debug("Answering SASL prompt 0x%X.", cb_id)
        return self.cb_value_dict.get(cb_id, "").encode("utf-8")


def create_credentials(
    binddn: Optional[str] = None,
    password: Optional[str] = None,
    mechanism: Optional[str] = None,
    username: Optional[str] = None,
    realm: Optional[str] = None,
    authname: Optional[str] = None,
) -> Credentials:
    """
    Select the credentials variant for a bind. The presence of a
    non-empty `mechanism` alone selects SASL, in that case `username`
    is used as the authorization ID and `authname` as the authentication
    ID.

    :raises TypeError: if any of the parameters is not a string or None.
    """
    params = (binddn, password, mechanism, username, realm, authname)
    if any(not isinstance(param, (str, type(None))) for param in params):
        raise TypeError("Every parameter must be a string or None.")
    if mechanism:
        return SaslCredentials(
            mechanism.upper(), binddn, username, realm, authname, password
        )
    return SimpleCredentials(binddn, password)


def bind(conn: Any, creds: Credentials) -> None:
    """
    Perform exactly one bind attempt on the opened `conn` connection.
    A failed attempt is not retried.

    :param conn: a python-ldap connection object.
    :param creds: the credentials.
    :raises BindError: if the server rejects the bind.
    """
    try:
        if isinstance(creds, SaslCredentials):
            logger.debug(
                "SASL bind (mech=%s, authcid=%s, authzid=%s, realm=%s)",
                creds.mechanism,
                creds.authcid,
                creds.authzid,
                creds.realm,
            )
            conn.sasl_interactive_bind_s(
                creds.binddn or "",
                SaslInteraction(creds),
                sasl_flags=ldap.SASL_QUIET,
            )
        else:
            logger.debug("Simple bind (binddn=%s)", creds.binddn)
            # A missing password means an unauthenticated bind.
            conn.simple_bind_s(creds.binddn or "", creds.password or "")
    except ldap.LDAPError as exc:
        raise _from_ldap_exc(exc, BindError, refine=False) from None
