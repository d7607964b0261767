"""
.. module:: ldapsearch
   :synopsis: Executing search requests and folding their responses.

"""
import logging
from contextlib import suppress
from enum import IntEnum
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    NamedTuple,
    Optional,
    Union,
)

import ldap

from .errors import OutOfMemoryError, SearchError, _from_ldap_exc
from .ldapentry import LDAPEntry
from .ldapreference import LDAPReference

logger = logging.getLogger(__name__)


class LDAPSearchScope(IntEnum):
    """ Enumeration for LDAP search scopes. """

    BASE = ldap.SCOPE_BASE  #: For searching only the base DN.
    ONELEVEL = ldap.SCOPE_ONELEVEL  #: For searching one tree level under the base DN.
    ONE = ONELEVEL  #: Alias for :attr:`LDAPSearchScope.ONELEVEL`.
    #: For searching the entire subtree, including the base DN.
    SUBTREE = ldap.SCOPE_SUBTREE
    SUB = SUBTREE  #: Alias for :attr:`LDAPSearchScope.SUBTREE`.


class SearchRequest(NamedTuple):
    """Parameters of a single search operation."""

    base: str
    scope: LDAPSearchScope
    filter_exp: Optional[str] = None
    attrlist: Optional[List[str]] = None
    attrsonly: bool = False
    timeout: Optional[int] = None
    sizelimit: int = 0
    firstonly: bool = False


class SearchEntry(NamedTuple):
    """A search entry message, as it is received."""

    dn: str
    attributes: Dict[str, List[bytes]]


class SearchDone(NamedTuple):
    """The end of the search response."""

    msgid: int


SearchItem = Union[SearchEntry, LDAPReference, SearchDone]
SearchResult = Union[Optional[LDAPEntry], List[LDAPEntry]]


def iter_messages(conn: Any, msgid: int, timeout: float = -1) -> Iterator[SearchItem]:
    """
    Generator of the response messages of the `msgid` search operation
    in the order the server sends them. Messages are read one by one,
    only when the next item is requested. The last item is always a
    :class:`SearchDone`. Closing the generator before that abandons the
    operation.

    :param conn: a python-ldap connection object.
    :param int msgid: the ID of the search operation.
    :param float timeout: time limit in seconds for waiting a message.
    :raises ldap.LDAPError: if the operation is failed.
    """
    finished = False
    try:
        while not finished:
            try:
                rtype, rdata, _, _ = conn.result3(msgid, all=0, timeout=timeout)
            except ldap.TIMEOUT:
                # Only the waiting expired, the operation is still pending.
                raise
            except ldap.LDAPError:
                # The error result finishes the operation.
                finished = True
                raise
            if rtype == ldap.RES_SEARCH_ENTRY:
                for dn, attrs in rdata:
                    yield SearchEntry(dn, attrs)
            elif rtype == ldap.RES_SEARCH_REFERENCE:
                for _, refs in rdata:
                    yield LDAPReference(refs)
            elif rtype == ldap.RES_SEARCH_RESULT:
                finished = True
                yield SearchDone(msgid)
    finally:
        if not finished:
            logger.debug("Abandon unfinished search (msgid=%d).", msgid)
            with suppress(ldap.LDAPError):
                conn.abandon_ext(msgid)


def execute(
    conn: Any, request: SearchRequest, raw_attributes: Iterable[str] = ()
) -> SearchResult:
    """
    Send the search request, and fold the received messages into the
    result: the first entry (or None) if `request.firstonly` is set,
    the list of the entries otherwise. Entries without any attribute are
    dropped and search references are skipped.

    :param conn: a python-ldap connection object.
    :param SearchRequest request: the search parameters.
    :param raw_attributes: names of the attributes to keep as bytes.
    :raises SearchError: if the search is failed.
    :raises NoSuchObjectError: if the base entry does not exist.
    :raises OutOfMemoryError: if the result list cannot be assembled.
    """
    timelimit = -1.0
    if request.timeout and request.timeout > 0:
        timelimit = float(request.timeout)
    filter_exp = request.filter_exp if request.filter_exp else None
    raw_attributes = list(raw_attributes)
    logger.debug(
        "Search (base=%s, scope=%d, filter=%s, attrs=%s, timelimit=%s, sizelimit=%d)",
        request.base,
        request.scope,
        filter_exp,
        request.attrlist,
        timelimit,
        request.sizelimit,
    )
    entries = []  # type: List[LDAPEntry]
    try:
        msgid = conn.search_ext(
            request.base,
            int(request.scope),
            filter_exp,
            request.attrlist,
            int(request.attrsonly),
            timeout=timelimit,
            sizelimit=request.sizelimit,
        )
        messages = iter_messages(conn, msgid, timelimit)
        try:
            for item in messages:
                if isinstance(item, SearchEntry):
                    entry = LDAPEntry.from_message(
                        item.dn, item.attributes, raw_attributes
                    )
                    if len(entry) == 0:
                        logger.debug("Drop entry without attributes: %s", item.dn)
                        continue
                    if request.firstonly:
                        return entry
                    entries.append(entry)
                elif isinstance(item, LDAPReference):
                    logger.debug("Skip search reference: %r", item)
        finally:
            messages.close()
    except ldap.LDAPError as exc:
        entries.clear()
        raise _from_ldap_exc(exc, SearchError) from None
    except MemoryError:
        entries.clear()
        raise OutOfMemoryError("Not enough memory to assemble the result.") from None
    if request.firstonly:
        return None
    return entries
