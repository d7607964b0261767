import ldap
import pytest
from conftest import entry_msg, person, ref_msg

from ldapsession import LDAPReference, LDAPSearchScope, SearchRequest
from ldapsession.errors import (
    NoSuchObjectError,
    OutOfMemoryError,
    SearchError,
    SizeLimitError,
    TimeoutError,
)
from ldapsession.ldapsearch import SearchDone, SearchEntry, execute, iter_messages


@pytest.fixture
def conn(server):
    """ A raw fake connection. """
    return server.initialize("ldap://localhost")


def test_scope_aliases():
    """ Test the values and aliases of the search scopes. """
    assert LDAPSearchScope.BASE == ldap.SCOPE_BASE
    assert LDAPSearchScope.ONE is LDAPSearchScope.ONELEVEL
    assert LDAPSearchScope.SUB is LDAPSearchScope.SUBTREE
    assert LDAPSearchScope(2) is LDAPSearchScope.SUBTREE


def test_iter_messages(server, conn):
    """ Test that the messages are yielded in order. """
    server.responses = [
        person("chuck"),
        ref_msg("ldap://other/dc=com"),
        person("ellie"),
    ]
    msgid = conn.search_ext("dc=example,dc=com", ldap.SCOPE_SUBTREE)
    items = list(iter_messages(conn, msgid))
    assert [type(item) for item in items] == [
        SearchEntry,
        LDAPReference,
        SearchEntry,
        SearchDone,
    ]
    assert items[0].dn == "uid=chuck,ou=people,dc=example,dc=com"
    assert items[1].references[0].host == "other"
    assert items[-1].msgid == msgid
    assert conn.called("abandon_ext") == []


def test_iter_messages_lazy(server, conn):
    """ Test that messages are read only on demand. """
    server.responses = [person("chuck"), person("ellie")]
    msgid = conn.search_ext("dc=example,dc=com", ldap.SCOPE_SUBTREE)
    messages = iter_messages(conn, msgid)
    assert conn.reads == 0
    first = next(messages)
    assert first.dn.startswith("uid=chuck")
    assert conn.reads == 1
    messages.close()
    assert conn.reads == 1
    assert conn.called("abandon_ext") == [("abandon_ext", (msgid,), {})]


def test_iter_messages_error(server, conn):
    """ Test that an error result finishes the stream without abandoning. """
    server.search_error = ldap.NO_SUCH_OBJECT({"result": 32, "desc": "No such object"})
    msgid = conn.search_ext("ou=nothing,dc=example,dc=com", ldap.SCOPE_SUBTREE)
    with pytest.raises(ldap.NO_SUCH_OBJECT):
        list(iter_messages(conn, msgid))
    assert conn.called("abandon_ext") == []


def test_execute(server, conn):
    """ Test folding a search response into a list. """
    server.responses = [
        person("chuck"),
        entry_msg("cn=empty,dc=example,dc=com", {}),
        ref_msg("ldap://other/dc=com"),
        person("sarah"),
    ]
    request = SearchRequest("dc=example,dc=com", LDAPSearchScope.SUBTREE)
    result = execute(conn, request)
    assert [entry.dn for entry in result] == [
        "uid=chuck,ou=people,dc=example,dc=com",
        "uid=sarah,ou=people,dc=example,dc=com",
    ]
    assert result[1]["objectClass"] == ["top", "person", "inetOrgPerson"]


def test_execute_empty_result(server, conn):
    """ Test a search without any matching entry. """
    request = SearchRequest("dc=example,dc=com", LDAPSearchScope.SUBTREE)
    assert execute(conn, request) == []
    request = SearchRequest("dc=example,dc=com", LDAPSearchScope.BASE, firstonly=True)
    assert execute(conn, request) is None


def test_execute_firstonly(server, conn):
    """ Test that reading stops after the first entry. """
    server.responses = [
        entry_msg("cn=empty,dc=example,dc=com", {}),
        person("chuck"),
        person("sarah"),
    ]
    request = SearchRequest(
        "dc=example,dc=com", LDAPSearchScope.SUBTREE, firstonly=True
    )
    entry = execute(conn, request)
    assert entry.dn == "uid=chuck,ou=people,dc=example,dc=com"
    assert conn.reads == 2
    assert len(conn.called("abandon_ext")) == 1


@pytest.mark.parametrize(
    "timeout, expected", [(None, -1), (0, -1), (5, 5.0)],
)
def test_execute_timelimit(server, conn, timeout, expected):
    """ Test converting the timeout to the time limit of the operation. """
    request = SearchRequest("dc=example,dc=com", LDAPSearchScope.BASE, timeout=timeout)
    execute(conn, request)
    _, _, kwargs = conn.called("search_ext")[0]
    assert kwargs["timeout"] == expected
    _, _, kwargs = conn.called("result3")[0]
    assert kwargs["timeout"] == expected


def test_execute_empty_filter(server, conn):
    """ Test that an empty filter is sent as None. """
    request = SearchRequest("dc=example,dc=com", LDAPSearchScope.ONE, filter_exp="")
    execute(conn, request)
    _, args, kwargs = conn.called("search_ext")[0]
    assert args == ("dc=example,dc=com", ldap.SCOPE_ONELEVEL, None, None, 0)
    assert kwargs["sizelimit"] == 0


def test_execute_raw_attributes(server, conn):
    """ Test that raw attributes and undecodable values stay bytes. """
    server.responses = [
        entry_msg(
            "cn=chuck,dc=example,dc=com",
            {"cn": [b"chuck"], "jpegPhoto": [b"\xff\xd8"], "sn": [b"\xc3\xa9"]},
        )
    ]
    request = SearchRequest("dc=example,dc=com", LDAPSearchScope.BASE)
    entry = execute(conn, request, ["CN"])[0]
    assert entry["cn"] == [b"chuck"]
    assert entry["jpegPhoto"] == [b"\xff\xd8"]
    assert entry["sn"] == ["é"]


@pytest.mark.parametrize(
    "error, expected",
    [
        (
            ldap.NO_SUCH_OBJECT({"result": 32, "desc": "No such object"}),
            NoSuchObjectError,
        ),
        (ldap.SIZELIMIT_EXCEEDED({"result": 4, "desc": "Size limit"}), SizeLimitError),
        (ldap.TIMELIMIT_EXCEEDED({"result": 3, "desc": "Time limit"}), TimeoutError),
        (ldap.FILTER_ERROR({"result": 87, "desc": "Bad search filter"}), SearchError),
    ],
)
def test_execute_errors(server, conn, error, expected):
    """ Test converting the errors of the search. """
    server.responses = [person("chuck")]
    server.search_error = error
    request = SearchRequest("dc=example,dc=com", LDAPSearchScope.SUBTREE)
    with pytest.raises(expected) as excinfo:
        execute(conn, request)
    assert excinfo.value.code == error.args[0]["result"]


def test_execute_out_of_memory(server, conn):
    """ Test that a MemoryError is raised as OutOfMemoryError. """
    server.responses = [person("chuck"), MemoryError()]
    request = SearchRequest("dc=example,dc=com", LDAPSearchScope.SUBTREE)
    with pytest.raises(OutOfMemoryError):
        execute(conn, request)
    with pytest.raises(MemoryError):
        execute(conn, request)


def test_execute_wait_timeout(server, conn):
    """ Test that an expired wait abandons the pending operation. """
    server.responses = [person("chuck")]
    server.search_error = ldap.TIMEOUT({"result": -5, "desc": "Timed out"})
    request = SearchRequest("dc=example,dc=com", LDAPSearchScope.SUBTREE, timeout=2)
    with pytest.raises(TimeoutError):
        execute(conn, request)
    assert len(conn.called("abandon_ext")) == 1


def test_execute_firstonly_abandon_failure(server, conn):
    """ Test that a failed abandon does not lose the found entry. """
    server.responses = [person("chuck"), person("sarah")]
    server.errors["abandon_ext"] = ldap.SERVER_DOWN(
        {"result": -1, "desc": "Can't contact LDAP server"}
    )
    request = SearchRequest(
        "dc=example,dc=com", LDAPSearchScope.SUBTREE, firstonly=True
    )
    entry = execute(conn, request)
    assert entry.dn == "uid=chuck,ou=people,dc=example,dc=com"
    assert len(conn.called("abandon_ext")) == 1
