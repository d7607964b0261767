import ldap
import ldap.sasl
import pytest

from ldapsession import LDAPClient

ADMIN_DN = "cn=admin,dc=example,dc=com"
ADMIN_PASSWORD = "secret"


def entry_msg(dn, attrs, msgid=1):
    """Search entry message as returned by result3."""
    return (ldap.RES_SEARCH_ENTRY, [(dn, attrs)], msgid, [])


def ref_msg(*urls, msgid=1):
    """Search reference message as returned by result3."""
    return (
        ldap.RES_SEARCH_REFERENCE,
        [(None, [url.encode("utf-8") for url in urls])],
        msgid,
        [],
    )


def done_msg(msgid=1):
    """Search result (end of search) message."""
    return (ldap.RES_SEARCH_RESULT, [], msgid, [])


def person(uid):
    dn = "uid=%s,ou=people,dc=example,dc=com" % uid
    return entry_msg(
        dn,
        {
            "objectClass": [b"top", b"person", b"inetOrgPerson"],
            "uid": [uid.encode("utf-8")],
            "cn": [("%s test" % uid).encode("utf-8")],
        },
    )


class FakeLDAPObject:
    """
    Stand-in for a python-ldap connection. It records every call and
    answers from the scripted state of its :class:`FakeServer`.
    """

    def __init__(self, server, uri):
        self.server = server
        self.uri = uri
        self.calls = []
        self.options = {}
        self.reads = 0
        self.sasl_answers = None
        self.__queue = []
        self.__msgid = 0

    def __record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        error = self.server.errors.get(name)
        if error is not None:
            raise error

    def called(self, name):
        return [call for call in self.calls if call[0] == name]

    def set_option(self, option, invalue):
        self.__record("set_option", option, invalue)
        self.options[option] = invalue

    def start_tls_s(self):
        self.__record("start_tls_s")

    def simple_bind_s(self, who=None, cred=None, serverctrls=None, clientctrls=None):
        self.__record("simple_bind_s", who, cred)
        if self.server.accounts.get(who) != cred:
            raise ldap.INVALID_CREDENTIALS(
                {"result": 49, "desc": "Invalid credentials", "info": "bad secret"}
            )
        return (ldap.RES_BIND, [], 1, [])

    def sasl_interactive_bind_s(
        self, who, auth, serverctrls=None, clientctrls=None, sasl_flags=ldap.SASL_QUIET
    ):
        self.__record("sasl_interactive_bind_s", who, auth, sasl_flags=sasl_flags)
        self.sasl_answers = {
            cb_id: auth.callback(cb_id, "challenge", "prompt", b"default")
            for cb_id in (
                ldap.sasl.CB_AUTHNAME,
                ldap.sasl.CB_USER,
                ldap.sasl.CB_GETREALM,
                ldap.sasl.CB_PASS,
            )
        }
        mech = auth.mech.decode("utf-8")
        authcid = self.sasl_answers[ldap.sasl.CB_AUTHNAME].decode("utf-8")
        password = self.sasl_answers[ldap.sasl.CB_PASS].decode("utf-8")
        if self.server.sasl_accounts.get((mech, authcid)) != password:
            raise ldap.INVALID_CREDENTIALS(
                {"result": 49, "desc": "Invalid credentials", "info": "SASL(-13)"}
            )

    def search_ext(
        self,
        base,
        scope,
        filterstr=None,
        attrlist=None,
        attrsonly=0,
        serverctrls=None,
        clientctrls=None,
        timeout=-1,
        sizelimit=0,
    ):
        self.__record(
            "search_ext",
            base,
            scope,
            filterstr,
            attrlist,
            attrsonly,
            timeout=timeout,
            sizelimit=sizelimit,
        )
        self.__msgid += 1
        self.__queue = list(self.server.responses)
        if self.server.search_error is not None:
            self.__queue.append(self.server.search_error)
        else:
            self.__queue.append(done_msg())
        return self.__msgid

    def result3(self, msgid=ldap.RES_ANY, all=1, timeout=None):
        self.calls.append(("result3", (msgid,), {"all": all, "timeout": timeout}))
        self.reads += 1
        item = self.__queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def abandon_ext(self, msgid, serverctrls=None, clientctrls=None):
        self.__record("abandon_ext", msgid)
        self.__queue = []

    def delete_ext_s(self, dn, serverctrls=None, clientctrls=None):
        self.__record("delete_ext_s", dn)

    def whoami_s(self, serverctrls=None, clientctrls=None):
        self.__record("whoami_s")
        return self.server.authzid

    def unbind_ext_s(self, serverctrls=None, clientctrls=None):
        self.__record("unbind_ext_s")


class FakeServer:
    """Scripted state shared by the fake connections."""

    def __init__(self):
        self.connections = []
        self.accounts = {ADMIN_DN: ADMIN_PASSWORD, "": ""}
        self.sasl_accounts = {("DIGEST-MD5", "chuck"): "p@ssword"}
        self.responses = []
        self.search_error = None
        self.errors = {}
        self.authzid = "dn:" + ADMIN_DN

    def initialize(self, uri, *args, **kwargs):
        conn = FakeLDAPObject(self, uri)
        self.connections.append(conn)
        return conn

    @property
    def conn(self):
        """The last opened connection."""
        return self.connections[-1]


@pytest.fixture
def server(monkeypatch):
    """A fake directory server behind ldap.initialize."""
    srv = FakeServer()
    monkeypatch.setattr(ldap, "initialize", srv.initialize)
    return srv


@pytest.fixture
def client(server):
    """An LDAPClient bound with simple authentication."""
    cli = LDAPClient()
    cli.connect(binddn=ADMIN_DN, password=ADMIN_PASSWORD)
    yield cli
    cli.close()
