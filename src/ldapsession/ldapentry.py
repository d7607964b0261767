import collections.abc
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
)


class LDAPEntry(collections.abc.MutableMapping):
    """
    An LDAP entry: a distinguished name and its attributes. Attribute
    names are case-insensitive, but the first spelling used is kept.
    Every value is stored as a list.

    :param str dn: the distinguished name of the entry.
    :param attributes: optional mapping of attribute names to values.
    """

    __slots__ = ("__dn", "__attrs")

    def __init__(
        self, dn: str, attributes: Optional[Mapping[str, Any]] = None
    ) -> None:
        if not isinstance(dn, str):
            raise TypeError("The dn must be a string.")
        self.__dn = dn
        # Lower-cased name -> (original name, values).
        self.__attrs = {}  # type: Dict[str, Tuple[str, List[Any]]]
        if attributes:
            self.update(attributes)

    @classmethod
    def from_message(
        cls,
        dn: str,
        attributes: Mapping[str, Iterable[bytes]],
        raw_attributes: Iterable[str] = (),
    ) -> "LDAPEntry":
        """
        Create an LDAPEntry from the `(dn, attributes)` pair of a search
        entry message. Values are decoded as UTF-8, except for the
        attributes listed in `raw_attributes` and the values that are
        not valid UTF-8, which are kept as bytes.

        :param str dn: the DN of the entry.
        :param dict attributes: the attributes as received.
        :param raw_attributes: names of the attributes to keep as bytes.
        :return: the new entry, possibly without any attribute.
        :rtype: :class:`LDAPEntry`
        """
        raw = {name.lower() for name in raw_attributes}
        entry = cls(dn)
        for name, values in attributes.items():
            if name.lower() in raw:
                entry[name] = list(values)
            else:
                entry[name] = [_decode(val) for val in values]
        return entry

    @property
    def dn(self) -> str:
        """The distinguished name of the entry."""
        return self.__dn

    def __getitem__(self, key: str) -> List[Any]:
        return self.__attrs[self.__key(key)][1]

    def __setitem__(self, key: str, value: Any) -> None:
        if isinstance(value, (str, bytes)) or not isinstance(
            value, collections.abc.Iterable
        ):
            value = [value]
        lkey = self.__key(key)
        name = self.__attrs[lkey][0] if lkey in self.__attrs else key
        self.__attrs[lkey] = (name, list(value))

    def __delitem__(self, key: str) -> None:
        del self.__attrs[self.__key(key)]

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self.__attrs.values())

    def __len__(self) -> int:
        return len(self.__attrs)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self.__attrs

    def __eq__(self, other: object) -> bool:
        """
        Two LDAPEntry objects are considered equals, if their DN is the same.
        """
        if isinstance(other, LDAPEntry):
            return self.dn.lower() == other.dn.lower()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.dn.lower())

    def __repr__(self) -> str:
        return "<LDAPEntry %s %r>" % (self.dn, dict(self.items()))

    @staticmethod
    def __key(key: str) -> str:
        if not isinstance(key, str):
            raise TypeError("Attribute name must be a string.")
        return key.lower()


def _decode(value: Any) -> Any:
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return value
    return value
