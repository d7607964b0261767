from typing import Iterable, List, Union

from .ldapurl import LDAPURL


class LDAPReference:
    """
    Object for handling an LDAP search reference. The URLs are parsed
    only when the :attr:`references` are accessed.

    :param list references: list of LDAP URLs (as string, bytes or \
    :class:`LDAPURL` objects).
    """

    __slots__ = ("__urls",)

    def __init__(self, references: Iterable[Union[str, bytes, LDAPURL]]) -> None:
        self.__urls = []  # type: List[Union[str, LDAPURL]]
        for ref in references:
            if isinstance(ref, bytes):
                ref = ref.decode("utf-8")
            if not isinstance(ref, (str, LDAPURL)):
                raise TypeError("Reference must be string or LDAPURL.")
            self.__urls.append(ref)

    @property
    def references(self) -> List[LDAPURL]:
        """
        The list of LDAPURLs of the references.

        :raises UrlParseError: if any of the references is not a valid URL.
        """
        return [
            ref if isinstance(ref, LDAPURL) else LDAPURL(ref) for ref in self.__urls
        ]

    def __repr__(self) -> str:
        return "<LDAPReference %s>" % ", ".join(str(ref) for ref in self.__urls)
