"""Cookie records and the ordered, name-keyed cookie jar."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from http.cookies import CookieError, SimpleCookie
from typing import Dict, Iterable, Iterator, Mapping, Optional, Union


@dataclass(frozen=True)
class Cookie:
    """A single cookie with its attributes (``Path``, ``HttpOnly``, ...)."""

    name: str
    value: str
    attributes: Dict[str, Union[str, bool]] = field(default_factory=dict)

    @classmethod
    def from_header(cls, header: str) -> "Cookie":
        """Parse one ``Set-Cookie`` header value."""

        parsed = SimpleCookie()
        try:
            parsed.load(header)
        except (CookieError, AttributeError):
            return cls._from_segments(header)
        morsels = list(parsed.values())
        if len(morsels) != 1:
            # SimpleCookie silently drops names it considers illegal.
            return cls._from_segments(header)
        morsel = morsels[0]
        attributes: Dict[str, Union[str, bool]] = {}
        for key in morsel.keys():
            attr = morsel[key]
            if attr in ("", None):
                continue
            attributes[key] = attr if isinstance(attr, str) else bool(attr)
        return cls(morsel.key, morsel.value, attributes)

    @classmethod
    def _from_segments(cls, header: str) -> "Cookie":
        segments = [segment.strip() for segment in header.split(";")]
        name, _, value = segments[0].partition("=")
        attributes: Dict[str, Union[str, bool]] = {}
        for segment in segments[1:]:
            if not segment:
                continue
            key, sep, attr = segment.partition("=")
            attributes[key.strip().lower()] = attr.strip() if sep else True
        return cls(name.strip(), value.strip(), attributes)

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


CookieSource = Union["CookieJar", Mapping[str, str], Iterable[Cookie], None]


class CookieJar(Mapping[str, Cookie]):
    """Ordered cookies keyed by name.

    Merging keeps the first position of a name but takes the most recently
    merged value.
    """

    def __init__(self, cookies: CookieSource = None) -> None:
        self._cookies: "OrderedDict[str, Cookie]" = OrderedDict()
        self.merge(cookies)

    def merge(self, cookies: CookieSource) -> "CookieJar":
        if cookies is None:
            return self
        if isinstance(cookies, CookieJar):
            items: Iterable[Cookie] = list(cookies.values())
        elif isinstance(cookies, Mapping):
            items = [Cookie(str(name), str(value)) for name, value in cookies.items()]
        else:
            items = list(cookies)
        for cookie in items:
            self._cookies[cookie.name] = cookie
        return self

    def add_header(self, header: str) -> Cookie:
        cookie = Cookie.from_header(header)
        self._cookies[cookie.name] = cookie
        return cookie

    def get_value(self, name: str, default: Optional[str] = None) -> Optional[str]:
        cookie = self._cookies.get(name)
        return default if cookie is None else cookie.value

    def as_dict(self) -> Dict[str, str]:
        return {name: cookie.value for name, cookie in self._cookies.items()}

    def copy(self) -> "CookieJar":
        return CookieJar(self)

    def __getitem__(self, name: str) -> Cookie:
        return self._cookies[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._cookies)

    def __len__(self) -> int:
        return len(self._cookies)

    def __str__(self) -> str:
        return "; ".join(str(cookie) for cookie in self._cookies.values())

    def __repr__(self) -> str:
        return f"<CookieJar [{self}]>"


__all__ = ["Cookie", "CookieJar"]
