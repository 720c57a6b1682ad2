"""Small value types carried by a :class:`~lazyhttp.models.Request`."""

from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Tuple, Union

from requests.structures import CaseInsensitiveDict

__all__ = [
    "Authorization",
    "BasicAuthorization",
    "CaseInsensitiveDict",
    "FileLike",
    "Proxy",
]


class Authorization(Protocol):
    """Anything able to produce a single authorization header."""

    @property
    def header(self) -> Tuple[str, str]: ...


@dataclass(frozen=True)
class BasicAuthorization:
    user: str
    password: str

    @property
    def header(self) -> Tuple[str, str]:
        token = base64.b64encode(f"{self.user}:{self.password}".encode("utf-8")).decode("ascii")
        return "Authorization", f"Basic {token}"

    def __repr__(self) -> str:
        return f"BasicAuthorization(user={self.user!r}, password='***')"


@dataclass(frozen=True)
class FileLike:
    """A file attachment for multipart uploads.

    Contents are read once, when the value is created, and never change.
    """

    field_name: str
    file_name: str
    contents: bytes

    def __post_init__(self) -> None:
        if isinstance(self.contents, str):
            object.__setattr__(self, "contents", self.contents.encode("utf-8"))
        elif not isinstance(self.contents, bytes):
            object.__setattr__(self, "contents", bytes(self.contents))

    @classmethod
    def from_path(
        cls,
        path: Union[str, os.PathLike],
        field_name: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> "FileLike":
        source = Path(path)
        name = file_name or source.name
        return cls(field_name or name, name, source.read_bytes())


@dataclass(frozen=True)
class Proxy:
    """An HTTP proxy; https targets are tunnelled through it with CONNECT."""

    host: str
    port: int = 8080

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"
