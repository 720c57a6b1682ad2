"""Request body encoding.

Turns the ``(data, json, files)`` triple of a request into default headers
and a byte payload. JSON wins over ``data``; ``files`` turns the body into
``multipart/form-data``; file handles and :class:`~pathlib.Path` objects
are not read here, they are streamed at connect time.
"""

from __future__ import annotations

import json as jsonlib
import logging
import uuid
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Dict, Optional, Sequence
from urllib.parse import urlencode

from .exceptions import ConfigurationError
from .structures import FileLike

LOGGER = logging.getLogger(__name__)

DEFAULT_DATA_HEADERS = {"Content-Type": "text/plain"}
DEFAULT_FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}
DEFAULT_UPLOAD_HEADERS = {"Content-Type": "multipart/form-data; boundary=%s"}
DEFAULT_JSON_HEADERS = {"Content-Type": "application/json"}

_JSON_SCALARS = (str, int, float, bool)


def is_stream(data: Any) -> bool:
    """Return ``True`` for data that is streamed rather than materialised."""

    return isinstance(data, Path) or callable(getattr(data, "read", None))


def coerce_to_json(value: Any) -> str:
    """Serialise ``value`` to JSON text.

    Mappings, JSON scalars, sequences and other finite iterables are
    accepted. Bytes, streams and arbitrary objects are rejected.
    """

    if isinstance(value, Mapping):
        payload: Any = {str(key): item for key, item in value.items()}
    elif isinstance(value, _JSON_SCALARS):
        payload = value
    elif isinstance(value, (bytes, bytearray, memoryview)) or is_stream(value):
        raise ConfigurationError(f"Could not coerce {type(value).__name__} to JSON.")
    elif isinstance(value, Iterable):
        payload = list(value)
    else:
        raise ConfigurationError(f"Could not coerce {type(value).__name__} to JSON.")
    try:
        return jsonlib.dumps(payload)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Could not coerce {type(value).__name__} to JSON: {exc}") from exc


def form_encode(data: Mapping[Any, Any]) -> str:
    return urlencode([(str(key), str(value)) for key, value in data.items()])


def new_boundary() -> str:
    return uuid.uuid4().hex


class BodyEncoder:
    """Encode one request body.

    Construction validates the inputs and fixes the body kind; the bytes
    themselves are only produced by :meth:`encode`.
    """

    def __init__(
        self,
        data: Any = None,
        json: Any = None,
        files: Optional[Sequence[FileLike]] = None,
    ) -> None:
        self.files: tuple[FileLike, ...] = tuple(files or ())
        self.boundary: Optional[str] = None
        self.json_text: Optional[str] = None
        self.data = data

        if json is not None:
            if self.files:
                raise ConfigurationError("json cannot be combined with file attachments")
            self.json_text = coerce_to_json(json)
            self.kind = "json"
        elif self.files:
            if data is not None and not isinstance(data, Mapping):
                raise ConfigurationError(
                    f"data must be a mapping when files are attached, not {type(data).__name__}"
                )
            self.boundary = new_boundary()
            self.kind = "multipart"
        elif data is None:
            self.kind = "none"
        elif isinstance(data, Mapping):
            self.kind = "form"
        elif is_stream(data):
            self.kind = "stream"
        else:
            self.kind = "text"

    @property
    def default_headers(self) -> Dict[str, str]:
        if self.kind == "json":
            return dict(DEFAULT_JSON_HEADERS)
        if self.kind == "form":
            return dict(DEFAULT_FORM_HEADERS)
        if self.kind in ("text", "stream"):
            return dict(DEFAULT_DATA_HEADERS)
        if self.kind == "multipart":
            return {key: value % self.boundary for key, value in DEFAULT_UPLOAD_HEADERS.items()}
        return {}

    @property
    def streaming_source(self) -> Any:
        """The file or stream to send at connect time, if any."""

        return self.data if self.kind == "stream" else None

    def encode(self, content_type: Optional[str] = None) -> bytes:
        """Return the body bytes.

        For multipart bodies the boundary is taken from ``content_type`` when
        it declares one, so an explicit caller header stays consistent with
        the payload.
        """

        if self.kind == "json":
            assert self.json_text is not None
            return self.json_text.encode("utf-8")
        if self.kind == "form":
            return form_encode(self.data).encode("utf-8")
        if self.kind == "text":
            if isinstance(self.data, (bytes, bytearray, memoryview)):
                return bytes(self.data)
            return str(self.data).encode("utf-8")
        if self.kind == "multipart":
            return self._multipart(self._boundary_for(content_type))
        return b""

    def _boundary_for(self, content_type: Optional[str]) -> str:
        if content_type and "boundary=" in content_type:
            return content_type.split("boundary=", 1)[1].split(";", 1)[0].strip().strip('"')
        assert self.boundary is not None
        return self.boundary

    def _multipart(self, boundary: str) -> bytes:
        parts = bytearray()
        for key, value in (self.data or {}).items():
            parts += f"--{boundary}\r\n".encode("utf-8")
            parts += f'Content-Disposition: form-data; name="{key}"\r\n\r\n'.encode("utf-8")
            parts += str(value).encode("utf-8")
            parts += b"\r\n"
        for attachment in self.files:
            parts += f"--{boundary}\r\n".encode("utf-8")
            parts += (
                f'Content-Disposition: form-data; name="{attachment.field_name}"; '
                f'filename="{attachment.file_name}"\r\n\r\n'
            ).encode("utf-8")
            parts += attachment.contents
            parts += b"\r\n"
        parts += f"--{boundary}--\r\n".encode("utf-8")
        LOGGER.debug("Encoded multipart body with %d part(s)", len(self.files) + len(self.data or {}))
        return bytes(parts)


__all__ = ["BodyEncoder", "coerce_to_json", "form_encode", "is_stream"]
