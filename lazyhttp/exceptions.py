"""Exceptions raised by the lazyhttp engine."""


class HTTPClientError(Exception):
    """Base error for every failure raised by lazyhttp."""


class ConfigurationError(HTTPClientError, ValueError):
    """A request could not be built or configured."""


class TransportError(HTTPClientError, OSError):
    """Connection, handshake, read or write failure."""


class Timeout(TransportError):
    """Timeout communicating with the remote server."""


class TLSVerificationError(TransportError):
    """The hostname verifier rejected the peer."""


class TooManyRedirects(TransportError):
    """A redirect chain exceeded the configured number of hops."""


class StateError(HTTPClientError, RuntimeError):
    """A lazily computed field was re-entered while being computed."""
