"""Request targets: parsing URIs and rewriting them into HTTP request forms."""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass

from relayhttp.errors import ClientError, ErrorKind

log = logging.getLogger(__name__)

PoolKey = tuple[str, str]
"""A connection pool key: ``(scheme, authority)``."""

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")
_FORBIDDEN_RE = re.compile(r"[\x00-\x20\x7f\"<>\\^`{|}]")


class InvalidUri(ValueError):
    """Raised when text cannot be parsed as a URI."""


@dataclass(frozen=True)
class Uri:
    """A request URI in absolute, authority or origin form.

    An absolute URI has a scheme, an authority and a path (at least ``/``).
    An authority-form URI has only an authority, and an origin-form URI only
    a path and query. The default URI is ``/``.
    """

    scheme: str | None = None
    authority: str | None = None
    path_and_query: str | None = "/"

    @classmethod
    def parse(cls, text: str) -> Uri:
        """Parse ``text`` into a :class:`Uri`, raising :class:`InvalidUri`."""
        if not text:
            raise InvalidUri("empty string")
        if _FORBIDDEN_RE.search(text.split("#", 1)[0]):
            raise InvalidUri(f"invalid uri character in {text!r}")

        if text.startswith("/") or text == "*":
            return cls(path_and_query=text.split("#", 1)[0])

        scheme, sep, rest = text.partition("://")
        if sep:
            if not _SCHEME_RE.match(scheme):
                raise InvalidUri(f"invalid scheme {scheme!r}")
            rest = rest.split("#", 1)[0]
            match = re.search(r"[/?]", rest)
            if match:
                authority, path = rest[: match.start()], rest[match.start():]
            else:
                authority, path = rest, ""
            if not authority:
                raise InvalidUri(f"missing authority in {text!r}")
            _check_authority(authority)
            if not path:
                path = "/"
            elif path.startswith("?"):
                path = "/" + path
            return cls(scheme=scheme.lower(), authority=authority, path_and_query=path)

        if any(ch in text for ch in "/?#"):
            raise InvalidUri(f"relative uri without leading slash: {text!r}")
        _check_authority(text)
        return cls(authority=text, path_and_query=None)

    def host(self) -> str | None:
        """The host part of the authority, brackets kept for IPv6."""
        if self.authority is None:
            return None
        hostport = self.authority.rpartition("@")[2]
        if hostport.startswith("["):
            end = hostport.find("]")
            return hostport[: end + 1]
        return hostport.partition(":")[0]

    def port(self) -> int | None:
        """The explicit port of the authority, if any."""
        if self.authority is None:
            return None
        return _port_of(self.authority)

    def path(self) -> str:
        """The path without the query; ``/`` when there is none."""
        if not self.path_and_query:
            return "/" if self.scheme is not None else ""
        return self.path_and_query.partition("?")[0] or "/"

    def __str__(self) -> str:
        parts = []
        if self.scheme is not None:
            parts.append(f"{self.scheme}://")
        if self.authority is not None:
            parts.append(self.authority)
        if self.path_and_query is not None:
            parts.append(self.path_and_query)
        return "".join(parts)


def _port_of(authority: str) -> int | None:
    hostport = authority.rpartition("@")[2]
    if hostport.startswith("["):
        tail = hostport[hostport.find("]") + 1:]
        if not tail:
            return None
        if not tail.startswith(":"):
            raise InvalidUri(f"invalid authority {authority!r}")
        digits = tail[1:]
    else:
        _, sep, digits = hostport.partition(":")
        if not sep:
            return None
    if not digits.isdigit() or int(digits) > 0xFFFF:
        raise InvalidUri(f"invalid port in {authority!r}")
    return int(digits)


def _check_authority(authority: str) -> None:
    hostport = authority.rpartition("@")[2]
    if not hostport:
        raise InvalidUri(f"missing host in {authority!r}")
    if hostport.startswith("[") and "]" not in hostport:
        raise InvalidUri(f"unclosed IPv6 literal in {authority!r}")
    _port_of(authority)


def origin_form(uri: Uri) -> Uri:
    """Reduce ``uri`` to its path and query, as sent on a direct connection."""
    if uri.path_and_query and uri.path_and_query != "/":
        return Uri(path_and_query=uri.path_and_query)
    return Uri()


def absolute_form(uri: Uri) -> Uri:
    """Keep the absolute form for proxies, except for tunnelled HTTPS targets."""
    if uri.scheme is None:
        raise ValueError("absolute_form needs a scheme")
    if uri.authority is None:
        raise ValueError("absolute_form needs an authority")
    if uri.scheme == "https":
        return origin_form(uri)
    return uri


def authority_form(uri: Uri) -> Uri:
    """Reduce ``uri`` to its authority, as a CONNECT request target."""
    if uri.path_and_query is not None and uri.path_and_query != "/":
        log.warning("HTTP/1.1 CONNECT request stripping path: %r", uri.path_and_query)
    if uri.authority is None:
        raise ValueError("authority_form with relative uri")
    return Uri(authority=uri.authority, path_and_query=None)


def set_scheme(uri: Uri, scheme: str) -> Uri:
    """Give a scheme-less ``uri`` the scheme and a ``/`` path."""
    if uri.scheme is not None:
        raise ValueError("set_scheme expects no existing scheme")
    return dataclasses.replace(uri, scheme=scheme, path_and_query="/")


def extract_domain(uri: Uri, is_http_connect: bool) -> tuple[PoolKey, Uri]:
    """Return the pool key for ``uri`` and the URI to send.

    A CONNECT target without a scheme gets ``https`` for port 443 and
    ``http`` otherwise. Anything else without scheme and authority raises
    :class:`ClientError` of kind ``USER_ABSOLUTE_URI_REQUIRED``.
    """
    if uri.scheme is not None and uri.authority is not None:
        return (uri.scheme, uri.authority), uri
    if uri.scheme is None and uri.authority is not None and is_http_connect:
        scheme = "https" if uri.port() == 443 else "http"
        return (scheme, uri.authority), set_scheme(uri, scheme)
    log.debug("Client requires absolute-form URIs, received: %s", uri)
    raise ClientError(ErrorKind.USER_ABSOLUTE_URI_REQUIRED)


def domain_as_uri(pool_key: PoolKey) -> Uri:
    """Build the URI a connector is asked to connect to for ``pool_key``."""
    scheme, authority = pool_key
    return Uri(scheme=scheme, authority=authority, path_and_query="/")


def is_schema_secure(uri: Uri) -> bool:
    """True for ``https`` and ``wss`` URIs."""
    return uri.scheme in ("https", "wss")


def get_non_default_port(uri: Uri) -> int | None:
    """The port of ``uri`` unless it is the default for its scheme."""
    port = uri.port()
    secure = is_schema_secure(uri)
    if (port == 443 and secure) or (port == 80 and not secure):
        return None
    return port