"""An HTTP/1 client with a pool of keep-alive connections."""

from __future__ import annotations

import logging
import select
import socket
from dataclasses import dataclass, field
from typing import Any, Protocol

import h11

from relayhttp.connection import Alpn, Connected, Pool, PoolConfig, Ver
from relayhttp.errors import ClientError, ErrorKind
from relayhttp.uri import (
    PoolKey,
    Uri,
    absolute_form,
    authority_form,
    domain_as_uri,
    extract_domain,
    get_non_default_port,
    origin_form,
)

log = logging.getLogger(__name__)

HTTP_10 = "HTTP/1.0"
HTTP_11 = "HTTP/1.1"
HTTP_2 = "HTTP/2"


@dataclass
class Request:
    """An outgoing request. ``uri`` may be given as text."""

    uri: Uri | str = "/"
    method: str = "GET"
    version: str = HTTP_11
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    extensions: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.uri, str):
            self.uri = Uri.parse(self.uri)
        self.method = self.method.upper()

    def header(self, name: str) -> str | None:
        """The first value of header ``name``, matched without case."""
        lowered = name.lower()
        return next((v for k, v in self.headers if k.lower() == lowered), None)


@dataclass
class Response:
    """A received response with its body read in full."""

    status: int
    version: str
    headers: list[tuple[str, str]]
    body: bytes = b""
    connect_info: Connected | None = None
    extensions: dict[str, Any] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        """The first value of header ``name``, matched without case."""
        lowered = name.lower()
        return next((v for k, v in self.headers if k.lower() == lowered), None)


class Stream(Protocol):
    """What a connector hands back: a byte stream with connection metadata."""

    def sendall(self, data: bytes) -> None: ...

    def recv(self, size: int) -> bytes: ...

    def close(self) -> None: ...

    def connected(self) -> Connected: ...


class TcpStream:
    """A plain TCP socket reporting its :class:`Connected` metadata."""

    def __init__(self, sock: socket.socket, info: Connected | None = None) -> None:
        self.sock = sock
        self.info = info if info is not None else Connected()

    def sendall(self, data: bytes) -> None:
        self.sock.sendall(data)

    def recv(self, size: int) -> bytes:
        return self.sock.recv(size)

    def fileno(self) -> int:
        return self.sock.fileno()

    def close(self) -> None:
        self.sock.close()

    def connected(self) -> Connected:
        return self.info


class HttpConnector:
    """Opens TCP connections to ``http`` destinations."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    def __call__(self, dst: Uri) -> TcpStream:
        if dst.scheme != "http":
            raise ValueError("invalid URL, scheme is not http")
        host = dst.host()
        if not host:
            raise ValueError("invalid URL, missing host")
        host = host.strip("[]")
        port = dst.port() or 80
        sock = socket.create_connection((host, port), timeout=self.timeout)
        return TcpStream(sock)


class _Unstarted(Exception):
    """The request was never processed by the peer and may be retried."""


def _title_case(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))


class _Http1Connection:
    """One HTTP/1 connection in the pool."""

    def __init__(self, stream: Any, conn_info: Connected, title_case: bool) -> None:
        self.stream = stream
        self.conn_info = conn_info
        self.title_case = title_case
        self.reused = False
        self.closed = False
        self.reusable = False
        self._h11 = h11.Connection(h11.CLIENT)

    def _has_pending_input(self) -> bool:
        if self._h11.trailing_data[0]:
            return True
        if not hasattr(self.stream, "fileno"):
            return False
        try:
            readable, _, _ = select.select([self.stream], [], [], 0)
        except (OSError, ValueError):
            return True
        return bool(readable)

    def is_open(self) -> bool:
        return (
            not self.closed
            and not self.conn_info.is_poisoned()
            and self._h11.our_state is h11.IDLE
            and not self._has_pending_input()
        )

    def can_share(self) -> bool:
        return False

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            try:
                self.stream.close()
            except OSError:
                pass

    def send(self, method: str, target: str, version: str, headers, body: bytes) -> Response:
        if self.title_case:
            headers = [(_title_case(k), v) for k, v in headers]
        http_version = b"1.0" if version == HTTP_10 else b"1.1"
        out = self._h11.send(
            h11.Request(method=method, target=target, headers=headers, http_version=http_version)
        )
        if body:
            out += self._h11.send(h11.Data(data=body))
        out += self._h11.send(h11.EndOfMessage())
        try:
            self.stream.sendall(out)
        except OSError as exc:
            raise _Unstarted(exc) from exc

        head = None
        chunks: list[bytes] = []
        received = False
        while True:
            event = self._h11.next_event()
            if event is h11.NEED_DATA:
                try:
                    data = self.stream.recv(65536)
                except OSError as exc:
                    if not received:
                        raise _Unstarted(exc) from exc
                    raise
                if not data and not received:
                    raise _Unstarted(ConnectionError("connection closed before message completed"))
                received = True
                self._h11.receive_data(data)
            elif isinstance(event, h11.Response):
                head = event
                if self._h11.their_state is h11.SWITCHED_PROTOCOL:
                    break
            elif isinstance(event, h11.Data):
                chunks.append(bytes(event.data))
            elif isinstance(event, (h11.EndOfMessage, h11.ConnectionClosed)) or event is h11.PAUSED:
                break
        if head is None:
            raise ConnectionError("connection closed before response")

        self.reusable = self._h11.our_state is h11.DONE and self._h11.their_state is h11.DONE
        if self.reusable:
            self._h11.start_next_cycle()
        return Response(
            status=head.status_code,
            version="HTTP/" + head.http_version.decode("ascii"),
            headers=[(k.decode("latin-1"), v.decode("latin-1")) for k, v in head.headers],
            body=b"".join(chunks),
        )


@dataclass
class _Config:
    retry_canceled_requests: bool = True
    set_host: bool = True
    ver: Ver = Ver.AUTO
    title_case_headers: bool = False


class Builder:
    """Configures and builds a :class:`Client`."""

    def __init__(self) -> None:
        self.client_config = _Config()
        self.pool_config = PoolConfig(idle_timeout=90.0, max_idle_per_host=PoolConfig().max_idle_per_host)

    def __repr__(self) -> str:
        return f"Builder(client_config={self.client_config!r}, pool_config={self.pool_config!r})"

    def pool_idle_timeout(self, val: float | None) -> Builder:
        """Seconds an idle connection is kept; ``None`` disables the timeout."""
        self.pool_config.idle_timeout = val
        return self

    def pool_max_idle_per_host(self, max_idle: int) -> Builder:
        """Maximum idle connections kept per host; 0 disables pooling."""
        self.pool_config.max_idle_per_host = max_idle
        return self

    def max_idle_per_host(self, max_idle: int) -> Builder:
        """Older name of :meth:`pool_max_idle_per_host`."""
        return self.pool_max_idle_per_host(max_idle)

    def http1_title_case_headers(self, val: bool) -> Builder:
        """Write header names in title case."""
        self.client_config.title_case_headers = val
        return self

    def http2_only(self, val: bool) -> Builder:
        """Require HTTP/2 for every connection."""
        self.client_config.ver = Ver.HTTP2 if val else Ver.AUTO
        return self

    def retry_canceled_requests(self, val: bool) -> Builder:
        """Retry requests that failed on a reused connection before starting."""
        self.client_config.retry_canceled_requests = val
        return self

    def set_host(self, val: bool) -> Builder:
        """Add a ``Host`` header derived from the URI when missing."""
        self.client_config.set_host = val
        return self

    def build(self, connector: Any = None) -> Client:
        """Create a client using ``connector`` (an :class:`HttpConnector` by default)."""
        if connector is None:
            connector = HttpConnector()
        config = PoolConfig(self.pool_config.idle_timeout, self.pool_config.max_idle_per_host)
        return Client(_Config(**vars(self.client_config)), connector, Pool(config))


class Client:
    """Sends requests, reusing idle connections per scheme and authority."""

    def __init__(self, config: _Config, connector: Any, pool: Pool) -> None:
        self._config = config
        self._connector = connector
        self._pool = pool

    def __repr__(self) -> str:
        return "Client()"

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @classmethod
    def builder(cls) -> Builder:
        """Start configuring a new client."""
        return Builder()

    def get(self, uri: Uri | str) -> Response:
        """Send a ``GET`` request to ``uri``."""
        return self.request(Request(uri=uri))

    def close(self) -> None:
        """Close all idle connections."""
        self._pool.close()

    def request(self, req: Request) -> Response:
        """Send ``req`` and return the response, raising :class:`ClientError`."""
        is_connect = req.method == "CONNECT"
        if req.version == HTTP_10:
            if is_connect:
                log.warning("CONNECT is not allowed for HTTP/1.0")
                raise ClientError(ErrorKind.USER_UNSUPPORTED_REQUEST_METHOD)
        elif req.version not in (HTTP_11, HTTP_2):
            log.warning('Request has unsupported version "%s"', req.version)
            raise ClientError(ErrorKind.USER_UNSUPPORTED_VERSION)

        pool_key, uri = extract_domain(req.uri, is_connect)
        req.uri = uri
        while True:
            try:
                return self._try_send(req, uri, pool_key)
            except _Retry as retry:
                if not self._config.retry_canceled_requests or not retry.reused:
                    raise retry.error from None
                log.debug("unstarted request canceled, trying again (reason=%r)", retry.error)

    def _try_send(self, req: Request, uri: Uri, pool_key: PoolKey) -> Response:
        conn = self._connection_for(pool_key)
        info = conn.conn_info
        capture = req.extensions.get("capture_connection")
        if isinstance(capture, list):
            capture.append(info)

        if req.version == HTTP_2:
            log.warning("Connection is HTTP/1, but request requires HTTP/2")
            self._release(pool_key, conn)
            raise ClientError(ErrorKind.USER_UNSUPPORTED_VERSION).with_connect_info(info)

        headers = list(req.headers)
        if self._config.set_host and req.header("host") is None:
            host = uri.host()
            port = get_non_default_port(uri)
            headers.insert(0, ("host", f"{host}:{port}" if port is not None else host))

        if req.method == "CONNECT":
            target = authority_form(uri)
        elif info.is_proxied:
            target = absolute_form(uri)
        else:
            target = origin_form(uri)

        try:
            res = conn.send(req.method, str(target), req.version, headers, req.body)
        except _Unstarted as exc:
            conn.close()
            cause = exc.args[0] if exc.args else exc
            error = ClientError(ErrorKind.CANCELED, cause).with_connect_info(info)
            raise _Retry(error, conn.reused) from None
        except (OSError, h11.ProtocolError) as exc:
            conn.close()
            raise ClientError(ErrorKind.SEND_REQUEST, exc).with_connect_info(info) from exc

        res.connect_info = info
        if info.extra is not None:
            res.extensions["connect_extra"] = info.extra
        self._release(pool_key, conn)
        return res

    def _release(self, pool_key: PoolKey, conn: _Http1Connection) -> None:
        if conn.reusable or conn._h11.our_state is h11.IDLE:
            if self._pool.is_enabled():
                conn.reused = True
                self._pool.put(pool_key, conn)
                return
        conn.close()

    def _connection_for(self, pool_key: PoolKey) -> _Http1Connection:
        if self._pool.is_enabled():
            idle = self._pool.checkout(pool_key)
            if idle is not None:
                return idle
        try:
            stream = self._connector(domain_as_uri(pool_key))
        except ClientError:
            raise
        except Exception as exc:
            raise ClientError(ErrorKind.CONNECT, exc) from exc
        connected = getattr(stream, "connected", None)
        info = connected() if callable(connected) else Connected()
        if self._config.ver is Ver.HTTP2 or info.alpn is Alpn.H2:
            stream.close()
            raise ClientError(ErrorKind.CONNECT, "HTTP/2 connections are not supported")
        return _Http1Connection(stream, info, self._config.title_case_headers)


class _Retry(Exception):
    def __init__(self, error: ClientError, reused: bool) -> None:
        super().__init__(error)
        self.error = error
        self.reused = reused