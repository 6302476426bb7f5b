# relayhttp

A blocking HTTP/1.1 client that keeps idle connections in a pool and reuses
them for later requests to the same scheme and authority. It picks the
request-target form itself: origin form for direct requests, absolute form
when the connection goes through a proxy, and authority form for `CONNECT`.
It adds a `Host` header when the request has none. A request that fails on a
reused connection before the peer processed it is retried on another one.

## Installation

```
pip install relayhttp
```

## Command line

```
relayhttp http://example.com/
```

This sends a `GET` to the URL and prints the response version, status and
headers to standard error. Without an argument it prints a usage line. A URL
whose scheme is not `http` gets a notice and no request. It exits with status
1 when the URL cannot be parsed or the request fails.

## Library use

```python
from relayhttp.client import Client, Request

client = (
    Client.builder()
    .pool_idle_timeout(30.0)
    .pool_max_idle_per_host(4)
    .build()
)
with client:
    response = client.get("http://example.com/")
    print(response.status, response.header("content-type"))

    response = client.request(
        Request(uri="http://example.com/submit", method="POST", body=b"hello")
    )
    print(response.status, response.body)
```

`Client.request` and `Client.get` return a `Response` with `status`,
`version`, `headers`, the whole `body` as bytes, and `connect_info`, the
`Connected` metadata of the connection that served it. Leaving the `with`
block, or calling `Client.close()`, closes the idle connections.

`Request` takes the URI as a `relayhttp.uri.Uri` or as text, which is parsed
with `Uri.parse` (raising `relayhttp.uri.InvalidUri` on bad input). The URI
must be absolute; only a `CONNECT` request may give just an authority, which
then gets `https` for port 443 and `http` otherwise. The version is
`"HTTP/1.1"` by default; `"HTTP/1.0"` is accepted except for `CONNECT`.

### Builder options

| Method | Default | Meaning |
| --- | --- | --- |
| `pool_idle_timeout(seconds)` | `90.0` | How long an idle connection may stay in the pool; `None` disables the timeout |
| `pool_max_idle_per_host(n)` | unlimited | Maximum idle connections per host; `0` turns pooling off |
| `max_idle_per_host(n)` | | Older name of `pool_max_idle_per_host` |
| `http1_title_case_headers(flag)` | `False` | Write header names in Title-Case |
| `http2_only(flag)` | `False` | Require HTTP/2 (see below) |
| `retry_canceled_requests(flag)` | `True` | Retry a request canceled on a reused connection |
| `set_host(flag)` | `True` | Add a `Host` header taken from the URI |

`build(connector)` uses `relayhttp.client.HttpConnector` when no connector is
given. A connector is any callable that takes the destination `Uri` and
returns a stream with `sendall`, `recv` and `close`, and optionally
`connected()` returning `relayhttp.connection.Connected`. Marking that
metadata with `Connected.proxy(True)` makes the client send absolute-form
targets.

### Connection metadata

Put an empty list under the `"capture_connection"` key of
`Request.extensions` and the client appends the `Connected` of the connection
used. Calling `poison()` on it keeps that connection from being reused.

### Errors

Failures raise `relayhttp.errors.ClientError`, whose `kind` is an
`ErrorKind`. `is_connect()` tells whether the failure happened while
connecting, `is_canceled()` whether the request was canceled before it
started, and `connect_info` holds the connection metadata when a connection
was involved.

## What it does not do

- There is no HTTP/2. With `http2_only(True)`, or a connector that reports
  `h2`, every request fails with a `ClientError` of kind `CONNECT`, and
  requests with version `"HTTP/2"` fail with `USER_UNSUPPORTED_VERSION`.
- There is no TLS: the built-in connector only opens plain `http`
  connections.
- Bodies are not streamed: request bodies are given as bytes and response
  bodies are read in full.
- There is no server side.