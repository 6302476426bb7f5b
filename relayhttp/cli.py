"""Fetch a URL and print the response status and headers."""

from __future__ import annotations

import sys

from relayhttp.client import Client, Request
from relayhttp.errors import ClientError
from relayhttp.uri import InvalidUri, Uri


def main(argv: list[str] | None = None) -> int:
    """Request the URL given as the first argument; report on stderr."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        print("Usage: client <url>", file=sys.stderr)
        return 0
    try:
        url = Uri.parse(args[0])
    except InvalidUri as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    if url.scheme != "http":
        print("This example only works with 'http' URLs.", file=sys.stderr)
        return 0

    with Client.builder().build() as client:
        try:
            resp = client.request(Request(uri=url))
        except ClientError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
    print(f"{resp.version} {resp.status}", file=sys.stderr)
    for name, value in resp.headers:
        print(f"{name}: {value}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())