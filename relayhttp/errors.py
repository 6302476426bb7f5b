"""Errors raised by the HTTP client."""

from __future__ import annotations

import copy
import enum
from typing import Any


class ErrorKind(enum.Enum):
    """What went wrong while sending a request."""

    CANCELED = "Canceled"
    CHANNEL_CLOSED = "ChannelClosed"
    CONNECT = "Connect"
    USER_UNSUPPORTED_REQUEST_METHOD = "UserUnsupportedRequestMethod"
    USER_UNSUPPORTED_VERSION = "UserUnsupportedVersion"
    USER_ABSOLUTE_URI_REQUIRED = "UserAbsoluteUriRequired"
    SEND_REQUEST = "SendRequest"

    def __str__(self) -> str:
        return self.value


class ClientError(Exception):
    """An error from the client, with its kind, cause and connection info.

    ``source`` is the underlying cause, if any. When it is an exception it is
    also chained as ``__cause__``.
    """

    def __init__(
        self,
        kind: ErrorKind,
        source: BaseException | str | None = None,
        connect_info: Any = None,
    ) -> None:
        super().__init__(kind, source)
        self.kind = kind
        self.source = source
        self.connect_info = connect_info
        if isinstance(source, BaseException):
            self.__cause__ = source

    def __str__(self) -> str:
        return f"client error ({self.kind.value})"

    def __repr__(self) -> str:
        if self.source is None:
            return f"ClientError({self.kind.value})"
        return f"ClientError({self.kind.value}, {self.source!r})"

    def is_connect(self) -> bool:
        """True if this error came from establishing a connection."""
        return self.kind is ErrorKind.CONNECT

    def is_canceled(self) -> bool:
        """True if the request was canceled before it started."""
        return self.kind is ErrorKind.CANCELED

    def with_connect_info(self, connect_info: Any) -> ClientError:
        """Return a copy of this error carrying the given connection info."""
        clone = copy.copy(self)
        clone.connect_info = connect_info
        return clone