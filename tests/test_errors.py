import pytest

from relayhttp.errors import ClientError, ErrorKind


@pytest.mark.parametrize("kind", list(ErrorKind))
def test_is_connect_only_for_connect_kind(kind):
    err = ClientError(kind)
    assert err.is_connect() == (kind is ErrorKind.CONNECT)


@pytest.mark.parametrize("kind", list(ErrorKind))
def test_is_canceled_only_for_canceled_kind(kind):
    err = ClientError(kind)
    assert err.is_canceled() == (kind is ErrorKind.CANCELED)


@pytest.mark.parametrize("kind", list(ErrorKind))
def test_display_names_the_kind(kind):
    assert str(ClientError(kind)) == f"client error ({kind.value})"


def test_display_for_connect():
    assert str(ClientError(ErrorKind.CONNECT)) == "client error (Connect)"


def test_kind_names_match_debug_names():
    assert (
        str(ClientError(ErrorKind.USER_ABSOLUTE_URI_REQUIRED))
        == "client error (UserAbsoluteUriRequired)"
    )
    assert str(ClientError(ErrorKind.CHANNEL_CLOSED)) == "client error (ChannelClosed)"


def test_default_has_no_source_or_connect_info():
    err = ClientError(ErrorKind.SEND_REQUEST)
    assert err.source is None
    assert err.connect_info is None
    assert err.__cause__ is None


def test_exception_source_is_chained():
    cause = OSError("refused")
    err = ClientError(ErrorKind.CONNECT, cause)
    assert err.source is cause
    assert err.__cause__ is cause


def test_string_source_is_kept_but_not_chained():
    err = ClientError(ErrorKind.CANCELED, "ALPN upgraded to HTTP/2")
    assert err.source == "ALPN upgraded to HTTP/2"
    assert err.__cause__ is None
    assert "ALPN upgraded to HTTP/2" in repr(err)


def test_with_connect_info_returns_copy():
    cause = ValueError("boom")
    original = ClientError(ErrorKind.SEND_REQUEST, cause)
    info = object()
    updated = original.with_connect_info(info)

    assert updated is not original
    assert updated.connect_info is info
    assert original.connect_info is None
    assert updated.kind is ErrorKind.SEND_REQUEST
    assert updated.source is cause
    assert updated.__cause__ is cause


def test_with_connect_info_replaces_previous():
    first, second = object(), object()
    err = ClientError(ErrorKind.CANCELED).with_connect_info(first)
    err = err.with_connect_info(second)
    assert err.connect_info is second
    assert err.is_canceled()


def test_raised_error_can_be_caught_with_kind():
    info_obj = object()
    with pytest.raises(ClientError) as caught:
        raise ClientError(ErrorKind.USER_UNSUPPORTED_VERSION).with_connect_info(info_obj)
    assert caught.value.kind is ErrorKind.USER_UNSUPPORTED_VERSION
    assert caught.value.connect_info is info_obj
    assert str(caught.value) == "client error (UserUnsupportedVersion)"
    assert caught.value.is_connect() is False


def test_repr_without_source():
    assert repr(ClientError(ErrorKind.CONNECT)) == "ClientError(Connect)"