from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from telephony.ami_transport import AmiTransport
from telephony.errors import AmiConnectionError, AmiConnectionLost


def _transport(client_sock) -> AmiTransport:
    transport = AmiTransport("pbx.test", 5038, sock=client_sock)
    transport.connect()
    return transport


def test_connect_drains_banner(ami_pair) -> None:
    peer, client_sock = ami_pair
    peer.send_raw(b"Asterisk Call Manager/5.0.2\r\n")

    transport = _transport(client_sock)
    peer.send(Event="FullyBooted", Status="Fully Booted")

    assert transport.read_message() == {"Event": "FullyBooted", "Status": "Fully Booted"}


def test_login_success_is_case_insensitive(ami_pair) -> None:
    peer, client_sock = ami_pair
    transport = _transport(client_sock)

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(transport.login, "callmon", "s3cret")
        login = peer.read_action()
        peer.send(Response="SUCCESS", ActionID=login["ActionID"], Message="Authentication accepted")

        assert future.result(timeout=2) is True

    assert login["Action"] == "Login"
    assert login["Username"] == "callmon"
    assert login["Secret"] == "s3cret"
    assert login["Events"] == "on"


def test_login_error_response_fails(ami_pair) -> None:
    peer, client_sock = ami_pair
    transport = _transport(client_sock)

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(transport.login, "callmon", "wrong")
        login = peer.read_action()
        peer.send(Response="Error", ActionID=login["ActionID"], Message="Authentication failed")

        assert future.result(timeout=2) is False


def test_login_fails_when_stream_closes_first(ami_pair) -> None:
    peer, client_sock = ami_pair
    transport = _transport(client_sock)

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(transport.login, "callmon", "s3cret")
        peer.read_action()
        peer.close()

        assert future.result(timeout=2) is False


def test_read_after_close_raises_connection_lost(ami_pair) -> None:
    peer, client_sock = ami_pair
    transport = _transport(client_sock)
    peer.close()

    with pytest.raises(AmiConnectionLost):
        transport.read_message()


def test_send_after_close_raises_connection_lost(ami_pair) -> None:
    _peer, client_sock = ami_pair
    transport = _transport(client_sock)
    transport.close()

    assert transport.connected is False
    with pytest.raises(AmiConnectionLost):
        transport.send([("Action", "Ping")])


def test_connect_failure_is_reported() -> None:
    # Port 1 on localhost is not expected to accept AMI connections.
    transport = AmiTransport("127.0.0.1", 1, connect_timeout=0.5)

    with pytest.raises(AmiConnectionError):
        transport.connect()


def test_send_rejects_line_breaks_without_writing(ami_pair) -> None:
    peer, client_sock = ami_pair
    transport = _transport(client_sock)

    with pytest.raises(ValueError):
        transport.send([("Action", "Hangup"), ("Channel", "PJSIP/x\r\n\r\nAction: Originate\r\nExten: 900")])
    transport.send([("Action", "Ping")])
    transport.close()

    assert peer.read_action() == {"Action": "Ping"}
    assert peer.read_remaining() == b""


def test_connect_after_close_raises_connection_lost(ami_pair) -> None:
    _peer, client_sock = ami_pair
    transport = _transport(client_sock)
    transport.close()

    with pytest.raises(AmiConnectionLost):
        transport.connect()
