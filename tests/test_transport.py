from __future__ import annotations

import socket

from barfeed.feed.transport import LookupSocketTransport


def test_read_until_marker_returns_text_through_marker() -> None:
    left, right = socket.socketpair()
    transport = LookupSocketTransport(read_timeout=1.0, poll_interval=0.05)
    try:
        right.sendall(b"A,1\r\nB,2\r\n!ENDMSG!,\r\ntrailing")
        text = transport.read_until_marker(left)
    finally:
        left.close()
        right.close()

    assert text == "A,1\r\nB,2\r\n!ENDMSG!"


def test_read_until_marker_returns_empty_when_peer_closes_early() -> None:
    left, right = socket.socketpair()
    transport = LookupSocketTransport(read_timeout=1.0, poll_interval=0.05)
    right.sendall(b"A,1\r\n")
    right.close()
    try:
        text = transport.read_until_marker(left)
    finally:
        left.close()

    assert text == ""


def test_read_until_marker_times_out_after_idle_attempts() -> None:
    left, right = socket.socketpair()
    transport = LookupSocketTransport(read_timeout=0.1, poll_interval=0.05)
    try:
        right.sendall(b"A,1\r\n")
        text = transport.read_until_marker(left)
    finally:
        left.close()
        right.close()

    assert transport.max_idle_attempts == 2
    assert text == ""


def test_send_writes_ascii_command() -> None:
    left, right = socket.socketpair()
    transport = LookupSocketTransport()
    try:
        assert transport.send(left, "HDX,QGC#,1,0,HIST_QGC#_daily,100,0\r\n")
        received = right.recv(1024)
    finally:
        left.close()
        right.close()

    assert received == b"HDX,QGC#,1,0,HIST_QGC#_daily,100,0\r\n"


def test_connect_marks_transport_ready_only_when_port_answers() -> None:
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    port = server.getsockname()[1]
    transport = LookupSocketTransport(port=port, connect_timeout=1.0)
    try:
        assert not transport.is_ready()
        assert transport.connect()
        assert transport.is_ready()
    finally:
        server.close()

    transport.disconnect()
    assert not transport.is_ready()


def test_connect_failure_leaves_transport_not_ready() -> None:
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    transport = LookupSocketTransport(port=port, connect_timeout=1.0)

    assert not transport.connect()
    assert not transport.is_ready()
    assert transport.open_session() is None
