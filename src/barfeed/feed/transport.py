"""Socket transport for the feed's historical lookup port."""

from __future__ import annotations

import logging
import math
import socket
from time import sleep
from typing import Any, Protocol

from barfeed.errors import TransportError

END_MARKER = "!ENDMSG!"


class Transport(Protocol):
    """Session-per-request access to the feed."""

    def is_ready(self) -> bool:
        """Return true once the feed endpoint answered."""

    def open_session(self) -> Any | None:
        """Return a fresh session handle, or None when unavailable."""

    def send(self, handle: Any, text: str) -> bool:
        """Write one command; return false on failure."""

    def read_until_marker(self, handle: Any) -> str:
        """Return the reply through the end marker, or "" on timeout or close."""

    def close_session(self, handle: Any) -> None:
        """Release a session handle."""


class LookupSocketTransport:
    """TCP client for the lookup port; every session is a fresh socket."""

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 9100,
        protocol_version: str = "6.2",
        read_timeout: float = 30.0,
        poll_interval: float = 0.5,
        connect_timeout: float = 5.0,
    ) -> None:
        self.host = host
        self.port = port
        self.protocol_version = protocol_version
        self.read_timeout = read_timeout
        self.poll_interval = poll_interval
        self.connect_timeout = connect_timeout
        self.logger = logging.getLogger("barfeed.feed.transport")
        self._ready = False

    @property
    def max_idle_attempts(self) -> int:
        return max(1, math.ceil(self.read_timeout / self.poll_interval))

    def connect(self) -> bool:
        """Probe the lookup port and mark the transport ready when it answers."""
        try:
            probe = self._connect_socket()
        except TransportError as exc:
            self.logger.error("feed probe failed: %s", exc)
            self._ready = False
            return False
        probe.close()
        self._ready = True
        self.logger.info("feed lookup port %s:%s reachable", self.host, self.port)
        return True

    def disconnect(self) -> None:
        if self._ready:
            self.logger.info("feed transport shut down")
        self._ready = False

    def is_ready(self) -> bool:
        return self._ready

    def open_session(self) -> socket.socket | None:
        try:
            session = self._connect_socket()
        except TransportError as exc:
            self.logger.error("failed to open lookup session: %s", exc)
            return None
        command = f"S,SET PROTOCOL,{self.protocol_version}\r\n"
        if not self.send(session, command):
            session.close()
            return None
        try:
            session.settimeout(self.poll_interval)
            ack = session.recv(1024)
        except OSError as exc:
            self.logger.debug("no protocol acknowledgement: %s", exc)
        else:
            self.logger.debug("protocol acknowledgement: %r", ack.decode("ascii", "replace"))
        return session

    def send(self, handle: socket.socket, text: str) -> bool:
        self.logger.debug("sending command: %r", text)
        try:
            handle.sendall(text.encode("ascii"))
        except (OSError, UnicodeEncodeError) as exc:
            self.logger.error("failed to send command %r: %s", text.strip(), exc)
            return False
        return True

    def read_until_marker(self, handle: socket.socket) -> str:
        handle.settimeout(self.poll_interval)
        chunks: list[str] = []
        idle_attempts = 0
        while idle_attempts < self.max_idle_attempts:
            try:
                data = handle.recv(4096)
            except TimeoutError:
                idle_attempts += 1
                continue
            except BlockingIOError:
                idle_attempts += 1
                sleep(self.poll_interval)
                continue
            except OSError as exc:
                self.logger.error("receive error: %s", exc)
                return ""
            if not data:
                self.logger.debug("connection closed by feed before end marker")
                return ""
            chunks.append(data.decode("ascii", "replace"))
            idle_attempts = 0
            text = "".join(chunks)
            if END_MARKER in text:
                end = text.index(END_MARKER) + len(END_MARKER)
                return text[:end]
        self.logger.error("timed out after %.1fs waiting for end marker", self.read_timeout)
        return ""

    def close_session(self, handle: socket.socket | None) -> None:
        if handle is None:
            return
        try:
            handle.close()
        except OSError as exc:
            self.logger.debug("error closing lookup session: %s", exc)

    def _connect_socket(self) -> socket.socket:
        try:
            return socket.create_connection(
                (self.host, self.port),
                timeout=self.connect_timeout,
            )
        except ConnectionRefusedError as exc:
            raise TransportError(
                f"connection refused by {self.host}:{self.port}; is the feed client running?"
            ) from exc
        except OSError as exc:
            raise TransportError(f"cannot reach {self.host}:{self.port}: {exc}") from exc
