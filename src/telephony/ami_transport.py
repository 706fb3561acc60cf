from __future__ import annotations

import itertools
import logging
import socket
import threading

from telephony.ami_codec import AmiMessage, FieldPairs, encode_action, read_message
from telephony.errors import AmiConnectionError, AmiConnectionLost

LOGGER = logging.getLogger(__name__)

BANNER_DRAIN_ATTEMPTS = 5
BANNER_CHUNK_SIZE = 1024

_login_ids = itertools.count(1)


class AmiTransport:
    """Blocking TCP connection to the Asterisk Manager Interface.

    Writes are serialized; ``read_message`` is meant to be called from a single
    reader at a time (the login handshake, then the ingestion thread).
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        connect_timeout: float = 10.0,
        sock: socket.socket | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._connect_timeout = connect_timeout
        self._sock = sock
        self._reader = sock.makefile("rb") if sock is not None else None
        self._write_lock = threading.Lock()
        self._closed = False

    @property
    def address(self) -> str:
        return f"{self._host}:{self._port}"

    @property
    def connected(self) -> bool:
        return self._sock is not None and not self._closed

    def connect(self) -> None:
        if self._sock is None:
            try:
                sock = socket.create_connection((self._host, self._port), timeout=self._connect_timeout)
            except OSError as exc:
                raise AmiConnectionError(f"Cannot connect to AMI at {self.address}: {exc}") from exc
            # Reads block indefinitely once connected.
            sock.settimeout(None)
            self._sock = sock
            self._reader = sock.makefile("rb")
            LOGGER.info("Connected to AMI at %s", self.address)
        self._drain_banner()

    def _drain_banner(self) -> None:
        if self._sock is None or self._closed:
            raise AmiConnectionLost("AMI connection is not open")
        self._sock.setblocking(False)
        try:
            for _ in range(BANNER_DRAIN_ATTEMPTS):
                try:
                    chunk = self._sock.recv(BANNER_CHUNK_SIZE)
                except (BlockingIOError, InterruptedError):
                    break
                if not chunk:
                    break
                LOGGER.debug("Discarded AMI banner bytes: %r", chunk)
        finally:
            self._sock.setblocking(True)

    def login(self, username: str, secret: str) -> bool:
        """Authenticate and subscribe to events; True on ``Response: Success``."""

        self.send(
            [
                ("Action", "Login"),
                ("ActionID", f"login-{next(_login_ids)}"),
                ("Username", username),
                ("Secret", secret),
                ("Events", "on"),
            ]
        )
        try:
            reply = self.read_message()
        except AmiConnectionLost:
            LOGGER.error("AMI closed the connection before answering the login")
            return False

        if reply.response.lower() != "success":
            LOGGER.error("AMI login rejected: %s", reply.get("Message") or reply.response or "no response")
            return False
        LOGGER.info("Logged in to AMI as %s", username)
        return True

    def logoff(self) -> None:
        self.send([("Action", "Logoff")])

    def send(self, fields: FieldPairs) -> None:
        if self._sock is None or self._closed:
            raise AmiConnectionLost("AMI connection is not open")
        data = encode_action(fields)
        with self._write_lock:
            try:
                self._sock.sendall(data)
            except OSError as exc:
                raise AmiConnectionLost(f"AMI write failed: {exc}") from exc

    def read_message(self) -> AmiMessage:
        if self._reader is None:
            raise AmiConnectionLost("AMI connection is not open")
        try:
            message = read_message(self._reader.readline)
        except (OSError, ValueError) as exc:
            # ValueError: the buffered reader was closed underneath us.
            raise AmiConnectionLost(f"AMI read failed: {exc}") from exc
        if message is None:
            raise AmiConnectionLost()
        return message

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._sock is None:
            return
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._sock.close()
        LOGGER.info("Closed AMI connection to %s", self.address)
