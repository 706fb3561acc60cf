from __future__ import annotations

import os
import socket
import sys
import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from telephony.ami_actions import ActionResult  # noqa: E402
from telephony.ami_codec import AmiMessage, decode_messages, encode_action  # noqa: E402
from telephony.call_monitor import CallMonitor, MonitorConfig  # noqa: E402


def wait_for(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FakeAmiPeer:
    """The switch side of a socketpair: reads actions, writes responses and events."""

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock
        self.sock.settimeout(2.0)
        self._buffer = b""

    def read_action(self) -> AmiMessage:
        while b"\r\n\r\n" not in self._buffer:
            chunk = self.sock.recv(4096)
            if not chunk:
                raise EOFError("client closed the connection")
            self._buffer += chunk
        block, _sep, self._buffer = self._buffer.partition(b"\r\n\r\n")
        return decode_messages(block + b"\r\n\r\n")[0]

    def read_remaining(self) -> bytes:
        data = self._buffer
        self._buffer = b""
        while True:
            try:
                chunk = self.sock.recv(4096)
            except (socket.timeout, OSError):
                return data
            if not chunk:
                return data
            data += chunk

    def send(self, **fields: str) -> None:
        self.sock.sendall(encode_action(fields))

    def send_raw(self, data: bytes) -> None:
        self.sock.sendall(data)

    def close(self) -> None:
        self.sock.close()


@pytest.fixture()
def ami_pair():
    peer_sock, client_sock = socket.socketpair()
    peer = FakeAmiPeer(peer_sock)
    yield peer, client_sock
    peer_sock.close()
    client_sock.close()


class FakeMonitor(CallMonitor):
    """Real store and classifier; AMI commands are recorded instead of sent."""

    def __init__(self) -> None:
        super().__init__(MonitorConfig())
        self._running.set()
        self.commands: list[tuple[str, ...]] = []

    def _result(self, action: str, *args: str) -> ActionResult:
        self.commands.append((action, *args))
        return ActionResult(action=action, action_id=f"test-{len(self.commands)}", success=True)

    def hangup(self, channel: str) -> ActionResult:
        return self._result("Hangup", channel)

    def kick(self, bridge_id: str, channel: str) -> ActionResult:
        return self._result("BridgeKick", bridge_id, channel)

    def destroy_bridge(self, bridge_id: str) -> ActionResult:
        return self._result("BridgeDestroy", bridge_id)

    def resync(self) -> ActionResult:
        return self._result("CoreShowChannels")

    def originate_monitor(self, target_channel: str) -> ActionResult:
        from telephony.errors import SupervisorNotConfiguredError

        raise SupervisorNotConfiguredError()

    def hangup_all(self) -> list[str]:
        names = self.store.channel_names()
        for name in names:
            self.commands.append(("Hangup", name))
        return [f"test-{i}" for i, _ in enumerate(names, start=1)]


@pytest.fixture(scope="session")
def app():
    # Must be set before importing modules that read settings.
    os.environ["AMI_AUTOSTART"] = "false"

    import importlib

    for module_name in [
        "config.settings",
        "api.dependencies",
        "api.routes",
        "main",
    ]:
        sys.modules.pop(module_name, None)

    main = importlib.import_module("main")
    return main.app


@pytest.fixture()
def fake_monitor() -> FakeMonitor:
    return FakeMonitor()


@pytest.fixture()
def client(app, fake_monitor):
    import api.dependencies as deps

    app.dependency_overrides[deps.get_monitor] = lambda: fake_monitor

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
