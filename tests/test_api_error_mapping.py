from __future__ import annotations

from fastapi.testclient import TestClient

from telephony.errors import ActionTimeoutError, MonitorNotRunningError


class StalledMonitor:
    def hangup(self, channel: str):
        raise ActionTimeoutError()

    def resync(self):
        raise MonitorNotRunningError()


def test_monitor_errors_map_to_http(app):
    import api.routes as routes

    app.dependency_overrides[routes.get_monitor] = lambda: StalledMonitor()

    with TestClient(app) as client:
        timeout = client.post("/api/channels/hangup", json={"channel": "PJSIP/1001-01"})
        not_running = client.post("/api/resync")

    app.dependency_overrides.clear()

    assert timeout.status_code == 504
    assert "No AMI response" in timeout.json()["detail"]
    assert not_running.status_code == 503
