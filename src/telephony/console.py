from __future__ import annotations

import argparse
import logging
import time
from collections.abc import Iterable

from config.settings import get_settings
from telephony.call_monitor import CallMonitor, MonitorConfig
from telephony.call_state import BridgeSnapshot, Channel
from telephony.classifier import ClassificationRules, classify_bridge
from telephony.errors import MonitorError

LOGGER = logging.getLogger(__name__)

BRIDGE_ID_WIDTH = 32


def _short_id(bridge_id: str) -> str:
    if len(bridge_id) > BRIDGE_ID_WIDTH:
        return bridge_id[: BRIDGE_ID_WIDTH - 3] + "..."
    return bridge_id


def format_party(name: str, number: str) -> str:
    prefix = f"{name} " if name else ""
    return f"{prefix}<{number or 'unknown'}>"


def render_bridge_table(
    bridges: Iterable[BridgeSnapshot],
    rules: ClassificationRules,
    *,
    now: float | None = None,
) -> str:
    now = time.time() if now is None else now
    bridges = list(bridges)
    rule = "-" * 77
    lines = [
        f"Active Calls (Bridges): {len(bridges)}",
        rule,
        f"{'Idx':<3} | {'Type':<8} | {'BridgeId':<{BRIDGE_ID_WIDTH}} | Members | MaxLegDuration",
        rule,
    ]
    for idx, bridge in enumerate(bridges, start=1):
        direction = classify_bridge(bridge.channels, rules).value
        lines.append(
            f"{idx:<3} | {direction:<8} | {_short_id(bridge.bridge_id):<{BRIDGE_ID_WIDTH}} | "
            f"{len(bridge.channels):<7} | {bridge.max_leg_duration(now)}s"
        )
    lines.append(rule)
    return "\n".join(lines)


def render_channel_line(channel: Channel, *, now: float | None = None) -> str:
    now = time.time() if now is None else now
    return (
        f"{channel.name} | {channel.age(now)}s | {channel.state} | "
        f"{format_party(channel.caller_name, channel.caller_num)} -> "
        f"{format_party(channel.connected_name, channel.connected_num)} | ctx={channel.context}"
    )


def _parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Asterisk AMI bridge-aware call monitor")
    parser.add_argument("--host", default=settings.ami_host)
    parser.add_argument("--port", type=int, default=settings.ami_port)
    parser.add_argument("--refresh", type=float, default=settings.console_refresh_seconds)
    parser.add_argument("--details", action="store_true", help="Also print every member channel.")
    return parser.parse_args()


def main() -> int:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    args = _parse_args()

    config = MonitorConfig.from_settings(settings.model_copy(update={"ami_host": args.host, "ami_port": args.port}))
    monitor = CallMonitor(config)
    try:
        monitor.start()
    except MonitorError as exc:
        LOGGER.error("%s", exc.detail)
        return 1

    interrupted = False
    try:
        while monitor.running:
            time.sleep(args.refresh)
            bridges = monitor.bridges()
            print(render_bridge_table(bridges, monitor.rules))
            if args.details:
                for bridge in bridges:
                    print(f"Bridge: {bridge.bridge_id}")
                    for channel in bridge.channels:
                        print(f"  {render_channel_line(channel)}")
    except KeyboardInterrupt:
        interrupted = True
    finally:
        monitor.stop()

    if not interrupted:
        LOGGER.error("AMI session ended unexpectedly; not reconnecting")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
