#!/usr/bin/env python3
"""
Terminal load watcher.

Polls a running load panel server, keeps a live local copy of the device
state and logs one summary line per tick: monitored power, devices on,
threshold, alerts.

Usage:
    loadpanel-watch                                   # defaults from settings / .env
    loadpanel-watch --base-url http://pi.local:4000
    loadpanel-watch --toggle lamp --ticks 5           # flip the lamp once, watch 5 ticks

Start the server with:
    uvicorn loadpanel.main:app --port 4000
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from .client.sync import SyncClient
from .core.config import settings
from .core.log import configure_logging

log = logging.getLogger("loadpanel.watch")


def format_line(client: SyncClient) -> str:
    s = client.summary()
    view = client.view or {}
    alerts = view.get("alerts") or []
    threshold = f"{s.threshold_w:.1f} W" if s.threshold_w is not None else "Not set"
    parts = [
        f"power={s.total_power:.1f} W",
        f"on={s.devices_on}/{s.total_devices}",
        f"threshold={threshold}",
        f"alerts={len(alerts)}",
    ]
    if client.loading:
        parts.insert(0, "loading")
    if client.error:
        parts.append(f"error={client.error!r}")
    return "  ".join(parts)


async def run(base_url: str, interval: float, ticks: int | None, toggle: str | None) -> None:
    async with SyncClient(base_url=base_url, poll_interval_s=interval) as client:
        n = 0
        toggled = toggle is None
        while ticks is None or n < ticks:
            await asyncio.sleep(interval)
            n += 1

            if not toggled and client.last_updated is not None:
                ok = await client.toggle(toggle)
                log.info("-> toggle %s %s", toggle, "sent" if ok else "FAILED")
                toggled = True

            log.info("[%s] %s", client.last_updated.strftime("%H:%M:%S") if client.last_updated else "--:--:--",
                     format_line(client))
            for a in (client.view or {}).get("alerts") or []:
                log.warning("  %s %s: %s", a.get("type"), a.get("loadId"), a.get("message"))


def main() -> None:
    p = argparse.ArgumentParser(description="Watch a load panel server from the terminal")

    p.add_argument("--base-url", default=settings.api_base_url,
                   help=f"Server base URL (default: {settings.api_base_url})")
    p.add_argument("--interval", type=float, default=settings.poll_interval_s, help="Seconds between polls")
    p.add_argument("--ticks", type=int, default=None, help="Stop after this many ticks (default: run forever)")
    p.add_argument("--toggle", metavar="LOAD_ID", default=None,
                   help="Toggle this load once after the first successful poll")

    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = p.parse_args()

    configure_logging("DEBUG" if args.verbose else None)

    try:
        asyncio.run(run(args.base_url, args.interval, args.ticks, args.toggle))
    except KeyboardInterrupt:
        log.info("Shutting down")


if __name__ == "__main__":
    main()
