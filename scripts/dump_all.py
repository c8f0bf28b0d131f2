#!/usr/bin/env python3
"""Dump everything pycrownstone mirrors from the cloud.

Logs in, runs one full mirror pass plus a presence poll, and prints the
projected view (rooms, devices, presence) alongside the raw cloud JSON
so unparsed fields are easy to spot.

Usage
-----
Set environment variables and run::

    export CROWNSTONE_EMAIL="you@example.com"
    export CROWNSTONE_PASSWORD="your-password"
    python scripts/dump_all.py

Options::

    --sphere ID          Only print this sphere (default: all spheres)
    --json               Output as machine-readable JSON
    --output FILE        Write output to FILE instead of stdout
    --keys               Also fetch sphere keys (printed redacted)
    --switch ID on|off   Switch one device and print the command result
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pycrownstone import CrownstoneCloud, CrownstoneConfig, CrownstoneError  # noqa: E402
from pycrownstone._redact import mask_email, redact_for_log  # noqa: E402
from pycrownstone.keys import KeyCache  # noqa: E402
from pycrownstone.mapper import Mapper  # noqa: E402
from pycrownstone.mirror import Mirror  # noqa: E402
from pycrownstone.state.fast_cache import FastCache  # noqa: E402
from pycrownstone.state.presence import PresenceStore  # noqa: E402
from pycrownstone.state.raw_cache import RawCache  # noqa: E402


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _print_raw(name: str, raw: dict[str, Any], out: list[str]) -> None:
    out.append(f"\n  -- {name} (raw JSON) --")
    out.append(json.dumps(redact_for_log(raw), indent=2, default=str, ensure_ascii=False))


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Dump all data pycrownstone mirrors, for debugging / development.",
    )
    parser.add_argument("--sphere", help="Only print this sphere (default: all spheres)")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--output", "-o", help="Write output to FILE instead of stdout")
    parser.add_argument("--keys", action="store_true", help="Also fetch sphere keys (redacted)")
    parser.add_argument("--switch", nargs=2, metavar=("DEVICE_ID", "STATE"), help="Switch a device on or off")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    config = CrownstoneConfig.from_env()
    result: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "base_url": config.base_url,
        "spheres": [],
    }

    out: list[str] = [_section("pycrownstone dump_all")]
    out.append(f"  time      : {result['timestamp']}")
    out.append(f"  account   : {mask_email(config.email)}")

    raw_cache = RawCache()
    fast_cache = FastCache()
    presence = PresenceStore()
    mapper = Mapper(raw_cache, fast_cache, presence)

    async with CrownstoneCloud(config) as cloud:
        mirror = Mirror(cloud, raw_cache, presence)
        await mirror.login(config.email, config.password)
        out.append(f"  user_id   : {cloud.user_id}")
        result["user_id"] = cloud.user_id

        raw = await mirror.get_all()
        try:
            await mirror.get_presence()
        except CrownstoneError as exc:
            out.append(f"  presence  : unavailable ({exc})")
        snapshot = mapper.map_all()
        if raw.failures:
            out.append(f"  failures  : {', '.join(raw.failures)}")
        result["failures"] = list(raw.failures)

        key_cache = KeyCache(cloud)
        for sphere in raw.spheres.values():
            if args.sphere and sphere.id != args.sphere:
                continue
            entry: dict[str, Any] = {"sphere": sphere.model_dump(), "rooms": [], "devices": []}
            out.append(_section(f"SPHERE {sphere.name} ({sphere.id})"))
            _print_raw("sphere", sphere.raw, out)

            for room in fast_cache.rooms(sphere.id):
                users = fast_cache.users_in(room.id)
                out.append(f"  room {room.id:<26} {room.name:<24} users={list(users)}")
                entry["rooms"].append({"id": room.id, "name": room.name, "users": list(users)})

            for view in snapshot.devices_by_id.values():
                if view.sphere_id != sphere.id:
                    continue
                room_name = view.room.name if view.room is not None else "?"
                out.append(
                    f"  device {view.id:<24} {view.name:<20} room={room_name:<16} "
                    f"{view.dimmability.value:<8} on={view.is_on} dim={view.dim_level} locked={view.locked}"
                )
                record = raw.devices.get(view.id)
                if record is not None and args.verbose:
                    _print_raw(f"device {view.id}", record.raw, out)
                entry["devices"].append(view.model_dump(mode="json"))

            if args.keys:
                try:
                    keyset = await key_cache.ensure_keys(sphere.id)
                except CrownstoneError as exc:
                    out.append(f"  keys      : unavailable ({exc})")
                else:
                    out.append(f"  keys      : {keyset!r}")
                    entry["keys_complete"] = keyset.is_complete

            result["spheres"].append(entry)

        if args.switch:
            device_id, state = args.switch
            on = state.lower() in {"on", "1", "true"}
            try:
                if on:
                    await cloud.turn_on(device_id)
                else:
                    await cloud.turn_off(device_id)
            except CrownstoneError as exc:
                out.append(f"\n  switch {device_id} {state}: FAILED ({exc})")
                result["switch"] = {"device_id": device_id, "on": on, "error": str(exc)}
            else:
                out.append(f"\n  switch {device_id} {state}: ok")
                result["switch"] = {"device_id": device_id, "on": on, "error": None}

    if args.json_mode:
        payload = json.dumps(result, indent=2, default=str, ensure_ascii=False)
        if args.output:
            Path(args.output).write_text(payload, encoding="utf-8")
            print(f"JSON written to {args.output}", file=sys.stderr)
        else:
            print(payload)
        return

    print("\n".join(out))
    if args.output:
        Path(args.output).write_text(
            json.dumps(result, indent=2, default=str, ensure_ascii=False),
            encoding="utf-8",
        )
        print(f"JSON written to {args.output}")


if __name__ == "__main__":
    asyncio.run(main())
