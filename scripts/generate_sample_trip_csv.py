from __future__ import annotations

import argparse
import csv
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Final

from zoneinfo import ZoneInfo


TZ: Final[str] = "America/New_York"


@dataclass(frozen=True, slots=True)
class Stop:
    name: str
    lat: float
    lon: float
    hours: float


def generate_fixes(
    *,
    seed: int,
    start_local: datetime,
    stops: list[Stop],
    interval_minutes: float,
) -> list[dict[str, str]]:
    """Generate a trace that dwells at each stop, then drives straight to the next."""

    rng = random.Random(seed)
    tz = ZoneInfo(TZ)
    cur = start_local.replace(tzinfo=tz)
    step = timedelta(minutes=interval_minutes)
    out: list[dict[str, str]] = []

    def emit(lat: float, lon: float) -> None:
        out.append(
            {
                "time": cur.isoformat(sep=" ", timespec="seconds"),
                "latitude": f"{lat + rng.uniform(-0.001, 0.001):.6f}",
                "longitude": f"{lon + rng.uniform(-0.001, 0.001):.6f}",
            }
        )

    for i, stop in enumerate(stops):
        end = cur + timedelta(hours=stop.hours)
        while cur < end:
            emit(stop.lat, stop.lon)
            cur += step
        if i + 1 < len(stops):
            nxt = stops[i + 1]
            # Drive: ~12 interpolated fixes
            for k in range(1, 13):
                f = k / 13
                emit(stop.lat + (nxt.lat - stop.lat) * f, stop.lon + (nxt.lon - stop.lon) * f)
                cur += step
    return out


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a fake trip trace CSV for replay-trip (privacy-safe).")
    p.add_argument("--out", type=str, default="sample_data/trip.csv", help="Output CSV path")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument("--interval-minutes", type=float, default=30.0, help="Minutes between fixes")
    p.add_argument(
        "--start",
        type=str,
        default="2026-03-02 08:00:00",
        help="Start local time in America/New_York, e.g. '2026-03-02 08:00:00'",
    )
    args = p.parse_args()

    stops = [
        Stop("home_nyc", 40.7128, -74.0060, 20),
        Stop("philadelphia", 39.9526, -75.1652, 30),
        Stop("washington", 38.9072, -77.0369, 48),
        Stop("home_nyc", 40.7128, -74.0060, 12),
    ]
    rows = generate_fixes(
        seed=args.seed,
        start_local=datetime.fromisoformat(args.start),
        stops=stops,
        interval_minutes=args.interval_minutes,
    )
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=["time", "latitude", "longitude"])
        w.writeheader()
        w.writerows(rows)

    print(f"Generated: {out_path} (rows={len(rows)}, seed={args.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
