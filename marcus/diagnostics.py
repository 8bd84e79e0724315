"""Marcus — Connection Diagnostics.

Usage:
    python -m marcus.diagnostics
    python -m marcus.diagnostics --platform google_ads --snapshot
    python -m marcus.diagnostics --platform meta_ads --hourly --date-range yesterday
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from marcus.config import Settings, settings as default_settings
from marcus.connectors.base import PlatformAdapter
from marcus.container import build_adapters
from marcus.core.errors import AdapterError, MarcusError
from marcus.core.logging import get_logger
from marcus.models.metrics import PRESETS, Platform, resolve_window

logger = get_logger("diagnostics")


async def diagnose(
    adapter: PlatformAdapter,
    snapshot: bool = False,
    hourly: bool = False,
    date_range: Optional[str] = None,
    timezone: str = "UTC",
) -> Dict[str, Any]:
    """Run the requested checks against one adapter and collect the outcome."""
    result: Dict[str, Any] = {"platform": adapter.platform.value, "ok": True}
    try:
        info = await adapter.test_connection()
        result["connection"] = info.model_dump(mode="json")

        if snapshot or hourly:
            window = resolve_window(date_range, timezone=timezone)
            if snapshot:
                snap = await adapter.fetch_snapshot(window)
                result["snapshot"] = snap.model_dump(mode="json")
            if hourly:
                hours = await adapter.fetch_hourly_breakdown(window.end, timezone)
                result["hourly"] = [
                    {"hour": h.hour, **h.snapshot.as_row()} for h in hours
                ]
    except AdapterError as e:
        result["ok"] = False
        result["error"] = {"kind": e.kind.value, "message": e.message}
    except MarcusError as e:
        result["ok"] = False
        result["error"] = {"kind": "invalid_argument", "message": str(e)}

    result["health"] = adapter.get_health().model_dump(mode="json")
    diagnostic_info = getattr(adapter, "diagnostic_info", None)
    if callable(diagnostic_info):
        result["config"] = diagnostic_info()
    return result


async def run(args: argparse.Namespace, settings: Settings) -> List[Dict[str, Any]]:
    adapters = build_adapters(settings)
    if args.platform != "all":
        selected = Platform(args.platform)
        if selected not in adapters:
            raise SystemExit(f"Platform {selected.value} is not enabled")
        adapters = {selected: adapters[selected]}

    results = []
    try:
        for adapter in adapters.values():
            logger.info(
                f"Diagnosing {adapter.platform.value}...",
                extra={"platform": adapter.platform.value},
            )
            results.append(
                await diagnose(
                    adapter,
                    snapshot=args.snapshot,
                    hourly=args.hourly,
                    date_range=args.date_range,
                    timezone=settings.report_timezone,
                )
            )
    finally:
        for adapter in adapters.values():
            await adapter.aclose()
    return results


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check ad platform connectivity and fetch sample metrics",
    )
    parser.add_argument(
        "--platform",
        choices=[p.value for p in Platform] + ["all"],
        default="all",
        help="Platform to diagnose (default: all enabled)",
    )
    parser.add_argument(
        "--snapshot",
        action="store_true",
        help="Also fetch an aggregate metric snapshot",
    )
    parser.add_argument(
        "--hourly",
        action="store_true",
        help="Also fetch the 24-hour breakdown for the last day of the range",
    )
    parser.add_argument(
        "--date-range",
        choices=list(PRESETS),
        default=None,
        help="Preset window for --snapshot/--hourly (default: today)",
    )
    return parser


def main(argv: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    args = build_parser().parse_args(argv)
    results = asyncio.run(run(args, settings or default_settings))
    print(json.dumps(results, indent=2, default=str))
    failed = [r["platform"] for r in results if not r["ok"]]
    if failed:
        logger.error(f"Diagnostics failed for: {', '.join(failed)}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
