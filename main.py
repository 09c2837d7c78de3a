#!/usr/bin/env python3
"""
Vigil - Replay Entry Point
==========================

Replays a JSON-lines event file through one RiskAggregator and prints one
decision line per event.

Usage:
    python main.py --config guild.json events.jsonl

DESIGN:
    The aggregator runs on a ManualClock that is moved to each event's
    timestamp, so windows, caches and violation expiry follow the
    recorded time instead of the wall clock. Lines that are not valid
    JSON or not a valid event are reported and skipped.
"""

import argparse
import json
import sys
from typing import Any, Dict, List, Optional

from vigil.core.config import load_settings
from vigil.core.errors import InvalidInput, VigilError
from vigil.core.guild_config import parse_guild_config
from vigil.core.logger import logger
from vigil.services.antispam import LogAuditSink, RiskAggregator, event_from_dict
from vigil.services.antispam.models import Decision
from vigil.utils.clock import ManualClock


def format_decision(line_no: int, decision: Decision) -> str:
    """One-line summary of a decision."""
    event = decision.event
    parts = [
        f"{line_no}",
        event.timestamp.isoformat(),
        event.kind.value,
        f"user={event.author_id}",
        f"action={decision.action.label}",
        f"severity={decision.severity:.0f}",
        f"violations={decision.violation_count}",
    ]
    if decision.raid is not None and decision.raid.is_raid:
        parts.append(f"raid={decision.raid.confidence}")
    parts.append(decision.summary)
    return " | ".join(parts)


def load_config(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise InvalidInput("guild config must be a JSON object", path)
    return data


def replay(config_path: str, events_path: str, guild_id: Optional[int] = None) -> int:
    """
    Replay an events file.

    Returns:
        Number of lines skipped as invalid.
    """
    data = load_config(config_path)
    guild_id = guild_id or int(data.get("guildId", 0) or 0)

    clock = ManualClock()
    engine = RiskAggregator(settings=load_settings(), clock=clock, audit_sink=LogAuditSink())
    configs = {}
    skipped = 0

    with open(events_path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue

            try:
                event = event_from_dict(json.loads(line))
            except (json.JSONDecodeError, InvalidInput) as e:
                skipped += 1
                print(f"{line_no} | skipped | {e}", file=sys.stderr)
                continue

            target = guild_id or event.guild_id
            config = configs.get(target)
            if config is None:
                config = parse_guild_config(target, data)
                configs[target] = config

            clock.set(event.timestamp)
            try:
                decision = engine.evaluate(event, config)
            except VigilError as e:
                skipped += 1
                print(f"{line_no} | skipped | {e}", file=sys.stderr)
                continue

            print(format_decision(line_no, decision))

    summary = engine.cleanup()
    logger.tree("REPLAY COMPLETE", [
        ("Events", str(engine.get_stats()["events_processed"])),
        ("Actions", str(engine.get_stats()["actions_taken"])),
        ("Skipped", str(skipped)),
        ("Lockdowns Released", str(summary["lockdowns_released"])),
    ], emoji="🏁")
    return skipped


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Replay chat events through the Vigil risk engine.")
    parser.add_argument("events", help="JSON-lines file of events")
    parser.add_argument("--config", required=True, help="Guild configuration JSON (camelCase)")
    parser.add_argument("--guild-id", type=int, default=None, help="Guild ID the config belongs to")
    args = parser.parse_args(argv)

    try:
        replay(args.config, args.events, args.guild_id)
    except (OSError, json.JSONDecodeError, VigilError) as e:
        logger.error("Replay Failed", [
            ("Error Type", type(e).__name__),
            ("Error", str(e)[:200]),
        ])
        return 1
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("🛑 Replay stopped by user (Ctrl+C)")
