"""`narrative_director snapshot`: summarize a saved director snapshot."""
from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from backend.app.director.persistence import DirectorSnapshot


def register(subparsers) -> None:
    p = subparsers.add_parser("snapshot", help="Summarize a saved director snapshot")
    p.add_argument("path", help="Snapshot JSON file")
    p.set_defaults(func=run)


def run(args) -> int:
    path = Path(args.path)
    try:
        snapshot = DirectorSnapshot.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        print(f"[ERROR] cannot read snapshot {path}: {e}")
        return 1

    print(f"format_version: {snapshot.format_version}")
    print(f"seed: {snapshot.seed}  tick: {snapshot.tick}  heat: {snapshot.heat:.2f}")
    print(f"fired: {snapshot.fired_count} (last at tick {snapshot.last_fired_tick})")
    print(f"cooldowns: {len(snapshot.cooldowns)}")
    if snapshot.last_domain is not None:
        print(f"last domain: {snapshot.last_domain} (streak {snapshot.domain_streak})")
    for pid, value, cooldown in snapshot.pressures:
        print(f"  pressure {pid}: value={value:.2f} cooldown_remaining={cooldown}")
    for mid, stage, progress in snapshot.milestones:
        print(f"  milestone {mid}: stage={stage} progress={progress:.2f}")
    print(f"queue: {len(snapshot.queue)} entr{'y' if len(snapshot.queue) == 1 else 'ies'}")
    for entry in snapshot.queue:
        if isinstance(entry, dict):
            print(
                f"  - storylet {entry.get('storylet_key')} ({entry.get('source')}) "
                f"ready_tick={entry.get('ready_tick')} seq={entry.get('sequence')}"
                + (" forced" if entry.get("forced") else "")
            )
    return 0
