"""`narrative_director simulate`: run the director for N ticks against a static world."""
from __future__ import annotations

import json
from pathlib import Path

import yaml

from backend.app.config import (
    DATA_ROOT,
    DEFAULT_SEED,
    resolve_config_path,
    resolve_library_dir,
    resolve_snapshot_dir,
)
from backend.app.director.engine import NarrativeDirector
from backend.app.director.errors import ConfigError, SnapshotError
from backend.app.director.persistence import load_snapshot, save_snapshot
from backend.app.director.scoring import source_label
from backend.app.director.settings import load_director_config
from backend.app.models.world import MemoryFact, WorldSnapshot
from backend.app.world.memory_log import MemoryLog
from backend.app.world.storylet_loader import load_storylet_library

DEFAULT_WORLD = DATA_ROOT / "worlds" / "sample_world.yaml"


def register(subparsers) -> None:
    p = subparsers.add_parser("simulate", help="Run the director for N ticks and print what fires")
    p.add_argument("--ticks", type=int, default=24, help="Number of ticks to run (default: 24)")
    p.add_argument("--seed", type=int, default=None, help="World seed (default: DIRECTOR_SEED or 0)")
    p.add_argument("--world", default=str(DEFAULT_WORLD), help="World snapshot YAML (may include a memory list)")
    p.add_argument("--config", default=None, help="Director config YAML")
    p.add_argument("--storylets", default=None, help="Storylet file or directory")
    p.add_argument("--snapshot-in", default=None, help="Resume from a saved snapshot (bare names resolve under DIRECTOR_SNAPSHOT_DIR)")
    p.add_argument("--snapshot-out", default=None, help="Write the final state snapshot (bare names resolve under DIRECTOR_SNAPSHOT_DIR)")
    p.add_argument("--json", action="store_true", help="Emit one JSON StepResult per line")
    p.set_defaults(func=run)


def snapshot_path(raw: str) -> Path:
    """Bare file names live in the snapshot directory; anything with a directory part is used as given."""
    p = Path(raw)
    if p.parent == Path("."):
        return resolve_snapshot_dir() / p
    return p


def load_world(path: Path) -> tuple[WorldSnapshot, MemoryLog]:
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"expected a mapping at the top level, got {type(data).__name__}")
    facts = [MemoryFact.model_validate(f) for f in data.pop("memory", None) or []]
    return WorldSnapshot.model_validate(data), MemoryLog(facts)


def run(args) -> int:
    if args.ticks < 0:
        print("--ticks must be >= 0")
        return 2
    try:
        config = load_director_config(Path(args.config) if args.config else resolve_config_path())
        library = load_storylet_library(Path(args.storylets) if args.storylets else resolve_library_dir())
    except ConfigError as e:
        print(f"[ERROR] {e}")
        return 1
    try:
        world, memory = load_world(Path(args.world))
    except (OSError, yaml.YAMLError, ValueError) as e:
        print(f"[ERROR] world file {args.world}: {e}")
        return 1

    director = NarrativeDirector(config, library)
    if args.snapshot_in:
        try:
            state = load_snapshot(snapshot_path(args.snapshot_in), config)
        except SnapshotError as e:
            print(f"[ERROR] {e}")
            return 1
    else:
        state = director.new_state(seed=DEFAULT_SEED if args.seed is None else args.seed)

    for _ in range(args.ticks):
        result = director.step(state, world, memory)
        queued = []
        if result.fired is not None:
            # The static world never changes, so the outcome only feeds milestone progress.
            queued = director.apply_storylet_outcome(state, result.fired.storylet_key)
        if args.json:
            print(json.dumps(result.model_dump(mode="json"), sort_keys=True))
            continue
        fired = "-"
        if result.fired is not None:
            fired = f"{result.fired.storylet_key} ({source_label(result.fired.source)}, score={result.fired.score:.3f})"
        line = f"tick={result.tick:>4} heat={result.heat:6.2f} fired={fired}"
        if result.expired:
            line += f" expired={result.expired}"
        if queued:
            line += f" queued={[e.storylet_key for e in queued]}"
        if result.warnings:
            line += f" warnings={len(result.warnings)}"
        print(line)

    if args.snapshot_out:
        out = save_snapshot(state, snapshot_path(args.snapshot_out))
        if not args.json:
            print(f"Snapshot written to {out}")
    return 0
