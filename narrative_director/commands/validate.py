"""`narrative_director validate`: check director config and storylet library."""
from __future__ import annotations

from pathlib import Path

from backend.app.config import resolve_config_path, resolve_library_dir
from backend.app.director.errors import ConfigError
from backend.app.director.settings import load_director_config
from backend.app.world.storylet_library import StoryletLibrary
from backend.app.world.storylet_loader import parse_storylets


def register(subparsers) -> None:
    p = subparsers.add_parser("validate", help="Validate director config and storylet library")
    p.add_argument("--config", default=None, help="Director config YAML (default: DIRECTOR_CONFIG_PATH)")
    p.add_argument("--storylets", default=None, help="Storylet file or directory (default: STORYLET_LIBRARY_DIR)")
    p.set_defaults(func=run)


def _cross_check(config, library: StoryletLibrary) -> list[str]:
    """Targets named in the config must exist in the library; linked tags should match something."""
    problems: list[str] = []
    for p in config.pressures:
        if p.storylet_key is not None and p.storylet_key not in library:
            problems.append(f"pressure '{p.id}': storylet_key {p.storylet_key} not in library")
        elif p.storylet_key is None and library.best_match_for_tags(p.linked_tags) is None:
            problems.append(f"pressure '{p.id}': no storylet matches linked_tags {p.linked_tags}")
    for m in config.milestones:
        for stage, key in sorted(m.stage_storylets.items()):
            if key not in library:
                problems.append(f"milestone '{m.id}': stage {stage} storylet {key} not in library")
    return problems


def run(args) -> int:
    config_path = Path(args.config) if args.config else resolve_config_path()
    library_path = Path(args.storylets) if args.storylets else resolve_library_dir()
    errors: list[str] = []

    config = None
    try:
        config = load_director_config(config_path)
        print(f"[OK] config {config_path} ({len(config.pressures)} pressures, {len(config.milestones)} milestones)")
    except ConfigError as e:
        errors.extend(f"config: {p}" for p in (e.problems or [str(e)]))

    library = None
    if library_path.exists():
        storylets, problems = parse_storylets(library_path)
        errors.extend(f"storylets: {p}" for p in problems)
        library = StoryletLibrary(storylets)
        print(f"[OK] storylets {library_path} ({len(library)} loaded)")
    else:
        errors.append(f"storylets: not found: {library_path}")

    if config is not None and library is not None:
        errors.extend(_cross_check(config, library))

    for err in errors:
        print(f"[ERROR] {err}")
    return 1 if errors else 0
