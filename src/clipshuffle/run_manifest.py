"""Run manifest loader — which sources to shuffle and how to render them.

Run manifest schema (every section but `sources` is optional):
  paths:
    footage: "/data/footage"
  sources:
    - "${footage}/a.mp4"
    - "${footage}/b.mp4"
  output:
    width: 1080
    height: 1920
    fps: 30
    length: 60              # target duration in seconds
  clips:
    min_length: 10          # percent of each source's duration
    max_length: 30
  effects:
    zoom_probability: 30    # percent
    min_zoom: 110           # percent, >= 100
    max_zoom: 150
    flip_probability: 20    # percent
    dissolve: overlay       # "overlay" or "blend"
  engine:
    slots: 4
    seed: 1234
    realtime: false
"""

import math
from pathlib import Path

import yaml

from .common import resolve_path_vars
from .errors import InputValidationError
from .models import EffectParameters, RunSettings, VALID_DISSOLVE_MODES
from .pipeline import DEFAULT_SLOTS


DEFAULTS = {
    "output": {"width": 1920, "height": 1080, "fps": 30, "length": 30},
    "clips": {"min_length": 10, "max_length": 30},
    "effects": {
        "zoom_probability": 0,
        "min_zoom": 100,
        "max_zoom": 100,
        "flip_probability": 0,
        "dissolve": "overlay",
    },
    "engine": {"slots": DEFAULT_SLOTS, "seed": None, "realtime": False},
}

TOP_LEVEL_KEYS = {"paths", "sources", *DEFAULTS}

PERCENT_FIELDS = {
    ("clips", "min_length"),
    ("clips", "max_length"),
    ("effects", "zoom_probability"),
    ("effects", "flip_probability"),
}

POSITIVE_INT_FIELDS = {
    ("output", "width"),
    ("output", "height"),
    ("output", "fps"),
    ("engine", "slots"),
}


def _number(value, where: str) -> float:
    """Accept ints and floats (not bools); reject NaN and infinities."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InputValidationError(f"Run manifest: {where} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InputValidationError(f"Run manifest: {where} must be finite, got {value!r}")
    return value


def _merge_defaults(raw: dict) -> dict:
    """Return a copy of raw with every missing section/field defaulted."""
    config = {}
    for section, defaults in DEFAULTS.items():
        given = raw.get(section) or {}
        if not isinstance(given, dict):
            raise InputValidationError(f"Run manifest: '{section}' must be a mapping")
        unknown = set(given) - set(defaults)
        if unknown:
            raise InputValidationError(
                f"Run manifest: unknown field(s) in '{section}': {sorted(unknown)}"
            )
        config[section] = {**defaults, **given}
    return config


def validate_config(config: dict) -> None:
    """Check ranges and cross-field constraints of a normalized config.

    Raises:
        InputValidationError: On the first invalid field.
    """
    output = config["output"]
    clips = config["clips"]
    effects = config["effects"]
    engine = config["engine"]

    for section, key in sorted(POSITIVE_INT_FIELDS):
        value = config[section][key]
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise InputValidationError(
                f"Run manifest: {section}.{key} must be a positive integer, got {value!r}"
            )
    if engine["slots"] < 2:
        raise InputValidationError(f"Run manifest: engine.slots must be >= 2, got {engine['slots']}")

    if _number(output["length"], "output.length") <= 0:
        raise InputValidationError(f"Run manifest: output.length must be > 0, got {output['length']}")

    for section, key in sorted(PERCENT_FIELDS):
        value = _number(config[section][key], f"{section}.{key}")
        if not 0 <= value <= 100:
            raise InputValidationError(
                f"Run manifest: {section}.{key} must be within 0-100, got {value}"
            )
    if clips["max_length"] <= 0:
        raise InputValidationError("Run manifest: clips.max_length must be > 0")
    if clips["min_length"] > clips["max_length"]:
        raise InputValidationError(
            f"Run manifest: clips.min_length ({clips['min_length']}) must be "
            f"<= clips.max_length ({clips['max_length']})"
        )

    min_zoom = _number(effects["min_zoom"], "effects.min_zoom")
    max_zoom = _number(effects["max_zoom"], "effects.max_zoom")
    if min_zoom < 100:
        raise InputValidationError(f"Run manifest: effects.min_zoom must be >= 100, got {min_zoom}")
    if min_zoom > max_zoom:
        raise InputValidationError(
            f"Run manifest: effects.min_zoom ({min_zoom}) must be <= effects.max_zoom ({max_zoom})"
        )
    if effects["dissolve"] not in VALID_DISSOLVE_MODES:
        raise InputValidationError(
            f"Run manifest: invalid effects.dissolve '{effects['dissolve']}'. "
            f"Valid: {sorted(VALID_DISSOLVE_MODES)}"
        )

    seed = engine["seed"]
    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
        raise InputValidationError(f"Run manifest: engine.seed must be an integer, got {seed!r}")
    if not isinstance(engine["realtime"], bool):
        raise InputValidationError("Run manifest: engine.realtime must be true or false")


def normalize_config(raw: dict, base_dir: str | Path | None = None) -> dict:
    """Resolve paths, apply defaults and validate a raw manifest dict.

    Relative source paths are resolved against base_dir when given.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise InputValidationError("Run manifest: top level must be a mapping")

    unknown = set(raw) - TOP_LEVEL_KEYS
    if unknown:
        raise InputValidationError(f"Run manifest: unknown top-level field(s): {sorted(str(k) for k in unknown)}")

    config = _merge_defaults(raw)

    paths = raw.get("paths") or {}
    if not isinstance(paths, dict):
        raise InputValidationError("Run manifest: 'paths' must be a mapping")
    raw_sources = raw.get("sources") or []
    if not isinstance(raw_sources, list):
        raise InputValidationError("Run manifest: 'sources' must be a list of paths")
    sources = []
    for i, source in enumerate(raw_sources):
        if not isinstance(source, str) or not source.strip():
            raise InputValidationError(f"Run manifest: source {i} must be a non-empty path string")
        resolved = resolve_path_vars(source, paths)
        if base_dir is not None and not Path(resolved).is_absolute():
            resolved = str(Path(base_dir) / resolved)
        sources.append(resolved)
    config["sources"] = sources

    validate_config(config)
    return config


def load_run_manifest(manifest_path: str | Path) -> dict:
    """Load, normalize and validate a run manifest.

    Processing pipeline:
      1. Parse YAML.
      2. Apply defaults per section, rejecting unknown fields.
      3. Resolve ${path} variables in sources (relative paths are taken
         relative to the manifest's directory).
      4. Validate ranges and cross-field constraints.

    Args:
        manifest_path: Path to the YAML run manifest.

    Returns:
        Normalized config dict.

    Raises:
        InputValidationError: Missing/invalid fields.
        FileNotFoundError: Missing manifest file.
    """
    with open(manifest_path) as f:
        raw = yaml.safe_load(f)
    return normalize_config(raw, base_dir=Path(manifest_path).parent)


def validate_sources(config: dict) -> None:
    """Check that there is at least one source and that all exist on disk.

    Raises:
        InputValidationError: No sources listed.
        FileNotFoundError: Lists all missing files.
    """
    if not config["sources"]:
        raise InputValidationError("Run manifest: at least one source is required")
    missing = [p for p in config["sources"] if not Path(p).exists()]
    if missing:
        msg = f"Missing {len(missing)} source file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        raise FileNotFoundError(msg)


def settings_from_config(config: dict) -> RunSettings:
    """Build validated RunSettings from a normalized config."""
    output = config["output"]
    clips = config["clips"]
    effects = config["effects"]
    engine = config["engine"]
    settings = RunSettings(
        target_duration=float(output["length"]),
        min_clip_pct=float(clips["min_length"]),
        max_clip_pct=float(clips["max_length"]),
        width=output["width"],
        height=output["height"],
        fps=output["fps"],
        effects=EffectParameters(
            zoom_probability=float(effects["zoom_probability"]),
            min_zoom=float(effects["min_zoom"]),
            max_zoom=float(effects["max_zoom"]),
            flip_probability=float(effects["flip_probability"]),
        ),
        slots=engine["slots"],
        seed=engine["seed"],
        dissolve=effects["dissolve"],
        realtime=engine["realtime"],
    )
    settings.validate()
    return settings
