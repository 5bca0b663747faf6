"""Loads the YAML build file that tells the watcher what to compile where."""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Set

import yaml

from .compiler import DEFAULT_EMBEDDING_TOKEN

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    pass


@dataclass
class BuildConfig:
    write_pairs: Dict[Path, Path]              # {src: dst}
    watch_paths: Set[Path] = field(default_factory=set)
    compress: bool = False
    embedding_token: str = DEFAULT_EMBEDDING_TOKEN


def parse_config(cfg: Any, base_path: Path = Path('.')) -> BuildConfig:
    """Builds a BuildConfig from an already-parsed YAML document."""
    if not isinstance(cfg, dict):
        raise ConfigError("Configuration must be a mapping.")
    if not cfg.get('write'):
        raise ConfigError("Configuration needs a 'write' list of src/dst pairs.")

    write_pairs: Dict[Path, Path] = {}
    for entry in cfg['write']:
        if not isinstance(entry, dict) or 'src' not in entry or 'dst' not in entry:
            raise ConfigError(f"Invalid 'write' entry, expected src and dst: {entry!r}")
        write_pairs[base_path / entry['src']] = base_path / entry['dst']

    watch = cfg.get('watch') or []
    if not isinstance(watch, list):
        raise ConfigError(f"'watch' must be a list of glob patterns, got: {watch!r}")
    watch_paths = {watch_path for watch_path_str in watch for watch_path in base_path.glob(watch_path_str)}
    embedding_token = str(cfg.get('embedding_token', DEFAULT_EMBEDDING_TOKEN))
    if not embedding_token:
        raise ConfigError("'embedding_token' can't be empty.")

    logger.debug("Loaded %d write pairs and %d watch paths", len(write_pairs), len(watch_paths))
    return BuildConfig(
        write_pairs=write_pairs,
        watch_paths=watch_paths,
        compress=bool(cfg.get('compress', False)),
        embedding_token=embedding_token,
    )


def load_config(config_path, base_path: Path = Path('.')) -> BuildConfig:
    with open(config_path, "r") as f:
        cfg = yaml.safe_load(f)
    return parse_config(cfg, base_path)
