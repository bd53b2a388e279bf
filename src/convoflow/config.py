from __future__ import annotations

import os
import tomllib
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from .constants import CONFIG_ENV_VAR, HOME_CONFIG_PATH, LOCAL_CONFIG_NAME


class ConfigError(RuntimeError):
    pass


def display_path(path: Path) -> str:
    """Render ``path`` relative to the working directory or home when possible."""
    for base, prefix in ((Path.cwd(), "."), (Path.home(), "~")):
        try:
            return f"{prefix}/{path.relative_to(base).as_posix()}"
        except ValueError:
            continue
    return str(path)


def _unique(paths: Iterator[Path]) -> list[Path]:
    seen: set[Path] = set()
    result: list[Path] = []
    for path in paths:
        if path not in seen:
            seen.add(path)
            result.append(path)
    return result


def config_candidates(base_dir: Path | None = None) -> list[Path]:
    """Config locations in lookup order.

    ``$CONVOFLOW_CONFIG`` wins, then ``base_dir``, the working directory and
    finally ``~/.convoflow/convoflow.toml``.
    """

    def walk() -> Iterator[Path]:
        override = os.environ.get(CONFIG_ENV_VAR)
        if override:
            yield Path(override).expanduser()
        if base_dir is not None:
            yield base_dir / LOCAL_CONFIG_NAME
        yield Path.cwd() / LOCAL_CONFIG_NAME
        yield HOME_CONFIG_PATH

    return _unique(walk())


def find_config_path(path: str | Path | None = None) -> Path | None:
    """Pick the config file to load, or ``None`` to run from the environment only.

    An explicit ``path`` is taken as given; it must not be a directory.
    """
    if path:
        cfg_path = Path(path).expanduser()
        if cfg_path.is_dir():
            raise ConfigError(
                f"Config path {display_path(cfg_path)} exists but is not a file."
            )
        return cfg_path
    return next((c for c in config_candidates() if c.is_file()), None)


def read_config(cfg_path: Path) -> dict[str, Any]:
    """Parse a TOML config file, mapping every failure to :class:`ConfigError`."""
    try:
        with cfg_path.open("rb") as fh:
            return tomllib.load(fh)
    except FileNotFoundError:
        raise ConfigError(f"Missing config file `{display_path(cfg_path)}`.") from None
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Malformed TOML in {cfg_path}: {exc}") from None
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {cfg_path}: {exc}") from exc
