"""
YAML config file discovery and merging for room-assets.

A typical setup keeps the Nextcloud credentials in the global file and the
events and target directory in a per-project file.  Files are merged key by
key inside each section (``pretalx``, ``layout``, ``nextcloud``,
``logging``), the more specific file winning, so the project file does not
have to repeat the global one.

Files may pull in other files with ``!include`` and refer to environment
variables with ``${VAR}`` or ``${VAR:-default}``.

Usage:
    from room_assets.config_loader import load_hierarchical_config

    raw = load_hierarchical_config(args.config)
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from .config_schema import UnifiedConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "ROOM_ASSETS_CONFIG"

# section name -> keys its pydantic model accepts
SECTION_KEYS: dict[str, frozenset[str]] = {
    name: frozenset(field.annotation.model_fields)  # type: ignore[union-attr]
    for name, field in UnifiedConfig.model_fields.items()
}

_ENV_REFERENCE = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


# ---------------------------------------------------------------------------
# Environment references
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    there is none.  An unterminated ``${`` is kept literally.
    """
    return _ENV_REFERENCE.sub(
        lambda m: os.environ.get(m.group(1)) or (m.group(2) or ""), value
    )


def _expand(node: Any) -> Any:
    if isinstance(node, str):
        return interpolate_env_vars(node)
    if isinstance(node, dict):
        return {key: _expand(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_expand(item) for item in node]
    return node


# ---------------------------------------------------------------------------
# Reading one file
# ---------------------------------------------------------------------------


class _ConfigFileLoader(yaml.SafeLoader):
    """SafeLoader resolving ``!include`` relative to the including file.

    ``chain`` holds the files being read, outermost first, so a file that
    includes itself (directly or not) is reported instead of recursing.
    """

    def __init__(self, stream: Any, chain: tuple[Path, ...]) -> None:
        super().__init__(stream)
        self.chain = chain

    def include(self, node: yaml.ScalarNode) -> Any:
        path = Path(self.construct_scalar(node)).expanduser()
        if not path.is_absolute():
            path = self.chain[-1].parent / path
        path = path.resolve()

        if path in self.chain:
            cycle = " -> ".join(str(p) for p in (*self.chain, path))
            raise ValueError(f"Circular include detected: {cycle}")
        if not path.is_file():
            raise FileNotFoundError(
                f"Include file not found: {path} "
                f"(referenced from {self.chain[-1]})"
            )
        return _read_yaml(path, (*self.chain, path))


_ConfigFileLoader.add_constructor("!include", _ConfigFileLoader.include)


def _read_yaml(path: Path, chain: tuple[Path, ...]) -> Any:
    with open(path, encoding="utf-8") as fh:
        loader = _ConfigFileLoader(fh, chain)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


def read_config_file(path: Path) -> dict[str, dict[str, Any]]:
    """Read one config file and keep only the sections and keys we know.

    Unknown sections and keys are logged as warnings and dropped, so a typo
    such as ``target-dir`` does not silently fall back to the default.

    Raises:
        ValueError: If the file or one of its sections is not a mapping,
            or an ``!include`` chain is circular.
        FileNotFoundError: If an included file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    path = path.resolve()
    data = _read_yaml(path, (path,))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Config file {path} must contain a mapping, "
            f"got {type(data).__name__}"
        )

    sections: dict[str, dict[str, Any]] = {}
    for section, values in data.items():
        known = SECTION_KEYS.get(section)
        if known is None:
            logger.warning(
                "Ignoring unknown section %r in %s (expected one of: %s)",
                section,
                path,
                ", ".join(SECTION_KEYS),
            )
            continue
        if values is None:
            continue
        if not isinstance(values, dict):
            raise ValueError(
                f"Section {section!r} in {path} must be a mapping, "
                f"got {type(values).__name__}"
            )
        for key in sorted(set(values) - known):
            logger.warning(
                "Ignoring unknown key %r in section %r of %s", key, section, path
            )
        sections[section] = {
            key: _expand(value) for key, value in values.items() if key in known
        }
    return sections


# ---------------------------------------------------------------------------
# Discovery and merge
# ---------------------------------------------------------------------------


def discover_config_files(explicit: str | None = None) -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. *explicit* path (``--config`` on the command line)
        2. ``ROOM_ASSETS_CONFIG`` env var
        3. ``.room_assets/config.yml`` in CWD (project-level)
        4. ``.room_assets/config.yaml`` in CWD (alternate extension)
        5. ``~/.config/room_assets/config.yml`` (XDG global)

    Only paths that exist on disk are returned, except that a missing
    *explicit* path raises ``FileNotFoundError``.
    """
    candidates: list[Path] = []

    if explicit:
        explicit_path = Path(explicit).expanduser().resolve()
        if not explicit_path.exists():
            raise FileNotFoundError(f"Config file not found: {explicit_path}")
        candidates.append(explicit_path)

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    project_dir = Path.cwd() / ".room_assets"
    candidates.append(project_dir / "config.yml")
    candidates.append(project_dir / "config.yaml")
    candidates.append(Path.home() / ".config" / "room_assets" / "config.yml")

    return [p for p in candidates if p.exists()]


def load_hierarchical_config(explicit: str | None = None) -> dict[str, Any]:
    """Merge all discovered config files into one raw config dict.

    Files are applied from lowest to highest precedence.  Within a section
    each key of a higher-precedence file replaces the same key of a lower
    one; keys it does not mention are kept.

    Returns an empty dict when no config files exist (zero-config).
    """
    paths = discover_config_files(explicit)
    if not paths:
        logger.debug("No config files found, using zero-config defaults")
        return {}

    merged: dict[str, dict[str, Any]] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        for section, values in read_config_file(path).items():
            merged.setdefault(section, {}).update(values)
    return merged
