"""Engine configuration from YAML files and ``section.key=value`` overrides."""
from __future__ import annotations

import logging
import warnings
from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional, Sequence, Tuple

from .errors import ConfigurationError
from .schema import EngineConfig

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def parse_override_value(raw: str) -> Any:
    """Interpret the right hand side of an override as a YAML scalar.

    ``true``/``false``, ``null``, numbers and quoted strings follow YAML; any
    text YAML cannot read is kept as a plain string (``warn``, ``throw``).
    """
    from ruamel.yaml import YAML
    from ruamel.yaml.error import YAMLError

    text = raw.strip()
    if not text:
        return None
    try:
        return YAML(typ="safe").load(text)
    except YAMLError:
        return text


def _split_override(item: str) -> Tuple[List[str], str]:
    path, sep, raw = item.partition("=")
    if not sep:
        raise ConfigurationError(f"Configuration override {item!r}: expected path=value")
    keys = [key for key in path.strip().split(".") if key]
    if not keys:
        raise ConfigurationError(f"Configuration override {item!r}: the path is empty")
    if keys[0] not in EngineConfig.model_fields:
        raise ConfigurationError(
            f"Configuration override {item!r}: unknown section {keys[0]!r}; "
            f"expected one of {', '.join(EngineConfig.model_fields)}"
        )
    return keys, raw


def apply_overrides_dict(payload: Dict[str, Any], overrides: Sequence[str]) -> Dict[str, Any]:
    """Apply ``section.key=value`` overrides to a raw configuration mapping.

    Missing intermediate sections are created; descending into a scalar is an
    error.
    """
    for item in overrides or ():
        keys, raw = _split_override(item)
        node: MutableMapping[str, Any] = payload
        for key in keys[:-1]:
            child = node.get(key)
            if child is None:
                child = node[key] = {}
            if not isinstance(child, MutableMapping):
                raise ConfigurationError(
                    f"Configuration override {item!r}: {key!r} is a non-mapping value"
                )
            node = child
        node[keys[-1]] = parse_override_value(raw)
        logger.debug("Override %s -> %r", ".".join(keys), node[keys[-1]])
    return payload


def load_config(path: Optional[Path], overrides: Optional[Sequence[str]] = None) -> EngineConfig:
    """Build an :class:`EngineConfig` from ``path`` and the CLI overrides.

    Without a file the overrides are applied to the built-in defaults.
    """
    data: Any = {}
    if path is not None:
        from ruamel.yaml import YAML

        with Path(path).open("r", encoding="utf-8") as fh:
            data = YAML(typ="safe").load(fh)
        if data is None:
            data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration root in {path} must be a mapping")
    data = apply_overrides_dict(data, overrides or ())
    cfg = EngineConfig(**data)
    logger.info(
        "Engine configuration from %s with %d overrides",
        Path(path).resolve() if path is not None else "defaults",
        len(overrides or ()),
    )
    return cfg


def configure_logging(level: int, suppress_warnings: bool = False) -> None:
    """Route engine logs and Python warnings through the root logger."""

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)
    if suppress_warnings:
        warnings.simplefilter("ignore")
    logging.captureWarnings(True)
