"""
Configuration node tree consumed by algorithm ``initialize`` methods.

A configuration is a mapping of named fields plus an ``option`` sub-mapping:

    {"type": "FBP_CUDA",
     "ProjectionDataId": 1,
     "ReconstructionDataId": 2,
     "FilterType": "hann",
     "option": {"GPUindex": 0, "ShortScan": True}}

Readers mark every field they recognise through a ``ConfigAudit`` so that
misspelled or unsupported fields can be reported once parsing finishes.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Set

from core.errors import ConfigurationError

logger = logging.getLogger(__name__)

_OPTION_KEYS = ("option", "options")
_RESERVED_NODES = {"type"} | set(_OPTION_KEYS)
_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off"}


def _to_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ConfigurationError(name, f"Cannot interpret {value!r} as a boolean.")


def _to_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(name, f"Expected a number, got {value!r}.") from None


def _to_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(name, f"Expected an integer, got {value!r}.")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(name, f"Expected an integer, got {value!r}.") from None
    if not number.is_integer():
        raise ConfigurationError(name, f"Expected an integer, got {value!r}.")
    return int(number)


class ConfigNode:
    """
    Read-only view over a configuration mapping.
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None) -> None:
        values = dict(values or {})
        options: Dict[str, Any] = {}
        for key in _OPTION_KEYS:
            options.update(values.pop(key, None) or {})
        self._nodes: Dict[str, Any] = values
        self._options: Dict[str, Any] = options

        # Shared state for nested ConfigAudit scopes
        self._audit_depth = 0
        self._parsed_nodes: Set[str] = set()
        self._parsed_options: Set[str] = set()
        self.unused_nodes: List[str] = []
        self.unused_options: List[str] = []

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ConfigNode":
        return ConfigNode(d)

    @staticmethod
    def from_yaml(path: str) -> "ConfigNode":
        import yaml
        with open(path, encoding="utf-8") as fh:
            d = yaml.safe_load(fh)
        return ConfigNode(d or {})

    @staticmethod
    def from_json(path: str) -> "ConfigNode":
        import json
        with open(path, encoding="utf-8") as fh:
            d = json.load(fh)
        return ConfigNode(d)

    def to_dict(self) -> Dict[str, Any]:
        d = dict(self._nodes)
        if self._options:
            d["option"] = dict(self._options)
        return d

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    @property
    def type(self) -> Optional[str]:
        value = self._nodes.get("type")
        return None if value is None else str(value)

    def node_names(self) -> List[str]:
        return [k for k in self._nodes if k not in _RESERVED_NODES]

    def get_str(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self._nodes.get(name)
        return default if value is None else str(value)

    def get_int(self, name: str, default: Optional[int] = None) -> Optional[int]:
        value = self._nodes.get(name)
        return default if value is None else _to_int(name, value)

    def get_float(self, name: str, default: Optional[float] = None) -> Optional[float]:
        value = self._nodes.get(name)
        return default if value is None else _to_float(name, value)

    # ------------------------------------------------------------------
    # Options
    # ------------------------------------------------------------------

    def option_names(self) -> List[str]:
        return list(self._options)

    def has_option(self, name: str) -> bool:
        return self._options.get(name) is not None

    def get_option_bool(self, name: str, default: bool = False) -> bool:
        value = self._options.get(name)
        return default if value is None else _to_bool(name, value)

    def get_option_int(self, name: str, default: int = 0) -> int:
        value = self._options.get(name)
        return default if value is None else _to_int(name, value)


class ConfigAudit:
    """
    Tracks which fields of a ConfigNode have been consumed.

    Audits nest: a subclass ``initialize`` and the base-class ``initialize``
    it delegates to both open an audit on the same node, and unused fields
    are reported only when the outermost scope closes without an exception.
    """

    def __init__(self, owner: str, cfg: ConfigNode) -> None:
        self.owner = owner
        self.cfg = cfg

    def __enter__(self) -> "ConfigAudit":
        if self.cfg._audit_depth == 0:
            self.cfg._parsed_nodes.clear()
            self.cfg._parsed_options.clear()
        self.cfg._audit_depth += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.cfg._audit_depth -= 1
        if self.cfg._audit_depth == 0 and exc_type is None:
            self._report()
        return False

    def mark_node_parsed(self, name: str) -> None:
        self.cfg._parsed_nodes.add(name)

    def mark_option_parsed(self, name: str) -> None:
        self.cfg._parsed_options.add(name)

    def _report(self) -> None:
        cfg = self.cfg
        cfg.unused_nodes = [n for n in cfg.node_names() if n not in cfg._parsed_nodes]
        cfg.unused_options = [n for n in cfg.option_names() if n not in cfg._parsed_options]
        if cfg.unused_nodes:
            logger.warning("%s: unused configuration node(s): %s", self.owner, ", ".join(cfg.unused_nodes))
        if cfg.unused_options:
            logger.warning("%s: unused configuration option(s): %s", self.owner, ", ".join(cfg.unused_options))
