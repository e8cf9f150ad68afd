"""
Algorithm registry keyed by the configuration ``type`` string.
"""

import logging
from typing import Any, Callable, Dict, List, Type, Union

from core.config_node import ConfigNode
from core.errors import ConfigurationError

logger = logging.getLogger(__name__)

_REGISTRY: Dict[str, Type] = {}


def register_algorithm(*names: str) -> Callable[[Type], Type]:
    """Class decorator registering an algorithm under one or more type names."""
    def decorator(cls: Type) -> Type:
        for name in names:
            existing = _REGISTRY.get(name)
            if existing is not None and existing is not cls:
                raise ValueError(f"Algorithm type {name!r} already registered by {existing.__name__}")
            _REGISTRY[name] = cls
        return cls
    return decorator


def algorithm_types() -> List[str]:
    return sorted(_REGISTRY)


def get_algorithm_class(name: str) -> Type:
    try:
        return _REGISTRY[name]
    except KeyError:
        allowed = ", ".join(algorithm_types())
        raise ValueError(f"Unknown algorithm type {name!r}. Registered: {allowed}.") from None


def create_algorithm(cfg: Union[ConfigNode, Dict[str, Any]], **kwargs: Any):
    """
    Instantiate and initialize the algorithm named by ``cfg['type']``.

    Raises:
        ValueError: If the type is missing or unknown.
        ConfigurationError: If the algorithm rejects the configuration.
    """
    if isinstance(cfg, dict):
        cfg = ConfigNode(cfg)
    if not cfg.type:
        raise ValueError("Algorithm configuration has no 'type'.")
    algorithm = get_algorithm_class(cfg.type)(**kwargs)
    if not algorithm.initialize(cfg):
        err = algorithm.last_error
        algorithm.close()
        if err is not None:
            raise err
        raise ConfigurationError(None, f"Unable to initialize algorithm {cfg.type!r}.")
    logger.debug("Created %s algorithm", cfg.type)
    return algorithm
