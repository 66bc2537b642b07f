"""MatchRegistry — label -> engine factory bindings, built once at startup.

The registry is an explicit object handed to the host; there is no
module-level registration state.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Callable

from gridmatch.config import EngineConfig
from gridmatch.game.engine import MatchEngine
from gridmatch.game.state import Mode

logger = logging.getLogger(__name__)

EngineFactory = Callable[..., MatchEngine]


class MatchRegistry:
    """Maps match labels to factories producing a fresh MatchEngine."""

    def __init__(self) -> None:
        self._factories: dict[str, EngineFactory] = {}

    def register(self, label: str, factory: EngineFactory) -> None:
        if label in self._factories:
            raise ValueError(f"Match label already registered: {label!r}")
        self._factories[label] = factory
        logger.info("Registered match handler %s", label)

    def create(self, label: str, **deps) -> MatchEngine:
        """Build an engine for ``label``. ``deps`` go to the factory."""
        factory = self._factories.get(label)
        if factory is None:
            raise ValueError(
                f"Unknown match label: {label!r}. "
                f"Available: {self.labels()}"
            )
        return factory(**deps)

    def labels(self) -> list[str]:
        return list(self._factories)

    def __contains__(self, label: str) -> bool:
        return label in self._factories


def build_default_registry(config: EngineConfig) -> MatchRegistry:
    """Register ``lobby_<mode>`` for every mode plus the plain ``lobby``."""
    registry = MatchRegistry()
    for mode in Mode:
        label = f"lobby_{mode.value}"
        registry.register(
            label,
            partial(MatchEngine, config, default_mode=mode, label=label),
        )
    default_mode = Mode.resolve(config.default_mode, Mode.STANDARD)
    registry.register(
        "lobby",
        partial(MatchEngine, config, default_mode=default_mode, label="lobby"),
    )
    return registry
