"""Capability flags that a collaborative-filtering orchestrator reads off a factorizer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, TypeVar


T = TypeVar("T", bound=type)


@dataclass(frozen=True)
class FactorizerTraits:
    # True when the factorizer consumes (user, item, rating) coordinate lists directly,
    # so the orchestrator must not densify or clean the ratings first.
    uses_coordinate_list: bool = False


_REGISTRY: Dict[type, FactorizerTraits] = {}


def register_factorizer_traits(**traits: Any) -> Callable[[T], T]:
    """Class decorator recording `FactorizerTraits(**traits)` for the decorated type."""
    declared = FactorizerTraits(**traits)

    def _register(cls: T) -> T:
        _REGISTRY[cls] = declared
        return cls

    return _register


def get_factorizer_traits(factorizer: Any) -> FactorizerTraits:
    """Traits registered for a factorizer class or instance (defaults if none)."""
    cls = factorizer if isinstance(factorizer, type) else type(factorizer)
    return _REGISTRY.get(cls, FactorizerTraits())
