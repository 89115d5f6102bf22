"""Feed registry: definitions and runtime state keyed by feed name."""

from collections.abc import Iterator

from loguru import logger

from multifeed.modules.feeds.domain.entities import (
    FeedDefinition,
    FeedRuntimeState,
    Normalizer,
)


class FeedRegistry:
    """Holds one definition and one runtime state per feed name."""

    def __init__(self) -> None:
        self._definitions: dict[str, FeedDefinition] = {}
        self._states: dict[str, FeedRuntimeState] = {}

    def register(self, definition: FeedDefinition) -> bool:
        if not definition.url:
            logger.warning(f"URL not defined for feed '{definition.name}'")
            return False
        if definition.name in self._definitions:
            logger.warning(f"Feed '{definition.name}' already exists")
            return False

        self._definitions[definition.name] = definition
        self._states[definition.name] = FeedRuntimeState(name=definition.name)
        return True

    def unregister(self, name: str) -> FeedRuntimeState | None:
        """Drop the definition and return the detached state for teardown."""
        if self._definitions.pop(name, None) is None:
            return None
        return self._states.pop(name, None)

    def get(self, name: str) -> FeedDefinition | None:
        return self._definitions.get(name)

    def state(self, name: str) -> FeedRuntimeState | None:
        return self._states.get(name)

    def all(self) -> list[FeedDefinition]:
        return list(self._definitions.values())

    def names(self) -> list[str]:
        return list(self._definitions)

    def states(self) -> Iterator[FeedRuntimeState]:
        return iter(list(self._states.values()))

    def resolve_normalizer(self, definition: FeedDefinition) -> Normalizer | None:
        """函数直接使用；字符串则复用同名 feed 的归一化函数。"""
        normalize = definition.normalize
        if callable(normalize):
            return normalize
        if isinstance(normalize, str):
            target = self._definitions.get(normalize)
            if target is not None and callable(target.normalize):
                return target.normalize
            logger.debug(f"Feed '{definition.name}' references unknown normalizer '{normalize}'")
        return None

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)
