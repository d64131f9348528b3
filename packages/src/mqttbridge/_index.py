"""Read-only lookup from command topic to action.

The index is built once, after every action has been registered, and
is never mutated afterwards.  Keys are exact command topics; there is
no wildcard matching because the bridge only subscribes to its own
fully-qualified topics.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping

from mqttbridge._action import Action
from mqttbridge._errors import DuplicateSlugError


class TopicIndex(Mapping[str, Action]):
    """Immutable ``command_topic → Action`` mapping.

    Every key equals the ``command_topic`` of its value.
    """

    def __init__(self, actions: Iterable[Action] = ()) -> None:
        entries: dict[str, Action] = {}
        for action in actions:
            existing = entries.get(action.command_topic)
            if existing is not None:
                raise DuplicateSlugError(action.slug, [existing.name, action.name])
            entries[action.command_topic] = action
        self._entries = entries

    @classmethod
    def from_actions(cls, actions: Iterable[Action]) -> TopicIndex:
        return cls(actions)

    def __getitem__(self, topic: str) -> Action:
        return self._entries[topic]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"TopicIndex({list(self._entries)!r})"

    @property
    def topics(self) -> list[str]:
        """Command topics in registration order."""
        return list(self._entries)
