"""Tests for mqttbridge._index: command topic lookup.

Test Techniques Used:
    - Specification-based Testing: key equals the action's command topic
    - Mapping Protocol Checks: len, iteration, membership
"""

from __future__ import annotations

import pytest

from mqttbridge._errors import DuplicateSlugError
from mqttbridge._index import TopicIndex
from mqttbridge.testing import make_action


class TestTopicIndex:
    """Read-only topic → action mapping."""

    def test_keys_are_command_topics(self) -> None:
        actions = [make_action("Open Gate"), make_action("Light On")]
        index = TopicIndex.from_actions(actions)
        for action in actions:
            assert index[action.command_topic] is action

    def test_registration_order_kept(self) -> None:
        index = TopicIndex([make_action("B"), make_action("A")])
        assert index.topics == ["mqttbridge/host1/b/call", "mqttbridge/host1/a/call"]
        assert list(index) == index.topics

    def test_len_and_membership(self) -> None:
        index = TopicIndex([make_action("One")])
        assert len(index) == 1
        assert "mqttbridge/host1/one/call" in index
        assert "mqttbridge/host1/two/call" not in index

    def test_unknown_topic(self) -> None:
        index = TopicIndex()
        assert index.get("x") is None
        with pytest.raises(KeyError):
            index["x"]

    def test_duplicate_topic_rejected(self) -> None:
        with pytest.raises(DuplicateSlugError) as exc_info:
            TopicIndex([make_action("Light On"), make_action("light on")])
        assert exc_info.value.names == ["Light On", "light on"]

    def test_no_item_assignment(self) -> None:
        index = TopicIndex()
        with pytest.raises(TypeError):
            index["x"] = make_action()  # type: ignore[index]

    def test_repr(self) -> None:
        assert repr(TopicIndex([make_action("a")])) == "TopicIndex(['mqttbridge/host1/a/call'])"
