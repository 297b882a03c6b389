"""
Tests for the server-side message log
"""

import pytest

from services.chat_service.message_repository import MessageRepository


def wire_message(n, **changes):
    data = {"id": f"m{n}", "userId": "u1", "username": "Alice", "avatar": "a.png",
            "text": f"msg {n}", "timestamp": 1000 + n, "isAi": False, "userColor": "text-cyan-400"}
    data.update(changes)
    return data


class TestMessageRepository:

    @pytest.fixture(autouse=True)
    def setup_repo(self, tmp_path):
        self.repo = MessageRepository(str(tmp_path / "messages.db"), retention_limit=1000)

    def test_round_trip_keeps_wire_shape(self):
        reply = {"id": "m0", "username": "Bob", "text": "question"}
        self.repo.append(wire_message(1, replyTo=reply))
        self.repo.append(wire_message(2))

        first, second = self.repo.list_recent()

        assert first["replyTo"] == reply
        assert "replyTo" not in second
        assert first["isAi"] is False
        assert first["timestamp"] == 1001

    def test_returns_most_recent_ascending(self):
        for n in [5, 1, 4, 2, 3]:
            self.repo.append(wire_message(n))

        recent = self.repo.list_recent(limit=3)

        assert [m["id"] for m in recent] == ["m3", "m4", "m5"]

    def test_prunes_to_retention_limit(self, tmp_path):
        repo = MessageRepository(str(tmp_path / "small.db"), retention_limit=3)
        for n in range(6):
            repo.append(wire_message(n))

        assert repo.count() == 3
        assert [m["id"] for m in repo.list_recent()] == ["m3", "m4", "m5"]

    def test_missing_fields_rejected(self):
        with pytest.raises(ValueError):
            self.repo.append(wire_message(1, text=""))
        with pytest.raises(ValueError):
            self.repo.append(wire_message(2, username=None))

        assert self.repo.count() == 0
