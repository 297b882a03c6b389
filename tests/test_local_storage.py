"""
Tests for the durable local key/value store
"""

import json
import pytest

from infrastructure.storage.local_storage import LocalStorage, get_session_storage, new_session_id


class TestLocalStorage:

    def test_set_and_get(self, tmp_path):
        storage = LocalStorage(str(tmp_path / "ls.json"))

        storage.set_item("chat_api_url", "http://localhost:8000")

        assert storage.get_item("chat_api_url") == "http://localhost:8000"
        assert storage.get_item("missing") is None

    def test_values_survive_reopen(self, tmp_path):
        path = str(tmp_path / "ls.json")
        LocalStorage(path).set_item("chat_current_session", '{"id": "diver01"}')

        assert LocalStorage(path).get_item("chat_current_session") == '{"id": "diver01"}'

    def test_remove_and_clear(self, tmp_path):
        path = str(tmp_path / "ls.json")
        storage = LocalStorage(path)
        storage.set_item("a", "1")
        storage.set_item("b", "2")

        storage.remove_item("a")
        storage.remove_item("never-set")
        assert storage.keys() == ["b"]

        storage.clear()
        assert LocalStorage(path).keys() == []

    def test_corrupt_file_counts_as_empty(self, tmp_path):
        path = tmp_path / "ls.json"
        path.write_text("{not json", encoding="utf-8")

        storage = LocalStorage(str(path))

        assert storage.keys() == []
        storage.set_item("a", "1")
        assert json.loads(path.read_text(encoding="utf-8")) == {"a": "1"}

    def test_non_object_root_counts_as_empty(self, tmp_path):
        path = tmp_path / "ls.json"
        path.write_text("[1, 2]", encoding="utf-8")

        assert LocalStorage(str(path)).keys() == []

    def test_no_temp_files_left_behind(self, tmp_path):
        storage = LocalStorage(str(tmp_path / "ls.json"))
        storage.set_item("a", "1")

        assert [p.name for p in tmp_path.iterdir()] == ["ls.json"]


class TestSessionStorage:

    def test_sessions_use_separate_files(self, tmp_path):
        first = get_session_storage(new_session_id(), base_dir=str(tmp_path))
        second = get_session_storage(new_session_id(), base_dir=str(tmp_path))

        first.set_item("chat_current_session", '{"id": "alice01"}')

        assert second.get_item("chat_current_session") is None
        assert first.path != second.path

    def test_same_id_returns_same_store(self, tmp_path):
        session_id = new_session_id()

        assert get_session_storage(session_id, base_dir=str(tmp_path)) is get_session_storage(session_id, base_dir=str(tmp_path))

    @pytest.mark.parametrize("session_id", ["", "../../etc/passwd", "ABC", None])
    def test_malformed_id_is_rejected(self, session_id, tmp_path):
        with pytest.raises(ValueError):
            get_session_storage(session_id, base_dir=str(tmp_path))
