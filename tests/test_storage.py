"""Tests for preference and session file storage."""

import json
import os
import time

import pytest

from autopilot.exceptions import SessionLoadError
from autopilot.messages import History, Message, Role, SessionData
from autopilot.storage import JsonPreferenceStore, MemoryPreferenceStore, SessionStore


class TestMemoryPreferenceStore:
    def test_default_when_missing(self):
        store = MemoryPreferenceStore()
        assert store.get_string("missing") == ""
        assert store.get_string("missing", "fallback") == "fallback"

    def test_set_and_get(self):
        store = MemoryPreferenceStore({"a": "1"})
        store.set_string("b", "2")
        assert store.get_string("a") == "1"
        assert store.get_string("b") == "2"


class TestJsonPreferenceStore:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "prefs" / "preferences.json"
        JsonPreferenceStore(path).set_string("recent_session_id", "abc")

        assert JsonPreferenceStore(path).get_string("recent_session_id") == "abc"
        assert json.loads(path.read_text()) == {"recent_session_id": "abc"}

    def test_missing_file_is_empty(self, tmp_path):
        store = JsonPreferenceStore(tmp_path / "nope.json")
        assert store.get_string("anything") == ""

    def test_unreadable_file_is_ignored(self, tmp_path):
        path = tmp_path / "preferences.json"
        path.write_text("{broken")
        store = JsonPreferenceStore(path)
        assert store.get_string("recent_session_id") == ""

        store.set_string("recent_session_id", "fresh")
        assert json.loads(path.read_text()) == {"recent_session_id": "fresh"}

    def test_non_object_file_is_ignored(self, tmp_path):
        path = tmp_path / "preferences.json"
        path.write_text("[1, 2]")
        assert JsonPreferenceStore(path).get_string("x") == ""

    def test_no_temp_files_left_behind(self, tmp_path):
        store = JsonPreferenceStore(tmp_path / "preferences.json")
        store.set_string("a", "1")
        store.set_string("a", "2")
        assert [p.name for p in tmp_path.iterdir()] == ["preferences.json"]


class TestSessionStore:
    def make_data(self, session_id: str = "s1") -> SessionData:
        return SessionData(
            session_id=session_id,
            history=History(
                messages=[
                    Message(role=Role.SYSTEM, content="prompt"),
                    Message(role=Role.USER, content="hello"),
                ],
                model="gpt-test",
            ),
        )

    def test_create_makes_empty_file(self, tmp_path):
        store = SessionStore(tmp_path / "sessions")
        path = store.create("s1")
        assert path == tmp_path / "sessions" / "s1.json"
        assert path.exists()
        assert path.stat().st_size == 0
        assert store.exists("s1")

    def test_save_and_load(self, tmp_path):
        store = SessionStore(tmp_path)
        path = store.save(self.make_data())

        loaded = store.load(path)

        assert loaded == self.make_data()

    def test_saved_file_is_plain_json(self, tmp_path):
        store = SessionStore(tmp_path)
        path = store.save(self.make_data())

        raw = json.loads(path.read_text())

        assert raw["session_id"] == "s1"
        assert raw["history"]["messages"][1] == {"role": "user", "content": "hello"}

    def test_save_overwrites(self, tmp_path):
        store = SessionStore(tmp_path)
        data = self.make_data()
        store.save(data)
        data.history.messages.append(Message(role=Role.ASSISTANT, content="hi"))
        store.save(data)

        assert len(store.load(store.path_for("s1")).history.messages) == 3

    def test_load_missing_file(self, tmp_path):
        store = SessionStore(tmp_path)
        with pytest.raises(SessionLoadError):
            store.load(tmp_path / "missing.json")

    def test_load_invalid_file(self, tmp_path):
        store = SessionStore(tmp_path)
        path = tmp_path / "bad.json"
        path.write_text('{"history": {}}')
        with pytest.raises(SessionLoadError, match="Cannot load session file"):
            store.load(path)

    def test_list_sessions_newest_first(self, tmp_path):
        store = SessionStore(tmp_path)
        store.save(self.make_data("older"))
        store.save(self.make_data("newer"))
        now = time.time()
        os.utime(store.path_for("older"), (now - 100, now - 100))
        os.utime(store.path_for("newer"), (now, now))

        assert store.list_sessions() == ["newer", "older"]
