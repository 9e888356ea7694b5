import json
import shutil
import unittest
from pathlib import Path
from uuid import uuid4

from tripsync.local_cache import CachedSession, LocalCache
from tripsync.storage import ChatMessage, SessionRecord

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _session(session_id: str, title: str = "New Trip Plan") -> SessionRecord:
    return SessionRecord(
        id=session_id,
        owner_id="alice",
        title=title,
        created_at="2026-01-01T00:00:00.000+00:00",
        updated_at="2026-01-01T00:00:00.000+00:00",
        message_count=0,
        last_message_preview="",
    )


class LocalCacheTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp_dir = PROJECT_ROOT / ".test-artifacts" / f"localcache-{uuid4().hex}"
        self._tmp_dir.mkdir(parents=True, exist_ok=True)
        self._path = self._tmp_dir / "chats.json"
        self._cache = LocalCache(self._path)

    def tearDown(self) -> None:
        shutil.rmtree(self._tmp_dir, ignore_errors=True)

    def test_missing_file_loads_empty(self) -> None:
        load = self._cache.load()
        self.assertTrue(load.ok)
        self.assertEqual([], load.entries)

    def test_save_and_get_by_id(self) -> None:
        entry = CachedSession(session=_session("s1"), messages=[ChatMessage(role="user", content="hi")])
        self.assertTrue(self._cache.save(entry))

        loaded = self._cache.get_by_id("s1")

        self.assertIsNotNone(loaded)
        self.assertEqual("s1", loaded.session.id)
        self.assertEqual(["hi"], [m.content for m in loaded.messages])
        self.assertIsNone(self._cache.get_by_id("missing"))
        self.assertIsNone(self._cache.get_by_id(""))

    def test_saving_existing_entry_updates_in_place_and_merges_messages(self) -> None:
        self._cache.save(CachedSession(session=_session("s1"), messages=[ChatMessage(role="user", content="a")]))
        self._cache.save(CachedSession(session=_session("s2")))
        self._cache.save(
            CachedSession(
                session=_session("s1", "Trip to Rome"),
                messages=[ChatMessage(role="user", content="a "), ChatMessage(role="assistant", content="b")],
            )
        )

        entries = self._cache.get_all()

        self.assertEqual(["s1", "s2"], [e.session.id for e in entries])
        self.assertEqual("Trip to Rome", entries[0].session.title)
        self.assertEqual(["a", "b"], [m.content for m in entries[0].messages])

    def test_oldest_entry_is_evicted_past_capacity(self) -> None:
        for i in range(51):
            self._cache.save(CachedSession(session=_session(f"s{i}")))

        ids = [e.session.id for e in self._cache.get_all()]

        self.assertEqual(50, len(ids))
        self.assertNotIn("s0", ids)
        self.assertEqual("s50", ids[-1])

    def test_malformed_entries_are_dropped(self) -> None:
        good = CachedSession(session=_session("s1")).to_payload()
        self._path.write_text(
            json.dumps([good, {"session": {}}, "junk", {"session": {"id": "s2"}, "messages": "nope"}]),
            encoding="utf-8",
        )

        load = self._cache.load()

        self.assertTrue(load.ok)
        self.assertEqual(["s1"], [e.session.id for e in load.entries])
        self.assertEqual(3, load.dropped)

    def test_entry_with_non_object_messages_is_dropped(self) -> None:
        self._path.write_text(
            json.dumps(
                [
                    {"session": {"id": "s1"}, "messages": []},
                    {"session": {"id": "s2"}, "messages": ["junk", None]},
                ]
            ),
            encoding="utf-8",
        )

        load = self._cache.load()

        self.assertTrue(load.ok)
        self.assertEqual(["s1"], [e.session.id for e in load.entries])
        self.assertEqual(1, load.dropped)

    def test_deeply_nested_file_reports_corruption(self) -> None:
        self._path.write_text("[" * 100000, encoding="utf-8")

        load = self._cache.load()

        self.assertFalse(load.ok)
        self.assertEqual([], load.entries)

    def test_unreadable_file_reports_corruption(self) -> None:
        self._path.write_text("{not json", encoding="utf-8")

        load = self._cache.load()

        self.assertFalse(load.ok)
        self.assertEqual("cache_corruption", load.error.code)
        self.assertEqual([], load.entries)

    def test_non_list_root_reports_corruption(self) -> None:
        self._path.write_text(json.dumps({"sessions": []}), encoding="utf-8")
        self.assertFalse(self._cache.load().ok)

    def test_corrupt_file_is_replaced_on_next_save(self) -> None:
        self._path.write_text("{not json", encoding="utf-8")
        self.assertTrue(self._cache.save(CachedSession(session=_session("s1"))))
        self.assertTrue(self._cache.load().ok)

    def test_delete_and_clear(self) -> None:
        self._cache.save(CachedSession(session=_session("s1")))
        self._cache.save(CachedSession(session=_session("s2")))

        self.assertTrue(self._cache.delete("s1"))
        self.assertEqual(["s2"], [e.session.id for e in self._cache.get_all()])

        self.assertTrue(self._cache.clear())
        self.assertFalse(self._path.exists())
        self.assertEqual([], self._cache.get_all())


if __name__ == "__main__":
    unittest.main()
