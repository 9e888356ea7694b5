import time

from tests.storage.base import LedgerStoreTestCase
from tripsync.errors import NotFound
from tripsync.storage import PLACEHOLDER_TITLE


class SessionStoreTests(LedgerStoreTestCase):
    def test_new_session_uses_placeholder_title(self) -> None:
        session = self._sessions.create_session("alice")
        self.assertEqual(PLACEHOLDER_TITLE, session.title)
        self.assertEqual(0, session.message_count)
        self.assertEqual("", session.last_message_preview)
        self.assertEqual(session.created_at, session.updated_at)

    def test_blank_title_falls_back_to_placeholder(self) -> None:
        session = self._sessions.create_session("alice", "   ")
        self.assertEqual(PLACEHOLDER_TITLE, session.title)

    def test_explicit_title_is_kept(self) -> None:
        session = self._sessions.create_session("alice", " Lisbon weekend ")
        self.assertEqual("Lisbon weekend", session.title)

    def test_list_is_scoped_to_owner_and_most_recent_first(self) -> None:
        first = self._sessions.create_session("alice", "First")
        time.sleep(0.005)
        second = self._sessions.create_session("alice", "Second")
        self._sessions.create_session("bob", "Not yours")

        time.sleep(0.005)
        self._ledger.append(first.id, "alice", [{"role": "user", "content": "bump"}])

        listed = self._sessions.list_sessions("alice")
        self.assertEqual([first.id, second.id], [s.id for s in listed])

    def test_get_session_of_other_owner_is_not_found(self) -> None:
        session = self._sessions.create_session("alice")
        with self.assertRaises(NotFound):
            self._sessions.get_session(session.id, "bob")

    def test_get_missing_session_is_not_found(self) -> None:
        with self.assertRaises(NotFound):
            self._sessions.get_session("missing", "alice")

    def test_delete_removes_session_and_messages(self) -> None:
        session = self._sessions.create_session("alice")
        self._ledger.append(
            session.id,
            "alice",
            [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
        )

        self._sessions.delete_session(session.id, "alice")

        self.assertEqual([], self._sessions.list_sessions("alice"))
        row = self._store.execute(
            "SELECT COUNT(*) AS c FROM messages WHERE session_id = ?",
            (session.id,),
        ).fetchone()
        self.assertEqual(0, int(row["c"]))

    def test_delete_by_other_owner_keeps_everything(self) -> None:
        session = self._sessions.create_session("alice")
        self._ledger.append(session.id, "alice", [{"role": "user", "content": "hi"}])

        with self.assertRaises(NotFound):
            self._sessions.delete_session(session.id, "bob")

        self.assertEqual(1, self._sessions.get_session(session.id, "alice").message_count)
