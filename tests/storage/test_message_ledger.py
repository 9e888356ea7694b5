from tests.storage.base import LedgerStoreTestCase
from tripsync.errors import InvalidInput, NotFound
from tripsync.storage import ChatMessage


def _turns(*pairs: tuple[str, str]) -> list[dict]:
    return [{"role": role, "content": content} for role, content in pairs]


class MessageLedgerAppendTests(LedgerStoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self._session = self._sessions.create_session("alice")

    def test_append_saves_new_messages(self) -> None:
        result = self._ledger.append(
            self._session.id,
            "alice",
            _turns(("user", "Plan Tokyo"), ("assistant", "Sure, how many days?")),
        )
        self.assertEqual(2, result.saved_count)
        self.assertEqual(2, result.total_count)

    def test_replaying_a_batch_saves_nothing(self) -> None:
        batch = _turns(("user", "Plan Tokyo"), ("assistant", "Sure, how many days?"))
        self._ledger.append(self._session.id, "alice", batch)

        result = self._ledger.append(self._session.id, "alice", batch)

        self.assertEqual(0, result.saved_count)
        self.assertEqual(2, result.total_count)
        self.assertEqual(2, len(self._ledger.read(self._session.id, "alice")))

    def test_whitespace_differences_are_duplicates(self) -> None:
        self._ledger.append(self._session.id, "alice", _turns(("user", "Plan Tokyo")))
        result = self._ledger.append(self._session.id, "alice", _turns(("user", "  Plan Tokyo \n")))
        self.assertEqual(0, result.saved_count)

    def test_case_differences_are_not_duplicates(self) -> None:
        self._ledger.append(self._session.id, "alice", _turns(("user", "Paris trip")))
        result = self._ledger.append(self._session.id, "alice", _turns(("user", "Paris Trip")))
        self.assertEqual(1, result.saved_count)
        self.assertEqual(2, result.total_count)

    def test_same_content_different_role_is_kept(self) -> None:
        result = self._ledger.append(self._session.id, "alice", _turns(("user", "ok"), ("assistant", "ok")))
        self.assertEqual(2, result.saved_count)

    def test_duplicates_within_one_batch_keep_first(self) -> None:
        result = self._ledger.append(
            self._session.id,
            "alice",
            _turns(("user", "a"), ("assistant", "b"), ("user", "a")),
        )
        self.assertEqual(2, result.saved_count)
        contents = [m.content for m in self._ledger.read(self._session.id, "alice")]
        self.assertEqual(["a", "b"], contents)

    def test_non_repeated_earlier_message_is_suppressed_later(self) -> None:
        self._ledger.append(self._session.id, "alice", _turns(("user", "yes"), ("assistant", "Great")))
        result = self._ledger.append(self._session.id, "alice", _turns(("user", "yes")))
        self.assertEqual(0, result.saved_count)

    def test_order_is_preserved_across_batches(self) -> None:
        self._ledger.append(self._session.id, "alice", _turns(("user", "one"), ("assistant", "two")))
        self._ledger.append(self._session.id, "alice", _turns(("user", "three"), ("assistant", "four")))

        messages = self._ledger.read(self._session.id, "alice")

        self.assertEqual(["one", "two", "three", "four"], [m.content for m in messages])
        self.assertEqual([1, 2, 3, 4], [m.seq for m in messages])
        timestamps = [m.timestamp_ms for m in messages]
        self.assertEqual(sorted(timestamps), timestamps)
        self.assertEqual(len(set(timestamps)), len(timestamps))

    def test_accepts_chat_message_objects(self) -> None:
        result = self._ledger.append(self._session.id, "alice", [ChatMessage(role="user", content="hi")])
        self.assertEqual(1, result.saved_count)

    def test_unknown_role_is_stored_as_user(self) -> None:
        self._ledger.append(self._session.id, "alice", _turns(("system", "hello")))
        self.assertEqual("user", self._ledger.read(self._session.id, "alice")[0].role)

    def test_blank_content_is_not_stored(self) -> None:
        result = self._ledger.append(self._session.id, "alice", _turns(("user", "   "), ("user", "real")))
        self.assertEqual(1, result.saved_count)
        self.assertEqual(1, result.total_count)

    def test_empty_batch_is_invalid(self) -> None:
        with self.assertRaises(InvalidInput):
            self._ledger.append(self._session.id, "alice", [])

    def test_non_list_batch_is_invalid(self) -> None:
        with self.assertRaises(InvalidInput):
            self._ledger.append(self._session.id, "alice", {"role": "user", "content": "hi"})

    def test_non_string_content_is_invalid(self) -> None:
        with self.assertRaises(InvalidInput):
            self._ledger.append(self._session.id, "alice", [{"role": "user", "content": 42}])

    def test_invalid_batch_writes_nothing(self) -> None:
        with self.assertRaises(InvalidInput):
            self._ledger.append(self._session.id, "alice", [{"role": "user", "content": "ok"}, "bad"])
        self.assertEqual([], self._ledger.read(self._session.id, "alice"))

    def test_other_owner_gets_not_found_and_nothing_is_written(self) -> None:
        with self.assertRaises(NotFound):
            self._ledger.append(self._session.id, "bob", _turns(("user", "sneaky")))
        self.assertEqual([], self._ledger.read(self._session.id, "alice"))

    def test_missing_session_is_not_found(self) -> None:
        with self.assertRaises(NotFound):
            self._ledger.append("missing", "alice", _turns(("user", "hi")))


class MessageLedgerMetadataTests(LedgerStoreTestCase):
    def setUp(self) -> None:
        super().setUp()
        self._session = self._sessions.create_session("alice")

    def test_preview_is_last_message_truncated(self) -> None:
        long_reply = "x" * 150
        self._ledger.append(self._session.id, "alice", _turns(("user", "hi"), ("assistant", long_reply)))

        session = self._sessions.get_session(self._session.id, "alice")

        self.assertEqual(2, session.message_count)
        self.assertEqual("x" * 100, session.last_message_preview)

    def test_title_hint_replaces_placeholder(self) -> None:
        self._ledger.append(
            self._session.id,
            "alice",
            _turns(("user", "I want to plan a trip to Japan for 7 days")),
            title_hint="Trip to Japan",
        )
        self.assertEqual("Trip to Japan", self._sessions.get_session(self._session.id, "alice").title)

    def test_blank_title_hint_is_ignored(self) -> None:
        self._ledger.append(self._session.id, "alice", _turns(("user", "hi")), title_hint="  ")
        self.assertEqual("New Trip Plan", self._sessions.get_session(self._session.id, "alice").title)

    def test_replay_does_not_touch_updated_at(self) -> None:
        batch = _turns(("user", "hi"))
        self._ledger.append(self._session.id, "alice", batch)
        before = self._sessions.get_session(self._session.id, "alice").updated_at

        self._ledger.append(self._session.id, "alice", batch)

        self.assertEqual(before, self._sessions.get_session(self._session.id, "alice").updated_at)

    def test_count_matches_stored_rows(self) -> None:
        self._ledger.append(self._session.id, "alice", _turns(("user", "a"), ("assistant", "b")))
        self._ledger.append(self._session.id, "alice", _turns(("user", "a"), ("user", "c")))

        session = self._sessions.get_session(self._session.id, "alice")

        self.assertEqual(3, session.message_count)
        self.assertEqual(3, len(self._ledger.read(self._session.id, "alice")))


class MessageLedgerReadTests(LedgerStoreTestCase):
    def test_read_hides_duplicate_rows(self) -> None:
        session = self._sessions.create_session("alice")
        self._ledger.append(session.id, "alice", _turns(("user", "hi"), ("assistant", "hello")))
        self._store.execute(
            """
            INSERT INTO messages (id, session_id, seq, role, content, timestamp_ms)
            VALUES ('dup', ?, 99, 'user', ' hi ', 1)
            """,
            (session.id,),
        )

        messages = self._ledger.read(session.id, "alice")

        self.assertEqual(["hi", "hello"], [m.content for m in messages])

    def test_read_by_other_owner_is_not_found(self) -> None:
        session = self._sessions.create_session("alice")
        with self.assertRaises(NotFound):
            self._ledger.read(session.id, "bob")
