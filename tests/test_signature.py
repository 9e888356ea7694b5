import unittest

from tripsync.signature import collapse_adjacent, dedupe, signature
from tripsync.storage import ChatMessage


class SignatureTests(unittest.TestCase):
    def test_signature_trims_content(self) -> None:
        self.assertEqual(("user", "hello"), signature({"role": "user", "content": "  hello\n"}))

    def test_signature_reads_attributes(self) -> None:
        self.assertEqual(("assistant", "hi"), signature(ChatMessage(role="assistant", content="hi ")))

    def test_signature_is_case_sensitive(self) -> None:
        self.assertNotEqual(
            signature({"role": "user", "content": "Paris trip"}),
            signature({"role": "user", "content": "Paris Trip"}),
        )

    def test_dedupe_keeps_first_occurrence(self) -> None:
        first = {"role": "user", "content": "a", "n": 1}
        second = {"role": "user", "content": " a ", "n": 2}
        self.assertEqual([first], dedupe([first, second]))

    def test_dedupe_skips_already_seen(self) -> None:
        kept = dedupe(
            [{"role": "user", "content": "a"}, {"role": "user", "content": "b"}],
            seen=[("user", "a")],
        )
        self.assertEqual(["b"], [m["content"] for m in kept])

    def test_collapse_adjacent_only_drops_neighbours(self) -> None:
        messages = [
            ChatMessage(role="user", content="yes"),
            ChatMessage(role="user", content="yes "),
            ChatMessage(role="assistant", content="ok"),
            ChatMessage(role="user", content="yes"),
        ]
        collapsed = collapse_adjacent(messages)
        self.assertEqual(["yes", "ok", "yes"], [m.content for m in collapsed])


if __name__ == "__main__":
    unittest.main()
