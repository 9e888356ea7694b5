import unittest

from tripsync.titles import extract_destination, synthesize_title


class SynthesizeTitleTests(unittest.TestCase):
    def test_trip_to_destination(self) -> None:
        self.assertEqual("Trip to Japan", synthesize_title("I want to plan a trip to Japan for 7 days"))

    def test_visiting_destination(self) -> None:
        self.assertEqual("Trip to Lisbon", synthesize_title("We are visiting Lisbon, any tips?"))

    def test_in_destination(self) -> None:
        self.assertEqual("Trip to Kyoto", synthesize_title("Best ramen in Kyoto"))

    def test_empty_message_gives_placeholder(self) -> None:
        self.assertEqual("New Trip Plan", synthesize_title(""))
        self.assertEqual("New Trip Plan", synthesize_title("   "))

    def test_non_string_gives_placeholder(self) -> None:
        self.assertEqual("New Trip Plan", synthesize_title(None))
        self.assertEqual("New Trip Plan", synthesize_title(42))

    def test_long_message_without_destination_is_truncated(self) -> None:
        message = "Please summarize my notes from yesterday"
        self.assertIsNone(extract_destination(message))
        self.assertEqual("Please summarize my notes from...", synthesize_title(message))

    def test_short_message_without_destination_is_kept(self) -> None:
        self.assertEqual("Hello there", synthesize_title("Hello there"))

    def test_too_short_phrase_is_rejected(self) -> None:
        self.assertIsNone(extract_destination("go to la"))


if __name__ == "__main__":
    unittest.main()
