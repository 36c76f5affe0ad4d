from __future__ import annotations

import unittest

from grader.grading.extract import extract_json_candidate


class TestExtractJsonCandidate(unittest.TestCase):
    def test_drops_commentary_before_first_brace(self) -> None:
        text = 'Sure! Here is the grade:\n{"total_score": 5}'
        self.assertEqual(extract_json_candidate(text), '{"total_score": 5}')

    def test_unwraps_json_fence(self) -> None:
        text = 'Result:\n```json\n{"a": 1}\n```\nHope this helps.'
        self.assertEqual(extract_json_candidate(text), '{"a": 1}')

    def test_unwraps_untagged_fence(self) -> None:
        text = '```\n  {"a": 1}  \n```'
        self.assertEqual(extract_json_candidate(text), '{"a": 1}')

    def test_unclosed_fence_still_starts_at_brace(self) -> None:
        text = '```json\n{"a": {"b": 1'
        self.assertEqual(extract_json_candidate(text), '{"a": {"b": 1')

    def test_text_without_brace_is_returned_trimmed(self) -> None:
        self.assertEqual(extract_json_candidate("  I cannot grade this.  "), "I cannot grade this.")


if __name__ == "__main__":
    unittest.main()
