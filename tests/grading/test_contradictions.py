from __future__ import annotations

import unittest

from grader.grading.contradictions import feedback_indicates_deficiency, resolve_contradictions


class TestFeedbackKeywords(unittest.TestCase):
    def test_deficiency_phrases_match(self) -> None:
        for text in (
            "Good, but citations are missing.",
            "The argument LACKS depth.",
            "Needs more examples.",
            "Student didn't cite sources.",
            "Some inaccuracies in dates.",
        ):
            with self.subTest(text=text):
                self.assertTrue(feedback_indicates_deficiency(text))

    def test_praise_does_not_match(self) -> None:
        for text in ("Excellent and thorough.", "Butterfly effect explained well.", "Clear and complete."):
            with self.subTest(text=text):
                self.assertFalse(feedback_indicates_deficiency(text))


class TestResolveContradictions(unittest.TestCase):
    def test_full_marks_with_deficiency_lose_one_point(self) -> None:
        payload = {
            "rubric_breakdown": {
                "Citations": {"score": 10, "max_points": 10, "feedback": "Good, but citations are missing."},
                "Content": {"score": 20, "max_points": 20, "feedback": "Excellent and thorough."},
                "Style": {"score": 5, "max_points": 10, "feedback": "Weak transitions."},
            }
        }
        adjusted = resolve_contradictions(payload)
        self.assertEqual(adjusted, ["Citations"])
        breakdown = payload["rubric_breakdown"]
        self.assertEqual(breakdown["Citations"]["score"], 9)
        self.assertEqual(breakdown["Content"]["score"], 20)
        self.assertEqual(breakdown["Style"]["score"], 5)

    def test_zero_point_criterion_stays_at_zero(self) -> None:
        payload = {"rubric_breakdown": {"A": {"score": 0, "max_points": 0, "feedback": "Missing entirely."}}}
        self.assertEqual(resolve_contradictions(payload), ["A"])
        self.assertEqual(payload["rubric_breakdown"]["A"]["score"], 0)

    def test_non_string_feedback_is_ignored(self) -> None:
        payload = {"rubric_breakdown": {"A": {"score": 5, "max_points": 5, "feedback": None}}}
        self.assertEqual(resolve_contradictions(payload), [])

    def test_missing_breakdown(self) -> None:
        self.assertEqual(resolve_contradictions({"rubric_breakdown": "n/a"}), [])


if __name__ == "__main__":
    unittest.main()
