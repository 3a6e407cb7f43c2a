import unittest
from unittest.mock import MagicMock

from tutor.answer_grader import (
    FALLBACK_FEEDBACK,
    GRADING_SYSTEM_PROMPT,
    AnswerGrader,
    GradingRequest,
    GradingResult,
    LocalAnswerGrader,
    parse_grading_response,
    strip_code_fences,
)
from tutor.llm_client import UpstreamError


class TestParseGradingResponse(unittest.TestCase):
    def test_plain_json(self):
        result = parse_grading_response('{"correct": true, "feedback": "ok"}')

        self.assertEqual(result, GradingResult(correct=True, feedback="ok"))

    def test_fenced_json_parses_like_plain_json(self):
        fenced = '```json\n{"correct": true, "feedback": "ok"}\n```'

        self.assertEqual(
            parse_grading_response(fenced),
            parse_grading_response('{"correct": true, "feedback": "ok"}'),
        )

    def test_bare_fence(self):
        result = parse_grading_response('```\n{"correct": false, "feedback": "Check the sign"}\n```')

        self.assertFalse(result.correct)
        self.assertEqual(result.feedback, "Check the sign")

    def test_text_fallback_finds_correct_true(self):
        raw = 'Sure! Here you go: {"correct": true, "feedback": "nice" and more'

        result = parse_grading_response(raw)

        self.assertTrue(result.correct)
        self.assertEqual(result.feedback, FALLBACK_FEEDBACK)

    def test_text_fallback_without_spaces_and_any_case(self):
        self.assertTrue(parse_grading_response('verdict => {"CORRECT":TRUE').correct)

    def test_text_fallback_defaults_to_incorrect(self):
        result = parse_grading_response("I think the student is right.")

        self.assertFalse(result.correct)
        self.assertEqual(result.feedback, FALLBACK_FEEDBACK)

    def test_json_without_boolean_correct_uses_text_search(self):
        result = parse_grading_response('{"verdict": "correct"}')

        self.assertFalse(result.correct)
        self.assertEqual(result.feedback, FALLBACK_FEEDBACK)

    def test_missing_feedback(self):
        result = parse_grading_response('{"correct": true}')

        self.assertTrue(result.correct)
        self.assertEqual(result.feedback, FALLBACK_FEEDBACK)

    def test_strip_code_fences(self):
        self.assertEqual(strip_code_fences('```json\n{"a": 1}\n```\n'), '{"a": 1}')


class TestAnswerGrader(unittest.TestCase):
    def setUp(self):
        self.llm = MagicMock()
        self.grader = AnswerGrader(self.llm)

    def test_grade_sends_policy_and_context(self):
        self.llm.generate.return_value = '{"correct": true, "feedback": "1/2 equals 0.5"}'

        result = self.grader.grade(
            GradingRequest(
                user_answer="0.5",
                expected_answer="1/2",
                step_instruction="Simplify the fraction",
            )
        )

        self.assertTrue(result.correct)
        self.assertEqual(result.to_dict(), {"correct": True, "feedback": "1/2 equals 0.5"})

        system_prompt, user_prompt = self.llm.generate.call_args[0]
        self.assertEqual(system_prompt, GRADING_SYSTEM_PROMPT)
        self.assertIn("Problem context: Math problem", user_prompt)
        self.assertIn("Step question: Simplify the fraction", user_prompt)
        self.assertIn("Expected answer: 1/2", user_prompt)
        self.assertIn("Student's answer: 0.5", user_prompt)

    def test_problem_context_is_forwarded(self):
        self.llm.generate.return_value = '{"correct": false, "feedback": "no"}'

        self.grader.grade(GradingRequest("3", "4", "Count", problem_context="Apples in a basket"))

        self.assertIn("Problem context: Apples in a basket", self.llm.generate.call_args[0][1])

    def test_upstream_error_propagates(self):
        self.llm.generate.side_effect = UpstreamError("boom", status_code=500)

        with self.assertRaises(UpstreamError):
            self.grader.grade(GradingRequest("1", "1", "Say one"))

    def test_empty_completion_is_an_upstream_error(self):
        self.llm.generate.return_value = None

        with self.assertRaises(UpstreamError):
            self.grader.grade(GradingRequest("1", "1", "Say one"))


class TestGradingRequest(unittest.TestCase):
    def test_within_limits(self):
        request = GradingRequest("a" * 1000, "b" * 500, "c" * 1000, problem_context="d" * 500)

        self.assertEqual(len(request.user_answer), 1000)

    def test_oversized_fields_are_refused(self):
        cases = [
            {"user_answer": "a" * 1001},
            {"expected_answer": "b" * 501},
            {"step_instruction": "c" * 1001},
            {"problem_context": "d" * 501},
        ]
        for overrides in cases:
            fields = {"user_answer": "1", "expected_answer": "1", "step_instruction": "Say one"}
            fields.update(overrides)
            with self.subTest(field=list(overrides)[0]):
                with self.assertRaises(ValueError):
                    GradingRequest(**fields)


class TestLocalAnswerGrader(unittest.TestCase):
    def setUp(self):
        self.grader = LocalAnswerGrader()

    def test_accepts_normalized_match(self):
        self.assertTrue(self.grader.grade(GradingRequest("X=4.", "x = 4", "Solve")).correct)

    def test_accepts_equivalent_value(self):
        self.assertTrue(self.grader.grade(GradingRequest("0.5", "1/2", "Simplify the fraction")).correct)

    def test_rejects_wrong_answer(self):
        result = self.grader.grade(GradingRequest("7", "x = 4", "Solve"))

        self.assertFalse(result.correct)
        self.assertTrue(result.feedback)


if __name__ == "__main__":
    unittest.main()
