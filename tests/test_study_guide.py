import unittest
from unittest.mock import MagicMock

from db.models.question_history import QuestionHistory
from tutor.study_guide import (
    DEFAULT_TITLE,
    STUDY_GUIDE_SYSTEM_PROMPT,
    NoHistoryError,
    StudyGuideGenerator,
    build_history_context,
    extract_title,
)


def _question(mode="similar", solution_data=None, problem_text=None, tags=None):
    return QuestionHistory(
        image_url="https://storage.example.com/problem-images/u/q.png",
        solution_mode=mode,
        solution_data=solution_data,
        problem_text=problem_text,
        tags=tags,
    )


class TestBuildHistoryContext(unittest.TestCase):
    def test_skips_processing_questions(self):
        questions = [
            _question(solution_data={"status": "processing"}),
            _question(mode="step_by_step", solution_data={"solution": "Step 1: a | Hint: b | Answer: c"},
                      problem_text="2x = 8", tags=["linear equations"]),
            _question(solution_data=None),
            _question(solution_data={"solution": "Similar problem: 3x = 9 ..."}),
        ]

        context = build_history_context(questions)

        self.assertIn("Problem 1 (Mode: step_by_step):", context)
        self.assertIn("-- Problem Text: 2x = 8", context)
        self.assertIn("-- Topics: linear equations", context)
        self.assertIn("Problem 2 (Mode: similar):", context)
        self.assertNotIn("Problem 3", context)
        self.assertNotIn("processing", context)

    def test_empty_history(self):
        self.assertEqual(build_history_context([]), "")


class TestExtractTitle(unittest.TestCase):
    def test_first_heading(self):
        content = "# Algebra Review: Linear Equations\n\n## 1. Summary of Topics Covered\n..."

        self.assertEqual(extract_title(content), "Algebra Review: Linear Equations")

    def test_bold_heading(self):
        self.assertEqual(extract_title("## **Fractions Focus**\ntext"), "Fractions Focus")

    def test_default_title(self):
        self.assertEqual(extract_title("No headings at all."), DEFAULT_TITLE)
        self.assertEqual(extract_title(""), DEFAULT_TITLE)


class TestStudyGuideGenerator(unittest.TestCase):
    def setUp(self):
        self.llm = MagicMock()
        self.generator = StudyGuideGenerator(self.llm)

    def test_generate(self):
        self.llm.generate.return_value = "# Quadratics Guide\n\n## 1. Summary of Topics Covered\n- factoring"

        title, content = self.generator.generate(
            [
                _question(solution_data={"solution": "x = 2 or x = 3"}, problem_text="x^2 - 5x + 6 = 0"),
                _question(solution_data={"status": "processing"}),
            ]
        )

        self.assertEqual(title, "Quadratics Guide")
        self.assertTrue(content.startswith("# Quadratics Guide"))

        system_prompt, user_prompt = self.llm.generate.call_args[0]
        self.assertEqual(system_prompt, STUDY_GUIDE_SYSTEM_PROMPT)
        self.assertIn("x^2 - 5x + 6 = 0", user_prompt)
        self.assertIn("Total questions: 1", user_prompt)

    def test_no_solved_questions(self):
        with self.assertRaises(NoHistoryError):
            self.generator.generate([_question(solution_data={"status": "processing"})])

        self.llm.generate.assert_not_called()


if __name__ == "__main__":
    unittest.main()
