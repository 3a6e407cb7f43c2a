import json
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .llm_client import LLMClient, require_text
from .math_normalizer import answers_match, symbolically_equivalent

logger = logging.getLogger(__name__)

GRADING_SYSTEM_PROMPT = """You are a math tutor evaluating a student's answer. Be LENIENT and focus on whether the student understands the concept correctly.

Accept answers that are:
- Mathematically equivalent (e.g., "2/4" = "1/2" = "0.5")
- Same meaning with different notation (e.g., "x=5" = "5" = "x = 5")
- Correct but with minor formatting differences
- Partial but demonstrate understanding of the key concept
- Simplified or unsimplified versions of the same expression

Only mark as incorrect if the answer shows a fundamental misunderstanding or is completely wrong.

Respond with ONLY a JSON object (no markdown, no code blocks):
{"correct": true/false, "feedback": "brief explanation"}"""

FALLBACK_FEEDBACK = "Answer evaluated"
DEFAULT_PROBLEM_CONTEXT = "Math problem"

_FENCE_OPEN = re.compile(r"```json\n?")
_FENCE_CLOSE = re.compile(r"```\n?")

MAX_USER_ANSWER_LENGTH = 1000
MAX_EXPECTED_ANSWER_LENGTH = 500
MAX_STEP_INSTRUCTION_LENGTH = 1000
MAX_PROBLEM_CONTEXT_LENGTH = 500


@dataclass(frozen=True)
class GradingRequest:
    user_answer: str
    expected_answer: str
    step_instruction: str
    problem_context: Optional[str] = None

    def __post_init__(self):
        limits = [
            ("user_answer", self.user_answer, MAX_USER_ANSWER_LENGTH),
            ("expected_answer", self.expected_answer, MAX_EXPECTED_ANSWER_LENGTH),
            ("step_instruction", self.step_instruction, MAX_STEP_INSTRUCTION_LENGTH),
            ("problem_context", self.problem_context or "", MAX_PROBLEM_CONTEXT_LENGTH),
        ]
        for name, value, limit in limits:
            if len(value) > limit:
                raise ValueError(f"{name} exceeds {limit} characters")


@dataclass(frozen=True)
class GradingResult:
    correct: bool
    feedback: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def strip_code_fences(text: str) -> str:
    cleaned = _FENCE_OPEN.sub("", text)
    cleaned = _FENCE_CLOSE.sub("", cleaned)
    return cleaned.strip()


def parse_grading_response(raw: str) -> GradingResult:
    """
    Turn the model's reply into a GradingResult.

    The reply should be ``{"correct": bool, "feedback": str}``, possibly inside a
    fenced code block. When it cannot be read as JSON the raw text is searched
    for ``"correct": true`` instead.
    """
    try:
        data = json.loads(strip_code_fences(raw))
        if not isinstance(data, dict) or not isinstance(data.get("correct"), bool):
            raise ValueError("reply is not a {correct, feedback} object")
        feedback = data.get("feedback")
        return GradingResult(
            correct=data["correct"],
            feedback=feedback if isinstance(feedback, str) else FALLBACK_FEEDBACK,
        )
    except ValueError:
        logger.warning("Failed to parse grading reply, using text search: %r", raw)

    lowered = raw.lower()
    correct = '"correct": true' in lowered or '"correct":true' in lowered
    return GradingResult(correct=correct, feedback=FALLBACK_FEEDBACK)


class AnswerGrader:
    """Semantic grading through the LLM gateway."""

    def __init__(self, llm: LLMClient):
        self.llm = llm

    def build_prompt(self, request: GradingRequest) -> str:
        return f"""Problem context: {request.problem_context or DEFAULT_PROBLEM_CONTEXT}

Step question: {request.step_instruction}

Expected answer: {request.expected_answer}

Student's answer: {request.user_answer}

Is the student's answer correct or close enough to be considered correct?"""

    def grade(self, request: GradingRequest) -> GradingResult:
        # UpstreamError from the client propagates; a failed call is not a verdict
        raw = require_text(self.llm.generate(GRADING_SYSTEM_PROMPT, self.build_prompt(request)))
        logger.info("Grading reply: %s", raw)
        return parse_grading_response(raw)


class LocalAnswerGrader:
    """
    Offline grading without the gateway.

    Accepts the normalized containment match or a symbolic equivalence
    ("1/2" vs "0.5").
    """

    def grade(self, request: GradingRequest) -> GradingResult:
        if answers_match(request.user_answer, request.expected_answer):
            return GradingResult(correct=True, feedback="Your answer matches the expected answer.")

        if symbolically_equivalent(request.user_answer, request.expected_answer):
            return GradingResult(correct=True, feedback="Your answer is equivalent to the expected answer.")

        return GradingResult(correct=False, feedback="Not quite right. Try again or view a hint.")
