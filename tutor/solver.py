import logging

from .config import SOLUTION_MODES
from .llm_client import LLMClient, require_text

logger = logging.getLogger(__name__)

SIMILAR_SYSTEM_PROMPT = (
    "You are a math tutor. Analyze the math problem in the image and create a SIMILAR "
    "(not identical) problem with a complete step-by-step solution. Format your response "
    "as a clear, educational walkthrough with numbered steps."
)

STEP_BY_STEP_SYSTEM_PROMPT = (
    "You are a math tutor. Analyze the EXACT problem in the image and break it down into "
    "3-4 clear steps. For EACH step, you must provide: 1) A brief instruction/question for "
    "that step, 2) A helpful hint, and 3) The correct answer for that specific step. "
    "Format as: Step 1: [instruction] | Hint: [hint] | Answer: [answer]"
)

SOLVE_USER_TEXT = "Please analyze this math problem and provide the solution in the requested format."

SYSTEM_PROMPTS = {
    "similar": SIMILAR_SYSTEM_PROMPT,
    "step_by_step": STEP_BY_STEP_SYSTEM_PROMPT,
}


class ProblemSolver:
    def __init__(self, llm: LLMClient):
        self.llm = llm

    def solve(self, image_url: str, mode: str) -> str:
        """
        Ask the model for a solution of the pictured problem and return its raw text.
        """
        if mode not in SOLUTION_MODES:
            raise ValueError(f"Unsupported solution mode: {mode}")

        user_content = [
            {"type": "text", "text": SOLVE_USER_TEXT},
            {"type": "image_url", "image_url": {"url": image_url}},
        ]

        solution = require_text(self.llm.generate(SYSTEM_PROMPTS[mode], user_content))
        logger.info("Solution generated (mode=%s, %d chars)", mode, len(solution))
        return solution
