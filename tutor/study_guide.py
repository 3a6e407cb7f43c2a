import logging
import re
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from db.models.question_history import QuestionHistory
from db.models.study_guides import StudyGuide
from .llm_client import LLMClient, require_text
from .question_history import has_solution

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Study Guide"
MAX_TITLE_LENGTH = 255

STUDY_GUIDE_SYSTEM_PROMPT = """You are an expert math tutor creating a highly personalized study guide. Analyze the provided problem texts, solution modes and solutions from the history. Identify the mathematical concepts involved, common mistakes, and areas needing review. Your response MUST be formatted in markdown, starting with a single top-level heading that names the guide, followed by clear headings for:
1. Summary of Topics Covered
2. Key Concepts to Review
3. Practice Problems for Weak Areas (include an example problem for each area)
4. Study Recommendations"""

_HEADING = re.compile(r"^\s*#{1,6}\s+(.+?)\s*#*\s*$", re.MULTILINE)


class NoHistoryError(Exception):
    """There are no solved problems to build a study guide from."""


def build_history_context(questions: Sequence[QuestionHistory]) -> str:
    """
    Numbered summary of solved problems for the study-guide prompt.

    Questions still processing (no solution yet) are left out.
    """
    blocks = []
    for question in questions:
        if not has_solution(question):
            continue

        data = question.solution_data or {}
        block = [f"Problem {len(blocks) + 1} (Mode: {question.solution_mode}):"]
        if question.problem_text:
            block.append(f"-- Problem Text: {question.problem_text}")
        if question.tags:
            block.append(f"-- Topics: {', '.join(question.tags)}")
        block.append(f"-- Solution:\n{data['solution']}")
        blocks.append("\n".join(block))

    return "\n\n".join(blocks)


def extract_title(content: str) -> str:
    match = _HEADING.search(content or "")
    if not match:
        return DEFAULT_TITLE
    title = match.group(1).strip().strip("*_").strip()
    return title[:MAX_TITLE_LENGTH] or DEFAULT_TITLE


class StudyGuideGenerator:
    def __init__(self, llm: LLMClient):
        self.llm = llm

    def generate(self, questions: Sequence[QuestionHistory]) -> Tuple[str, str]:
        solved = [q for q in questions if has_solution(q)]
        if not solved:
            raise NoHistoryError("No question history found")

        context = build_history_context(solved)
        user_prompt = (
            "Generate a personalized study guide based on this question history:\n\n"
            f"{context}\n\nTotal questions: {len(solved)}"
        )

        content = require_text(self.llm.generate(STUDY_GUIDE_SYSTEM_PROMPT, user_prompt))
        logger.info("Study guide generated from %d problems", len(solved))
        return extract_title(content), content


class StudyGuideManager:
    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: str, title: str, content: str) -> StudyGuide:
        guide = StudyGuide(user_id=user_id, title=title or DEFAULT_TITLE, content=content)
        self.db.add(guide)
        self.db.commit()
        self.db.refresh(guide)
        return guide

    def list_for_user(self, user_id: str) -> List[StudyGuide]:
        return (
            self.db.query(StudyGuide)
            .filter(StudyGuide.user_id == user_id)
            .order_by(StudyGuide.created_at.desc())
            .all()
        )

    def get(self, user_id: str, guide_id: str) -> Optional[StudyGuide]:
        return (
            self.db.query(StudyGuide)
            .filter(StudyGuide.id == guide_id, StudyGuide.user_id == user_id)
            .first()
        )

    def rename(self, guide: StudyGuide, title: str) -> StudyGuide:
        title = title.strip()
        if not title:
            raise ValueError("Title must not be empty")

        guide.title = title[:MAX_TITLE_LENGTH]
        self.db.commit()
        self.db.refresh(guide)
        return guide

    def delete(self, guide: StudyGuide):
        self.db.delete(guide)
        self.db.commit()
