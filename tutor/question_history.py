import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from db.models.problem_reports import ProblemReport
from db.models.question_history import QuestionHistory

logger = logging.getLogger(__name__)

STATUS_PROCESSING = "processing"
MAX_TAG_SUGGESTIONS = 8


def is_processing(question: QuestionHistory) -> bool:
    return (question.solution_data or {}).get("status") == STATUS_PROCESSING


def has_solution(question: QuestionHistory) -> bool:
    return not is_processing(question) and bool((question.solution_data or {}).get("solution"))


def progress_of(question: QuestionHistory) -> Dict[str, Any]:
    data = question.solution_data or {}
    completed = data.get("completedSteps") or 0
    total = data.get("totalSteps") or 0
    return {
        "completedSteps": completed,
        "totalSteps": total,
        "isComplete": total > 0 and completed >= total,
    }


class QuestionHistoryManager:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        user_id: str,
        image_url: str,
        solution_mode: str,
        problem_text: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> QuestionHistory:
        question = QuestionHistory(
            user_id=user_id,
            image_url=image_url,
            problem_text=problem_text,
            solution_mode=solution_mode,
            solution_data={"status": STATUS_PROCESSING},
            tags=[t.strip() for t in tags if t.strip()] if tags else None,
        )
        self.db.add(question)
        self.db.commit()
        self.db.refresh(question)
        return question

    def list_for_user(self, user_id: str, tag: Optional[str] = None) -> List[QuestionHistory]:
        questions = (
            self.db.query(QuestionHistory)
            .filter(QuestionHistory.user_id == user_id)
            .order_by(QuestionHistory.created_at.desc())
            .all()
        )

        if tag and tag.strip():
            needle = tag.strip().lower()
            questions = [
                q for q in questions
                if any(needle in t.lower() for t in (q.tags or []))
            ]

        return questions

    def get(self, user_id: str, question_id: str) -> Optional[QuestionHistory]:
        return (
            self.db.query(QuestionHistory)
            .filter(QuestionHistory.id == question_id, QuestionHistory.user_id == user_id)
            .first()
        )

    def delete(self, question: QuestionHistory):
        self.db.query(ProblemReport).filter(ProblemReport.question_id == question.id).delete()
        self.db.delete(question)
        self.db.commit()

    def save_solution(self, question: QuestionHistory, solution: str, total_steps: Optional[int] = None) -> QuestionHistory:
        data = {"solution": solution, "rawSolution": solution}
        if total_steps is not None:
            data["completedSteps"] = 0
            data["totalSteps"] = total_steps

        # JSON columns are only flushed when reassigned
        question.solution_data = data
        self.db.commit()
        self.db.refresh(question)
        return question

    def record_step_completion(self, question: QuestionHistory) -> QuestionHistory:
        data = dict(question.solution_data or {})
        total = data.get("totalSteps") or 0
        completed = (data.get("completedSteps") or 0) + 1
        data["completedSteps"] = min(completed, total) if total else completed

        question.solution_data = data
        self.db.commit()
        self.db.refresh(question)
        logger.info("Question %s progress %s/%s", question.id, data["completedSteps"], total)
        return question

    def tags_for_user(self, user_id: str, query: Optional[str] = None) -> List[str]:
        tags = set()
        for question in self.list_for_user(user_id):
            tags.update(question.tags or [])

        all_tags = sorted(tags)
        if not query or not query.strip():
            return all_tags[:MAX_TAG_SUGGESTIONS]

        needle = query.strip().lower()
        return [t for t in all_tags if needle in t.lower()][:MAX_TAG_SUGGESTIONS]

    def report(self, user_id: str, question: QuestionHistory, reason: str) -> ProblemReport:
        report = ProblemReport(user_id=user_id, question_id=question.id, report_reason=reason)
        self.db.add(report)
        self.db.commit()
        self.db.refresh(report)
        return report
