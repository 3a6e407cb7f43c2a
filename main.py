import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, constr
from sqlalchemy.orm import Session

from auth.dependencies import get_current_user
from auth.schemas import ProfilePublic, SettingsUpdate
from db.database import Base, engine, get_db
from db.models.profiles import Profile
from db.models.question_history import QuestionHistory
from db.models.study_guides import StudyGuide
from db.models.problem_reports import ProblemReport
from tutor.answer_grader import (
    MAX_EXPECTED_ANSWER_LENGTH,
    MAX_PROBLEM_CONTEXT_LENGTH,
    MAX_STEP_INSTRUCTION_LENGTH,
    MAX_USER_ANSWER_LENGTH,
    AnswerGrader,
    GradingRequest,
    LocalAnswerGrader,
)
from tutor.config import GRADING_STRATEGY, LOG_LEVEL
from tutor.llm_client import LLMClient, UpstreamError, get_llm_client
from tutor.question_history import QuestionHistoryManager, has_solution, is_processing, progress_of
from tutor.solver import ProblemSolver
from tutor.step_parser import parse_steps
from tutor.study_guide import NoHistoryError, StudyGuideGenerator, StudyGuideManager

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("math_tutor")

UPSTREAM_FAILURE = "The AI service failed to respond. Please try again."


app = FastAPI(
    title="Math Snap Tutor API",
    version="1.0.0",
    description=(
        "Backend for a photo-a-math-problem tutor: AI solutions, "
        "step-by-step walkthroughs with answer checking, history and study guides."
    ),
)


@app.on_event("startup")
def create_tables():
    Base.metadata.create_all(bind=engine)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("Rejected request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid input", "errors": jsonable_encoder(exc.errors())},
    )


# ============ Dependencies ============

def get_llm() -> LLMClient:
    try:
        return get_llm_client()
    except RuntimeError as e:
        logger.error("LLM client unavailable: %s", e)
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "AI service is not configured")


def get_grader():
    if GRADING_STRATEGY == "local":
        return LocalAnswerGrader()
    return AnswerGrader(get_llm())


# ============ Models ============

class ValidateAnswerRequest(BaseModel):
    user_answer: constr(strip_whitespace=True, max_length=MAX_USER_ANSWER_LENGTH) = Field(..., alias="userAnswer")
    expected_answer: constr(max_length=MAX_EXPECTED_ANSWER_LENGTH) = Field(..., alias="expectedAnswer")
    step_instruction: constr(max_length=MAX_STEP_INSTRUCTION_LENGTH) = Field(..., alias="stepInstruction")
    problem_context: Optional[constr(max_length=MAX_PROBLEM_CONTEXT_LENGTH)] = Field(None, alias="problemContext")


class GradingResponse(BaseModel):
    correct: bool
    feedback: str


class CreateQuestionRequest(BaseModel):
    image_url: constr(strip_whitespace=True, min_length=1, max_length=2048)
    solution_mode: Literal["similar", "step_by_step"]
    problem_text: Optional[constr(max_length=5000)] = None
    tags: Optional[List[constr(max_length=50)]] = None


class StepAnswerRequest(BaseModel):
    answer: constr(strip_whitespace=True, max_length=MAX_USER_ANSWER_LENGTH)


class ReportRequest(BaseModel):
    reason: constr(strip_whitespace=True, min_length=1, max_length=1000) = "AI response issue"


class GenerateStudyGuideRequest(BaseModel):
    question_ids: Optional[List[str]] = Field(None, alias="questionIds")


class RenameStudyGuideRequest(BaseModel):
    title: constr(strip_whitespace=True, min_length=1, max_length=255)


# ============ Serializers ============

def question_to_dict(question: QuestionHistory, include_steps: bool = False) -> Dict[str, Any]:
    result = {
        "id": question.id,
        "image_url": question.image_url,
        "problem_text": question.problem_text,
        "solution_mode": question.solution_mode,
        "solution_data": question.solution_data,
        "tags": question.tags or [],
        "created_at": question.created_at,
        "processing": is_processing(question),
        "progress": progress_of(question),
    }

    if include_steps and question.solution_mode == "step_by_step" and has_solution(question):
        parsed = parse_steps(question.solution_data["solution"])
        result["steps"] = [step.to_dict() for step in parsed]
        result["parse"] = parsed.kind

    return result


def guide_to_dict(guide: StudyGuide) -> Dict[str, Any]:
    return {
        "id": guide.id,
        "title": guide.title,
        "content": guide.content,
        "created_at": guide.created_at,
    }


def get_owned_question(question_id: str, current_user: Profile, db: Session) -> QuestionHistory:
    question = QuestionHistoryManager(db).get(current_user.id, question_id)
    if not question:
        raise HTTPException(404, "Question not found")
    return question


# ============ Profile ============

@app.get("/me", response_model=ProfilePublic)
def get_me(current_user: Profile = Depends(get_current_user)):
    return ProfilePublic(
        id=current_user.id,
        email=current_user.email,
        created_at=current_user.created_at,
        stay_signed_in=current_user.stay_signed_in,
        theme=current_user.theme,
    )


@app.patch("/me/settings", response_model=ProfilePublic)
def update_settings(
    data: SettingsUpdate,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if data.stay_signed_in is not None:
        current_user.stay_signed_in = data.stay_signed_in
    if data.theme is not None:
        current_user.theme = data.theme

    db.commit()
    db.refresh(current_user)
    return get_me(current_user)


# ============ Answer validation ============

@app.post("/validate-answer", response_model=GradingResponse)
def validate_answer(
    req: ValidateAnswerRequest,
    current_user: Profile = Depends(get_current_user),
    grader=Depends(get_grader),
):
    logger.info("Validating answer for user %s", current_user.id)

    try:
        result = grader.grade(
            GradingRequest(
                user_answer=req.user_answer,
                expected_answer=req.expected_answer,
                step_instruction=req.step_instruction,
                problem_context=req.problem_context,
            )
        )
    except UpstreamError:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, UPSTREAM_FAILURE)

    return GradingResponse(correct=result.correct, feedback=result.feedback)


# ============ Question history ============

@app.post("/questions", status_code=status.HTTP_201_CREATED)
def create_question(
    req: CreateQuestionRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    question = QuestionHistoryManager(db).create(
        user_id=current_user.id,
        image_url=req.image_url,
        solution_mode=req.solution_mode,
        problem_text=req.problem_text,
        tags=req.tags,
    )
    return question_to_dict(question)


@app.get("/questions")
def list_questions(
    tag: Optional[str] = None,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    questions = QuestionHistoryManager(db).list_for_user(current_user.id, tag=tag)
    return [question_to_dict(q) for q in questions]


@app.get("/questions/tags")
def list_tags(
    q: Optional[str] = None,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return QuestionHistoryManager(db).tags_for_user(current_user.id, query=q)


@app.get("/questions/{question_id}")
def get_question(
    question_id: str,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return question_to_dict(get_owned_question(question_id, current_user, db), include_steps=True)


@app.delete("/questions/{question_id}")
def delete_question(
    question_id: str,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    question = get_owned_question(question_id, current_user, db)
    QuestionHistoryManager(db).delete(question)
    return {"message": "Question deleted"}


@app.post("/questions/{question_id}/solve")
def solve_question(
    question_id: str,
    force: bool = False,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm),
):
    manager = QuestionHistoryManager(db)
    question = get_owned_question(question_id, current_user, db)

    if has_solution(question) and not force:
        return question_to_dict(question, include_steps=True)

    try:
        solution = ProblemSolver(llm).solve(question.image_url, question.solution_mode)
    except UpstreamError:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, UPSTREAM_FAILURE)
    except ValueError as e:
        raise HTTPException(400, str(e))

    total_steps = None
    if question.solution_mode == "step_by_step":
        parsed = parse_steps(solution)
        total_steps = len(parsed)
        if parsed.is_fallback:
            logger.warning("Question %s: solution did not follow the step format", question.id)

    question = manager.save_solution(question, solution, total_steps=total_steps)
    return question_to_dict(question, include_steps=True)


@app.post("/questions/{question_id}/answer")
def answer_step(
    question_id: str,
    req: StepAnswerRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    grader=Depends(get_grader),
):
    manager = QuestionHistoryManager(db)
    question = get_owned_question(question_id, current_user, db)

    if question.solution_mode != "step_by_step":
        raise HTTPException(400, "Question is not in step-by-step mode")
    if not has_solution(question):
        raise HTTPException(409, "Question has not been solved yet")

    steps = parse_steps(question.solution_data["solution"]).steps
    step_index = progress_of(question)["completedSteps"]
    if step_index >= len(steps):
        raise HTTPException(409, "All steps are already completed")

    step = steps[step_index]
    problem_context = (question.problem_text or "")[:MAX_PROBLEM_CONTEXT_LENGTH] or None

    try:
        grading_request = GradingRequest(
            user_answer=req.answer,
            expected_answer=step.answer,
            step_instruction=step.instruction,
            problem_context=problem_context,
        )
    except ValueError as e:
        logger.warning("Question %s step %s cannot be graded: %s", question.id, step_index, e)
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, "This step is too long to be graded")

    try:
        result = grader.grade(grading_request)
    except UpstreamError:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, UPSTREAM_FAILURE)

    if result.correct:
        question = manager.record_step_completion(question)

    return {
        "stepIndex": step_index,
        "correct": result.correct,
        "feedback": result.feedback,
        **progress_of(question),
    }


@app.post("/questions/{question_id}/report", status_code=status.HTTP_201_CREATED)
def report_question(
    question_id: str,
    req: ReportRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    question = get_owned_question(question_id, current_user, db)
    report: ProblemReport = QuestionHistoryManager(db).report(current_user.id, question, req.reason)
    return {"message": "Report submitted", "report_id": report.id}


# ============ Study guides ============

@app.get("/study-guides")
def list_study_guides(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [guide_to_dict(g) for g in StudyGuideManager(db).list_for_user(current_user.id)]


@app.post("/study-guides", status_code=status.HTTP_201_CREATED)
def generate_study_guide(
    req: GenerateStudyGuideRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm),
):
    questions = QuestionHistoryManager(db).list_for_user(current_user.id)
    if req.question_ids:
        selected = set(req.question_ids)
        questions = [q for q in questions if q.id in selected]

    try:
        title, content = StudyGuideGenerator(llm).generate(questions)
    except NoHistoryError as e:
        raise HTTPException(404, str(e))
    except UpstreamError:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, UPSTREAM_FAILURE)

    guide = StudyGuideManager(db).create(current_user.id, title, content)
    return {"studyGuide": content, "title": guide.title, "savedGuideId": guide.id}


@app.patch("/study-guides/{guide_id}")
def rename_study_guide(
    guide_id: str,
    req: RenameStudyGuideRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    manager = StudyGuideManager(db)
    guide = manager.get(current_user.id, guide_id)
    if not guide:
        raise HTTPException(404, "Study guide not found")

    return guide_to_dict(manager.rename(guide, req.title))


@app.delete("/study-guides/{guide_id}")
def delete_study_guide(
    guide_id: str,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    manager = StudyGuideManager(db)
    guide = manager.get(current_user.id, guide_id)
    if not guide:
        raise HTTPException(404, "Study guide not found")

    manager.delete(guide)
    return {"message": "Study guide deleted"}
