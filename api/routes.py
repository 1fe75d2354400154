"""
api/routes.py — FastAPI 엔드포인트
"""

import asyncio

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

import api.session as session
from api.sample_questions import SAMPLE_QUESTIONS, SAMPLE_TEST_ID
from config import EXAM_DURATION_SECONDS
from timed_cbt.errors import (
    AlreadySubmitting,
    InvalidOption,
    InvalidTransition,
    OutOfRange,
    PersistenceFailure,
    SessionError,
    UnknownQuestion,
)
from timed_cbt.models.question_model import Question, QuestionSet
from timed_cbt.models.session_state import SessionStatus
from timed_cbt.services.exam_runner import ExamRunner
from timed_cbt.services.session_engine import ExamSession
from timed_cbt.services.submission import SubmissionPipeline, build_outcomes
from timed_cbt.services.time_model import format_clock

router = APIRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class StartExamBody(BaseModel):
    test_id: str | None = None
    duration_seconds: int | None = Field(None, ge=1)

class SaveAnswerBody(BaseModel):
    question_id: str
    answer: str | None = None
    elapsed_seconds: float | None = None

class NavigateBody(BaseModel):
    index: int = 0

class MarkReviewBody(BaseModel):
    question_id: str

class ConnectivityBody(BaseModel):
    online: bool


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

_ERROR_STATUS = {
    InvalidTransition: 409,
    AlreadySubmitting: 409,
    UnknownQuestion: 404,
    OutOfRange: 422,
    InvalidOption: 422,
    PersistenceFailure: 503,
}


def _http_error(e: SessionError) -> HTTPException:
    status_code = next(
        (code for cls, code in _ERROR_STATUS.items() if isinstance(e, cls)), 400
    )
    return HTTPException(status_code=status_code, detail=str(e))


def _runner(request: Request) -> ExamRunner:
    runner: ExamRunner | None = session.get(request.state.session_id, "runner")
    if runner is None:
        raise HTTPException(status_code=404, detail="시험 세션이 없습니다.")
    return runner


def _question_to_dict(q: Question, reveal_answer: bool = False) -> dict:
    d = {
        "id": q.id,
        "order": q.order,
        "subject": q.subject,
        "topic": q.topic,
        "difficulty": q.difficulty,
        "content": q.content,
    }
    if reveal_answer:
        d["correct_option"] = q.correct_option.value
    return d


def _load_questions(request: Request, test_id: str | None) -> QuestionSet:
    if not test_id or test_id == SAMPLE_TEST_ID:
        return SAMPLE_QUESTIONS
    source = request.app.state.question_source
    try:
        return source.fetch_questions(test_id)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"시험을 찾을 수 없습니다: {test_id}")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.post("/api/start-exam")
async def start_exam(request: Request, body: StartExamBody):
    sid = request.state.session_id
    questions = _load_questions(request, body.test_id)

    previous: ExamRunner | None = session.get(sid, "runner")
    if previous is not None:
        await asyncio.to_thread(previous.suspend)

    state = request.app.state
    exam = ExamSession(
        questions,
        body.duration_seconds or EXAM_DURATION_SECONDS,
        pipeline=SubmissionPipeline(state.store, state.backup),
    )
    runner = ExamRunner(exam, state.store)
    runner.begin()

    session.put(sid, "test_id", body.test_id or SAMPLE_TEST_ID)
    session.put(sid, "runner", runner)
    return {
        "ok": True,
        "session_id": exam.session_id,
        "total": len(questions),
        "duration_seconds": exam.duration_seconds,
    }


@router.get("/api/question/{index}")
async def get_question(request: Request, index: int):
    exam = _runner(request).session
    if not 0 <= index < len(exam.questions):
        raise HTTPException(status_code=404, detail="문제를 찾을 수 없습니다.")

    q = exam.questions[index]
    record = exam.answer_for(q.id)
    d = _question_to_dict(q, reveal_answer=exam.status.is_terminal)
    d.update({
        "index": index,
        "total": len(exam.questions),
        "saved_answer": record.selected_option.value if record and record.selected_option else None,
        "marked_for_review": exam.is_marked(q.id),
    })
    return d


@router.get("/api/exam-state")
async def get_exam_state(request: Request):
    runner = _runner(request)
    exam = runner.session
    remaining = exam.remaining_seconds()
    return {
        "session_id": exam.session_id,
        "status": exam.status.value,
        "current_index": exam.current_index,
        "total": len(exam.questions),
        "answered_count": exam.answered_count,
        "marked_for_review": exam.marked_for_review(),
        "remaining_seconds": remaining,
        "remaining_clock": format_clock(remaining),
        "last_autosave_epoch": exam.last_autosave_epoch,
        "online": runner.connectivity.is_online(),
        "question_ids": [q.id for q in exam.questions],
    }


@router.post("/api/save-answer")
async def save_answer(request: Request, body: SaveAnswerBody):
    exam = _runner(request).session
    try:
        exam.select_answer(body.question_id, body.answer or None, body.elapsed_seconds)
    except SessionError as e:
        raise _http_error(e)
    return {"ok": True, "answered_count": exam.answered_count}


@router.post("/api/navigate")
async def navigate(request: Request, body: NavigateBody):
    exam = _runner(request).session
    try:
        exam.navigate(body.index)
    except SessionError as e:
        raise _http_error(e)
    return {"ok": True, "index": exam.current_index}


@router.post("/api/mark-review")
async def mark_review(request: Request, body: MarkReviewBody):
    exam = _runner(request).session
    try:
        marked = exam.toggle_mark_for_review(body.question_id)
    except SessionError as e:
        raise _http_error(e)
    return {"ok": True, "marked": marked}


@router.post("/api/connectivity")
async def set_connectivity(request: Request, body: ConnectivityBody):
    runner = _runner(request)
    runner.connectivity.set_online(body.online)
    return {"ok": True, "online": body.online}


@router.post("/api/suspend")
async def suspend(request: Request):
    await asyncio.to_thread(_runner(request).suspend)
    return {"ok": True}


@router.post("/api/resume")
async def resume(request: Request):
    runner = _runner(request)
    runner.resume()
    return {"ok": True, "remaining_seconds": runner.session.remaining_seconds()}


@router.post("/api/submit-exam")
async def submit_exam(request: Request):
    runner = _runner(request)
    try:
        result = await asyncio.to_thread(runner.submit)
    except SessionError as e:
        raise _http_error(e)
    return {
        "ok": result.ok,
        "status": result.status.value,
        "score": result.report.score,
        "percentage": result.report.percentage,
        "message": result.message,
        "can_retry": runner.session.can_retry_submit,
    }


@router.get("/api/results")
async def get_results(request: Request):
    exam = _runner(request).session
    result = exam.last_result
    if result is None:
        if exam.status == SessionStatus.SUBMITTING:
            raise HTTPException(status_code=409, detail="제출 처리 중입니다.")
        raise HTTPException(status_code=400, detail="시험이 아직 제출되지 않았습니다.")

    outcomes = build_outcomes(exam.snapshot())
    payload = result.model_dump(mode="json")
    payload.update({
        "can_retry": exam.can_retry_submit,
        "outcomes": [o.model_dump(mode="json") for o in outcomes],
    })
    return payload


@router.get("/api/events")
async def get_events(request: Request):
    runner = _runner(request)
    drain = getattr(runner.notifier, "drain", None)
    return {"events": drain() if drain else []}


@router.post("/api/reset")
async def reset_session(request: Request):
    await asyncio.to_thread(session.reset, request.state.session_id)
    return {"ok": True}
