"""FastAPI HTTP layer wrapping QuizEngine."""

from __future__ import annotations

import hmac
import logging
import os
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from pubquiz.errors import NotFoundError, QuizError
from pubquiz.quiz_engine import QuizEngine
from pubquiz.storage import QuizStore

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Pub Quiz API",
    description="Host pub quizzes: create, join, answer, score",
    version="0.1.0",
)

API_KEY = os.getenv("API_KEY")
if not API_KEY:
    logger.warning("API_KEY not set. All requests will be allowed.")


@lru_cache
def get_engine() -> QuizEngine:
    store = QuizStore()
    store.ensure_directories()
    return QuizEngine(store)


@app.middleware("http")
async def verify_api_key(request: Request, call_next):
    if API_KEY and request.url.path != "/health":
        key = request.headers.get("x-api-key", "")
        if not hmac.compare_digest(key, API_KEY):
            return JSONResponse(
                status_code=401,
                content={"error": "unauthorized", "message": "Invalid API key"},
            )
    return await call_next(request)


@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "validation_error", "message": "Invalid input format"},
    )


@app.get("/health")
def health():
    """Unauthenticated health check."""
    return {"status": "ok"}


# --- Request models ---


class CreateQuizRequest(BaseModel):
    title: Any = None
    questions: Any = None


class UpdateStatusRequest(BaseModel):
    status: str


class QuestionIndexRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_index: int = Field(alias="questionIndex")


class JoinTeamRequest(BaseModel):
    quiz_code: str
    team_name: Any = None


class SubmitAnswerRequest(BaseModel):
    question_id: int
    answer: str | None = None
    selected_option: int | None = None
    quiz_code: str | None = None


class UpdateScoreRequest(BaseModel):
    quiz_code: str
    question_id: int
    score: float


# --- Quiz endpoints ---


@app.get("/api/quiz")
def list_quizzes(engine: QuizEngine = Depends(get_engine)):
    """List all quizzes, newest first."""
    return {"quizzes": [q.model_dump(mode="json") for q in engine.list_quizzes()]}


@app.post("/api/quiz/create", status_code=201)
def create_quiz(req: CreateQuizRequest, engine: QuizEngine = Depends(get_engine)):
    """Create a quiz. The response is the only place the master token is shown."""
    quiz = engine.create_quiz(req.title, req.questions)
    return {"quiz": quiz.model_dump(mode="json")}


@app.get("/api/quiz/master/{master_token}")
def get_quiz_by_master_token(master_token: str, engine: QuizEngine = Depends(get_engine)):
    view = engine.get_quiz_for_master(master_token=master_token)
    return view.model_dump(mode="json")


@app.patch("/api/quiz/master/{master_token}/status")
def update_status_by_master_token(
    master_token: str,
    req: UpdateStatusRequest,
    engine: QuizEngine = Depends(get_engine),
):
    quiz = engine.update_quiz_status(status=req.status, master_token=master_token)
    return {"message": "Quiz status updated successfully", "status": quiz.status.value}


@app.patch("/api/quiz/master/{master_token}/question")
def update_question_by_master_token(
    master_token: str,
    req: QuestionIndexRequest,
    engine: QuizEngine = Depends(get_engine),
):
    quiz = engine.advance_question(index=req.question_index, master_token=master_token)
    return {
        "message": "Current question updated successfully",
        "questionIndex": quiz.current_question_index,
    }


@app.get("/api/quiz/master/{master_token}/results")
def get_results_by_master_token(
    master_token: str, engine: QuizEngine = Depends(get_engine)
):
    return engine.compute_results(master_token=master_token).model_dump(mode="json")


@app.get("/api/quiz/{code}")
def get_quiz(code: str, engine: QuizEngine = Depends(get_engine)):
    """Team view of a quiz: correct answers stripped."""
    return {"quiz": engine.get_quiz_for_team_view(code).model_dump(mode="json")}


@app.get("/api/quiz/{code}/master")
def get_quiz_master(code: str, engine: QuizEngine = Depends(get_engine)):
    return engine.get_quiz_for_master(code).model_dump(mode="json")


@app.get("/api/quiz/{code}/results")
def get_results(code: str, engine: QuizEngine = Depends(get_engine)):
    return engine.compute_results(code).model_dump(mode="json")


@app.get("/api/quiz/{code}/statistics")
def get_statistics(code: str, engine: QuizEngine = Depends(get_engine)):
    stats = engine.get_quiz_statistics(code)
    if stats is None:
        raise NotFoundError("Quiz not found")
    return stats.model_dump(mode="json")


@app.patch("/api/quiz/{code}/status")
def update_status(
    code: str, req: UpdateStatusRequest, engine: QuizEngine = Depends(get_engine)
):
    quiz = engine.update_quiz_status(code, req.status)
    return {"message": "Quiz status updated successfully", "status": quiz.status.value}


@app.patch("/api/quiz/{code}/question")
def update_question(
    code: str, req: QuestionIndexRequest, engine: QuizEngine = Depends(get_engine)
):
    quiz = engine.advance_question(code, req.question_index)
    return {
        "message": "Current question updated successfully",
        "questionIndex": quiz.current_question_index,
    }


# --- Team endpoints ---


@app.post("/api/team/join", status_code=201)
def join_team(req: JoinTeamRequest, engine: QuizEngine = Depends(get_engine)):
    team = engine.join_team(req.quiz_code, req.team_name)
    return {"team": team.model_dump(mode="json")}


@app.get("/api/team/session/{session_token}")
def get_team_session(session_token: str, engine: QuizEngine = Depends(get_engine)):
    return engine.get_team_session(session_token).model_dump(mode="json")


@app.post("/api/team/session/{session_token}/answer")
def submit_answer_by_session(
    session_token: str,
    req: SubmitAnswerRequest,
    engine: QuizEngine = Depends(get_engine),
):
    result = engine.submit_answer(
        req.quiz_code,
        req.question_id,
        req.answer,
        session_token=session_token,
        selected_option=req.selected_option,
    )
    return result.model_dump(mode="json")


@app.post("/api/team/{team_id}/answer")
def submit_answer(
    team_id: str, req: SubmitAnswerRequest, engine: QuizEngine = Depends(get_engine)
):
    result = engine.submit_answer(
        req.quiz_code,
        req.question_id,
        req.answer,
        team_id=team_id,
        selected_option=req.selected_option,
    )
    return result.model_dump(mode="json")


@app.get("/api/team/{team_id}")
def get_team(team_id: str, quiz_code: str, engine: QuizEngine = Depends(get_engine)):
    return {"team": engine.get_team(team_id, quiz_code).model_dump(mode="json")}


@app.patch("/api/team/{team_id}/score")
def update_score(
    team_id: str, req: UpdateScoreRequest, engine: QuizEngine = Depends(get_engine)
):
    team = engine.update_answer_score(team_id, req.quiz_code, req.question_id, req.score)
    return {"team": team.model_dump(mode="json"), "message": "Score updated successfully"}


def main():
    """Run the API server."""
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
