from fastapi import FastAPI, HTTPException, Depends, Request, Header, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
from contextlib import asynccontextmanager
from pydantic import BaseModel, Field, field_validator
from typing import Any, List, Optional, Union

from core.config import settings
from core.exceptions import (
    QuizError,
    NotFoundError,
    NoMoreQuestionsError,
    UserNotFoundError,
    ForbiddenError,
    InvalidStateError,
    EmailTakenError,
    InvalidCredentialsError,
    StatsStoreError,
)
from core.logger import logger, setup_logging
from core.security import MAX_PASSWORD_BYTES, verify_token
from db.session import AsyncSessionLocal, get_db, init_models
from models.question import QuestionBank
from services.quiz_service import QuizService
from services.session_store import InMemorySessionStore
from services.stats_service import SqlStatsStore, StatsAggregator
from services.user_service import UserService

# API Documentation
API_DESCRIPTION = """
## TriviaRush API

Timed, adaptive-difficulty trivia quizzes with lifetime statistics.

### Authentication

Quiz and stats endpoints require a token from `/signin`, sent as one of:

1. Header: `Authorization: Bearer <token>` (recommended)
2. Header: `X-Auth-Token: <token>`
3. Query parameter: `?token=<token>`

### Quiz flow

`POST /quiz/start` opens a session, `GET /quiz/{session_id}/next` delivers the
first question, and every `POST /quiz/answer/{session_id}` returns the next
one until the quiz ends (20 questions or no questions left).
"""

TAGS_METADATA = [
    {"name": "auth", "description": "Signup, signin and the current user."},
    {"name": "quiz", "description": "Quiz sessions: start, questions, answers, results."},
    {"name": "stats", "description": "Lifetime user statistics."},
    {"name": "info", "description": "Public information endpoints."},
]


def build_quiz_service(bank: QuestionBank) -> QuizService:
    aggregator = StatsAggregator(SqlStatsStore(AsyncSessionLocal))
    return QuizService(bank=bank, store=InMemorySessionStore(), aggregator=aggregator)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await init_models()
    bank = QuestionBank.from_file(settings.QUESTIONS_PATH)
    app.state.quiz_service = build_quiz_service(bank)
    logger.info("API started", env=settings.ENV, questions=len(bank))
    try:
        yield
    finally:
        # Let pending stats writes land before shutdown
        await app.state.quiz_service.aggregator.drain()
        logger.info("API stopped")


app = FastAPI(
    title="TriviaRush API",
    description=API_DESCRIPTION,
    version="1.0.0",
    openapi_tags=TAGS_METADATA,
    lifespan=lifespan,
)

_origins = settings.cors_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    # Browsers reject "*" with credentials
    allow_credentials=_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# === Error mapping ===

ERROR_STATUS = (
    (NotFoundError, 404),
    (ForbiddenError, 403),
    (InvalidStateError, 409),
    (EmailTakenError, 400),
    (InvalidCredentialsError, 401),
    (StatsStoreError, 503),
)


@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError):
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 400)
    return JSONResponse(status_code=status_code, content={"error": exc.message})


# === Pydantic Models with Documentation ===

class SignupRequest(BaseModel):
    """Request body for creating an account."""
    username: str = Field(..., min_length=1, max_length=255, examples=["quizmaster"])
    email: str = Field(..., min_length=3, max_length=255, examples=["player@example.com"])
    password: str = Field(..., min_length=1, max_length=MAX_PASSWORD_BYTES,
                          description="bcrypt uses at most 72 bytes")

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes in UTF-8")
        return v


class SigninRequest(BaseModel):
    email: str
    password: str = Field(..., max_length=MAX_PASSWORD_BYTES)


class TokenResponse(BaseModel):
    token: str = Field(..., description="Bearer token for authenticated endpoints")


class MessageResponse(BaseModel):
    message: str


class UserProfile(BaseModel):
    id: int
    username: str
    email: str


class StartQuizRequest(BaseModel):
    category: Optional[str] = Field(None, description="Category name; omitted or 'general' means all categories",
                                    examples=["Science"])


class StartQuizResponse(BaseModel):
    message: str
    sessionId: str = Field(..., description="Quiz session identifier")
    category: str


class PublicQuestion(BaseModel):
    """A question as shown to the player. The answer is never included."""
    id: Union[int, str]
    question: str
    options: List[Any]


class NextQuestionResponse(BaseModel):
    question: PublicQuestion


class AnswerRequest(BaseModel):
    questionId: Union[int, str] = Field(..., description="ID of the question being answered")
    answer: Any = Field(..., description="Submitted answer, compared exactly with the correct one")


class FinalStats(BaseModel):
    quizId: str
    score: int
    correct: int
    wrong: int
    bestStreak: int


class AnswerResponse(BaseModel):
    completed: bool
    correct: bool
    result: str = Field(..., description="Outcome text; echoes the correct answer when wrong")
    runningScore: int
    message: Optional[str] = None
    nextQuestion: Optional[PublicQuestion] = None
    finalStats: Optional[FinalStats] = None


class QuizResult(FinalStats):
    category: str


class CategoriesResponse(BaseModel):
    categories: List[str]


class UserStats(BaseModel):
    gamesPlayed: int
    totalScore: int
    totalCorrect: int
    totalWrong: int
    accuracy: str = Field(..., examples=["75.00%"])
    bestStreak: int


class StatsResponse(BaseModel):
    message: str
    stats: UserStats


# === Dependencies ===

def get_current_user(
    request: Request,
    authorization: str = Header(None),
    x_auth_token: str = Header(None),
    token: Optional[str] = Query(None),
) -> int:
    # 1. Authorization: Bearer <token>
    if authorization and authorization.lower().startswith("bearer "):
        user_id = verify_token(authorization.split(" ", 1)[1].strip())
        if user_id:
            return user_id

    # 2. Legacy header, then query parameter
    for candidate in (x_auth_token, token):
        if candidate:
            user_id = verify_token(candidate)
            if user_id:
                return user_id

    logger.warning("Auth failed: Missing or invalid credentials", path=request.url.path)
    raise HTTPException(status_code=401, detail="Unauthorized")


def get_quiz_service(request: Request) -> QuizService:
    return request.app.state.quiz_service


# === Auth ===

@app.post("/signup", response_model=MessageResponse, status_code=201, tags=["auth"],
          responses={400: {"description": "Email is already in use"}})
async def signup(payload: SignupRequest, db: AsyncSession = Depends(get_db)):
    await UserService(db).register(payload.username, payload.email, payload.password)
    return {"message": "User created successfully"}


@app.post("/signin", response_model=TokenResponse, tags=["auth"],
          responses={401: {"description": "Invalid email or password"}})
async def signin(payload: SigninRequest, db: AsyncSession = Depends(get_db)):
    token = await UserService(db).authenticate(payload.email, payload.password)
    return {"token": token}


@app.get("/me", response_model=UserProfile, tags=["auth"])
async def me(user_id: int = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    user = await UserService(db).get_user(user_id)
    if not user:
        raise UserNotFoundError()
    return {"id": user.id, "username": user.username, "email": user.email}


# === Quiz ===

@app.get("/quiz/categories", response_model=CategoriesResponse, tags=["quiz"],
         summary="List quiz categories")
async def list_categories(service: QuizService = Depends(get_quiz_service)):
    return {"categories": service.categories()}


@app.post("/quiz/start", response_model=StartQuizResponse, tags=["quiz"], summary="Start a quiz session")
async def start_quiz(
    payload: Optional[StartQuizRequest] = None,
    user_id: int = Depends(get_current_user),
    service: QuizService = Depends(get_quiz_service),
):
    category = payload.category if payload else None
    return await service.start(user_id, category)


@app.get(
    "/quiz/{session_id}/next",
    response_model=NextQuestionResponse,
    tags=["quiz"],
    summary="Get the current question",
    responses={
        403: {"description": "Session belongs to another user"},
        404: {"description": "Session not found, or no more questions available"},
        409: {"description": "Session already completed"},
    },
)
async def next_question(
    session_id: str,
    user_id: int = Depends(get_current_user),
    service: QuizService = Depends(get_quiz_service),
):
    question = await service.next_question(session_id, user_id)
    if question is None:
        raise NoMoreQuestionsError()
    return {"question": question}


@app.post(
    "/quiz/answer/{session_id}",
    response_model=AnswerResponse,
    response_model_exclude_none=True,
    tags=["quiz"],
    summary="Submit an answer",
    responses={
        403: {"description": "Session belongs to another user"},
        404: {"description": "Session or question not found"},
        409: {"description": "Session completed or question not awaiting an answer"},
    },
)
async def submit_answer(
    session_id: str,
    payload: AnswerRequest,
    user_id: int = Depends(get_current_user),
    service: QuizService = Depends(get_quiz_service),
):
    return await service.submit_answer(session_id, user_id, payload.questionId, payload.answer)


@app.get("/quiz/result/{session_id}", response_model=QuizResult, tags=["quiz"],
         summary="Results of a completed quiz")
async def quiz_result(
    session_id: str,
    user_id: int = Depends(get_current_user),
    service: QuizService = Depends(get_quiz_service),
):
    return await service.result(session_id, user_id)


@app.delete("/quiz/{session_id}", response_model=MessageResponse, tags=["quiz"], summary="Delete a quiz session")
async def delete_quiz(
    session_id: str,
    user_id: int = Depends(get_current_user),
    service: QuizService = Depends(get_quiz_service),
):
    await service.delete(session_id, user_id)
    return {"message": "Quiz session deleted"}


# === Stats ===

@app.get("/stats", response_model=StatsResponse, tags=["stats"], summary="Lifetime user statistics")
async def user_stats(
    user_id: int = Depends(get_current_user),
    service: QuizService = Depends(get_quiz_service),
):
    return await service.stats(user_id)


@app.get("/health", tags=["info"], include_in_schema=False)
async def health():
    return {"status": "ok"}
