"""Contest status and quiz attempt routes"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.permissions import Capability
from app.models.principal import Team
from app.schemas.contest import ContestStateResponse, QuizAttemptResponse, QuizSubmission
from app.services.contest_service import contest_service
from app.api.deps import team_with

router = APIRouter()


@router.get("/contest/status", response_model=ContestStateResponse)
def get_contest_status(db: Session = Depends(get_db)):
    """Public contest state"""
    return contest_service.get_state(db)


@router.post("/quiz/start", response_model=QuizAttemptResponse, status_code=status.HTTP_200_OK)
def start_quiz(
    current_team: Team = Depends(team_with(Capability.TAKE_QUIZ)),
    db: Session = Depends(get_db),
):
    """Start (or resume) the current team's quiz attempt"""
    return contest_service.start_attempt(db, current_team)


@router.post("/quiz/submit", response_model=QuizAttemptResponse)
def submit_quiz(
    submission: QuizSubmission,
    current_team: Team = Depends(team_with(Capability.TAKE_QUIZ)),
    db: Session = Depends(get_db),
):
    return contest_service.submit_attempt(db, current_team, submission.answers)
