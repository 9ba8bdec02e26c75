"""Contest control and quiz schemas"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field


class ContestAction(str, Enum):
    TOGGLE_QUIZ = "toggle_quiz"
    TOGGLE_VOTING = "toggle_voting"
    TOGGLE_RESULTS = "toggle_results"
    SET_QUIZ_TIME_LIMIT = "set_quiz_time_limit"


class ContestControlRequest(BaseModel):
    action: ContestAction
    value: Union[bool, int]


class ContestStateResponse(BaseModel):
    quiz_active: bool
    voting_active: bool
    results_active: bool
    quiz_time_limit_minutes: int
    current_round: int
    quiz_started_at: Optional[datetime] = None
    quiz_ends_at: Optional[datetime] = None


class QuizSubmission(BaseModel):
    answers: Dict[str, Any] = Field(default_factory=dict)


class QuizAttemptResponse(BaseModel):
    id: int
    team_id: int
    status: str
    started_at: Optional[datetime]
    submitted_at: Optional[datetime] = None

    class Config:
        from_attributes = True
