"""Contest state control and quiz attempts"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import Session

from app.config import settings
from app.core.exceptions import BusinessLogicError, QuizNotActiveError
from app.core.security import naive_utc, utc_now
from app.models.contest import ContestConfig, QuizAttempt
from app.models.principal import Team
from app.schemas.contest import ContestAction
from app.services.task_scheduler import TaskScheduler, register_task_handler
import logging

logger = logging.getLogger(__name__)

AUTO_SUBMIT_TASK = "quiz.auto_submit"
MIN_QUIZ_MINUTES = 5
MAX_QUIZ_MINUTES = 180
RESULTS_ROUND = 3


class ContestService:
    """Service for contest-wide state"""

    @staticmethod
    def get_config(db: Session) -> ContestConfig:
        """Return the contest row, creating it with defaults on first use."""
        config = db.query(ContestConfig).order_by(ContestConfig.id.asc()).first()
        if config is None:
            config = ContestConfig(
                id=1,
                quiz_time_limit_minutes=settings.DEFAULT_QUIZ_TIME_LIMIT_MINUTES,
            )
            db.add(config)
            db.commit()
            db.refresh(config)
        return config

    @staticmethod
    def quiz_ends_at(config: ContestConfig) -> Optional[datetime]:
        if not config.quiz_active or not config.quiz_started_at:
            return None
        return naive_utc(config.quiz_started_at) + timedelta(minutes=config.quiz_time_limit_minutes)

    @staticmethod
    def get_state(db: Session) -> Dict[str, Any]:
        config = ContestService.get_config(db)
        state = config.to_dict()
        state["quiz_started_at"] = naive_utc(config.quiz_started_at)
        state["quiz_ends_at"] = ContestService.quiz_ends_at(config)
        return state

    @staticmethod
    def apply_action(
        db: Session,
        action: ContestAction,
        value: Union[bool, int],
        now: Optional[datetime] = None,
    ) -> ContestConfig:
        """
        Apply an admin contest-control action

        Args:
            db: Database session
            action: Control action
            value: New flag value, or minutes for set_quiz_time_limit
            now: Override for the current time

        Returns:
            Updated contest row
        """
        now = now or utc_now()
        config = ContestService.get_config(db)

        if action == ContestAction.TOGGLE_QUIZ:
            if bool(value):
                ContestService._start_quiz(db, config, now)
            else:
                ContestService._stop_quiz(db, config, now)
        elif action == ContestAction.TOGGLE_VOTING:
            config.voting_active = bool(value)
        elif action == ContestAction.TOGGLE_RESULTS:
            config.results_active = bool(value)
            config.current_round = RESULTS_ROUND if value else RESULTS_ROUND - 1
        elif action == ContestAction.SET_QUIZ_TIME_LIMIT:
            ContestService._set_time_limit(db, config, value)
        else:
            raise BusinessLogicError("Invalid action")

        db.commit()
        db.refresh(config)
        logger.info(f"Contest action {action.value}={value}")
        return config

    @staticmethod
    def _start_quiz(db: Session, config: ContestConfig, now: datetime) -> None:
        if config.quiz_active:
            return
        config.quiz_active = True
        config.quiz_started_at = now
        ContestService._schedule_auto_submit(db, config)

    @staticmethod
    def _stop_quiz(db: Session, config: ContestConfig, now: datetime) -> None:
        if not config.quiz_active:
            return
        if config.auto_submit_task_id:
            TaskScheduler.cancel(db, config.auto_submit_task_id)
        ContestService._close_open_attempts(db, now)
        config.quiz_active = False
        config.auto_submit_task_id = None

    @staticmethod
    def _set_time_limit(db: Session, config: ContestConfig, value: Union[bool, int]) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise BusinessLogicError("Time limit must be a whole number of minutes")
        if value < MIN_QUIZ_MINUTES or value > MAX_QUIZ_MINUTES:
            raise BusinessLogicError(
                f"Time limit must be between {MIN_QUIZ_MINUTES} and {MAX_QUIZ_MINUTES} minutes"
            )
        config.quiz_time_limit_minutes = value
        if config.quiz_active:
            # Move the pending deadline to match the new limit.
            if config.auto_submit_task_id:
                TaskScheduler.cancel(db, config.auto_submit_task_id)
            ContestService._schedule_auto_submit(db, config)

    @staticmethod
    def _schedule_auto_submit(db: Session, config: ContestConfig) -> None:
        started_at = naive_utc(config.quiz_started_at)
        task = TaskScheduler.schedule(
            db,
            AUTO_SUBMIT_TASK,
            due_at=started_at + timedelta(minutes=config.quiz_time_limit_minutes),
            payload={"quiz_started_at": started_at.isoformat()},
        )
        config.auto_submit_task_id = task.id

    @staticmethod
    def _close_open_attempts(db: Session, now: datetime) -> int:
        return (
            db.query(QuizAttempt)
            .filter(QuizAttempt.status == "in_progress")
            .update(
                {QuizAttempt.status: "auto_submitted", QuizAttempt.submitted_at: now},
                synchronize_session=False,
            )
        )

    @staticmethod
    def start_attempt(db: Session, team: Team) -> QuizAttempt:
        config = ContestService.get_config(db)
        if not config.quiz_active:
            raise QuizNotActiveError()

        attempt = db.query(QuizAttempt).filter(QuizAttempt.team_id == team.id).first()
        if attempt:
            if attempt.status != "in_progress":
                raise BusinessLogicError("Quiz already submitted")
            return attempt

        attempt = QuizAttempt(team_id=team.id, answers={})
        db.add(attempt)
        db.commit()
        db.refresh(attempt)
        logger.info(f"Team {team.id} started the quiz")
        return attempt

    @staticmethod
    def submit_attempt(db: Session, team: Team, answers: Dict[str, Any]) -> QuizAttempt:
        attempt = db.query(QuizAttempt).filter(QuizAttempt.team_id == team.id).first()
        if not attempt:
            raise BusinessLogicError("Quiz not started")
        if attempt.status != "in_progress":
            raise BusinessLogicError("Quiz already submitted")
        if not ContestService.get_config(db).quiz_active:
            raise QuizNotActiveError()

        attempt.answers = answers
        attempt.status = "submitted"
        attempt.submitted_at = utc_now()
        db.commit()
        db.refresh(attempt)
        logger.info(f"Team {team.id} submitted the quiz")
        return attempt


@register_task_handler(AUTO_SUBMIT_TASK)
def auto_submit_quiz(db: Session, payload: Dict[str, Any]) -> None:
    """Close the quiz whose deadline has passed.

    Idempotent: a task for a quiz that was since stopped or restarted is a no-op.
    """
    config = ContestService.get_config(db)
    started_at = naive_utc(config.quiz_started_at)
    if not config.quiz_active or started_at is None or started_at.isoformat() != payload.get("quiz_started_at"):
        logger.info("Auto-submit skipped: quiz already closed or restarted")
        return

    closed = ContestService._close_open_attempts(db, utc_now())
    config.quiz_active = False
    config.auto_submit_task_id = None
    db.commit()
    logger.info(f"Auto-submitted {closed} quiz attempt(s)")


contest_service = ContestService()
