from datetime import timedelta

import pytest

from app.config import settings
from app.core.database import SessionLocal
from app.core.exceptions import BusinessLogicError, QuizNotActiveError
from app.models.contest import QuizAttempt
from app.models.task import ScheduledTask
from app.schemas.contest import ContestAction
from app.services.contest_service import AUTO_SUBMIT_TASK, contest_service
from app.services.task_scheduler import TaskScheduler, TaskWorker, task_handlers


def _worker(clock, handlers=None):
    return TaskWorker(session_factory=SessionLocal, handlers=handlers, clock=clock)


def test_task_runs_only_when_due(db, clock):
    calls = []
    task = TaskScheduler.schedule(db, "demo", due_at=clock.now + timedelta(minutes=5), payload={"n": 1})
    worker = _worker(clock, {"demo": lambda session, payload: calls.append(payload)})

    assert worker.process_next_task() is False
    clock.advance(minutes=5)
    assert worker.process_next_task() is True

    db.refresh(task)
    assert task.status == "completed"
    assert calls == [{"n": 1}]


def test_overdue_task_runs_after_restart(db, clock):
    calls = []
    TaskScheduler.schedule(db, "demo", due_at=clock.now - timedelta(hours=2))
    fresh_worker = _worker(clock, {"demo": lambda session, payload: calls.append("ran")})
    assert fresh_worker.process_next_task() is True
    assert calls == ["ran"]


def test_cancelled_task_never_runs(db, clock):
    task = TaskScheduler.schedule(db, "demo", due_at=clock.now)
    assert TaskScheduler.cancel(db, task.id) is True
    worker = _worker(clock, {"demo": lambda session, payload: pytest.fail("cancelled task ran")})
    assert worker.process_next_task() is False
    assert TaskScheduler.cancel(db, task.id) is False


def test_failed_task_is_retried_then_marked_failed(db, clock, monkeypatch):
    monkeypatch.setattr(settings, "WORKER_MAX_RETRIES", 1)

    def explode(session, payload):
        raise RuntimeError("boom")

    task = TaskScheduler.schedule(db, "demo", due_at=clock.now)
    worker = _worker(clock, {"demo": explode})

    worker.process_next_task()
    db.refresh(task)
    assert task.status == "pending"
    assert task.last_error == "boom"

    worker.process_next_task()
    db.refresh(task)
    assert task.status == "failed"
    assert task.attempts == 2


def test_unknown_task_type_fails(db, clock, monkeypatch):
    monkeypatch.setattr(settings, "WORKER_MAX_RETRIES", 0)
    task = TaskScheduler.schedule(db, "nobody.handles.this", due_at=clock.now)
    _worker(clock, {}).process_next_task()
    db.refresh(task)
    assert task.status == "failed"
    assert "No handler" in task.last_error


def test_stale_running_task_is_requeued(db, clock):
    task = TaskScheduler.schedule(db, "demo", due_at=clock.now)
    task.status = "running"
    task.started_at = clock.now
    db.commit()

    worker = _worker(clock, {})
    assert worker.requeue_stale_tasks() == 0
    clock.advance(seconds=worker.config.TASK_STALE_SECONDS + 1)
    assert worker.requeue_stale_tasks() == 1
    db.refresh(task)
    assert task.status == "pending"


def test_auto_submit_handler_is_registered():
    assert AUTO_SUBMIT_TASK in task_handlers


def test_starting_quiz_schedules_auto_submit(db, make_team, clock):
    team = make_team()
    config = contest_service.apply_action(db, ContestAction.TOGGLE_QUIZ, True, now=clock.now)
    assert config.quiz_active is True

    task = db.query(ScheduledTask).filter(ScheduledTask.id == config.auto_submit_task_id).one()
    assert task.due_at == clock.now + timedelta(minutes=config.quiz_time_limit_minutes)

    contest_service.start_attempt(db, team)
    clock.advance(minutes=config.quiz_time_limit_minutes)
    assert _worker(clock).process_next_task() is True

    db.expire_all()
    attempt = db.query(QuizAttempt).filter(QuizAttempt.team_id == team.id).one()
    assert attempt.status == "auto_submitted"
    assert contest_service.get_config(db).quiz_active is False


def test_auto_submit_for_restarted_quiz_is_noop(db, make_team, clock):
    team = make_team()
    contest_service.apply_action(db, ContestAction.TOGGLE_QUIZ, True, now=clock.now)
    contest_service.apply_action(db, ContestAction.TOGGLE_QUIZ, False, now=clock.now)
    clock.advance(minutes=1)
    contest_service.apply_action(db, ContestAction.TOGGLE_QUIZ, True, now=clock.now)
    contest_service.start_attempt(db, team)

    stale_payload = {"quiz_started_at": (clock.now - timedelta(minutes=1)).isoformat()}
    task_handlers[AUTO_SUBMIT_TASK](db, stale_payload)

    db.expire_all()
    assert contest_service.get_config(db).quiz_active is True
    attempt = db.query(QuizAttempt).filter(QuizAttempt.team_id == team.id).one()
    assert attempt.status == "in_progress"


def test_stopping_quiz_cancels_task_and_closes_attempts(db, make_team, clock):
    team = make_team()
    config = contest_service.apply_action(db, ContestAction.TOGGLE_QUIZ, True, now=clock.now)
    task_id = config.auto_submit_task_id
    contest_service.start_attempt(db, team)

    contest_service.apply_action(db, ContestAction.TOGGLE_QUIZ, False, now=clock.now)

    task = db.query(ScheduledTask).filter(ScheduledTask.id == task_id).one()
    assert task.status == "cancelled"
    db.expire_all()
    attempt = db.query(QuizAttempt).filter(QuizAttempt.team_id == team.id).one()
    assert attempt.status == "auto_submitted"


def test_time_limit_bounds(db, clock):
    with pytest.raises(BusinessLogicError):
        contest_service.apply_action(db, ContestAction.SET_QUIZ_TIME_LIMIT, 4, now=clock.now)
    with pytest.raises(BusinessLogicError):
        contest_service.apply_action(db, ContestAction.SET_QUIZ_TIME_LIMIT, 181, now=clock.now)
    with pytest.raises(BusinessLogicError):
        contest_service.apply_action(db, ContestAction.SET_QUIZ_TIME_LIMIT, True, now=clock.now)

    config = contest_service.apply_action(db, ContestAction.SET_QUIZ_TIME_LIMIT, 45, now=clock.now)
    assert config.quiz_time_limit_minutes == 45


def test_changing_time_limit_reschedules_running_quiz(db, clock):
    first = contest_service.apply_action(db, ContestAction.TOGGLE_QUIZ, True, now=clock.now)
    old_task_id = first.auto_submit_task_id

    config = contest_service.apply_action(db, ContestAction.SET_QUIZ_TIME_LIMIT, 60, now=clock.now)
    assert config.auto_submit_task_id != old_task_id
    new_task = db.query(ScheduledTask).filter(ScheduledTask.id == config.auto_submit_task_id).one()
    assert new_task.due_at == clock.now + timedelta(minutes=60)
    old_task = db.query(ScheduledTask).filter(ScheduledTask.id == old_task_id).one()
    assert old_task.status == "cancelled"


def test_results_toggle_moves_round(db, clock):
    assert contest_service.apply_action(db, ContestAction.TOGGLE_RESULTS, True).current_round == 3
    assert contest_service.apply_action(db, ContestAction.TOGGLE_RESULTS, False).current_round == 2


def test_quiz_attempt_lifecycle(db, make_team, clock):
    team = make_team()
    with pytest.raises(QuizNotActiveError):
        contest_service.start_attempt(db, team)

    contest_service.apply_action(db, ContestAction.TOGGLE_QUIZ, True, now=clock.now)
    attempt = contest_service.start_attempt(db, team)
    assert contest_service.start_attempt(db, team).id == attempt.id

    submitted = contest_service.submit_attempt(db, team, {"q1": "b"})
    assert submitted.status == "submitted"
    with pytest.raises(BusinessLogicError):
        contest_service.submit_attempt(db, team, {"q1": "c"})
