import threading
from datetime import datetime, timedelta

from app.core.database import SessionLocal
from app.services.rate_limiter import (
    DatabaseRateLimitStore,
    InMemoryRateLimitStore,
    LoginRateLimiter,
    RateLimitPolicy,
    RateLimitState,
    evaluate_attempt,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)
POLICY = RateLimitPolicy(max_attempts=5, window=timedelta(minutes=15), lockout=timedelta(minutes=15))


def test_first_attempt_opens_window():
    state, decision = evaluate_attempt(None, NOW, POLICY)
    assert decision.allowed is True
    assert decision.attempts_left == 4
    assert state.count == 1
    assert state.reset_at == NOW + timedelta(minutes=15)


def test_reaching_max_locks_identifier():
    state = RateLimitState(count=4, reset_at=NOW + timedelta(minutes=10))
    state, decision = evaluate_attempt(state, NOW, POLICY)
    assert decision.allowed is False
    assert decision.locked_until == NOW + timedelta(minutes=15)
    assert state.locked_until == decision.locked_until


def test_locked_identifier_rejected_until_lockout_ends():
    locked_until = NOW + timedelta(minutes=15)
    state = RateLimitState(count=5, reset_at=NOW, locked_until=locked_until)

    _, decision = evaluate_attempt(state, locked_until - timedelta(seconds=1), POLICY)
    assert decision.allowed is False
    assert decision.locked_until == locked_until

    new_state, decision = evaluate_attempt(state, locked_until, POLICY)
    assert decision.allowed is True
    assert new_state.count == 1
    assert new_state.locked_until is None


def test_expired_window_starts_fresh():
    state = RateLimitState(count=3, reset_at=NOW)
    new_state, decision = evaluate_attempt(state, NOW + timedelta(seconds=1), POLICY)
    assert decision.allowed is True
    assert decision.attempts_left == 4
    assert new_state.count == 1


def test_limiter_keys_are_case_insensitive(clock):
    limiter = LoginRateLimiter(policy=POLICY, clock=clock)
    for _ in range(4):
        assert limiter.check("Admin").allowed
    decision = limiter.check("  admin ")
    assert decision.allowed is False


def test_reset_clears_attempts(clock):
    limiter = LoginRateLimiter(policy=POLICY, clock=clock)
    for _ in range(3):
        limiter.check("alice")
    limiter.reset("alice")
    assert limiter.check("alice").attempts_left == 4


def test_lockout_expires_after_duration(clock):
    limiter = LoginRateLimiter(policy=POLICY, clock=clock)
    for _ in range(5):
        decision = limiter.check("bob")
    assert decision.allowed is False

    clock.advance(minutes=14, seconds=59)
    assert limiter.check("bob").allowed is False

    clock.advance(seconds=2)
    assert limiter.check("bob").allowed is True


def test_concurrent_attempts_are_not_undercounted(clock):
    policy = RateLimitPolicy(max_attempts=1000, window=timedelta(minutes=15), lockout=timedelta(minutes=15))
    store = InMemoryRateLimitStore()
    limiter = LoginRateLimiter(store=store, policy=policy, clock=clock)

    def hammer():
        for _ in range(50):
            limiter.check("carol")

    threads = [threading.Thread(target=hammer) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.get(limiter._key("carol")).count == 400


def test_database_store_shares_counts_between_limiters(db, clock):
    store = DatabaseRateLimitStore(SessionLocal)
    first = LoginRateLimiter(store=store, policy=POLICY, clock=clock)
    second = LoginRateLimiter(store=store, policy=POLICY, clock=clock)

    for _ in range(2):
        first.check("dave")
    for _ in range(2):
        second.check("dave")
    decision = first.check("dave")
    assert decision.allowed is False

    first.reset("dave")
    assert store.get(first._key("dave")) is None


def test_stale_identifiers_are_pruned_from_memory(clock):
    store = InMemoryRateLimitStore()
    limiter = LoginRateLimiter(store=store, policy=POLICY, clock=clock)
    for i in range(1000):
        limiter.check(f"ghost-{i}")
    assert len(store._entries) == 1000

    clock.advance(days=30)
    limiter.check("latecomer")
    assert list(store._entries) == [limiter._key("latecomer")]


def test_prune_keeps_entries_that_still_matter():
    store = InMemoryRateLimitStore()
    store._entries = {
        "open-window": RateLimitState(count=2, reset_at=NOW + timedelta(minutes=5)),
        "closed-window": RateLimitState(count=2, reset_at=NOW - timedelta(minutes=1)),
        "locked": RateLimitState(
            count=5, reset_at=NOW - timedelta(minutes=1), locked_until=NOW + timedelta(minutes=10)
        ),
        "lock-over": RateLimitState(count=5, reset_at=NOW, locked_until=NOW - timedelta(seconds=1)),
    }

    assert store.prune(NOW) == 2
    assert set(store._entries) == {"open-window", "locked"}


def test_database_store_prunes_expired_rows(db, clock):
    store = DatabaseRateLimitStore(SessionLocal)
    limiter = LoginRateLimiter(store=store, policy=POLICY, clock=clock)
    for _ in range(5):
        limiter.check("frank")
    limiter.check("grace")

    clock.advance(minutes=16)
    assert store.prune(clock()) == 2
    assert store.get(limiter._key("frank")) is None
    assert store.get(limiter._key("grace")) is None
