"""Tests for the per-user reconciliation lease."""

from app.playlists.locks import ReconcileLease, reconcile_lock_key


class FakeRedis:
    """Minimal in-memory stand-in for the SET NX / GET / DELETE calls the lease uses."""

    def __init__(self):
        self.store = {}
        self.expiries = {}

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        self.expiries[key] = ex
        return True

    def get(self, key):
        return self.store.get(key)

    def delete(self, key):
        self.store.pop(key, None)


def test_key_is_per_user():
    assert reconcile_lock_key("u1") == "lock:playlists:reconcile:u1"
    assert reconcile_lock_key("u1") != reconcile_lock_key("u2")


def test_hold_and_release():
    redis = FakeRedis()
    lease = ReconcileLease(client=redis, ttl_seconds=30)

    with lease.hold("u1") as held:
        assert held is True
        assert reconcile_lock_key("u1") in redis.store
        assert redis.expiries[reconcile_lock_key("u1")] == 30

    assert redis.store == {}


def test_second_run_for_same_user_is_refused():
    redis = FakeRedis()
    lease = ReconcileLease(client=redis, ttl_seconds=30)

    with lease.hold("u1") as first:
        with lease.hold("u1") as second:
            assert first is True
            assert second is False
        assert reconcile_lock_key("u1") in redis.store


def test_different_users_do_not_block_each_other():
    lease = ReconcileLease(client=FakeRedis(), ttl_seconds=30)

    with lease.hold("u1") as first, lease.hold("u2") as second:
        assert first is True
        assert second is True


def test_expired_lease_taken_over_is_not_released():
    redis = FakeRedis()
    lease = ReconcileLease(client=redis, ttl_seconds=30)

    with lease.hold("u1"):
        redis.store[reconcile_lock_key("u1")] = "someone-else"

    assert redis.store[reconcile_lock_key("u1")] == "someone-else"


def test_released_on_error():
    redis = FakeRedis()
    lease = ReconcileLease(client=redis, ttl_seconds=30)

    try:
        with lease.hold("u1"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert redis.store == {}
