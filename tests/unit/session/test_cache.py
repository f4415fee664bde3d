"""Tests for the verification cache."""

from dataclasses import replace
from datetime import timedelta
from uuid import uuid4

import pytest

from campusconnect.core.modules.session.cache import VerificationCache
from campusconnect.core.modules.session.models import CacheEntry, PrincipalKind


@pytest.fixture
def cache(clock):
    return VerificationCache(ttl=timedelta(seconds=5), prune_interval=timedelta(seconds=60), clock=clock)


def make_entry(clock, kind=PrincipalKind.MEMBER, account_id=None, session_id="s1", ttl=5, session_ttl_days=7):
    return CacheEntry(
        kind=kind,
        account_id=account_id or uuid4(),
        session_id=session_id,
        session_expires_at=clock() + timedelta(days=session_ttl_days),
        cache_expires_at=clock() + timedelta(seconds=ttl),
    )


class TestVerificationCache:
    """Tests for VerificationCache."""

    def test_hit_within_ttl(self, cache, clock):
        entry = make_entry(clock)
        cache.put("t1", entry)
        clock.advance(seconds=4)
        assert cache.get("t1") == entry

    def test_entry_dropped_after_ttl(self, cache, clock):
        """Test that an entry reaching its cache expiry is removed on read."""
        cache.put("t1", make_entry(clock))
        clock.advance(seconds=5)
        assert cache.get("t1") is None
        assert len(cache) == 0

    def test_entry_dropped_when_session_expires_first(self, cache, clock):
        """Test that the session expiry also bounds the entry."""
        cache.put("t1", replace(make_entry(clock), session_expires_at=clock() + timedelta(seconds=2)))
        clock.advance(seconds=2)
        assert cache.get("t1") is None

    def test_kind_mismatch_is_a_miss(self, cache, clock):
        """Test that an entry is never served for another principal kind."""
        cache.put("t1", make_entry(clock, kind=PrincipalKind.MEMBER))
        assert cache.get("t1", PrincipalKind.ADMINISTRATOR) is None
        assert cache.get("t1", PrincipalKind.MEMBER) is not None

    def test_invalidate_by_session_id(self, cache, clock):
        cache.put("t1", make_entry(clock, session_id="s1"))
        cache.put("t2", make_entry(clock, session_id="s2"))
        assert cache.invalidate(session_id="s1") == 1
        assert cache.get("t1") is None
        assert cache.get("t2") is not None

    def test_invalidate_by_account_id(self, cache, clock):
        """Test that every token of an account is evicted together."""
        account_id = uuid4()
        cache.put("t1", make_entry(clock, account_id=account_id, session_id="s1"))
        cache.put("t2", make_entry(clock, account_id=account_id, session_id="s2"))
        cache.put("t3", make_entry(clock, session_id="s3"))
        assert cache.invalidate(account_id=account_id) == 2
        assert len(cache) == 1

    def test_invalidate_without_filter_is_noop(self, cache, clock):
        cache.put("t1", make_entry(clock))
        assert cache.invalidate() == 0
        assert len(cache) == 1

    def test_prune_removes_only_stale_entries(self, cache, clock):
        cache.put("short", make_entry(clock, ttl=1))
        cache.put("long", make_entry(clock, ttl=10))
        clock.advance(seconds=2)
        assert cache.prune() == 1
        assert len(cache) == 1

    def test_periodic_prune_on_access(self, cache, clock):
        """Test that stale entries for other tokens are swept once the interval passes."""
        cache.put("stale", make_entry(clock, ttl=1))
        clock.advance(seconds=61)
        cache.put("fresh", make_entry(clock))
        assert len(cache) == 1

    def test_instances_do_not_share_state(self, clock):
        first = VerificationCache(ttl=timedelta(seconds=5), clock=clock)
        second = VerificationCache(ttl=timedelta(seconds=5), clock=clock)
        first.put("t1", make_entry(clock))
        assert second.get("t1") is None

    def test_put_skipped_after_invalidation(self, cache, clock):
        """Test that a fill started before an invalidation is discarded."""
        entry = make_entry(clock)
        generation = cache.generation
        cache.invalidate(account_id=entry.account_id)
        assert cache.put("t1", entry, generation) is False
        assert cache.get("t1") is None

    def test_put_with_current_generation(self, cache, clock):
        assert cache.put("t1", make_entry(clock), cache.generation) is True
        assert len(cache) == 1
