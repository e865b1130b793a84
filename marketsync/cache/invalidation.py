"""
Invalidation by exact key or by pattern, plus per-domain invalidation rules.
"""
import logging
from typing import Dict, Iterable, List, Optional, Union

from .keys import STATS, CacheKey, Domain, KeyLike, KeyPattern, PatternLike
from .store import CacheStore

logger = logging.getLogger("cache.invalidation")

InvalidationTarget = Union[KeyLike, PatternLike]

# Which cached views go stale when a domain changes.
DOMAIN_INVALIDATIONS: Dict[Domain, List[KeyPattern]] = {
    Domain.LISTINGS: [KeyPattern(Domain.LISTINGS)],
    Domain.EVENTS: [KeyPattern(Domain.EVENTS)],
    # RSVP counts are shown on event cards and detail views
    Domain.RSVPS: [KeyPattern(Domain.RSVPS), KeyPattern(Domain.EVENTS)],
    Domain.FORUM: [KeyPattern(Domain.FORUM)],
    # Favorite flags are shown on listing and event cards
    Domain.FAVORITES: [
        KeyPattern(Domain.FAVORITES),
        KeyPattern(Domain.LISTINGS),
        KeyPattern(Domain.EVENTS),
    ],
    Domain.MESSAGES: [KeyPattern(Domain.MESSAGES)],
    Domain.NOTIFICATIONS: [KeyPattern(Domain.NOTIFICATIONS)],
    Domain.PROFILE: [KeyPattern(Domain.PROFILE)],
    Domain.GARAGE: [KeyPattern(Domain.GARAGE)],
}


def profile_stats_key(user_id: str) -> CacheKey:
    """Key of a user's profile counters (listings, events, posts, garage)."""
    return CacheKey(STATS, Domain.PROFILE, user_id)


class InvalidationBus:
    """
    Single entry point for removing cached data.

    A CacheKey removes exactly one entry. A plain string removes that key
    and every key below it. KeyPatterns and compiled regular expressions
    remove every matching entry. Invalidation holds at the moment of the
    call only: a fetch already in flight may write its result afterwards.
    """

    def __init__(self, store: CacheStore):
        self._store = store

    def invalidate(self, target: InvalidationTarget) -> int:
        """
        Invalidate an exact key or every key matching a pattern.

        Returns:
            Number of entries removed
        """
        if isinstance(target, CacheKey):
            return 1 if self._store.invalidate(target) else 0
        return self._store.invalidate_pattern(target)

    def invalidate_pattern(self, pattern: PatternLike) -> int:
        return self._store.invalidate_pattern(pattern)

    def invalidate_all(self, targets: Iterable[InvalidationTarget]) -> int:
        return sum(self.invalidate(target) for target in targets)

    def invalidate_domain(
        self,
        domain: Domain,
        user_id: Optional[str] = None,
    ) -> int:
        """
        Apply the invalidation rules for a change in a domain.

        Args:
            domain: Domain that changed
            user_id: Owner of the changed record; their profile counters
                are invalidated too

        Returns:
            Number of entries removed
        """
        removed = self.invalidate_all(DOMAIN_INVALIDATIONS[domain])
        if user_id:
            removed += self.invalidate(profile_stats_key(user_id))
        logger.debug(f"Domain invalidation for {domain.value}: {removed} entries")
        return removed
