"""
Typed cache keys.

Every cached view of a resource is addressed as ``scope:domain:qualifiers``,
for example ``home:events:upcoming:5`` or ``detail:listings:42``. Building
keys through ``CacheKey`` and invalidating through ``KeyPattern`` keeps the
naming convention and pattern invalidation in one place.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, Union

SEPARATOR = ":"

# Scopes: where a cached view is shown
HOME = "home"
MARKETPLACE = "marketplace"
COMMUNITY = "community"
EXPLORE = "explore"
DETAIL = "detail"
USER = "user"
STATS = "stats"


class Domain(Enum):
    """Logical resource categories that share invalidation."""
    LISTINGS = "listings"
    EVENTS = "events"
    RSVPS = "rsvps"
    FORUM = "forum"
    FAVORITES = "favorites"
    MESSAGES = "messages"
    NOTIFICATIONS = "notifications"
    PROFILE = "profile"
    GARAGE = "garage"


def _segment(value: Any) -> str:
    text = str(value.value if isinstance(value, Enum) else value)
    if not text:
        raise ValueError("Cache key segments must not be empty")
    if SEPARATOR in text:
        raise ValueError(f"Cache key segment {text!r} must not contain '{SEPARATOR}'")
    return text


@dataclass(frozen=True, init=False)
class CacheKey:
    """A cache key built from a scope, a domain and optional qualifiers."""
    scope: str
    domain: Domain
    qualifiers: Tuple[str, ...] = ()

    def __init__(self, scope: str, domain: Domain, *qualifiers: Any):
        object.__setattr__(self, "scope", _segment(scope))
        object.__setattr__(self, "domain", Domain(domain))
        object.__setattr__(self, "qualifiers", tuple(_segment(q) for q in qualifiers))

    def __str__(self) -> str:
        return SEPARATOR.join((self.scope, self.domain.value) + self.qualifiers)

    @classmethod
    def parse(cls, key: str) -> Optional["CacheKey"]:
        """
        Parse a rendered key back into a CacheKey.

        Returns None when the key does not follow the scope:domain scheme.
        """
        parts = key.split(SEPARATOR)
        if len(parts) < 2 or not all(parts):
            return None
        try:
            domain = Domain(parts[1])
        except ValueError:
            return None
        return cls(parts[0], domain, *parts[2:])


@dataclass(frozen=True)
class KeyPattern:
    """
    Matches every key of a domain, optionally narrowed by scope and by
    leading qualifiers.

    ``KeyPattern(Domain.EVENTS)`` matches home lists, explore lists, detail
    views and per-user lists of events alike.
    """
    domain: Domain
    scope: Optional[str] = None
    qualifiers: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "domain", Domain(self.domain))
        if self.scope is not None:
            object.__setattr__(self, "scope", _segment(self.scope))
        object.__setattr__(self, "qualifiers", tuple(_segment(q) for q in self.qualifiers))

    def matches(self, key: Union[str, CacheKey]) -> bool:
        parsed = key if isinstance(key, CacheKey) else CacheKey.parse(key)
        if parsed is None or parsed.domain is not self.domain:
            return False
        if self.scope is not None and parsed.scope != self.scope:
            return False
        return parsed.qualifiers[:len(self.qualifiers)] == self.qualifiers

    def __str__(self) -> str:
        scope = self.scope or "*"
        return SEPARATOR.join((scope, self.domain.value) + self.qualifiers + ("*",))


KeyLike = Union[str, CacheKey]
PatternLike = Union[str, KeyPattern, re.Pattern]


def key_to_str(key: KeyLike) -> str:
    return str(key)


def pattern_matcher(pattern: PatternLike):
    """
    Build a predicate over string keys.

    Plain strings match the key itself and every key below it
    (``home:events`` matches ``home:events:upcoming:5`` but not
    ``home:eventsx``), compiled regular expressions match with ``search``,
    and KeyPatterns match by parsed segments.
    """
    if isinstance(pattern, KeyPattern):
        return pattern.matches
    if isinstance(pattern, re.Pattern):
        return lambda key: pattern.search(key) is not None
    if isinstance(pattern, str):
        if pattern.endswith(SEPARATOR):
            return lambda key: key.startswith(pattern)
        prefix = pattern + SEPARATOR
        return lambda key: key == pattern or key.startswith(prefix)
    raise TypeError(f"Unsupported invalidation pattern: {pattern!r}")
