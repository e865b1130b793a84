"""
TTL configuration and key-to-domain mapping.
"""
from typing import Any, Dict, Optional, Tuple

from .keys import CacheKey, Domain, KeyLike


# TTL Configuration by domain (in seconds)
TTL_CONFIG: Dict[Domain, Dict[str, Any]] = {
    Domain.LISTINGS: {
        "fresh_ttl": 300,         # 5 minutes
        "allow_swr": True,
    },
    Domain.EVENTS: {
        "fresh_ttl": 120,         # 2 minutes, RSVP counts move quickly
        "allow_swr": True,
    },
    Domain.RSVPS: {
        "fresh_ttl": 60,
        "allow_swr": True,
    },
    Domain.FORUM: {
        "fresh_ttl": 180,
        "allow_swr": True,
    },
    Domain.FAVORITES: {
        "fresh_ttl": 300,
        "allow_swr": True,
    },
    Domain.MESSAGES: {
        "fresh_ttl": 30,          # Conversations are pushed, keep short
        "allow_swr": False,
    },
    Domain.NOTIFICATIONS: {
        "fresh_ttl": 30,
        "allow_swr": False,
    },
    Domain.PROFILE: {
        "fresh_ttl": 600,         # 10 minutes
        "allow_swr": True,
    },
    Domain.GARAGE: {
        "fresh_ttl": 1800,        # 30 minutes, rarely edited
        "allow_swr": True,
    },
}


def get_ttl_for_domain(domain: Domain) -> Tuple[float, bool]:
    """
    Get TTL configuration for a domain.

    Returns:
        (fresh_ttl, allow_swr)
    """
    config = TTL_CONFIG[domain]
    return config["fresh_ttl"], config.get("allow_swr", False)


def get_domain_for_key(key: KeyLike) -> Optional[Domain]:
    """Domain of a key, or None for keys outside the scope:domain scheme."""
    if isinstance(key, CacheKey):
        return key.domain
    parsed = CacheKey.parse(key)
    return parsed.domain if parsed is not None else None


def resolve_ttl(key: KeyLike, ttl: Optional[float], default_ttl: float) -> float:
    """
    Pick the TTL for a write.

    An explicit ttl wins, then the key's domain policy, then the default.
    """
    if ttl is not None:
        return ttl
    domain = get_domain_for_key(key)
    if domain is None:
        return default_ttl
    return get_ttl_for_domain(domain)[0]


def allows_stale_while_revalidate(key: KeyLike) -> bool:
    """Whether stale data for this key may be shown while revalidating."""
    domain = get_domain_for_key(key)
    if domain is None:
        return True
    return get_ttl_for_domain(domain)[1]
