"""Memory module - long-term memories and the user profile summary."""

from .long_term import LongTermMemory, PROFILE_CATEGORY, DEFAULT_USER_ID
from .profile import canonicalize_key, render_fact_sentence

__all__ = [
    'LongTermMemory',
    'PROFILE_CATEGORY',
    'DEFAULT_USER_ID',
    'canonicalize_key',
    'render_fact_sentence',
]
