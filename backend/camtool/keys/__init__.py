"""
Key resolution for the mounted entity.

Maps an entity record id to its binding keys, profile id and per-level
store paths, including the structural fallback for obfuscated content.
"""

from .models import EntityContext, Resolution, ResolveFailure
from .resolver import KeyResolver, extract_obfuscated_id, obfuscated_candidate

__all__ = [
    "EntityContext",
    "Resolution",
    "ResolveFailure",
    "KeyResolver",
    "extract_obfuscated_id",
    "obfuscated_candidate",
]
