"""
Key resolution: from an entity record id to the live-store paths it controls.

The common case is a human-readable binding key such as
"Camera.VehicleTPP_4w_911_High_Close" from which the profile id ("4w_911")
is read directly. Third-party content often ships hashed or otherwise
mangled keys; for those the profile id is recovered by stripping known
namespace and level tokens (extract_obfuscated_id), and each level is
addressed through the explicit level map built from the keys' own
height/distance markers.

Every result is memoized for the active entity; bind() to a different
entity drops the cache.
"""

import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..levels import BINDING_LIST_SUFFIX, CAMERA_LEVELS, canonical_path
from ..store.live import LiveStore
from .models import EntityContext, Resolution, ResolveFailure

logger = logging.getLogger(__name__)

CANONICAL_KEY_PATTERN = re.compile(r"^[A-Za-z]+\.VehicleTPP_([A-Za-z0-9_]+)_[A-Za-z0-9_]+_[A-Za-z0-9_]+")
SUFFIX_TAG_PATTERN = re.compile(r"\.tppCameraPresets\$[0-9a-fA-F]+$")

# Leading tokens stripped from obfuscated keys, (token, case_insensitive)
LEADING_TOKENS: Tuple[Tuple[str, bool], ...] = (
    (".", False),
    ("_", False),
    ("VehicleTPP", True),
    ("Camera", True),
    ("Vehicle", True),
)

HEIGHT_MARKER = "height"
DISTANCE_MARKER = "distance"

_TOKEN_SPLIT = re.compile(r"[._]")


def _strip_prefix(text: str, token: str, case_insensitive: bool = False) -> str:
    head = text[:len(token)]
    if head == token or (case_insensitive and head.lower() == token.lower()):
        return text[len(token):]
    return text


def _strip_suffix(text: str, token: str, case_insensitive: bool = False) -> str:
    if not token or len(text) < len(token):
        return text
    tail = text[-len(token):]
    if tail == token or (case_insensitive and tail.lower() == token.lower()):
        return text[:-len(token)]
    return text


def obfuscated_candidate(key: str) -> str:
    """
    Reduce one binding key to its profile id candidate.

    "Vehicle.VehicleTPP_lotus_camera_High_Close.tppCameraPresets$1f" -> "lotus_camera"
    """
    candidate = SUFFIX_TAG_PATTERN.sub("", key)

    while True:
        previous = candidate
        for token, case_insensitive in LEADING_TOKENS:
            candidate = _strip_prefix(candidate, token, case_insensitive)
        if candidate == previous:
            break

    for level in CAMERA_LEVELS:
        candidate = _strip_suffix(candidate, level, True)
        candidate = _strip_suffix(candidate, ".")
        candidate = _strip_suffix(candidate, "_")

    return candidate


def extract_obfuscated_id(keys: Sequence[str], known_default_ids: Iterable[str]) -> Optional[str]:
    """
    Recover a profile id from binding keys that do not follow the canonical pattern.

    Candidates that are a prefix of a known default id are dropped, so a
    vanilla profile is never rediscovered as custom content.

    Args:
        keys: Raw binding keys of the entity
        known_default_ids: Profile ids (or default file names) already shipped

    Returns:
        The first surviving candidate, or None
    """
    candidates: List[str] = []
    seen: Set[str] = set()
    for key in keys:
        candidate = obfuscated_candidate(key)
        if candidate and candidate not in seen:
            candidates.append(candidate)
            seen.add(candidate)

    defaults = list(known_default_ids)
    survivors = [c for c in candidates if not any(d.startswith(c) for d in defaults)]
    return survivors[0] if survivors else None


def _trailing_segment(marker: str) -> str:
    return marker.rsplit(".", 1)[-1]


def _cache_part(keys: Optional[Sequence[str]]) -> Optional[Tuple[str, ...]]:
    return tuple(keys) if keys is not None else None


def _height_hint(key: str) -> Optional[str]:
    tokens = {t.lower() for t in _TOKEN_SPLIT.split(key)}
    if "high" in tokens and "low" not in tokens:
        return "High"
    if "low" in tokens and "high" not in tokens:
        return "Low"
    return None


class KeyResolver:
    """
    Resolves binding keys, profile ids and level paths for the active entity.

    Args:
        store: Live key-value store
        default_ids: Callable returning known default profile ids; used to
            filter obfuscated candidates
    """

    def __init__(self, store: LiveStore, default_ids: Optional[Callable[[], Iterable[str]]] = None):
        self.store = store
        self._default_ids = default_ids or (lambda: ())
        self._entity: Optional[EntityContext] = None
        self._cache: Dict[Any, Resolution] = {}
        self._corrected: Set[str] = set()

    @property
    def entity(self) -> Optional[EntityContext]:
        return self._entity

    def bind(self, entity: Optional[EntityContext]) -> None:
        """Set the active entity; a different entity invalidates all cached results."""
        if entity != self._entity:
            self._cache.clear()
        self._entity = entity

    def reset(self) -> None:
        """Drop cached results but keep the active entity."""
        self._cache.clear()

    def _cached(self, name: Any, compute: Callable[[], Resolution]) -> Resolution:
        if name not in self._cache:
            self._cache[name] = compute()
        return self._cache[name]

    # ------------------------------------------------------------------
    # Binding keys and ids
    # ------------------------------------------------------------------

    def resolve_binding_keys(self) -> Resolution[List[str]]:
        return self._cached("binding_keys", self._compute_binding_keys)

    def _compute_binding_keys(self) -> Resolution[List[str]]:
        entity = self._entity
        if entity is None:
            return Resolution.missing(ResolveFailure.NO_ENTITY)
        if not entity.record_id:
            logger.error("Mounted entity has no record id")
            return Resolution.missing(ResolveFailure.NO_RECORD)

        bindings = self.store.get(entity.record_id + BINDING_LIST_SUFFIX)
        if not isinstance(bindings, (list, tuple)):
            return Resolution.missing(ResolveFailure.NO_BINDINGS)

        keys = [str(k) for k in bindings if k]
        if not keys:
            return Resolution.missing(ResolveFailure.NO_BINDINGS)
        return Resolution.ok(keys)

    def _keys_or(self, keys: Optional[Sequence[str]]) -> Resolution[List[str]]:
        if keys is not None:
            if not keys:
                return Resolution.missing(ResolveFailure.NO_BINDINGS)
            return Resolution.ok(list(keys))
        return self.resolve_binding_keys()

    def resolve_canonical_id(self, keys: Optional[Sequence[str]] = None) -> Resolution[str]:
        """Profile id from the first key matching the canonical pattern."""
        found = self._keys_or(keys)
        if not found:
            return Resolution.missing(found.failure)

        for key in found.value:
            match = CANONICAL_KEY_PATTERN.match(key)
            if match:
                return Resolution.ok(match.group(1))
        return Resolution.missing(ResolveFailure.NO_MATCH)

    def resolve_obfuscated_id(
        self,
        keys: Optional[Sequence[str]] = None,
        known_default_ids: Optional[Iterable[str]] = None,
    ) -> Resolution[str]:
        """
        Profile id recovered by the structural fallback.

        Negative results are cached as well, so a failing entity costs one
        scan per session.
        """
        def compute() -> Resolution[str]:
            found = self._keys_or(keys)
            if not found:
                return Resolution.missing(found.failure)
            defaults = known_default_ids if known_default_ids is not None else self._default_ids()
            result = extract_obfuscated_id(found.value, defaults)
            if result is None:
                logger.debug("No obfuscated id candidate survived")
                return Resolution.missing(ResolveFailure.NO_MATCH)
            logger.info(f"Resolved custom camera id '{result}'")
            return Resolution.ok(result)

        return self._cached(("obfuscated_id", _cache_part(keys)), compute)

    def resolve_profile_id(self) -> Resolution[str]:
        """Canonical id if the keys follow the pattern, else the obfuscated id."""
        def compute() -> Resolution[str]:
            canonical = self.resolve_canonical_id()
            if canonical or canonical.failure != ResolveFailure.NO_MATCH:
                return canonical
            return self.resolve_obfuscated_id()

        return self._cached("profile_id", compute)

    def custom_id(self) -> Optional[str]:
        """Obfuscated id of the active entity, if it has one."""
        return self.resolve_obfuscated_id().value

    # ------------------------------------------------------------------
    # Level map and overrides
    # ------------------------------------------------------------------

    def resolve_level_key_map(self, keys: Optional[Sequence[str]] = None) -> Resolution[Dict[str, str]]:
        """
        Map "<Height>_<Distance>" level names to raw binding keys.

        Built from the "<key>.height" and "<key>.distance" markers. A height
        marker that contradicts the High/Low hint in the key's own text is
        rewritten once in the store. This correction is a heuristic: it
        matches a known data-entry defect in third-party content and is not
        guaranteed to be right for all of it.
        """
        def compute() -> Resolution[Dict[str, str]]:
            found = self._keys_or(keys)
            if not found:
                return Resolution.missing(found.failure)

            level_map: Dict[str, str] = {}
            for key in found.value:
                height = self.store.get(f"{key}.{HEIGHT_MARKER}")
                distance = self.store.get(f"{key}.{DISTANCE_MARKER}")
                if not height or not distance:
                    continue

                height = self._correct_height_marker(key, str(height))
                level = f"{_trailing_segment(height)}_{_trailing_segment(str(distance))}"
                level_map[level] = key

            if not level_map:
                return Resolution.missing(ResolveFailure.NO_MATCH)
            return Resolution.ok(level_map)

        return self._cached(("level_map", _cache_part(keys)), compute)

    def _correct_height_marker(self, key: str, marker: str) -> str:
        if key in self._corrected:
            return marker

        hint = _height_hint(key)
        current = _trailing_segment(marker)
        if hint is None or current.lower() not in ("high", "low") or current.lower() == hint.lower():
            return marker

        corrected = marker[:len(marker) - len(current)] + hint
        self.store.set(f"{key}.{HEIGHT_MARKER}", corrected)
        self._corrected.add(key)
        logger.warning(
            f"Height marker of '{key}' says '{current}' but the key says '{hint}'; "
            f"rewrote it to '{corrected}' (heuristic)"
        )
        return corrected

    def resolve_override_keys(
        self,
        keys: Optional[Sequence[str]] = None,
        canonical_id: Optional[str] = None,
    ) -> Resolution[Tuple[str, List[str]]]:
        """
        Record key prefix and level suffixes of bindings outside the canonical profile.

        "Camera.my_mod_cam_High_Close" -> ("Camera.my_mod_cam", ["High_Close", ...])
        """
        def compute() -> Resolution[Tuple[str, List[str]]]:
            found = self._keys_or(keys)
            if not found:
                return Resolution.missing(found.failure)

            profile_id = canonical_id
            if profile_id is None:
                profile = self.resolve_profile_id()
                if not profile:
                    return Resolution.missing(profile.failure)
                profile_id = profile.value

            prefix: Optional[str] = None
            levels: List[str] = []
            for key in found.value:
                if profile_id in key:
                    continue
                parts = key.split("_")
                if len(parts) < 3:
                    continue
                if prefix is None:
                    prefix = "_".join(parts[:-2])
                levels.append("_".join(parts[-2:]))

            if prefix is None or not levels:
                return Resolution.missing(ResolveFailure.NO_MATCH)
            return Resolution.ok((prefix, levels))

        if keys is not None or canonical_id is not None:
            return compute()
        return self._cached("override_keys", compute)

    # ------------------------------------------------------------------
    # Path routing
    # ------------------------------------------------------------------

    def path_for(
        self,
        profile_id: str,
        level: str,
        var: str,
        override_key: Optional[str] = None,
    ) -> Optional[str]:
        """
        Store path of `var` for one camera level of a profile.

        Precedence: the level map when the profile is the active entity's
        custom id, then the override record "<override_key>_<level>", then
        the canonical path. Returns None if the level does not exist.
        """
        if not profile_id or not level or not var:
            return None

        custom = self.custom_id()
        if custom is not None and profile_id == custom:
            level_map = self.resolve_level_key_map()
            if level_map and level in level_map.value:
                return f"{level_map.value[level]}.{var}"

        if override_key is not None:
            return f"{override_key}_{level}.{var}"

        return canonical_path(profile_id, level, var)

    def is_custom_path(self, profile_id: str, level: str, var: str, override_key: Optional[str] = None) -> bool:
        """True if path_for() routes through a custom binding rather than the canonical path."""
        path = self.path_for(profile_id, level, var, override_key)
        return path is not None and path != canonical_path(profile_id, level, var)
