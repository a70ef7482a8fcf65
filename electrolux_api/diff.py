"""State change detection.

Compares two normalized state snapshots and returns the changed leaf paths.
Only keys present in the new snapshot are examined, so a key that disappears
between polls is never reported.
"""

from typing import Any, Dict, Iterable, Optional

from .models import NormalizedState, StateDifference

_MISSING = object()


def _normalize(value: Any) -> Any:
    # None and a missing key are the same "no value"
    return None if value is _MISSING else value


def _as_mapping(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, dict):
        return value
    if isinstance(value, list):
        return {str(i): item for i, item in enumerate(value)}
    return None


def _same(old: Any, new: Any) -> bool:
    if isinstance(old, bool) != isinstance(new, bool):
        return False
    return old == new


def _is_ignored(path: str, ignored_keys: Iterable[str]) -> bool:
    """Check path against ignore rules (exact match or any ancestor)."""
    ignored = set(ignored_keys)
    if path in ignored:
        return True
    parts = path.split(".")
    for i in range(1, len(parts)):
        if ".".join(parts[:i]) in ignored:
            return True
    return False


def _compare(
    old: Any,
    new: Any,
    path: str,
    ignored_keys: Iterable[str],
    out: Dict[str, StateDifference],
):
    old_norm = _normalize(old)
    new_norm = _normalize(new)

    old_map = _as_mapping(old_norm)
    new_map = _as_mapping(new_norm)

    if old_map is not None and new_map is not None:
        keys = list(old_map)
        keys.extend(k for k in new_map if k not in old_map)
        for key in keys:
            child = f"{path}.{key}" if path else key
            if _is_ignored(child, ignored_keys):
                continue
            _compare(
                old_map.get(key, _MISSING),
                new_map.get(key, _MISSING),
                child,
                ignored_keys,
                out,
            )
        return

    if not _same(old_norm, new_norm):
        out[path] = {"from": old_norm, "to": new_norm}


def get_state_differences(
    old_state: Optional[NormalizedState],
    new_state: NormalizedState,
    ignored_keys: Iterable[str] = (),
) -> Dict[str, StateDifference]:
    """Compute flattened differences between two state snapshots.

    Args:
        old_state: Previous state, None on first observation
        new_state: Current state
        ignored_keys: Dotted paths to skip; a listed path also hides its subtree

    Returns:
        Mapping of dotted leaf path to {"from": old, "to": new}
    """
    differences: Dict[str, StateDifference] = {}

    if old_state is None:
        return differences

    ignored_keys = tuple(ignored_keys)
    for key in new_state:
        if _is_ignored(key, ignored_keys):
            continue
        _compare(old_state.get(key, _MISSING), new_state[key], key, ignored_keys, differences)

    return differences


def format_state_differences(differences: Dict[str, StateDifference]) -> str:
    """Render differences as indented "path: from → to" lines."""
    return "".join(
        f"\n  {path}: {diff['from']} → {diff['to']}" for path, diff in differences.items()
    )
