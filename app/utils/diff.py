import json
from typing import Any, Dict, Iterable, Optional

Snapshot = Dict[str, Any]


def _canonical(value: Any) -> str:
    # key order and container identity must not count as a change
    return json.dumps(value, sort_keys=True, default=str)


def compute_changes(
    before: Optional[Snapshot],
    after: Optional[Snapshot],
    fields: Optional[Iterable[str]] = None,
) -> Optional[Dict[str, Snapshot]]:
    """
    Minimal before/after delta between two flat snapshots.

    - both missing          -> None
    - before missing        -> {"after": after}    (created)
    - after missing         -> {"before": before}  (deleted)
    - nothing differs       -> None
    - otherwise only the differing fields, on both sides.

    An empty snapshot counts as nothing, so `compute_changes(None, {})` is None
    rather than {"after": {}}: a stored delta never has both sides empty.

    `fields` limits the comparison; by default every key of `after` is checked.
    """
    if before is None and after is None:
        return None

    if before is None:
        return {"after": dict(after)} if after else None

    if after is None:
        return {"before": dict(before)} if before else None

    keys = list(fields) if fields is not None else list(after.keys())

    old: Snapshot = {}
    new: Snapshot = {}
    for key in keys:
        old_value = before.get(key)
        new_value = after.get(key)
        if _canonical(old_value) != _canonical(new_value):
            old[key] = old_value
            new[key] = new_value

    if not old and not new:
        return None

    return {"before": old, "after": new}
