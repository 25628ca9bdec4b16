from typing import Any, List, Optional, Union


def get_nested_value(obj: Any, path: str) -> Optional[Union[str, List[str]]]:
    """
    Walk `a.b.c` through nested dicts.

    Returns the terminal value only if it is a non-empty string or a
    non-empty list of strings; anything else is None.
    """
    current = obj
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]

    if isinstance(current, str):
        return current or None

    if isinstance(current, list) and current and all(isinstance(i, str) and i for i in current):
        return list(current)

    return None
