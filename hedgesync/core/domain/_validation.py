'''
Construction-time checks shared by the frozen dataclasses.
'''

from __future__ import annotations

from typing import Any

__all__ = ['require_text']


def require_text(instance: Any, *names: str, optional: bool = False) -> None:

    '''
    Reject identifier fields that are missing, blank, or not strings.

    Args:
        instance (Any): Dataclass instance being validated
        *names (str): Attribute names to check
        optional (bool): Let None through when True

    Raises:
        ValueError: Naming the owning class and the offending field
    '''

    for name in names:
        value = getattr(instance, name)
        if value is None and optional:
            continue
        if isinstance(value, str) and value.strip():
            continue
        msg = f'{type(instance).__name__}.{name} must be a non-empty string'
        raise ValueError(msg)
