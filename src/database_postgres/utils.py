"""Low-level helpers with no internal dependencies.

Records and option structures can be supplied either as the dataclass
itself or as a plain mapping, using snake_case or camelCase keys. These
helpers do the conversion and make no imports from other package modules.
"""
import logging
import re
from collections.abc import Mapping
from dataclasses import fields, is_dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])([A-Z])')


def snake_case(name: str) -> str:
    """Convert `ifNotExists` style names to `if_not_exists`.
    """
    return _CAMEL_BOUNDARY.sub(r'_\1', name).lower()


def coerce_record(cls: type[T], value: T | Mapping[str, Any] | None,
                  **defaults: Any) -> T:
    """Build a dataclass instance from an instance, a mapping or None.

    Mapping keys are matched to field names after snake_case conversion;
    keys that match no field are ignored. `defaults` fill fields the
    mapping does not supply.
    """
    if isinstance(value, cls):
        return value
    if value is None:
        return cls(**defaults)
    if not isinstance(value, Mapping):
        if is_dataclass(value):
            value = {f.name: getattr(value, f.name) for f in fields(value)}
        else:
            raise TypeError(f'Expected {cls.__name__} or mapping, got {type(value).__name__}')

    known = {f.name for f in fields(cls)}
    kwargs = dict(defaults)
    ignored = []
    for key, val in value.items():
        name = snake_case(key)
        if name in known:
            kwargs[name] = val
        else:
            ignored.append(key)
    if ignored:
        logger.debug(f'Ignoring unrecognized {cls.__name__} keys: {ignored}')
    return cls(**kwargs)
