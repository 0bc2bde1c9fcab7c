"""
Common utilities shared across the operator
"""

# Standard
from typing import Any, List, Optional

# First Party
import alog

log = alog.use_channel("UTILS")

__MISSING__ = "__MISSING__"

NESTED_DICT_DELIM = "."


## Dict Helpers ################################################################


def nested_set(dct: dict, key: str, val: Any):
    """Helper to set values in a dict using 'foo.bar' key notation

    Args:
        dct:  dict
            The dict into which the key will be set
        key:  str
            Key that may contain '.' notation indicating dict nesting
        val:  Any
            The value to place at the nested key
    """
    parts = key.split(NESTED_DICT_DELIM)
    for i, part in enumerate(parts[:-1]):
        dct = dct.setdefault(part, {})
        if not isinstance(dct, dict):
            intermediate = NESTED_DICT_DELIM.join(parts[: i + 1])
            raise TypeError(f"Intermediate key {intermediate} is not a dict")
    dct[parts[-1]] = val


def nested_get(dct: dict, key: str, dflt=None) -> Any:
    """Helper to get values from a dict using 'foo.bar' key notation

    Args:
        dct:  dict
            The dict to read from
        key:  str
            Key that may contain '.' notation indicating dict nesting
        dflt:  Any
            Value returned when any part of the key is missing

    Returns:
        val:  Any
            Whatever is found at the given key or dflt if the key is not found.
            This includes missing intermediate dicts and explicit None values.
    """
    parts = key.split(NESTED_DICT_DELIM)
    for part in parts[:-1]:
        dct = dct.get(part, __MISSING__)
        if dct is __MISSING__ or dct is None:
            return dflt
        if not isinstance(dct, dict):
            return dflt
    val = dct.get(parts[-1], dflt)
    return dflt if val is None else val


def merge_configs(base: dict, overrides: dict) -> dict:
    """Helper to perform a deep merge of the overrides into the base. The merge
    is done in place, but the resulting dict is also returned for convenience.

    Keys only present in the base are kept, so values the server defaulted on
    a live object survive. Lists whose entries are all dicts carrying a name
    (containers, volumes, env, ports) are merged entry by entry, keyed by name.
    The result follows the order and membership of the override list. Any
    other value in the overrides replaces the base value.

    Args:
        base:  dict
            The base object that will be updated with the overrides
        overrides:  dict
            The desired values

    Returns:
        merged:  dict
            The merged results of overrides merged onto base
    """
    for key, value in overrides.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            base[key] = merge_configs(current, value)
        elif _is_named_list(current) and _is_named_list(value):
            by_name = {entry["name"]: entry for entry in current}
            base[key] = [
                merge_configs(by_name[entry["name"]], entry)
                if entry["name"] in by_name
                else entry
                for entry in value
            ]
        else:
            base[key] = value
    return base


def _is_named_list(value: Any) -> bool:
    return isinstance(value, list) and all(
        isinstance(entry, dict) and "name" in entry for entry in value
    )


## Finalizers ##################################################################
#
# These helpers never mutate the list they are given. Relative order of every
# unrelated entry is preserved.


def has_finalizer(finalizers: Optional[List[str]], finalizer: str) -> bool:
    """True iff the exact finalizer string is a member of the list"""
    return finalizer in (finalizers or [])


def add_finalizer(finalizers: Optional[List[str]], finalizer: str) -> List[str]:
    """Return a copy of the list with the finalizer appended if absent"""
    updated = list(finalizers or [])
    if finalizer not in updated:
        log.debug3("Appending finalizer %s", finalizer)
        updated.append(finalizer)
    return updated


def remove_finalizer(finalizers: Optional[List[str]], finalizer: str) -> List[str]:
    """Return a copy of the list with every occurrence of the finalizer removed"""
    return [entry for entry in (finalizers or []) if entry != finalizer]
