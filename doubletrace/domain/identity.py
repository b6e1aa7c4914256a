"""Stable registry keys for arbitrary objects.

``id()`` cannot be overridden, so it is the key for ordinary objects. An
object whose ``__class__`` disagrees with ``type(obj)`` is a transparent
wrapper around something else (``wrapt.ObjectProxy``, ``Mock(spec=...)``,
hand-written forwarding proxies). Such objects get a synthetic key stored
once in their own instance ``__dict__`` so the key cannot leak through to,
or be answered by, the wrapped object. A wrapper whose ``__dict__`` is not
its own (a property, or the wrapped object's dict) is keyed by ``id()``.
"""

from __future__ import annotations

import types
import uuid
from collections.abc import Hashable

_SYNTHETIC_ID_ATTR = "__doubletrace_id__"


def is_faithful(obj: object) -> bool:
    """Whether the object reports its own type truthfully."""
    try:
        reported = obj.__class__
    except Exception:
        return False
    return reported is type(obj)


def _own_dict(obj: object) -> dict[str, object] | None:
    """Return the instance dict that belongs to ``obj`` itself, if any."""
    for klass in type(obj).__mro__:
        descriptor = vars(klass).get("__dict__")
        if descriptor is None:
            continue
        # Only the slot type() creates for instance dicts is trusted.
        if not isinstance(descriptor, types.GetSetDescriptorType):
            return None
        break
    else:
        return None

    try:
        own_dict = object.__getattribute__(obj, "__dict__")
    except AttributeError:
        return None
    if not isinstance(own_dict, dict):
        return None

    try:
        wrapped = object.__getattribute__(obj, "__wrapped__")
    except AttributeError:
        return own_dict
    try:
        wrapped_dict = object.__getattribute__(wrapped, "__dict__")
    except AttributeError:
        return own_dict
    if wrapped_dict is own_dict:
        return None
    return own_dict


def id_for(obj: object) -> Hashable:
    """Return the registry key for ``obj``.

    Repeated calls for the same live object return equal keys.
    """
    if is_faithful(obj):
        return id(obj)

    own_dict = _own_dict(obj)
    if own_dict is None:
        return id(obj)

    synthetic = own_dict.get(_SYNTHETIC_ID_ATTR)
    if synthetic is None:
        synthetic = own_dict.setdefault(_SYNTHETIC_ID_ATTR, f"synthetic:{uuid.uuid4()}")
    return synthetic
