"""Field-preserving merge of desired state into observed remote objects.

Desired-state functions describe an object declaratively and would clobber
data written by other actors: the CA bundle injected into the webhook by the
service-ca operator, or the resourceVersion of objects rebuilt from scratch on
every pass. Such *sticky* fields are listed as dotted paths (integer segments
index into lists, e.g. ``webhooks.0.clientConfig.caBundle``) and are copied
back from the previously observed object whenever they hold a value there.
"""
import copy
from typing import Any, Dict, Iterable, List, MutableMapping, Tuple, Union

Segment = Union[str, int]

#: Identity fields the API server assigns; an object rebuilt from a template
#: must keep them or every comparison with the observed state reports a diff.
SERVER_ASSIGNED_FIELDS = (
    "metadata.uid",
    "metadata.creationTimestamp",
    "metadata.generation",
    "metadata.managedFields",
)

RESOURCE_VERSION = "metadata.resourceVersion"

_MISSING = object()


def split_path(path: str) -> Tuple[Segment, ...]:
    """Split a dotted field path; purely numeric segments become list indices."""
    segments: List[Segment] = []
    for segment in path.split("."):
        if not segment:
            raise ValueError(f"Empty segment in field path {path!r}")
        segments.append(int(segment) if segment.isdigit() else segment)
    return tuple(segments)


def get_field(obj: Any, path: str, default: Any = None) -> Any:
    """Read the value at a dotted path, or ``default`` if any segment is missing."""
    value = obj
    for segment in split_path(path):
        if isinstance(segment, int):
            if not isinstance(value, list) or segment >= len(value):
                return default
            value = value[segment]
        else:
            if not isinstance(value, MutableMapping) or segment not in value:
                return default
            value = value[segment]
    return value


def set_field(obj: MutableMapping, path: str, value: Any) -> bool:
    """Write ``value`` at a dotted path, creating missing intermediate mappings.

    Lists are never extended: returns False when a list index does not exist.
    """
    segments = split_path(path)
    target: Any = obj
    for i, segment in enumerate(segments[:-1]):
        following = segments[i + 1]
        if isinstance(segment, int):
            if not isinstance(target, list) or segment >= len(target):
                return False
            target = target[segment]
        else:
            if not isinstance(target, MutableMapping):
                return False
            if target.get(segment) is None:
                if isinstance(following, int):
                    return False
                target[segment] = {}
            target = target[segment]
        if not isinstance(target, (MutableMapping, list)):
            return False

    last = segments[-1]
    if isinstance(last, int):
        if not isinstance(target, list) or last >= len(target):
            return False
        target[last] = value
    else:
        if not isinstance(target, MutableMapping):
            return False
        target[last] = value
    return True


def _is_empty(value: Any) -> bool:
    return value is _MISSING or value is None or (
        isinstance(value, (str, bytes, list, dict)) and len(value) == 0
    )


def preserve_fields(
    sticky_paths: Iterable[str],
    previous: Dict[str, Any],
    desired: Dict[str, Any],
) -> Dict[str, Any]:
    """Return ``desired`` with every non-empty sticky field copied from ``previous``.

    Neither argument is modified.
    """
    merged = copy.deepcopy(desired)
    for path in sticky_paths:
        value = get_field(previous, path, _MISSING)
        if _is_empty(value):
            continue
        set_field(merged, path, copy.deepcopy(value))
    return merged


def overwrite(
    obj: Dict[str, Any], desired: Dict[str, Any], sticky_paths: Iterable[str] = ()
) -> None:
    """Replace the whole body of ``obj`` in place, keeping sticky and server-assigned fields."""
    previous = copy.deepcopy(obj)
    merged = preserve_fields(
        tuple(sticky_paths) + SERVER_ASSIGNED_FIELDS, previous, desired
    )
    obj.clear()
    obj.update(merged)


def merge_desired(obj: Dict[str, Any], desired: Dict[str, Any]) -> None:
    """Recursively merge ``desired`` mappings into ``obj`` in place.

    Keys absent from ``desired`` keep their observed (often server-defaulted)
    values; lists and scalars are replaced wholesale.
    """
    for key, value in desired.items():
        current = obj.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            merge_desired(current, value)
        else:
            obj[key] = copy.deepcopy(value)
