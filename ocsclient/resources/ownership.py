from typing import Any, Dict, Mapping, MutableMapping
import kopf
from ocsclient.utils.errors import OwnershipError


def _meta(obj: Mapping[str, Any]) -> Mapping[str, Any]:
    return obj.get("metadata") or {}


def attach_owner(owner: Mapping[str, Any], target: MutableMapping[str, Any]) -> None:
    """Make ``owner`` the controller of ``target`` for garbage collection.

    Deleting the owner then cascades to the target. Only namespaced targets in
    the owner's namespace can be owned; anything else raises OwnershipError
    instead of being skipped, so callers pick another lifecycle for
    cluster-scoped objects.
    """
    owner_meta, target_meta = _meta(owner), _meta(target)
    owner_ns, target_ns = owner_meta.get("namespace"), target_meta.get("namespace")
    if not target_ns:
        raise OwnershipError(
            f"cluster-scoped resource {target.get('kind')}/{target_meta.get('name')} "
            f"must not have a namespace-scoped owner, owner's namespace {owner_ns}"
        )
    if owner_ns != target_ns:
        raise OwnershipError(
            f"cross-namespace owner references are disallowed, owner's namespace "
            f"{owner_ns}, obj's namespace {target_ns}"
        )
    if not owner_meta.get("uid"):
        raise OwnershipError(
            f"owner {owner.get('kind')}/{owner_meta.get('name')} has no uid yet"
        )

    owner_ref: Dict[str, Any] = dict(kopf.build_owner_reference(owner))
    refs = target.setdefault("metadata", {}).setdefault("ownerReferences", [])
    for ref in refs:
        if ref.get("controller") and ref.get("uid") != owner_ref["uid"]:
            raise OwnershipError(
                f"{target.get('kind')}/{target_meta.get('name')} is already owned "
                f"by another controller {ref.get('kind')}/{ref.get('name')}"
            )
    if not any(ref.get("uid") == owner_ref["uid"] for ref in refs):
        refs.append(owner_ref)
