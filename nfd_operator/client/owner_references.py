"""
This module holds common functionality that the object clients and the
convergence layer use to manage owner references
"""

# First Party
import alog

# Local
from ..exceptions import OwnerReferenceError
from ..kinds import ResourceKind

log = alog.use_channel("OWNRF")


def set_owner_reference(owner: dict, obj: dict):
    """Make sure the given object carries exactly one controller owner
    reference pointing at the owner. Existing references to other owners are
    kept in order.

    Args:
        owner:  dict
            The owning instance manifest
        obj:  dict
            The object to own. Modified in place.

    Raises:
        OwnerReferenceError: The reference cannot be placed. This happens when
            the owner has no uid, when the object is cluster-scoped, or when
            the object lives in a different namespace than the owner.
    """
    _validate_object_struct(owner)
    _validate_object_struct(obj)

    owner_metadata = owner["metadata"]
    obj_metadata = obj["metadata"]
    if not owner_metadata.get("uid"):
        raise OwnerReferenceError(
            f"Owner {owner_metadata.get('name')} has no uid; cannot own "
            f"{obj['kind']} {obj_metadata.get('name')}"
        )
    if not ResourceKind.from_manifest(obj).namespaced:
        raise OwnerReferenceError(
            f"Cluster-scoped {obj['kind']} {obj_metadata.get('name')} cannot be "
            "owned by a namespaced instance"
        )
    if obj_metadata.get("namespace") != owner_metadata.get("namespace"):
        raise OwnerReferenceError(
            f"{obj['kind']} {obj_metadata.get('name')} in namespace "
            f"{obj_metadata.get('namespace')} cannot be owned by an instance in "
            f"namespace {owner_metadata.get('namespace')}"
        )

    owner_ref = make_owner_reference(owner)
    owner_refs = [
        ref
        for ref in obj_metadata.get("ownerReferences", [])
        if ref.get("uid") != owner_ref["uid"]
    ]
    if any(ref.get("controller") for ref in owner_refs):
        raise OwnerReferenceError(
            f"{obj['kind']} {obj_metadata.get('name')} is already controlled "
            "by another owner"
        )
    log.debug2(
        "Setting owner reference for %s/%s", obj["kind"], obj_metadata.get("name")
    )
    obj_metadata["ownerReferences"] = owner_refs + [owner_ref]


def make_owner_reference(owner: dict) -> dict:
    """Make an owner reference for the given resource"""
    return {
        "apiVersion": owner["apiVersion"],
        "kind": owner["kind"],
        "name": owner["metadata"]["name"],
        "uid": owner["metadata"]["uid"],
        "controller": True,
        "blockOwnerDeletion": True,
    }


def _validate_object_struct(obj: dict):
    """Ensure that the required portions of an object are present"""
    if "metadata" not in obj or "kind" not in obj or "apiVersion" not in obj:
        raise OwnerReferenceError(
            f"Object is missing kind, apiVersion or metadata: {obj}"
        )
