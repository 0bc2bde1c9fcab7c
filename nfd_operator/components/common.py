"""
Shared building blocks for the per-component desired state functions
"""

# Standard
from typing import List

# Local
from .. import constants
from ..convergence import ManagedResource, SetDesiredFn
from ..kinds import ResourceKind
from ..session import Session
from ..utils import merge_configs

NFD_API_GROUP = "nfd.k8s-sigs.io"
TOPOLOGY_API_GROUP = "topology.node.k8s.io"


def set_labels(obj: dict, app: str):
    """Add the app label without disturbing other labels"""
    labels = obj.setdefault("metadata", {}).setdefault("labels", {})
    labels[constants.APP_LABEL] = app


def node_name_env() -> List[dict]:
    """Env exposing the node name to operand containers"""
    return [
        {
            "name": "NODE_NAME",
            "valueFrom": {"fieldRef": {"fieldPath": "spec.nodeName"}},
        }
    ]


def host_path_volume(name: str, path: str) -> dict:
    return {"name": name, "hostPath": {"path": path}}


def volume_mount(name: str, path: str, read_only: bool = True) -> dict:
    return {"name": name, "mountPath": path, "readOnly": read_only}


def restricted_security_context(read_only_root: bool = True) -> dict:
    return {
        "allowPrivilegeEscalation": False,
        "capabilities": {"drop": ["ALL"]},
        "readOnlyRootFilesystem": read_only_root,
        "runAsNonRoot": True,
    }


def operand_container(
    session: Session,
    image: str,
    name: str,
    args: List[str],
) -> dict:
    """Build the container spec shared by every operand"""
    return {
        "name": name,
        "image": image,
        "imagePullPolicy": session.image_pull_policy,
        "command": [name],
        "args": args,
        "env": node_name_env(),
    }


def set_pod_template(obj: dict, app: str, pod_spec: dict):
    """Set the selector and pod template of a DaemonSet or Deployment. The
    template is merged into the existing one so fields the server defaulted
    are kept.
    """
    set_labels(obj, app)
    spec = obj.setdefault("spec", {})
    spec["selector"] = {"matchLabels": {constants.APP_LABEL: app}}
    spec["template"] = merge_configs(
        spec.get("template") or {},
        {
            "metadata": {"labels": {constants.APP_LABEL: app}},
            "spec": pod_spec,
        },
    )


## RBAC Factories ##############################################################


def service_account(name: str) -> ManagedResource:
    """A service account carrying only the app label"""

    def set_service_account_as_desired(_session, obj, _image):
        set_labels(obj, name)

    return ManagedResource(
        ResourceKind.SERVICE_ACCOUNT, name, set_service_account_as_desired
    )


def _rules_setter(name: str, rules: List[dict]) -> SetDesiredFn:
    def set_rules_as_desired(_session, obj, _image):
        set_labels(obj, name)
        obj["rules"] = [dict(rule) for rule in rules]

    return set_rules_as_desired


def _binding_setter(name: str, role_kind: str) -> SetDesiredFn:
    def set_binding_as_desired(session, obj, _image):
        set_labels(obj, name)
        obj["roleRef"] = {
            "apiGroup": "rbac.authorization.k8s.io",
            "kind": role_kind,
            "name": name,
        }
        # Subjects always point at the service account in the instance
        # namespace, even for cluster-scoped bindings
        obj["subjects"] = [
            {
                "kind": "ServiceAccount",
                "name": name,
                "namespace": session.namespace,
            }
        ]

    return set_binding_as_desired


def role(name: str, rules: List[dict]) -> ManagedResource:
    return ManagedResource(ResourceKind.ROLE, name, _rules_setter(name, rules))


def role_binding(name: str) -> ManagedResource:
    return ManagedResource(
        ResourceKind.ROLE_BINDING, name, _binding_setter(name, "Role")
    )


def cluster_role(name: str, rules: List[dict]) -> ManagedResource:
    return ManagedResource(ResourceKind.CLUSTER_ROLE, name, _rules_setter(name, rules))


def cluster_role_binding(name: str) -> ManagedResource:
    return ManagedResource(
        ResourceKind.CLUSTER_ROLE_BINDING, name, _binding_setter(name, "ClusterRole")
    )
