"""
Desired state for the SecurityContextConstraints the worker and topology
updater daemons run under
"""

# Local
from .. import constants
from ..convergence import ManagedResource
from ..kinds import ResourceKind
from .common import set_labels

REQUIRED_DROP_CAPABILITIES = ["KILL", "MKNOD", "SETUID", "SETGID"]

ALLOWED_VOLUMES = [
    "configMap",
    "downwardAPI",
    "emptyDir",
    "persistentVolumeClaim",
    "projected",
    "secret",
    "hostPath",
]


def _service_account_user(session, name: str) -> str:
    return f"system:serviceaccount:{session.namespace}:{name}"


def _set_common_scc_fields(obj: dict):
    obj["allowHostDirVolumePlugin"] = True
    obj["allowHostNetwork"] = True
    obj["allowHostPorts"] = True
    obj["allowPrivilegeEscalation"] = True
    obj["requiredDropCapabilities"] = list(REQUIRED_DROP_CAPABILITIES)
    obj["supplementalGroups"] = {"type": "RunAsAny"}
    obj["seccompProfiles"] = ["*"]
    obj["volumes"] = list(ALLOWED_VOLUMES)


def set_worker_scc_as_desired(session, obj, _image):
    set_labels(obj, constants.WORKER_NAME)
    obj["metadata"].setdefault("annotations", {})[
        constants.SCC_DESCRIPTION_ANNOTATION
    ] = (
        "nfd-worker allows using host networking, host ports and hostPath but "
        "still requires pods to be run with a UID and SELinux context that are "
        "allocated to the namespace."
    )
    _set_common_scc_fields(obj)
    obj["fsGroup"] = {"type": "MustRunAs"}
    obj["runAsUser"] = {"type": "MustRunAsRange"}
    obj["seLinuxContext"] = {"type": "MustRunAs"}
    obj["users"] = [_service_account_user(session, constants.WORKER_NAME)]


def set_topology_scc_as_desired(session, obj, _image):
    set_labels(obj, constants.TOPOLOGY_NAME)
    obj["metadata"].setdefault("annotations", {})[
        constants.SCC_DESCRIPTION_ANNOTATION
    ] = constants.TOPOLOGY_NAME
    _set_common_scc_fields(obj)
    obj["fsGroup"] = {"type": "RunAsAny"}
    obj["readOnlyRootFilesystem"] = True
    obj["runAsUser"] = {"type": "RunAsAny"}
    obj["seLinuxContext"] = {"type": "RunAsAny"}
    obj["users"] = [_service_account_user(session, constants.TOPOLOGY_NAME)]


WORKER_SCC = ManagedResource(
    ResourceKind.SECURITY_CONTEXT_CONSTRAINTS,
    constants.WORKER_NAME,
    set_worker_scc_as_desired,
)
TOPOLOGY_SCC = ManagedResource(
    ResourceKind.SECURITY_CONTEXT_CONSTRAINTS,
    constants.TOPOLOGY_NAME,
    set_topology_scc_as_desired,
)
