"""
Desired state for the one-shot job that strips NFD labels from nodes when an
instance is deleted with pruneOnDelete set
"""

# Local
from .. import constants
from ..convergence import ManagedResource
from ..kinds import ResourceKind
from .common import (
    NFD_API_GROUP,
    cluster_role,
    cluster_role_binding,
    operand_container,
    service_account,
    set_labels,
)

NAME = constants.PRUNE_NAME

CLUSTER_ROLE_RULES = [
    {
        "apiGroups": [""],
        "resources": ["nodes", "nodes/status"],
        "verbs": ["get", "list", "patch", "update"],
    },
    {
        "apiGroups": [NFD_API_GROUP],
        "resources": ["nodefeatures", "nodefeaturerules"],
        "verbs": ["delete", "list"],
    },
]


def set_prune_job_as_desired(session, obj, image):
    set_labels(obj, NAME)
    container = operand_container(session, image, NAME, args=["--prune"])
    container["command"] = [constants.MASTER_NAME]
    obj["spec"] = {
        "backoffLimit": 0,
        "completions": 1,
        "parallelism": 1,
        "template": {
            "metadata": {"labels": {constants.APP_LABEL: NAME}},
            "spec": {
                "serviceAccountName": NAME,
                "restartPolicy": "Never",
                "containers": [container],
            },
        },
    }


SERVICE_ACCOUNT = service_account(NAME)
CLUSTER_ROLE = cluster_role(NAME, CLUSTER_ROLE_RULES)
CLUSTER_ROLE_BINDING = cluster_role_binding(NAME)
JOB = ManagedResource(ResourceKind.JOB, NAME, set_prune_job_as_desired)

# RBAC is applied before the job that depends on it
RBAC_RESOURCES = [SERVICE_ACCOUNT, CLUSTER_ROLE, CLUSTER_ROLE_BINDING]
