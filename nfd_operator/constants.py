"""
Shared constants across the project
"""

# Finalizer placed on every NodeFeatureDiscovery instance
FINALIZER = "foreground-deletion"

# Operand names. Each component uses the same name for its workload, its
# service account and its RBAC objects.
WORKER_NAME = "nfd-worker"
MASTER_NAME = "nfd-master"
TOPOLOGY_NAME = "nfd-topology-updater"
GC_NAME = "nfd-gc"
PRUNE_NAME = "nfd-prune"

# Worker config map data keys
WORKER_CONFIG_KEY = "nfd-worker-conf"
CUSTOM_CONFIG_KEY = "custom-conf"

# Env var consulted for the operand image when the instance does not set one
OPERAND_IMAGE_ENV_VAR = "NODE_FEATURE_DISCOVERY_IMAGE"

# Label applied to every managed object
APP_LABEL = "app"

# Annotation holding the SCC description
SCC_DESCRIPTION_ANNOTATION = "kubernetes.io/description"

# Condition types
CONDITION_AVAILABLE = "Available"
CONDITION_UPGRADEABLE = "Upgradeable"
CONDITION_PROGRESSING = "Progressing"
CONDITION_DEGRADED = "Degraded"
CONDITION_TYPES = [
    CONDITION_AVAILABLE,
    CONDITION_UPGRADEABLE,
    CONDITION_PROGRESSING,
    CONDITION_DEGRADED,
]

# Condition field keys
TIMESTAMP_KEY = "lastTransitionTime"
CONDITIONS_KEY = "conditions"

# Propagation policy used when deleting jobs so their pods are collected
BACKGROUND_PROPAGATION = "Background"
