"""
Custom logging formats that contain more detailed operator logs
"""

# First Party
from alog import AlogJsonFormatter


class NfdJsonFormatter(AlogJsonFormatter):
    """Custom Log Format that extends AlogJsonFormatter to add the identity of
    the NodeFeatureDiscovery instance being reconciled, the reconciliationId,
    and thread information
    """

    _FIELDS_TO_PRINT = AlogJsonFormatter._FIELDS_TO_PRINT + [
        "process",
        "thread",
        "threadName",
        "kind",
        "namespace",
        "resourceName",
        "resourceVersion",
        "reconciliationId",
    ]

    def __init__(self, manifest=None, reconciliation_id=None):
        super().__init__()
        self.manifest = manifest
        self.reconciliation_id = reconciliation_id

    def format(self, record):
        if self.reconciliation_id and not hasattr(record, "reconciliationId"):
            record.reconciliationId = self.reconciliation_id

        if resource := getattr(record, "resource", self.manifest):
            record.kind = resource.get("kind")
            metadata = resource.get("metadata", {})
            record.namespace = metadata.get("namespace")
            record.resourceName = metadata.get("name")
            record.resourceVersion = metadata.get("resourceVersion")

        return super().format(record)
