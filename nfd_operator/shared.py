"""
Decides whether cluster-scoped objects are still needed by another instance
"""

# First Party
import alog

# Local
from .exceptions import NfdOperatorError, ResourceOperationError
from .kinds import ResourceKind
from .session import Session

log = alog.use_channel("SHARED")


class SharedResourceArbiter:
    """Cluster-scoped objects (ClusterRoles, ClusterRoleBindings, SCCs) carry a
    fixed name and are shared by every instance in the cluster. They may only
    be removed once no other live instance remains.
    """

    def __init__(self, session: Session):
        self.session = session

    @alog.logged_function(log.debug2)
    def other_instances_exist(self) -> bool:
        """True if any instance in a different namespace exists without a
        deletion timestamp
        """
        kind = ResourceKind.NODE_FEATURE_DISCOVERY
        try:
            instances = self.session.client.list(kind)
        except NfdOperatorError as err:
            raise ResourceOperationError("list", kind.kind, None, "*", err) from err

        for instance in instances:
            metadata = instance.get("metadata", {})
            if metadata.get("namespace") == self.session.namespace:
                continue
            if metadata.get("deletionTimestamp"):
                log.debug3(
                    "Ignoring terminating instance %s/%s",
                    metadata.get("namespace"),
                    metadata.get("name"),
                )
                continue
            log.debug(
                "Shared objects still in use by %s/%s",
                metadata.get("namespace"),
                metadata.get("name"),
            )
            return True
        return False
