"""
This module holds the core session state for an individual reconciliation
"""

# Standard
from typing import List, Optional
import copy
import os
import threading

# First Party
import aconfig
import alog

# Local
from . import config, constants
from .client import ObjectClientBase
from .exceptions import ConfigError, assert_config

log = alog.use_channel("SESSION")


class Session:  # pylint: disable=too-many-public-methods
    """A session holds the state of a single in-progress reconciliation. A new
    session is constructed for every reconcile call and nothing on it outlives
    that call.
    """

    __slots__ = [
        "__id",
        "__cr_manifest",
        "__client",
        "__cancel_event",
    ]

    def __init__(
        self,
        reconciliation_id: str,
        cr_manifest: dict,
        client: ObjectClientBase,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Construct a session object to hold the state for a reconciliation

        Args:
            reconciliation_id:  str
                The unique ID for this reconciliation
            cr_manifest:  dict
                The full value of the NodeFeatureDiscovery instance being
                reconciled
            client:  ObjectClientBase
                The client used for every cluster operation
            cancel_event:  Optional[threading.Event]
                Event that is set when the reconcile should stop early. All
                bounded waits observe it.
        """
        self.__id = reconciliation_id
        if not isinstance(cr_manifest, aconfig.Config):
            cr_manifest = aconfig.Config(cr_manifest, override_env_vars=False)
        self._validate_cr(cr_manifest)
        self.__cr_manifest = cr_manifest
        self.__client = client
        self.__cancel_event = cancel_event or threading.Event()

    ## Properties ##############################################################

    @property
    def id(self) -> str:  # pylint: disable=invalid-name
        """The unique reconciliation ID"""
        return self.__id

    @property
    def cr_manifest(self) -> aconfig.Config:
        """The full instance manifest that triggered this reconciliation"""
        return self.__cr_manifest

    @property
    def client(self) -> ObjectClientBase:
        """The object client for this reconciliation"""
        return self.__client

    @property
    def cancel_event(self) -> threading.Event:
        """The cancellation event for this reconciliation"""
        return self.__cancel_event

    @property
    def spec(self) -> aconfig.Config:
        """The spec section of the instance"""
        return self.cr_manifest.get("spec") or aconfig.Config({})

    @property
    def metadata(self) -> aconfig.Config:
        """The metadata for this instance"""
        return self.cr_manifest.metadata

    @property
    def name(self) -> str:
        """The metadata.name for this instance"""
        return self.metadata.name

    @property
    def namespace(self) -> str:
        """The metadata.namespace for this instance"""
        return self.metadata.namespace

    @property
    def finalizers(self) -> List[str]:
        """The finalizers currently set on the instance"""
        return list(self.metadata.get("finalizers") or [])

    @property
    def deleting(self) -> bool:
        """True once the instance carries a deletion timestamp"""
        return bool(self.metadata.get("deletionTimestamp"))

    @property
    def status(self) -> aconfig.Config:
        """The stored status of the instance"""
        return self.cr_manifest.get("status") or aconfig.Config({})

    @property
    def conditions(self) -> List[dict]:
        """The stored status conditions of the instance"""
        return list(self.status.get(constants.CONDITIONS_KEY) or [])

    ## Instance Fields #########################################################

    @property
    def image(self) -> str:
        """The operand image. The instance value wins, then the env var, then
        the library config default.
        """
        operand = self.spec.get("operand") or {}
        image = (
            operand.get("image")
            or os.environ.get(constants.OPERAND_IMAGE_ENV_VAR)
            or config.operand.default_image
        )
        assert_config(image, "No operand image configured")
        return image

    @property
    def image_pull_policy(self) -> str:
        """The pull policy for operand containers. Only Always and Never are
        honoured as given.
        """
        operand = self.spec.get("operand") or {}
        policy = operand.get("imagePullPolicy")
        if policy in ("Always", "Never"):
            return policy
        return "IfNotPresent"

    @property
    def service_port(self) -> int:
        """The port the master service listens on"""
        operand = self.spec.get("operand") or {}
        port = operand.get("servicePort") or config.operand.default_service_port
        try:
            port = int(port)
        except (TypeError, ValueError) as err:
            raise ConfigError(f"Invalid servicePort {port}") from err
        assert_config(0 < port < 65536, f"Invalid servicePort {port}")
        return port

    @property
    def topology_updater_enabled(self) -> bool:
        """Whether the topology updater daemon is requested"""
        return bool(self.spec.get("topologyUpdater", False))

    @property
    def prune_on_delete(self) -> bool:
        """Whether node labels should be pruned when the instance is deleted"""
        return bool(self.spec.get("pruneOnDelete", False))

    @property
    def worker_config(self) -> str:
        """The raw worker config blob"""
        return (self.spec.get("workerConfig") or {}).get("configData") or ""

    @property
    def custom_config(self) -> str:
        """The raw custom config blob"""
        return (self.spec.get("customConfig") or {}).get("configData") or ""

    @property
    def instance_discriminator(self) -> Optional[str]:
        """Optional name used to run several NFD deployments side by side"""
        return self.spec.get("instance") or None

    @property
    def extra_label_ns(self) -> List[str]:
        """Extra label namespaces the master may publish to"""
        return list(self.spec.get("extraLabelNs") or [])

    @property
    def resource_labels(self) -> List[str]:
        """Labels the master should publish as extended resources"""
        return list(self.spec.get("resourceLabels") or [])

    @property
    def label_whitelist(self) -> Optional[str]:
        """Regular expression filtering published labels"""
        return self.spec.get("labelWhiteList") or None

    ## Utilities ###############################################################

    def update_cr_manifest(self, cr_manifest: dict):
        """Replace the instance manifest after the reconciler has persisted a
        change to it, so later writes carry the new resourceVersion
        """
        if not isinstance(cr_manifest, aconfig.Config):
            cr_manifest = aconfig.Config(cr_manifest, override_env_vars=False)
        self._validate_cr(cr_manifest)
        self.__cr_manifest = cr_manifest

    def manifest_copy(self) -> dict:
        """A mutable deep copy of the instance manifest"""
        return copy.deepcopy(dict(self.cr_manifest))

    def stopped(self) -> bool:
        """True if the reconcile has been cancelled"""
        return self.cancel_event.is_set()

    ## Implementation Details ##################################################

    @staticmethod
    def _validate_cr(cr_manifest: aconfig.Config):
        """Ensure that all expected elements of the instance are present"""
        expected_fields = [
            "kind",
            "apiVersion",
            "metadata",
            "metadata.name",
            "metadata.namespace",
            "metadata.uid",
        ]
        for field in expected_fields:
            val = cr_manifest
            for part in field.split("."):
                val = val.get(part) if hasattr(val, "get") else None
            assert_config(val, f"Missing required instance field: {field}")
