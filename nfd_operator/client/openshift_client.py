"""
This object client delegates cluster operations to the openshift library. It
is the one used when the operator is running in the cluster or outside the
cluster making live changes.
"""

# Standard
from contextlib import contextmanager
from typing import Optional

# Third Party
from kubernetes import client
from openshift.dynamic import DynamicClient
from openshift.dynamic.exceptions import (
    ConflictError,
    NotFoundError,
    ResourceNotFoundError,
    ResourceNotUniqueError,
)
from openshift.dynamic.resource import Resource
import kubernetes

# First Party
import alog

# Local
from ..exceptions import ClusterError, ObjectConflictError, ObjectNotFoundError
from ..kinds import ResourceKind
from .base import ObjectClientBase

log = alog.use_channel("OSFTC")


class OpenshiftObjectClient(ObjectClientBase):
    """This client uses the openshift DynamicClient to interact with the
    cluster
    """

    def __init__(self, dynamic_client: Optional[DynamicClient] = None):
        """
        Args:
            dynamic_client:  Optional[DynamicClient]
                A preconfigured client. If not given, one is created lazily
                from the in-cluster or kubeconfig configuration.
        """
        self._client = dynamic_client
        self._resource_handles = {}

    @property
    def client(self) -> DynamicClient:
        """Lazy property access to the client"""
        if self._client is None:
            self._client = self._setup_client()
        return self._client

    ## Interface ###############################################################

    @alog.logged_function(log.debug3)
    def get(self, kind, name, namespace=None):
        handle = self._get_resource_handle(kind)
        namespace = namespace if kind.namespaced else None
        with self._translate_errors(kind, name, namespace):
            return handle.get(name=name, namespace=namespace).to_dict()

    @alog.logged_function(log.debug3)
    def create(self, manifest):
        kind = ResourceKind.from_manifest(manifest)
        handle = self._get_resource_handle(kind)
        name, namespace = self._identity(kind, manifest)
        log.debug("Creating [%s/%s] in [%s]", kind, name, namespace)
        with self._translate_errors(kind, name, namespace):
            return handle.create(body=manifest, namespace=namespace).to_dict()

    @alog.logged_function(log.debug3)
    def update(self, manifest):
        kind = ResourceKind.from_manifest(manifest)
        handle = self._get_resource_handle(kind)
        name, namespace = self._identity(kind, manifest)
        log.debug("Updating [%s/%s] in [%s]", kind, name, namespace)
        with self._translate_errors(kind, name, namespace):
            return handle.replace(
                body=manifest, name=name, namespace=namespace
            ).to_dict()

    @alog.logged_function(log.debug3)
    def update_status(self, manifest):
        kind = ResourceKind.from_manifest(manifest)
        handle = self._get_resource_handle(kind)
        name, namespace = self._identity(kind, manifest)
        log.debug("Updating status of [%s/%s] in [%s]", kind, name, namespace)
        with self._translate_errors(kind, name, namespace):
            return handle.status.replace(body=manifest).to_dict()

    @alog.logged_function(log.debug3)
    def delete(self, kind, name, namespace=None, propagation_policy=None):
        handle = self._get_resource_handle(kind)
        namespace = namespace if kind.namespaced else None
        body = None
        if propagation_policy:
            body = {
                "apiVersion": "v1",
                "kind": "DeleteOptions",
                "propagationPolicy": propagation_policy,
            }
        log.debug("Deleting [%s/%s] in [%s]", kind, name, namespace)
        with self._translate_errors(kind, name, namespace):
            handle.delete(name=name, namespace=namespace, body=body)

    @alog.logged_function(log.debug3)
    def list(self, kind, namespace=None):
        handle = self._get_resource_handle(kind)
        namespace = namespace if kind.namespaced else None
        with self._translate_errors(kind, None, namespace):
            return handle.get(namespace=namespace).to_dict().get("items", [])

    ## Implementation Details ##################################################

    @staticmethod
    def _setup_client() -> DynamicClient:
        """Create a DynamicClient that will work based on where the operator is
        running
        """
        # Try in-cluster config
        try:
            log.debug2("Running with in-cluster config")
            kube_config = kubernetes.client.Configuration()
            kubernetes.config.load_incluster_config(client_configuration=kube_config)
            return DynamicClient(kubernetes.client.ApiClient(kube_config))

        # Fall back to out-of-cluster config
        except kubernetes.config.ConfigException:
            log.debug2("Running with out-of-cluster config")
            return DynamicClient(kubernetes.config.new_client_from_config())

    def _get_resource_handle(self, kind: ResourceKind) -> Resource:
        """Get the (cached) openshift resource handle for a kind"""
        handle = self._resource_handles.get(kind)
        if handle is None:
            try:
                handle = self.client.resources.get(
                    kind=kind.kind, api_version=kind.api_version
                )
            except (ResourceNotFoundError, ResourceNotUniqueError) as err:
                raise ClusterError(
                    f"Unable to discover {kind} ({kind.api_version}): {err}"
                ) from err
            self._resource_handles[kind] = handle
        return handle

    @staticmethod
    def _identity(kind: ResourceKind, manifest: dict):
        metadata = manifest.get("metadata", {})
        return metadata.get("name"), (
            metadata.get("namespace") if kind.namespaced else None
        )

    @staticmethod
    @contextmanager
    def _translate_errors(kind: ResourceKind, name: Optional[str], namespace):
        """Map api errors onto the client error types"""
        target = f"{kind} {name or '*'} in {namespace}"
        try:
            yield
        except NotFoundError as err:
            log.debug2("No %s found", target)
            raise ObjectNotFoundError(f"{target} not found") from err
        except ConflictError as err:
            log.debug2("Conflict on %s", target)
            raise ObjectConflictError(f"Conflict on {target}: {err}") from err
        except client.exceptions.ApiException as err:
            log.warning("Unexpected api error on %s: %s", target, err)
            raise ClusterError(f"Api error on {target}: {err}") from err
