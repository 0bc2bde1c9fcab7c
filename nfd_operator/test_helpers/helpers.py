"""
This module holds common helper functions for making testing easy
"""

# Standard
from contextlib import contextmanager
from unittest import mock
import copy
import inspect
import os
import threading
import uuid

# First Party
import aconfig
import alog

# Local
from nfd_operator import constants
from nfd_operator.client import DryRunObjectClient
from nfd_operator.config import library_config as config_detail_dict
from nfd_operator.exceptions import ClusterError, ObjectNotFoundError
from nfd_operator.kinds import ResourceKind
from nfd_operator.session import Session

log = alog.use_channel("TEST")


def configure_logging():
    alog.configure(
        os.environ.get("LOG_LEVEL", "off"),
        os.environ.get("LOG_FILTERS", ""),
        formatter="json"
        if os.environ.get("LOG_JSON", "").lower() == "true"
        else "pretty",
        thread_id=os.environ.get("LOG_THREAD_ID", "").lower() == "true",
    )


configure_logging()

TEST_INSTANCE_NAME = "nfd-instance"
TEST_INSTANCE_UID = "12345678-1234-1234-1234-123456789012"
TEST_NAMESPACE = "test"
SOME_OTHER_NAMESPACE = "somewhere"
TEST_IMAGE = "registry.example.com/nfd:v1"


def setup_instance(
    name=TEST_INSTANCE_NAME,
    namespace=TEST_NAMESPACE,
    uid=TEST_INSTANCE_UID,
    spec=None,
    finalizers=None,
    deleting=False,
    conditions=None,
):
    """Build a NodeFeatureDiscovery instance manifest"""
    spec = copy.deepcopy(spec) if spec is not None else {}
    spec.setdefault("operand", {}).setdefault("image", TEST_IMAGE)
    kind = ResourceKind.NODE_FEATURE_DISCOVERY
    instance = {
        "apiVersion": kind.api_version,
        "kind": kind.kind,
        "metadata": {"name": name, "namespace": namespace, "uid": uid},
        "spec": spec,
    }
    if finalizers is not None:
        instance["metadata"]["finalizers"] = list(finalizers)
    if deleting:
        instance["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"
    if conditions is not None:
        instance["status"] = {constants.CONDITIONS_KEY: copy.deepcopy(conditions)}
    return instance


def setup_session(
    instance=None,
    client=None,
    cancel_event=None,
    **instance_kwargs,
):
    """Build a session for an instance that is stored in the (mock) client.
    The session carries the stored copy so that writes see the current
    resourceVersion.
    """
    instance = instance or setup_instance(**instance_kwargs)
    if client is None:
        client = MockObjectClient(resources=[instance])
    metadata = instance["metadata"]
    stored = get_instance(client, metadata["name"], metadata["namespace"])
    return Session(
        reconciliation_id=str(uuid.uuid4()),
        cr_manifest=stored,
        client=client,
        cancel_event=cancel_event or threading.Event(),
    )


def get_instance(client, name=TEST_INSTANCE_NAME, namespace=TEST_NAMESPACE):
    """Fetch the stored instance without touching the client mocks"""
    return DryRunObjectClient.get(
        client, ResourceKind.NODE_FEATURE_DISCOVERY, name, namespace
    )


def get_obj(client, kind, name, namespace=None):
    """Fetch a stored object or None without touching the client mocks"""
    try:
        return DryRunObjectClient.get(client, kind, name, namespace)
    except ObjectNotFoundError:
        return None


def active_condition(manifest):
    """Get the type of the single True condition of an instance"""
    active = [
        condition["type"]
        for condition in (manifest.get("status") or {}).get(
            constants.CONDITIONS_KEY, []
        )
        if condition["status"] == "True"
    ]
    assert len(active) == 1, f"Expected one active condition, got {active}"
    return active[0]


@contextmanager
def library_config(**config_overrides):
    """This context manager sets library config values temporarily and reverts
    them on completion. Dict values are merged into nested sections.
    """
    # Override the configs and hang onto the old values
    old_vals = {}
    for key, val in config_overrides.items():
        if key in config_detail_dict:
            old_vals[key] = config_detail_dict[key]
        if isinstance(val, dict) and isinstance(old_vals.get(key), dict):
            merged = copy.deepcopy(dict(old_vals[key]))
            merged.update(val)
            val = aconfig.Config(merged, override_env_vars=False)
        config_detail_dict[key] = val

    # Yield to the context
    try:
        yield

    # Revert to the old values
    finally:
        for key in config_overrides:
            if key in old_vals:
                config_detail_dict[key] = old_vals[key]
            else:
                del config_detail_dict[key]


def get_failable_method(fail_flag, method, failure_exception=ClusterError):
    log.debug4(
        "Setting up failable mock of [%s] with fail flag: %s", str(method), fail_flag
    )

    def failable_method(*args, **kwargs):
        log.debug4(
            "Running failable mock of [%s] with fail flag: %s", str(method), fail_flag
        )
        if isinstance(fail_flag, Exception) or (
            inspect.isclass(fail_flag) and issubclass(fail_flag, Exception)
        ):
            log.debug4("Raising in failable mock")
            raise fail_flag
        if callable(fail_flag):
            log.debug4("Calling callable fail flag")
            res = fail_flag()
            if res is not None:
                return res
        elif fail_flag == "assert":
            log.debug4("Asserting in failable mock")
            raise AssertionError(f"You told me to fail {method}!")
        elif fail_flag:
            log.debug4("Raising %s", failure_exception)
            raise failure_exception(f"You told me to fail {method}!")
        log.debug4("Passing through (%s, **%s)", args, kwargs)
        res = method(*args, **kwargs)
        log.debug4("Passthrough res: %s", res)
        return res

    return failable_method


class FailOnce:
    """Helper callable that will fail once on the N'th call"""

    def __init__(self, fail_val, fail_number=1):
        self.call_count = 0
        self.fail_number = fail_number
        self.fail_val = fail_val

    def __call__(self, *_, **__):
        self.call_count += 1
        if self.call_count == self.fail_number:
            log.debug("Failing on call %d with %s", self.call_count, self.fail_val)
            if isinstance(self.fail_val, type) and issubclass(self.fail_val, Exception):
                raise self.fail_val("Raising!")
            if isinstance(self.fail_val, Exception):
                raise self.fail_val
            return self.fail_val
        log.debug("Not failing on call %d", self.call_count)
        return


class MockObjectClient(DryRunObjectClient):
    """The MockObjectClient wraps a standard DryRunObjectClient and adds
    configuration options to simulate failures in each of its operations.
    """

    def __init__(
        self,
        get_fail=False,
        create_fail=False,
        update_fail=False,
        update_status_fail=False,
        delete_fail=False,
        list_fail=False,
        auto_enable=True,
        **kwargs,
    ):
        """This client can be configured to have various failure cases and
        keeps the state of the cluster in a local dict. Every operation is a
        mock.Mock so calls can be inspected.
        """
        super().__init__(**kwargs)
        self.get_fail = get_fail
        self.create_fail = create_fail
        self.update_fail = update_fail
        self.update_status_fail = update_status_fail
        self.delete_fail = delete_fail
        self.list_fail = list_fail

        # If auto-enabling, turn the mocks on now
        if auto_enable:
            self.enable_mocks()

    #######################
    ## Helpers for Tests ##
    #######################

    def enable_mocks(self):
        """Turn the mocks on"""
        for operation in ["get", "create", "update", "update_status", "delete", "list"]:
            setattr(
                self,
                operation,
                mock.Mock(
                    side_effect=get_failable_method(
                        getattr(self, f"{operation}_fail"),
                        getattr(super(), operation),
                    )
                ),
            )

    def has_obj(self, kind, name, namespace=None):
        return get_obj(self, kind, name, namespace) is not None
