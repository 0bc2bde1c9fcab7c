"""
Tests for the SharedResourceArbiter
"""

# Third Party
import pytest

# Local
from nfd_operator.exceptions import ResourceOperationError
from nfd_operator.shared import SharedResourceArbiter
from nfd_operator.test_helpers.helpers import (
    SOME_OTHER_NAMESPACE,
    TEST_NAMESPACE,
    MockObjectClient,
    setup_instance,
    setup_session,
)


def make_arbiter(*others, **client_kwargs):
    instance = setup_instance()
    client = MockObjectClient(resources=[instance, *others], **client_kwargs)
    return SharedResourceArbiter(setup_session(instance=instance, client=client))


def test_only_instance():
    """Make sure a lone instance does not see shared use"""
    assert not make_arbiter().other_instances_exist()


def test_live_instance_elsewhere():
    """Make sure a live instance in another namespace keeps shared objects"""
    other = setup_instance(name="other", namespace=SOME_OTHER_NAMESPACE)
    assert make_arbiter(other).other_instances_exist()


def test_terminating_instance_elsewhere():
    """Make sure a terminating instance elsewhere does not count"""
    other = setup_instance(
        name="other", namespace=SOME_OTHER_NAMESPACE, deleting=True, finalizers=["x"]
    )
    assert not make_arbiter(other).other_instances_exist()


def test_instance_in_same_namespace_ignored():
    """Make sure instances in the same namespace do not count"""
    other = setup_instance(name="sibling", namespace=TEST_NAMESPACE)
    assert not make_arbiter(other).other_instances_exist()


def test_list_failure():
    """Make sure a failed list is raised instead of guessed"""
    arbiter = make_arbiter(list_fail=True)
    with pytest.raises(ResourceOperationError):
        arbiter.other_instances_exist()
