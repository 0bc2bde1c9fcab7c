"""
Tests for the reconcile handler chain
"""

# Local
from nfd_operator import constants, handlers
from nfd_operator.components import gc, master, scc, topology, worker
from nfd_operator.convergence import ResourceConvergence
from nfd_operator.kinds import ResourceKind
from nfd_operator.reconcile import ReconcileCoordinator
from nfd_operator.test_helpers.helpers import (
    MockObjectClient,
    get_obj,
    setup_instance,
    setup_session,
)


def setup_handler_session(topology_updater=False, **client_kwargs):
    instance = setup_instance(
        spec={"topologyUpdater": topology_updater},
        finalizers=[constants.FINALIZER],
    )
    client = MockObjectClient(resources=[instance], **client_kwargs)
    session = setup_session(instance=instance, client=client)
    return session, ResourceConvergence(session), client


def test_default_handler_order():
    """Make sure the handlers run in their documented order"""
    assert [handler.name for handler in handlers.DEFAULT_HANDLERS] == [
        "scc",
        "master",
        "worker",
        "topology",
        "gc",
        "status",
    ]


def test_topology_handler_disabled():
    """Make sure the topology handler is gated on the instance flag"""
    session, _, client = setup_handler_session()
    topology_handler = [
        handler for handler in handlers.DEFAULT_HANDLERS if handler.name == "topology"
    ][0]
    assert not topology_handler.enabled(session)
    assert topology_handler.enabled(setup_handler_session(topology_updater=True)[0])

    ReconcileCoordinator(client).run_handlers(session)
    for resource in topology.RESOURCES:
        assert not get_obj(client, resource.kind, resource.name, session.namespace)
    assert not get_obj(
        client, ResourceKind.SECURITY_CONTEXT_CONSTRAINTS, constants.TOPOLOGY_NAME
    )


def test_expected_resources_without_topology():
    """Make sure the topology objects are only expected when enabled"""
    session, _, _ = setup_handler_session()
    expected = handlers.expected_resources(session)
    assert scc.TOPOLOGY_SCC not in expected
    assert topology.DAEMON_SET not in expected
    for resource in master.RESOURCES + worker.RESOURCES + gc.RESOURCES:
        assert resource in expected

    session, _, _ = setup_handler_session(topology_updater=True)
    expected = handlers.expected_resources(session)
    assert scc.TOPOLOGY_SCC in expected
    assert topology.DAEMON_SET in expected


def test_handle_sccs_with_topology():
    """Make sure both sccs are applied when the topology updater is on"""
    session, convergence, client = setup_handler_session(topology_updater=True)
    handlers.handle_sccs(session, convergence, session.image)
    kind = ResourceKind.SECURITY_CONTEXT_CONSTRAINTS
    assert get_obj(client, kind, constants.WORKER_NAME)
    assert get_obj(client, kind, constants.TOPOLOGY_NAME)


def test_handle_worker_creates_all():
    """Make sure the worker handler creates every worker object"""
    session, convergence, client = setup_handler_session()
    handlers.handle_worker(session, convergence, session.image)
    for resource in worker.RESOURCES:
        assert get_obj(client, resource.kind, resource.name, session.namespace)


def test_handle_status_persists():
    """Make sure the status handler writes the computed conditions"""
    session, convergence, client = setup_handler_session()
    handlers.handle_status(session, convergence, session.image)
    client.update_status.assert_called_once()
    active = [
        entry["type"] for entry in session.conditions if entry["status"] == "True"
    ]
    assert active == [constants.CONDITION_PROGRESSING]
