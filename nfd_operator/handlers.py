"""
The ordered chain of handlers run on every reconcile of a live instance.
Every handler is safe to re-run from scratch.
"""

# Standard
from dataclasses import dataclass
from typing import Callable, List

# First Party
import alog

# Local
from .components import gc, master, scc, topology, worker
from .convergence import ManagedResource, ResourceConvergence
from .session import Session
from .status import ConditionAggregator

log = alog.use_channel("HANDLR")

# Signature of a handler: (session, convergence, image)
HandlerFn = Callable[[Session, ResourceConvergence, str], None]


def _always(_: Session) -> bool:
    return True


def _topology_enabled(session: Session) -> bool:
    return session.topology_updater_enabled


@dataclass(frozen=True)
class Handler:
    """A named step of the reconcile chain"""

    name: str
    run: HandlerFn
    enabled: Callable[[Session], bool] = _always


## Resource Sets ###############################################################


def scc_resources(session: Session) -> List[ManagedResource]:
    resources = [scc.WORKER_SCC]
    if session.topology_updater_enabled:
        resources.append(scc.TOPOLOGY_SCC)
    return resources


def topology_resources(session: Session) -> List[ManagedResource]:
    if not session.topology_updater_enabled:
        return []
    return list(topology.RESOURCES)


def expected_resources(session: Session) -> List[ManagedResource]:
    """Every object that should exist for a live instance, in apply order"""
    return (
        scc_resources(session)
        + list(master.RESOURCES)
        + list(worker.RESOURCES)
        + topology_resources(session)
        + list(gc.RESOURCES)
    )


## Handlers ####################################################################


def _apply_all(
    convergence: ResourceConvergence, resources: List[ManagedResource], image: str
):
    for resource in resources:
        convergence.apply(resource, image)


def handle_sccs(session: Session, convergence: ResourceConvergence, image: str):
    _apply_all(convergence, scc_resources(session), image)


def handle_master(_session: Session, convergence: ResourceConvergence, image: str):
    _apply_all(convergence, master.RESOURCES, image)


def handle_worker(_session: Session, convergence: ResourceConvergence, image: str):
    _apply_all(convergence, worker.RESOURCES, image)


def handle_topology(_session: Session, convergence: ResourceConvergence, image: str):
    _apply_all(convergence, topology.RESOURCES, image)


def handle_gc(_session: Session, convergence: ResourceConvergence, image: str):
    _apply_all(convergence, gc.RESOURCES, image)


def handle_status(session: Session, _convergence: ResourceConvergence, _image: str):
    aggregator = ConditionAggregator(session)
    aggregator.persist(aggregator.compute(expected_resources(session)))


DEFAULT_HANDLERS = [
    Handler("scc", handle_sccs),
    Handler("master", handle_master),
    Handler("worker", handle_worker),
    Handler("topology", handle_topology, enabled=_topology_enabled),
    Handler("gc", handle_gc),
    Handler("status", handle_status),
]
