"""
Tests for the __main__.py entrypoint to the library as an executable
"""

# Standard
from unittest import mock
import os
import sys
import tempfile

# Third Party
import pytest
import yaml

# Local
from nfd_operator import constants
from nfd_operator.__main__ import main
from nfd_operator.client import DryRunObjectClient
from nfd_operator.exceptions import ConfigError
from nfd_operator.test_helpers.helpers import (
    configure_logging,
    get_instance,
    library_config,
    setup_instance,
)

## Helpers #####################################################################


def run_main(*args):
    """Run main with the given args, capturing the dry run client"""
    clients = []

    def make_client(**kwargs):
        clients.append(DryRunObjectClient(**kwargs))
        return clients[-1]

    with mock.patch.object(sys, "argv", ["nfd_operator", *args]), mock.patch(
        "nfd_operator.__main__.DryRunObjectClient", side_effect=make_client
    ), mock.patch("signal.signal"), library_config(dry_run=False):
        try:
            main()
        finally:
            configure_logging()
    return clients


## Tests #######################################################################


def test_main_dry_run_once():
    """Make sure a dry run with an instance reconciles it once"""
    with tempfile.TemporaryDirectory() as workdir:
        cr_path = os.path.join(workdir, "cr.yaml")
        with open(cr_path, "w", encoding="utf-8") as handle:
            yaml.safe_dump(setup_instance(), handle)
        clients = run_main("--dry_run", "--once", "--cr", cr_path)

    assert len(clients) == 1
    assert clients[0].simulate_workload_readiness
    instance = get_instance(clients[0])
    assert instance["metadata"]["finalizers"] == [constants.FINALIZER]


def test_main_resource_dir():
    """Make sure every yaml in the resource dir is preloaded"""
    with tempfile.TemporaryDirectory() as workdir:
        with open(os.path.join(workdir, "a.yaml"), "w", encoding="utf-8") as handle:
            yaml.safe_dump_all(
                [setup_instance(name="one"), setup_instance(name="two")], handle
            )
        ignored_path = os.path.join(workdir, "ignored.txt")
        with open(ignored_path, "w", encoding="utf-8") as handle:
            handle.write("not yaml")
        clients = run_main("--dry_run", "--once", "--resource_dir", workdir)

    assert get_instance(clients[0], name="one")
    assert get_instance(clients[0], name="two")


def test_main_cr_requires_dry_run():
    """Make sure --cr is rejected outside of dry run"""
    with pytest.raises(ConfigError):
        run_main("--once", "--cr", "/does/not/exist.yaml")
