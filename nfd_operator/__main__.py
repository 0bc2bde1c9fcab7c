#!/usr/bin/env python
"""
The main module provides the executable entrypoint for the NodeFeatureDiscovery
operator
"""

# Standard
from typing import Dict, List, Optional
import argparse
import os
import signal

# Third Party
import yaml

# First Party
import aconfig
import alog

# Local
from . import config
from .client import DryRunObjectClient, OpenshiftObjectClient
from .config import library_config
from .exceptions import assert_config
from .log_format import NfdJsonFormatter
from .runner import ReconcileRunner

## Constants ###################################################################

log = alog.use_channel("MAIN")

## Helpers #####################################################################


def add_library_config_args(parser, config_obj=None, path=None) -> Dict[str, list]:
    """Automatically add args for all elements of the library config"""
    path = path or []
    setters = {}
    config_obj = config_obj or library_config
    for key, val in config_obj.items():
        sub_path = path + [key]

        # Nested sections are flattened to dotted flags
        if isinstance(val, aconfig.AttributeAccessDict):
            setters.update(
                add_library_config_args(parser, config_obj=val, path=sub_path)
            )
            continue

        arg_name = ".".join(sub_path)
        dest_name = "_".join(sub_path)
        kwargs = {
            "default": val,
            "dest": dest_name,
            "help": f"Library config override for {arg_name}",
        }
        if isinstance(val, bool):
            kwargs["action"] = "store_true"
        elif val is not None:
            kwargs["type"] = type(val)
        parser.add_argument(f"--{arg_name}", **kwargs)
        setters[dest_name] = sub_path
    return setters


def update_library_config(args: argparse.Namespace, setters: Dict[str, list]):
    """Update the library config values based on the parsed arguments"""
    for dest_name, config_path in setters.items():
        config_obj = library_config
        for part in config_path[:-1]:
            config_obj = config_obj[part]
        config_obj[config_path[-1]] = getattr(args, dest_name)


def parse_resources(cr_path: Optional[str], resource_dir: Optional[str]) -> List[dict]:
    """Read the dry run objects that should exist before the operator starts"""
    resources = []
    if resource_dir is not None:
        for fname in sorted(os.listdir(resource_dir)):
            if fname.endswith(".yaml") or fname.endswith(".yml"):
                resource_path = os.path.join(resource_dir, fname)
                log.debug3("Reading resource file [%s]", resource_path)
                with open(resource_path, encoding="utf-8") as handle:
                    resources.extend(doc for doc in yaml.safe_load_all(handle) if doc)
    if cr_path is not None:
        log.info("Applying CR [%s]", cr_path)
        with open(cr_path, encoding="utf-8") as handle:
            cr_manifest = yaml.safe_load(handle)
        cr_manifest.setdefault("metadata", {}).setdefault("namespace", "default")
        log.debug3(cr_manifest)
        resources.append(cr_manifest)
    return resources


## Main ########################################################################


def main():
    """Run the operator until it is signalled to stop"""
    parser = argparse.ArgumentParser(description=__doc__)
    runtime_args = parser.add_argument_group("Runtime Configuration")
    runtime_args.add_argument(
        "--once",
        action="store_true",
        default=False,
        help="Reconcile every instance once and exit",
    )
    runtime_args.add_argument(
        "--cr",
        "-c",
        default=None,
        help="(dry run) An instance manifest yaml to apply directly",
    )
    runtime_args.add_argument(
        "--resource_dir",
        "-r",
        default=None,
        help="(dry run) Path to a directory of yaml files that should exist in "
        "the cluster",
    )
    library_args = parser.add_argument_group("Library Configuration")
    library_config_setters = add_library_config_args(library_args)
    args = parser.parse_args()

    # Provide overrides to the library configs
    update_library_config(args, library_config_setters)

    # Reconfigure logging
    alog.configure(
        default_level=config.log_level,
        filters=config.log_filters,
        formatter=NfdJsonFormatter() if config.log_json else "pretty",
        thread_id=config.log_thread_id,
    )

    # Validate args
    assert_config(
        args.cr is None or (config.dry_run and os.path.isfile(args.cr)),
        "Can only specify --cr with dry run and it must point to a valid file",
    )
    assert_config(
        args.resource_dir is None
        or (config.dry_run and os.path.isdir(args.resource_dir)),
        "Can only specify --resource_dir with dry run and it must point to a "
        "valid directory",
    )

    if config.dry_run:
        log.info("Running DRY RUN")
        client = DryRunObjectClient(
            resources=parse_resources(args.cr, args.resource_dir),
            simulate_workload_readiness=True,
        )
    else:
        client = OpenshiftObjectClient()

    runner = ReconcileRunner(client)

    # Register the signal handler to stop the runner
    def do_stop(*_, **__):  # pragma: no cover
        runner.stop()

    signal.signal(signal.SIGINT, do_stop)
    signal.signal(signal.SIGTERM, do_stop)

    log.info("Starting reconcile runner")
    if args.once:
        runner.run_once()
        runner.stop()
    else:
        runner.run()

    # All done!
    log.info("SHUTTING DOWN")


if __name__ == "__main__":  # pragma: no cover
    main()
