"""
This module just loads config at import time and does the initial log config
"""

# Standard
import os

# First Party
import aconfig
import alog

# Local
from ..exceptions import assert_config

# Read the library config, allowing env overrides
library_config = aconfig.Config.from_yaml(
    os.path.join(os.path.dirname(__file__), "config.yaml"),
    override_env_vars=True,
)


def validate_config(cfg: aconfig.Config):
    """Make sure the timing and sizing values are usable

    Args:
        cfg:  aconfig.Config
            The config to validate
    """
    for key in [
        "cleanup_requeue_seconds",
        "requeue_after_seconds",
        "error_requeue_seconds",
    ]:
        assert_config(
            float(cfg[key]) >= 0, f"Library config {key} must be non-negative"
        )
    assert_config(
        float(cfg.delete.retry_interval_seconds) > 0,
        "Library config delete.retry_interval_seconds must be positive",
    )
    assert_config(
        float(cfg.delete.timeout_seconds) >= 0,
        "Library config delete.timeout_seconds must be non-negative",
    )
    assert_config(
        int(cfg.runner.max_concurrent_reconciles) > 0,
        "Library config runner.max_concurrent_reconciles must be positive",
    )
    assert_config(
        0 < int(cfg.operand.default_service_port) < 65536,
        "Library config operand.default_service_port must be a valid port",
    )


# Validate the loaded config values
validate_config(library_config)

# Do initial alog configuration
alog.configure(
    default_level=library_config.log_level,
    filters=library_config.log_filters,
    formatter="json" if library_config.log_json else "pretty",
    thread_id=library_config.log_thread_id,
)
