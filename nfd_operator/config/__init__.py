"""
Base operator config module. All values can be overridden from the environment
(ie REQUEUE_AFTER_SECONDS=30 or DELETE_TIMEOUT_SECONDS=60).
"""

# Local
from .config import library_config


# Define __getattr__ on this module to delegate to the library config.
def __getattr__(name):
    if name in library_config or hasattr({}, name):
        return getattr(library_config, name)
    raise AttributeError(f"No such config attribute {name}")


# Only expose the library config keys
__all__ = list(library_config.keys())
