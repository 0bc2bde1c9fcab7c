"""
The client module holds the object client implementations used to talk to the
cluster
"""

from .base import ObjectClientBase
from .dry_run_client import DryRunObjectClient
from .openshift_client import OpenshiftObjectClient
from .owner_references import make_owner_reference, set_owner_reference
