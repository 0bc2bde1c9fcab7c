"""
This module implements custom exceptions
"""

# Standard
from typing import Optional

## Base Error ##################################################################


class NfdOperatorError(Exception):
    """Base class for all nfd_operator exceptions"""

    def __init__(self, message: str, is_fatal_error: bool):
        """Construct with a flag indicating whether this is a fatal error. This
        will be a static property of all children.
        """
        super().__init__(message)
        self._is_fatal_error = is_fatal_error

    @property
    def is_fatal_error(self):
        """Property indicating whether or not this error requires operator
        intervention before a subsequent reconciliation can succeed
        """
        return self._is_fatal_error


## Fatal Errors ################################################################


class NfdFatalError(NfdOperatorError):
    """An NfdFatalError is one that indicates an unexpected failure that is
    not expected to resolve on its own. The reconcile is still retried with
    backoff, but the failure is reported as Degraded.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=True)


class ConfigError(NfdFatalError):
    """Exception caused by invalid library config or an unsupported manifest"""


class ClusterError(NfdFatalError):
    """Exception caused when a cluster operation fails in an unexpected way"""


class OwnerReferenceError(NfdFatalError):
    """Exception raised when an owner reference cannot be placed on a managed
    object
    """


class PruneJobFailedError(NfdFatalError):
    """Exception raised when the prune job has reported a failed pod. The
    finalizer is retained until the job is remediated.
    """


## Expected Errors #############################################################


class NfdExpectedError(NfdOperatorError):
    """An NfdExpectedError is one that indicates an expected failure condition
    that should cause a reconciliation to terminate, but is expected to resolve
    in a subsequent reconciliation.
    """

    def __init__(self, message: str = ""):
        super().__init__(message=message, is_fatal_error=False)


class ObjectNotFoundError(NfdExpectedError):
    """The requested object does not exist in the cluster"""


class ObjectConflictError(NfdExpectedError):
    """An update was issued against a stale resourceVersion"""


class DeleteTimeoutError(NfdExpectedError):
    """A delete did not succeed within its bounded retry window"""


class AmbiguousConditionError(NfdExpectedError):
    """A resource reported zero or multiple active status classifications"""


class ResourceOperationError(NfdOperatorError):
    """Wrapper adding resource identity context to a failed cluster operation.
    Fatality is inherited from the wrapped cause.
    """

    def __init__(
        self,
        operation: str,
        kind: str,
        namespace: Optional[str],
        name: str,
        cause: Exception,
    ):
        self.operation = operation
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.cause = cause
        location = f"{namespace}/{name}" if namespace else name
        super().__init__(
            message=f"failed to {operation} {kind} {location}: {cause}",
            is_fatal_error=getattr(cause, "is_fatal_error", True),
        )


## Assertions ##################################################################


def assert_config(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ConfigError. This should be
    used when validating library config or instance fields.
    """
    if not condition:
        raise ConfigError(message)


def assert_cluster(condition: bool, message: str = ""):
    """Replacement for assert() which will throw a ClusterError. This should
    be used when an operation in the cluster is expected to have succeeded.
    """
    if not condition:
        raise ClusterError(message)
