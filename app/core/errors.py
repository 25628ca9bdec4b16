class AuditError(Exception):
    """Base class for failures raised by the audit layer."""


class StorageError(AuditError):
    """The audit store could not persist or read records."""


class PolicyConflictError(AuditError):
    """An operation already has an audit policy registered."""
