"""BanWarden exception hierarchy."""


class BanWardenError(Exception):
    """Base class for all BanWarden errors."""


class EventSourceError(BanWardenError):
    """The Security event log subscription could not be established."""


class ReconcileError(BanWardenError):
    """Reconciliation was attempted more than once."""


class StoreNotReadyError(BanWardenError):
    """A ban or unban was requested before the store was reconciled."""
