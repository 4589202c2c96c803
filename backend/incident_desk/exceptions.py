"""Exception types raised by the record store, generators and workflows."""


class IncidentDeskError(Exception):
    """Base exception for all incident desk errors."""


class NotFoundError(IncidentDeskError):
    """A record id does not exist in its table."""

    def __init__(self, table: str, record_id: str):
        self.table = table
        self.record_id = record_id
        super().__init__(f"Record not found: {table}.{record_id}")


class UnknownOperationError(IncidentDeskError):
    """Generator dispatch was asked for a name it does not know."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown function: {name}")


class StorageUnavailableError(IncidentDeskError):
    """The durable key-value backing could not be read or written."""

    def __init__(self, backend: str, reason: str):
        self.backend = backend
        self.reason = reason
        super().__init__(f"{backend} storage unavailable: {reason}")
