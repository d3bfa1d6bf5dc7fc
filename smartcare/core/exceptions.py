class SmartCareError(Exception):
    """Base exception for domain errors raised by the services."""


class NotFoundError(SmartCareError):
    """Raised when a record does not exist."""

    def __init__(self, entity: str, entity_id: object) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class InvalidStateTransition(SmartCareError):
    """Raised when a status change is not reachable from the current status.

    The message is meant to be shown to the acting user as-is.
    """

    def __init__(self, entity: str, entity_id: object, current: str, requested: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.current = current
        self.requested = requested
        super().__init__(self._describe())

    def _describe(self) -> str:
        if self.current.lower() in ("completed", "cancelled"):
            return f"This {self.entity.lower()} is already {self.current.lower()}"
        return (
            f"Cannot change {self.entity.lower()} {self.entity_id} "
            f"from {self.current} to {self.requested}"
        )


class SchedulingConflict(SmartCareError):
    """Raised when a doctor already has an appointment in the requested slot."""

    def __init__(self, doctor_id: int, reason: str = "Doctor is not available at the requested time") -> None:
        self.doctor_id = doctor_id
        self.reason = reason
        super().__init__(reason)


class CheckInRejected(SmartCareError):
    """Raised when an appointment cannot be added to today's queue."""

    def __init__(self, appointment_id: int, reason: str) -> None:
        self.appointment_id = appointment_id
        self.reason = reason
        super().__init__(reason)
