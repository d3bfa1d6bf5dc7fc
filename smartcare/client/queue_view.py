"""Client-side view model of one doctor's queue.

Mutations are applied to the local list first and sent to the API after.
When the call fails, or the awaiting task is cancelled, the entries that
mutation touched are put back and the caller gets a Failure with a message
for the user. Changes made by other mutations in the meantime are kept.
"""
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, List, Optional, Tuple, TypeVar

from ..core.config import settings
from ..core.exceptions import InvalidStateTransition
from ..core.lifecycle import QueuePriority, QueueStatus, check_queue_transition, select_next
from ..schemas.queue import CheckInRequest, QueueEntryResponse, QueueResponse
from .api_client import ApiClient, ApiError, NetworkFailure
from .result import Failure, Result, Success, failure_from

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (entry before, entry after); None on one side means added or removed
Change = Tuple[Optional[QueueEntryResponse], Optional[QueueEntryResponse]]

QUEUE_EMPTY_NOTICE = "No patients waiting in the queue"


class QueueView:
    def __init__(self, client: ApiClient, doctor_id: int) -> None:
        self.client = client
        self.doctor_id = doctor_id
        self.entries: List[QueueEntryResponse] = []
        self.notice: Optional[str] = None

    @property
    def waiting_count(self) -> int:
        return sum(1 for e in self.entries if e.status == QueueStatus.WAITING)

    @property
    def in_progress(self) -> Optional[QueueEntryResponse]:
        return next((e for e in self.entries if e.status == QueueStatus.IN_PROGRESS), None)

    @property
    def next_patient(self) -> Optional[QueueEntryResponse]:
        return select_next(self.entries)

    def dismiss_notice(self) -> None:
        self.notice = None

    async def refresh(self) -> Result[QueueResponse]:
        """Reload the queue from the server; the current list is kept on failure."""
        try:
            queue = await self.client.fetch_doctor_queue(self.doctor_id)
        except ApiError as exc:
            return self._fail(exc)
        self.entries = list(queue.queue_items)
        return Success(queue)

    async def call_next(self) -> Result[Optional[QueueEntryResponse]]:
        """Call the next patient. Success(None) means the queue is empty."""
        selected = select_next(self.entries)
        changes = _promotion_changes(self.entries, selected) if selected else []

        try:
            entry = await self._mutate(changes, self.client.call_next_patient(self.doctor_id))
        except ApiError as exc:
            return self._fail(exc)

        # The server's pick wins over the local guess
        self._revert(changes)
        if entry is None:
            self.notice = QUEUE_EMPTY_NOTICE
            return Success(None)

        self.entries = _promoted(self.entries, entry)
        return Success(entry)

    async def complete(self, entry_id: int) -> Result[QueueEntryResponse]:
        return await self._finish(entry_id, QueueStatus.COMPLETED)

    async def cancel(self, entry_id: int) -> Result[QueueEntryResponse]:
        return await self._finish(entry_id, QueueStatus.CANCELLED)

    async def check_in(self, request: CheckInRequest) -> Result[QueueEntryResponse]:
        """Add a walk-in. The provisional number is replaced by the server's."""
        now = datetime.utcnow()
        provisional = QueueEntryResponse(
            doctor_id=self.doctor_id,
            patient_id=request.patient_id,
            appointment_id=request.appointment_id,
            patient_name=request.patient_name,
            patient_phone=request.patient_phone,
            reason=request.reason,
            notes=request.notes,
            status=QueueStatus.WAITING,
            priority=request.priority or QueuePriority.NORMAL,
            queue_number=len(self.entries) + 1,
            estimated_wait=settings.QUEUE_DEFAULT_ESTIMATED_WAIT,
            queue_date=now.date(),
            check_in_time=now,
        )

        changes = [(None, provisional)]
        try:
            created = await self._mutate(changes, self.client.check_in(self.doctor_id, request))
        except ApiError as exc:
            return self._fail(exc)

        if _index_of(self.entries, provisional) is not None:
            self._apply([(provisional, created)])
        elif all(e.id != created.id for e in self.entries):
            self._apply([(None, created)])
        return Success(created)

    async def _finish(self, entry_id: int, status: QueueStatus) -> Result[QueueEntryResponse]:
        entry = self._find(entry_id)
        if entry is None:
            self.notice = "This patient is no longer in the queue"
            return Failure(error=LookupError(entry_id), message=self.notice)

        try:
            check_queue_transition(entry.status, status, entry_id)
        except InvalidStateTransition as exc:
            self.notice = str(exc)
            return Failure(error=exc, message=self.notice)

        changes = [(entry, entry.model_copy(update={"status": status}))]
        call = (
            self.client.complete_entry(entry_id) if status == QueueStatus.COMPLETED
            else self.client.cancel_entry(entry_id)
        )

        try:
            updated = await self._mutate(changes, call)
        except ApiError as exc:
            return self._fail(exc)

        self.entries = [updated if e.id == entry_id else e for e in self.entries]
        return Success(updated)

    async def _mutate(self, changes: List[Change], call: Awaitable[T]) -> T:
        self._apply(changes)
        try:
            return await call
        except (ApiError, asyncio.CancelledError):
            self._revert(changes)
            logger.info(f"Reverted optimistic queue update for doctor {self.doctor_id}")
            raise

    def _apply(self, changes: List[Change]) -> None:
        entries = list(self.entries)
        for before, after in changes:
            index = None if before is None else _index_of(entries, before)
            if index is None:
                if before is None and after is not None:
                    entries.append(after)
            elif after is None:
                del entries[index]
            else:
                entries[index] = after
        self.entries = entries

    def _revert(self, changes: List[Change]) -> None:
        # Entries replaced since (by a refresh or another mutation) are left alone
        self._apply([(after, before) for before, after in reversed(changes) if after is not None])

    def _find(self, entry_id: int) -> Optional[QueueEntryResponse]:
        return next((e for e in self.entries if e.id == entry_id), None)

    def _fail(self, exc: ApiError) -> Failure:
        message = exc.message
        if isinstance(exc, NetworkFailure):
            message = f"{message}. Please try again."
        self.notice = message
        return failure_from(exc, message)


def _index_of(entries: List[QueueEntryResponse], target: QueueEntryResponse) -> Optional[int]:
    return next((i for i, e in enumerate(entries) if e is target), None)


def _same_entry(entry: QueueEntryResponse, other: QueueEntryResponse) -> bool:
    # Provisional entries have no id yet
    if other.id is None:
        return entry is other
    return entry.id == other.id


def _promotion_changes(entries: List[QueueEntryResponse], selected: QueueEntryResponse) -> List[Change]:
    changes = []
    for entry in entries:
        if entry is selected:
            changes.append((entry, entry.model_copy(update={"status": QueueStatus.IN_PROGRESS})))
        elif entry.status == QueueStatus.IN_PROGRESS:
            changes.append((entry, entry.model_copy(update={"status": QueueStatus.WAITING})))
    return changes


def _promoted(entries: List[QueueEntryResponse], selected: QueueEntryResponse) -> List[QueueEntryResponse]:
    """Entries with `selected` in progress and any other in-progress entry waiting."""
    promoted = selected.model_copy(update={"status": QueueStatus.IN_PROGRESS})
    result = []
    found = False
    for entry in entries:
        if _same_entry(entry, selected):
            result.append(promoted)
            found = True
        elif entry.status == QueueStatus.IN_PROGRESS:
            result.append(entry.model_copy(update={"status": QueueStatus.WAITING}))
        else:
            result.append(entry)
    if not found:
        result.append(promoted)
    return result
