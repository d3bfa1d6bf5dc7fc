import asyncio
import logging
from typing import Any, List, Optional

import httpx

from ..core.config import settings
from ..core.lifecycle import AppointmentStatus
from ..core.security import UserRole
from ..schemas.appointment import AppointmentCreate, AppointmentResponse
from ..schemas.queue import CallNextResponse, CheckInRequest, QueueEntryResponse, QueueResponse

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base exception for errors returned by the clinic API."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NetworkFailure(ApiError):
    """The API could not be reached or failed on its side; safe to retry later."""


class UnauthenticatedError(ApiError):
    """No valid session; the user has to sign in again."""


class ForbiddenError(ApiError):
    """The session's role or approval state does not allow the call."""


class NotFoundApiError(ApiError):
    """The requested record does not exist."""


class InvalidStateTransitionError(ApiError):
    """The requested status is not reachable from the record's current status."""

    def __init__(
        self,
        message: str,
        current: Optional[str] = None,
        requested: Optional[str] = None,
    ) -> None:
        self.current = current
        self.requested = requested
        super().__init__(message, status_code=409)


class ApiClient:
    """Async client for the clinic API.

    Safe (GET) requests are retried on transport errors and 5xx responses;
    mutations are never retried so a state change is applied at most once.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff: float = 0.2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.max_retries = settings.API_MAX_RETRIES if max_retries is None else max_retries
        self.backoff = backoff
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            headers=headers,
            timeout=timeout or settings.API_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    # Appointments

    async def fetch_appointments(
        self, user_id: Optional[int] = None, role: Optional[UserRole] = None
    ) -> List[AppointmentResponse]:
        params = {}
        if user_id is not None:
            params["user_id"] = user_id
        if role is not None:
            params["role"] = UserRole(role).value
        data = await self._request("GET", "/appointments", params=params)
        return [AppointmentResponse.model_validate(item) for item in data]

    async def create_appointment(self, draft: AppointmentCreate) -> AppointmentResponse:
        data = await self._request("POST", "/appointments", json=draft.model_dump(mode="json"))
        return AppointmentResponse.model_validate(data)

    async def update_appointment_status(
        self, appointment_id: int, status: AppointmentStatus
    ) -> AppointmentResponse:
        data = await self._request(
            "PATCH",
            f"/appointments/{appointment_id}/status",
            json={"status": AppointmentStatus(status).value},
        )
        return AppointmentResponse.model_validate(data)

    async def complete_appointment(self, appointment_id: int) -> AppointmentResponse:
        data = await self._request("POST", f"/queue/appointment/{appointment_id}/complete")
        return AppointmentResponse.model_validate(data)

    async def cancel_appointment(self, appointment_id: int) -> AppointmentResponse:
        data = await self._request("POST", f"/queue/appointment/{appointment_id}/cancel")
        return AppointmentResponse.model_validate(data)

    # Queue

    async def fetch_doctor_queue(self, doctor_id: int) -> QueueResponse:
        data = await self._request("GET", f"/queue/doctor/{doctor_id}")
        return QueueResponse.model_validate(data)

    async def call_next_patient(self, doctor_id: int) -> Optional[QueueEntryResponse]:
        """Promoted entry, or None when nobody is waiting."""
        data = await self._request("POST", f"/queue/doctor/{doctor_id}/call-next")
        result = CallNextResponse.model_validate(data)
        return None if result.queue_empty else result.entry

    async def check_in(self, doctor_id: int, request: CheckInRequest) -> QueueEntryResponse:
        data = await self._request(
            "POST", f"/queue/doctor/{doctor_id}/check-in", json=request.model_dump(mode="json")
        )
        return QueueEntryResponse.model_validate(data)

    async def start_visit(self, entry_id: int) -> QueueEntryResponse:
        data = await self._request("POST", f"/queue/entries/{entry_id}/start")
        return QueueEntryResponse.model_validate(data)

    async def complete_entry(self, entry_id: int) -> QueueEntryResponse:
        data = await self._request("POST", f"/queue/entries/{entry_id}/complete")
        return QueueEntryResponse.model_validate(data)

    async def cancel_entry(self, entry_id: int) -> QueueEntryResponse:
        data = await self._request("POST", f"/queue/entries/{entry_id}/cancel")
        return QueueEntryResponse.model_validate(data)

    # Transport

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        retries = self.max_retries if method == "GET" else 0
        attempt = 0
        while True:
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.TransportError as exc:
                if attempt < retries:
                    attempt += 1
                    logger.warning(f"{method} {path} failed ({exc!r}); retry {attempt}/{retries}")
                    await asyncio.sleep(self.backoff * attempt)
                    continue
                logger.warning(f"{method} {path} failed: {exc!r}")
                raise NetworkFailure(f"Could not reach the server: {exc}") from exc

            if response.status_code >= 500 and attempt < retries:
                attempt += 1
                logger.warning(f"{method} {path} returned {response.status_code}; retry {attempt}/{retries}")
                await asyncio.sleep(self.backoff * attempt)
                continue

            return self._handle_response(method, path, response)

    def _handle_response(self, method: str, path: str, response: httpx.Response) -> Any:
        if response.is_success:
            return response.json() if response.content else None

        body = _json_or_empty(response)
        message = body.get("message") or body.get("detail") or response.reason_phrase
        status_code = response.status_code
        logger.warning(f"{method} {path} returned {status_code}: {message}")

        if status_code >= 500:
            raise NetworkFailure(f"Server error: {message}", status_code)
        if status_code == 401:
            raise UnauthenticatedError(message, status_code)
        if status_code == 403:
            raise ForbiddenError(message, status_code)
        if status_code == 404:
            raise NotFoundApiError(message, status_code)
        if status_code == 409 and body.get("error") == "Invalid State Transition":
            raise InvalidStateTransitionError(
                message, body.get("current_status"), body.get("requested_status")
            )
        raise ApiError(str(message), status_code)


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
