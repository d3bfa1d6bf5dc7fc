from datetime import datetime, timedelta

import pytest

from smartcare.core.security import ApprovalStatus, UserRole


def today(offset_days=0):
    return (datetime.utcnow().date() + timedelta(days=offset_days)).isoformat()


@pytest.fixture
def desk(make_account):
    return {
        "doctor": make_account(UserRole.DOCTOR),
        "other_doctor": make_account(UserRole.DOCTOR),
        "receptionist": make_account(UserRole.RECEPTIONIST),
        "patient": make_account(UserRole.PATIENT),
    }


def check_in(client, desk, name, priority="normal", doctor="doctor", **extra):
    payload = {"patient_name": name, "reason": "Consultation", "priority": priority}
    payload.update(extra)
    response = client.post(
        f"/api/v1/queue/doctor/{desk[doctor].profile_id}/check-in",
        json=payload,
        headers=desk["receptionist"].headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def book(client, desk, appointment_date=None, start_time="09:00:00", end_time="09:30:00"):
    response = client.post(
        "/api/v1/appointments",
        json={
            "patient_id": desk["patient"].profile_id,
            "doctor_id": desk["doctor"].profile_id,
            "appointment_date": appointment_date or today(),
            "start_time": start_time,
            "end_time": end_time,
            "reason": "Follow-up",
            "is_online": False,
        },
        headers=desk["receptionist"].headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def check_in_appointment(client, desk, appointment_id):
    return client.post(
        f"/api/v1/queue/doctor/{desk['doctor'].profile_id}/check-in",
        json={"patient_name": "Patient", "reason": "Follow-up", "appointment_id": appointment_id},
        headers=desk["receptionist"].headers,
    )


def get_queue(client, desk, doctor="doctor"):
    response = client.get(
        f"/api/v1/queue/doctor/{desk[doctor].profile_id}", headers=desk["receptionist"].headers
    )
    assert response.status_code == 200
    return response.json()


def call_next(client, desk, as_="doctor"):
    response = client.post(
        f"/api/v1/queue/doctor/{desk['doctor'].profile_id}/call-next", headers=desk[as_].headers
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestCheckIn:

    def test_entries_get_sequential_numbers(self, client, desk):
        numbers = [check_in(client, desk, f"Patient {i}")["queue_number"] for i in range(3)]

        assert numbers == [1, 2, 3]

    def test_new_entry_defaults(self, client, desk):
        entry = check_in(client, desk, "Jane Doe", patient_phone="+1 555 987 6543")

        assert entry["status"] == "waiting"
        assert entry["priority"] == "normal"
        assert entry["estimated_wait"] == 15
        assert entry["notes"] is None

    def test_high_priority_gets_a_note(self, client, desk):
        entry = check_in(client, desk, "Jane Doe", priority="high")

        assert entry["notes"] == "Priority patient"

    def test_sequences_are_per_doctor(self, client, desk):
        check_in(client, desk, "A")
        check_in(client, desk, "B")

        entry = check_in(client, desk, "C", doctor="other_doctor")

        assert entry["queue_number"] == 1

    def test_sequence_survives_counter_loss(self, client, desk, redis_client):
        check_in(client, desk, "A")
        check_in(client, desk, "B")
        redis_client.flushall()

        entry = check_in(client, desk, "C")

        assert entry["queue_number"] == 3

    def test_check_in_for_appointment(self, client, desk):
        appointment = book(client, desk)

        entry = check_in(client, desk, "Patient", appointment_id=appointment["id"])

        assert entry["appointment_id"] == appointment["id"]
        assert entry["patient_id"] == desk["patient"].profile_id
        stored = client.get(
            f"/api/v1/appointments/{appointment['id']}", headers=desk["receptionist"].headers
        ).json()
        assert stored["queue_number"] == entry["queue_number"]
        assert stored["status"] == "Pending"

    @pytest.mark.parametrize("action,status", [("cancel", "cancelled"), ("complete", "completed")])
    def test_finished_appointment_cannot_be_checked_in(self, client, desk, action, status):
        appointment = book(client, desk)
        client.post(f"/api/v1/appointments/{appointment['id']}/{action}", headers=desk["receptionist"].headers)

        response = check_in_appointment(client, desk, appointment["id"])

        assert response.status_code == 409
        assert response.json()["message"] == f"This appointment is already {status}"
        assert get_queue(client, desk)["total_patients"] == 0

    @pytest.mark.parametrize("offset", [-1, 1])
    def test_appointment_on_another_day(self, client, desk, offset):
        appointment = book(client, desk, appointment_date=today(offset))

        response = check_in_appointment(client, desk, appointment["id"])

        assert response.status_code == 409
        assert "not today" in response.json()["message"]

    def test_appointment_checked_in_once(self, client, desk):
        appointment = book(client, desk)
        assert check_in_appointment(client, desk, appointment["id"]).status_code == 201

        response = check_in_appointment(client, desk, appointment["id"])

        assert response.status_code == 409
        assert response.json()["message"] == f"Appointment {appointment['id']} is already checked in"
        assert get_queue(client, desk)["total_patients"] == 1

    def test_cancelled_entry_can_check_in_again(self, client, desk):
        appointment = book(client, desk)
        first = check_in_appointment(client, desk, appointment["id"]).json()
        client.post(f"/api/v1/queue/entries/{first['id']}/cancel", headers=desk["receptionist"].headers)

        response = check_in_appointment(client, desk, appointment["id"])

        assert response.status_code == 201
        assert response.json()["queue_number"] == 2

    def test_appointment_of_another_doctor(self, client, desk):
        response = client.post(
            f"/api/v1/queue/doctor/{desk['doctor'].profile_id}/check-in",
            json={"patient_name": "X", "reason": "Y", "appointment_id": 42},
            headers=desk["receptionist"].headers,
        )

        assert response.status_code == 404

    def test_unknown_doctor(self, client, desk):
        response = client.post(
            f"/api/v1/queue/doctor/{desk['receptionist'].profile_id}/check-in",
            json={"patient_name": "X", "reason": "Y"},
            headers=desk["receptionist"].headers,
        )

        assert response.status_code == 404

    def test_name_and_reason_required(self, client, desk):
        response = client.post(
            f"/api/v1/queue/doctor/{desk['doctor'].profile_id}/check-in",
            json={"patient_name": "", "reason": "Y"},
            headers=desk["receptionist"].headers,
        )

        assert response.status_code == 422


class TestCallNext:

    def test_empty_queue_is_not_an_error(self, client, desk):
        data = call_next(client, desk)

        assert data == {"queue_empty": True, "entry": None}

    def test_high_priority_first(self, client, desk):
        check_in(client, desk, "Early normal", priority="normal")
        high = check_in(client, desk, "Late high", priority="high")

        data = call_next(client, desk)

        assert data["queue_empty"] is False
        assert data["entry"]["id"] == high["id"]
        assert data["entry"]["status"] == "in-progress"

    def test_first_in_first_out_within_priority(self, client, desk):
        first = check_in(client, desk, "First")
        check_in(client, desk, "Second")

        assert call_next(client, desk)["entry"]["id"] == first["id"]

    def test_doctor_with_mixed_queue(self, client, desk):
        normal = check_in(client, desk, "John Smith", priority="normal")
        high = check_in(client, desk, "Jane Doe", priority="high")
        current = check_in(client, desk, "Robert Brown", priority="normal")
        low = check_in(client, desk, "Emily Davis", priority="low")
        started = client.post(
            f"/api/v1/queue/entries/{current['id']}/start", headers=desk["doctor"].headers
        )
        assert started.json()["status"] == "in-progress"

        data = call_next(client, desk)

        assert data["entry"]["id"] == high["id"]
        statuses = {item["id"]: item["status"] for item in get_queue(client, desk)["queue_items"]}
        assert statuses == {
            normal["id"]: "waiting",
            high["id"]: "in-progress",
            current["id"]: "waiting",
            low["id"]: "waiting",
        }

    def test_at_most_one_in_progress(self, client, desk):
        for i in range(4):
            check_in(client, desk, f"Patient {i}")

        for _ in range(6):
            call_next(client, desk)
            items = get_queue(client, desk)["queue_items"]
            assert sum(1 for item in items if item["status"] == "in-progress") == 1

    def test_empty_once_everyone_is_seen(self, client, desk):
        entry = check_in(client, desk, "Only patient")
        call_next(client, desk)
        client.post(f"/api/v1/queue/entries/{entry['id']}/complete", headers=desk["doctor"].headers)

        assert call_next(client, desk)["queue_empty"] is True

    def test_receptionist_may_call_next(self, client, desk):
        check_in(client, desk, "A")

        assert call_next(client, desk, as_="receptionist")["queue_empty"] is False


class TestQueueView:

    def test_queue_summary(self, client, desk):
        check_in(client, desk, "A")
        b = check_in(client, desk, "B", priority="high")
        c = check_in(client, desk, "C")
        client.post(f"/api/v1/queue/entries/{c['id']}/cancel", headers=desk["receptionist"].headers)

        data = get_queue(client, desk)

        assert data["total_patients"] == 3
        assert data["waiting_count"] == 2
        assert data["in_progress"] is None
        assert data["next_patient"]["id"] == b["id"]
        assert [item["queue_number"] for item in data["queue_items"]] == [1, 2, 3]

    def test_waiting_count_drops_on_completion(self, client, desk):
        a = check_in(client, desk, "A")
        check_in(client, desk, "B")
        assert get_queue(client, desk)["waiting_count"] == 2

        call_next(client, desk)
        client.post(f"/api/v1/queue/entries/{a['id']}/complete", headers=desk["doctor"].headers)

        assert get_queue(client, desk)["waiting_count"] == 1


class TestEntryTransitions:

    def test_complete_twice(self, client, desk):
        entry = check_in(client, desk, "A")
        url = f"/api/v1/queue/entries/{entry['id']}/complete"

        assert client.post(url, headers=desk["doctor"].headers).json()["status"] == "completed"
        second = client.post(url, headers=desk["doctor"].headers)

        assert second.status_code == 409
        assert second.json()["message"] == "This queue entry is already completed"

    def test_cancelled_entry_cannot_be_started(self, client, desk):
        entry = check_in(client, desk, "A")
        client.post(f"/api/v1/queue/entries/{entry['id']}/cancel", headers=desk["receptionist"].headers)

        response = client.post(
            f"/api/v1/queue/entries/{entry['id']}/start", headers=desk["doctor"].headers
        )

        assert response.status_code == 409

    def test_missing_entry(self, client, desk):
        response = client.post("/api/v1/queue/entries/404/complete", headers=desk["doctor"].headers)

        assert response.status_code == 404


class TestQueueAccess:

    def test_doctor_cannot_read_another_queue(self, client, desk):
        response = client.get(
            f"/api/v1/queue/doctor/{desk['other_doctor'].profile_id}", headers=desk["doctor"].headers
        )

        assert response.status_code == 403

    def test_doctor_cannot_finish_another_doctors_entry(self, client, desk):
        entry = check_in(client, desk, "A", doctor="other_doctor")

        response = client.post(
            f"/api/v1/queue/entries/{entry['id']}/complete", headers=desk["doctor"].headers
        )

        assert response.status_code == 403

    def test_patients_cannot_operate_queues(self, client, desk):
        response = client.post(
            f"/api/v1/queue/doctor/{desk['doctor'].profile_id}/call-next", headers=desk["patient"].headers
        )

        assert response.status_code == 403

    def test_pending_receptionist(self, client, desk, make_account):
        pending = make_account(UserRole.RECEPTIONIST, ApprovalStatus.PENDING)

        response = client.get(
            f"/api/v1/queue/doctor/{desk['doctor'].profile_id}", headers=pending.headers
        )

        assert response.status_code == 403

    def test_unauthenticated(self, client, desk):
        response = client.get(f"/api/v1/queue/doctor/{desk['doctor'].profile_id}")

        assert response.status_code == 401
