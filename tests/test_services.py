"""Tests for the clinic service facade."""

from datetime import date, datetime, timedelta

import pytest

from clinic_scheduler.exceptions import DoctorBusyError, ResourceNotFoundError, ValidationError
from clinic_scheduler.services import MIN_DURATION_MINUTES, to_local_naive

MORNING = datetime(2030, 3, 4, 9, 0)


def _book(service, patient, doctor, start=MORNING, duration=30, **kwargs):
    return service.create_appointment(
        patient_id=patient.id,
        doctor_id=doctor.id,
        start_time=start,
        duration_minutes=duration,
        type=kwargs.pop("type", "Checkup"),
        **kwargs,
    )


def test_create_and_list_doctors(service, doctor):
    assert doctor.id
    assert [d.name for d in service.list_doctors()] == ["Dr. Amara Okafor"]


def test_doctor_name_required(service):
    with pytest.raises(ValidationError):
        service.create_doctor(name="   ")


def test_update_doctor(service, doctor):
    updated = service.update_doctor(doctor.id, phone="555-0101")
    assert updated.phone == "555-0101"
    with pytest.raises(ValidationError):
        service.update_doctor(doctor.id, salary=1)


def test_patient_validation(service, doctor):
    with pytest.raises(ValidationError):
        service.create_patient(full_name="")
    with pytest.raises(ValidationError):
        service.create_patient(full_name="Sam", gender="unknown")
    with pytest.raises(ResourceNotFoundError):
        service.create_patient(full_name="Sam", assigned_doctor_id="missing")
    patient = service.create_patient(
        full_name="Sam Kowalski", assigned_doctor_id=doctor.id, date_of_birth=date(2010, 4, 15)
    )
    assert patient.assigned_doctor_id == doctor.id


def test_update_patient(service, patient):
    service.update_patient(patient.id, phone="555-0199", medical_history="Asthma")
    assert service.get_patient(patient.id).medical_history == "Asthma"


def test_create_appointment(service, patient, doctor):
    appointment = _book(service, patient, doctor, reason="Annual physical")
    assert appointment.status == "scheduled"
    assert appointment.start_time == MORNING
    assert service.list_appointments() == [appointment]


def test_overlapping_booking_is_rejected(service, patient, doctor):
    first = _book(service, patient, doctor)
    with pytest.raises(DoctorBusyError) as excinfo:
        _book(service, patient, doctor, start=MORNING + timedelta(minutes=15))
    assert excinfo.value.conflicts == [first]
    assert str(excinfo.value) == "Doctor has conflicting appointments at: 2030-03-04T09:00:00"
    assert len(service.list_appointments()) == 1


def test_back_to_back_booking_is_allowed(service, patient, doctor):
    _book(service, patient, doctor)
    _book(service, patient, doctor, start=MORNING + timedelta(minutes=30))
    assert service.list_conflicts() == []


def test_other_doctor_can_take_the_same_slot(service, patient, doctor):
    other = service.create_doctor(name="Dr. Lucas Berg")
    _book(service, patient, doctor)
    _book(service, patient, other)
    assert len(service.list_appointments()) == 2


def test_cancelled_slot_can_be_rebooked(service, patient, doctor):
    first = _book(service, patient, doctor)
    service.cancel_appointment(first.id)
    second = _book(service, patient, doctor)
    assert second.status == "scheduled"


def test_iso_string_start_time(service, patient, doctor):
    appointment = _book(service, patient, doctor, start="2030-03-04T09:00:00")
    assert appointment.start_time == MORNING
    with pytest.raises(ValidationError):
        _book(service, patient, doctor, start="not a time")


def test_aware_start_time_is_stored_as_local(service, patient, doctor):
    aware = MORNING.astimezone()
    appointment = _book(service, patient, doctor, start=aware)
    assert appointment.start_time == to_local_naive(aware)
    assert appointment.start_time.tzinfo is None


def test_duration_and_type_validation(service, patient, doctor):
    with pytest.raises(ValidationError):
        _book(service, patient, doctor, duration=MIN_DURATION_MINUTES - 1)
    with pytest.raises(ValidationError):
        _book(service, patient, doctor, duration=0)
    with pytest.raises(ValidationError):
        _book(service, patient, doctor, type=" ")


def test_unknown_patient_or_doctor(service, patient, doctor):
    with pytest.raises(ResourceNotFoundError):
        service.create_appointment("missing", doctor.id, MORNING, 30, "Checkup")
    with pytest.raises(ResourceNotFoundError):
        service.create_appointment(patient.id, "missing", MORNING, 30, "Checkup")


def test_status_updates(service, patient, doctor):
    appointment = _book(service, patient, doctor)
    assert service.complete_appointment(appointment.id).status == "completed"
    with pytest.raises(ValidationError):
        service.update_appointment_status(appointment.id, "no-show")


def test_list_appointments_filters(service, patient, doctor):
    other = service.create_doctor(name="Dr. Mei Tanaka")
    today = _book(service, patient, doctor)
    tomorrow = _book(service, patient, other, start=MORNING + timedelta(days=1))
    service.complete_appointment(tomorrow.id)
    assert service.list_appointments(doctor_id=doctor.id) == [today]
    assert service.list_appointments(status="completed") == [tomorrow]
    assert service.list_appointments(visit_date=MORNING.date()) == [today]


def test_conflicts_are_flagged_for_stored_appointments(service, patient, doctor, session):
    a = _book(service, patient, doctor)
    b = _book(service, patient, doctor, start=MORNING + timedelta(minutes=30))
    # Lengthen an existing booking directly, bypassing the booking check
    a.duration_minutes = 45
    session.flush()
    assert service.conflict_ids() == {a.id, b.id}
    assert service.conflicts_for(a.id) == [b]
    service.cancel_appointment(b.id)
    assert service.list_conflicts() == []


def test_delete_rules(service, patient, doctor):
    appointment = _book(service, patient, doctor)
    with pytest.raises(ValidationError):
        service.delete_doctor(doctor.id)
    with pytest.raises(ValidationError):
        service.delete_patient(patient.id)
    service.delete_appointment(appointment.id)
    with pytest.raises(ResourceNotFoundError):
        service.get_appointment(appointment.id)
    service.delete_patient(patient.id)
    service.delete_doctor(doctor.id)
    assert service.list_doctors() == []


def test_deleting_doctor_unassigns_patients(service, doctor):
    patient = service.create_patient(full_name="Priya Nair", assigned_doctor_id=doctor.id)
    service.delete_doctor(doctor.id)
    assert service.get_patient(patient.id).assigned_doctor_id is None


def test_dashboard_summary(service, patient, doctor, session):
    a = _book(service, patient, doctor)
    b = _book(service, patient, doctor, start=MORNING + timedelta(hours=1))
    service.complete_appointment(b.id)
    b.start_time = MORNING + timedelta(minutes=10)
    session.flush()
    summary = service.dashboard_summary(today=MORNING.date())
    assert summary == {
        "patients": 1,
        "doctors": 1,
        "appointments": 2,
        "today": 1,
        "pending": 1,
        "completed": 1,
        "conflicts": 2,
    }
    assert a.status == "scheduled"


def test_reactivating_cancelled_appointment_checks_the_slot(service, patient, doctor):
    first = _book(service, patient, doctor)
    service.cancel_appointment(first.id)
    second = _book(service, patient, doctor, start=MORNING + timedelta(minutes=10))
    with pytest.raises(DoctorBusyError) as excinfo:
        service.update_appointment_status(first.id, "scheduled")
    assert excinfo.value.conflicts == [second]
    assert service.get_appointment(first.id).status == "cancelled"
    assert service.list_conflicts() == []


def test_reactivating_into_a_free_slot(service, patient, doctor):
    first = _book(service, patient, doctor)
    service.cancel_appointment(first.id)
    _book(service, patient, doctor, start=MORNING + timedelta(minutes=30))
    assert service.update_appointment_status(first.id, "scheduled").status == "scheduled"


def test_non_numeric_duration_is_a_validation_error(service, patient, doctor):
    with pytest.raises(ValidationError):
        _book(service, patient, doctor, duration="half an hour")
    with pytest.raises(ValidationError):
        _book(service, patient, doctor, duration=None)


def test_search_patients(service, patient):
    other = service.create_patient(full_name="Daniel Ruiz", phone="555-0142", email="Dan@Example.org")
    assert service.search_patients("") == list(service.list_patients())
    assert service.search_patients("  grace ") == [patient]
    assert service.search_patients("0142") == [other]
    assert service.search_patients("dan@example") == [other]
    assert service.search_patients("nobody") == []


def test_search_appointments(service, patient, doctor):
    other_patient = service.create_patient(full_name="Priya Nair")
    checkup = _book(service, patient, doctor, reason="Persistent cough")
    follow_up = _book(
        service, other_patient, doctor, start=MORNING + timedelta(hours=2), type="Follow-up"
    )
    assert service.search_appointments("COUGH") == [checkup]
    assert service.search_appointments("priya") == [follow_up]
    assert service.search_appointments("okafor") == [checkup, follow_up]
    assert service.search_appointments("2030-03-04T11") == [follow_up]
    service.cancel_appointment(checkup.id)
    assert service.search_appointments("okafor", status="cancelled") == [checkup]


def test_profile_listings(service, patient, doctor):
    other_doctor = service.create_doctor(name="Dr. Mei Tanaka")
    other_patient = service.create_patient(full_name="Sam Kowalski")
    mine = _book(service, patient, doctor)
    theirs = _book(service, other_patient, other_doctor)
    assert service.list_appointments(doctor_id=doctor.id) == [mine]
    assert service.list_appointments(patient_id=other_patient.id) == [theirs]
