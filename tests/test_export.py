"""Tests for CSV export."""

from datetime import date, datetime

from clinic_scheduler.export import (
    APPOINTMENT_COLUMNS,
    PATIENT_COLUMNS,
    appointments_to_csv,
    export_filename,
    patients_to_csv,
)


def _header(columns) -> str:
    return ",".join(f'"{column}"' for column in columns)


def test_patients_csv(service, doctor):
    patient = service.create_patient(
        full_name='Grace "Gigi" Miller',
        date_of_birth=date(1985, 5, 12),
        gender="female",
        emergency_contact_name="Tom",
        emergency_contact_phone="555-0100",
        assigned_doctor_id=doctor.id,
    )
    orphan = service.create_patient(full_name="Daniel Ruiz")
    lines = patients_to_csv([patient, orphan], [doctor]).splitlines()
    assert lines[0] == _header(PATIENT_COLUMNS)
    assert lines[1] == (
        f'"{patient.id}","Grace ""Gigi"" Miller","1985-05-12","female","","","",'
        f'"Tom (555-0100)","Dr. Amara Okafor",""'
    )
    assert lines[2].endswith('"Daniel Ruiz","","","","",""," ()","-",""')


def test_appointments_csv(service, patient, doctor):
    appointment = service.create_appointment(
        patient.id, doctor.id, datetime(2030, 3, 4, 9, 0), 30, "Checkup", reason="Cough, fever"
    )
    lines = appointments_to_csv([appointment], [patient], [doctor]).splitlines()
    assert lines[0] == _header(APPOINTMENT_COLUMNS)
    assert lines[1] == (
        f'"{appointment.id}","Grace Miller","Dr. Amara Okafor","2030-03-04T09:00:00",'
        f'"30","Checkup","Cough, fever","scheduled",""'
    )


def test_unknown_references_render_as_dash(service, patient, doctor):
    appointment = service.create_appointment(patient.id, doctor.id, datetime(2030, 3, 4, 9, 0), 30, "Checkup")
    lines = appointments_to_csv([appointment], [], []).splitlines()
    assert '"-","-"' in lines[1]


def test_empty_export_has_header_only():
    assert appointments_to_csv([], [], []).splitlines() == [_header(APPOINTMENT_COLUMNS)]


def test_export_filename():
    assert export_filename("patients", date(2024, 1, 2)) == "patients_2024-01-02.csv"
