"""CSV export of patient and appointment records."""

import csv
from datetime import date, datetime
from typing import Iterable

import pandas as pd

from .models import Appointment, Doctor, Patient

PATIENT_COLUMNS = [
    "ID",
    "Full Name",
    "DOB",
    "Gender",
    "Phone",
    "Email",
    "Address",
    "Emergency Contact",
    "Assigned Doctor",
    "Medical History",
]

APPOINTMENT_COLUMNS = [
    "ID",
    "Patient",
    "Doctor",
    "Date & Time",
    "Duration (min)",
    "Type",
    "Reason",
    "Status",
    "Notes",
]


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _to_csv(rows: list[list[str]], columns: list[str]) -> str:
    frame = pd.DataFrame(rows, columns=columns, dtype=str)
    return frame.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")


def patients_to_csv(patients: Iterable[Patient], doctors: Iterable[Doctor]) -> str:
    doctor_names = {doctor.id: doctor.name for doctor in doctors}
    rows = [
        [
            _text(p.id),
            _text(p.full_name),
            _text(p.date_of_birth),
            _text(p.gender),
            _text(p.phone),
            _text(p.email),
            _text(p.address),
            f"{_text(p.emergency_contact_name)} ({_text(p.emergency_contact_phone)})",
            doctor_names.get(p.assigned_doctor_id, "-"),
            _text(p.medical_history),
        ]
        for p in patients
    ]
    return _to_csv(rows, PATIENT_COLUMNS)


def appointments_to_csv(
    appointments: Iterable[Appointment],
    patients: Iterable[Patient],
    doctors: Iterable[Doctor],
) -> str:
    patient_names = {patient.id: patient.full_name for patient in patients}
    doctor_names = {doctor.id: doctor.name for doctor in doctors}
    rows = [
        [
            _text(a.id),
            patient_names.get(a.patient_id, "-"),
            doctor_names.get(a.doctor_id, "-"),
            _text(a.start_time),
            _text(a.duration_minutes),
            _text(a.type),
            _text(a.reason),
            _text(a.status),
            _text(a.notes),
        ]
        for a in appointments
    ]
    return _to_csv(rows, APPOINTMENT_COLUMNS)


def export_filename(prefix: str, today: date | None = None) -> str:
    return f"{prefix}_{(today or date.today()).isoformat()}.csv"
