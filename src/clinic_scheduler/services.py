"""Business logic layer for the clinic scheduler."""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, Sequence

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from .exceptions import DoctorBusyError, ValidationError
from .models import APPOINTMENT_STATUSES, GENDERS, Appointment, Doctor, Patient
from .overlap import Candidate, check_overlap, find_conflicts, find_conflicts_with, parse_start_time
from .repositories import AppointmentRepository, DoctorRepository, PatientRepository

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 15

DOCTOR_FIELDS = {"name", "specialization", "phone", "email"}
PATIENT_FIELDS = {
    "full_name",
    "date_of_birth",
    "gender",
    "phone",
    "email",
    "address",
    "emergency_contact_name",
    "emergency_contact_phone",
    "assigned_doctor_id",
    "medical_history",
}


def to_local_naive(value: datetime | str) -> datetime:
    """Normalise a timestamp to naive local time, the form stored in the database."""
    return parse_start_time(value).astimezone().replace(tzinfo=None)


class ClinicService:
    """Facade that encapsulates use cases and business rules."""

    def __init__(self, session: Session):
        self.session = session
        self.doctors = DoctorRepository(session)
        self.patients = PatientRepository(session)
        self.appointments = AppointmentRepository(session)

    @contextmanager
    def _writable(self, action: str) -> Iterator[None]:
        try:
            yield
        except OperationalError as exc:
            self.session.rollback()
            raise ValidationError(f"Database is read-only; cannot {action}.") from exc

    # Doctor
    def create_doctor(
        self,
        name: str,
        specialization: str | None = None,
        phone: str | None = None,
        email: str | None = None,
    ) -> Doctor:
        if not name or not name.strip():
            raise ValidationError("Doctor name cannot be empty.")
        with self._writable("create doctor"):
            doctor = self.doctors.create(
                name=name.strip(), specialization=specialization, phone=phone, email=email
            )
        logger.info("Created doctor %s (%s)", doctor.id, doctor.name)
        return doctor

    def list_doctors(self) -> Sequence[Doctor]:
        return self.doctors.list()

    def get_doctor(self, doctor_id: str) -> Doctor:
        return self.doctors.get(doctor_id)

    def update_doctor(self, doctor_id: str, **changes) -> Doctor:
        unknown = set(changes) - DOCTOR_FIELDS
        if unknown:
            raise ValidationError(f"Unknown doctor fields: {', '.join(sorted(unknown))}")
        if "name" in changes and not (changes["name"] or "").strip():
            raise ValidationError("Doctor name cannot be empty.")
        doctor = self.doctors.get(doctor_id)
        with self._writable("update doctor"):
            for field, value in changes.items():
                setattr(doctor, field, value)
            self.session.flush()
        return doctor

    def delete_doctor(self, doctor_id: str) -> None:
        doctor = self.doctors.get(doctor_id)
        if self.appointments.list(doctor_id=doctor_id):
            raise ValidationError("Doctor still has appointments; remove them first.")
        with self._writable("delete doctor"):
            for patient in self.patients.list_by_doctor(doctor_id):
                patient.assigned_doctor_id = None
            self.doctors.delete(doctor)
        logger.info("Deleted doctor %s", doctor_id)

    # Patient
    def _check_patient_fields(self, fields: dict) -> None:
        gender = fields.get("gender")
        if gender is not None and gender not in GENDERS:
            raise ValidationError(f"Gender must be one of: {', '.join(GENDERS)}.")
        doctor_id = fields.get("assigned_doctor_id")
        if doctor_id is not None:
            self.doctors.get(doctor_id)

    def create_patient(self, full_name: str, **fields) -> Patient:
        if not full_name or not full_name.strip():
            raise ValidationError("Patient name cannot be empty.")
        unknown = set(fields) - PATIENT_FIELDS
        if unknown:
            raise ValidationError(f"Unknown patient fields: {', '.join(sorted(unknown))}")
        self._check_patient_fields(fields)
        with self._writable("create patient"):
            patient = self.patients.create(full_name=full_name.strip(), **fields)
        logger.info("Created patient %s", patient.id)
        return patient

    def list_patients(self) -> Sequence[Patient]:
        return self.patients.list()

    def search_patients(self, query: str = "") -> list[Patient]:
        """Match name or email case-insensitively, phone as typed."""
        needle = (query or "").strip()
        patients = self.patients.list()
        if not needle:
            return list(patients)
        lowered = needle.lower()
        return [
            p
            for p in patients
            if lowered in p.full_name.lower()
            or needle in (p.phone or "")
            or lowered in (p.email or "").lower()
        ]

    def get_patient(self, patient_id: str) -> Patient:
        return self.patients.get(patient_id)

    def update_patient(self, patient_id: str, **changes) -> Patient:
        unknown = set(changes) - PATIENT_FIELDS
        if unknown:
            raise ValidationError(f"Unknown patient fields: {', '.join(sorted(unknown))}")
        if "full_name" in changes and not (changes["full_name"] or "").strip():
            raise ValidationError("Patient name cannot be empty.")
        self._check_patient_fields(changes)
        patient = self.patients.get(patient_id)
        with self._writable("update patient"):
            for field, value in changes.items():
                setattr(patient, field, value)
            self.session.flush()
        return patient

    def delete_patient(self, patient_id: str) -> None:
        patient = self.patients.get(patient_id)
        if self.appointments.list(patient_id=patient_id):
            raise ValidationError("Patient still has appointments; remove them first.")
        with self._writable("delete patient"):
            self.patients.delete(patient)
        logger.info("Deleted patient %s", patient_id)

    # Appointment
    def create_appointment(
        self,
        patient_id: str,
        doctor_id: str,
        start_time: datetime | str,
        duration_minutes: int,
        type: str,
        reason: str | None = None,
        notes: str | None = None,
    ) -> Appointment:
        """Book an appointment, refusing any slot that overlaps the doctor's other bookings."""
        patient = self.patients.get(patient_id)
        doctor = self.doctors.get(doctor_id)
        try:
            minutes = int(duration_minutes)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid duration: {duration_minutes!r}") from exc
        if minutes < MIN_DURATION_MINUTES:
            raise ValidationError(f"Duration must be at least {MIN_DURATION_MINUTES} minutes.")
        if not type or not type.strip():
            raise ValidationError("Appointment type is required.")
        try:
            start_at = to_local_naive(start_time)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid start time: {start_time!r}") from exc

        candidate = Candidate(doctor.id, start_at, minutes)
        overlaps = check_overlap(candidate, self.appointments.list(doctor_id=doctor.id))
        if overlaps:
            logger.warning(
                "Rejected booking for doctor %s at %s: %d conflicting appointment(s)",
                doctor.id,
                start_at.isoformat(),
                len(overlaps),
            )
            raise DoctorBusyError(overlaps)

        with self._writable("create appointment"):
            appointment = self.appointments.create(
                patient_id=patient.id,
                doctor_id=doctor.id,
                start_time=start_at,
                duration_minutes=minutes,
                type=type.strip(),
                reason=reason,
                notes=notes,
            )
        logger.info("Scheduled appointment %s for doctor %s", appointment.id, doctor.id)
        return appointment

    def list_appointments(
        self,
        doctor_id: str | None = None,
        status: str | None = None,
        visit_date: date | None = None,
        patient_id: str | None = None,
    ) -> Sequence[Appointment]:
        return self.appointments.list(
            doctor_id=doctor_id, patient_id=patient_id, status=status, visit_date=visit_date
        )

    def search_appointments(
        self,
        query: str = "",
        status: str | None = None,
        doctor_id: str | None = None,
    ) -> list[Appointment]:
        """Case-insensitive match on type, reason, start time, patient or doctor name."""
        needle = (query or "").strip().lower()
        appointments = self.list_appointments(doctor_id=doctor_id, status=status)
        if not needle:
            return list(appointments)
        return [
            appt
            for appt in appointments
            if any(
                needle in (value or "").lower()
                for value in (
                    appt.type,
                    appt.reason,
                    appt.start_time.isoformat(),
                    appt.patient.full_name,
                    appt.doctor.name,
                )
            )
        ]

    def get_appointment(self, appointment_id: str) -> Appointment:
        return self.appointments.get(appointment_id)

    def update_appointment_status(self, appointment_id: str, status: str) -> Appointment:
        if status not in APPOINTMENT_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(APPOINTMENT_STATUSES)}.")
        appointment = self.appointments.get(appointment_id)
        if appointment.status == "cancelled" and status != "cancelled":
            # Reactivating puts the slot back into play
            others = [
                other
                for other in self.appointments.list(doctor_id=appointment.doctor_id)
                if other.id != appointment.id
            ]
            overlaps = check_overlap(appointment, others)
            if overlaps:
                logger.warning(
                    "Refused to reactivate appointment %s: %d conflicting appointment(s)",
                    appointment_id,
                    len(overlaps),
                )
                raise DoctorBusyError(overlaps)
        with self._writable("update appointment status"):
            appointment.status = status
            self.session.flush()
        logger.info("Appointment %s marked %s", appointment_id, status)
        return appointment

    def complete_appointment(self, appointment_id: str) -> Appointment:
        return self.update_appointment_status(appointment_id, "completed")

    def cancel_appointment(self, appointment_id: str) -> Appointment:
        return self.update_appointment_status(appointment_id, "cancelled")

    def delete_appointment(self, appointment_id: str) -> None:
        appointment = self.appointments.get(appointment_id)
        with self._writable("delete appointment"):
            self.appointments.delete(appointment)
        logger.info("Deleted appointment %s", appointment_id)

    # Conflicts
    def list_conflicts(self) -> list[Appointment]:
        return find_conflicts(self.appointments.list())

    def conflict_ids(self) -> set[str]:
        return {appointment.id for appointment in self.list_conflicts()}

    def conflicts_for(self, appointment_id: str) -> list[Appointment]:
        appointment = self.appointments.get(appointment_id)
        return find_conflicts_with(appointment, self.appointments.list(doctor_id=appointment.doctor_id))

    def dashboard_summary(self, today: date | None = None) -> dict[str, int]:
        today = today or date.today()
        appointments = self.appointments.list()
        scheduled = [a for a in appointments if a.status == "scheduled"]
        return {
            "patients": len(self.patients.list()),
            "doctors": len(self.doctors.list()),
            "appointments": len(appointments),
            "today": sum(1 for a in scheduled if a.start_time.date() == today),
            "pending": len(scheduled),
            "completed": sum(1 for a in appointments if a.status == "completed"),
            "conflicts": len(find_conflicts(appointments)),
        }
