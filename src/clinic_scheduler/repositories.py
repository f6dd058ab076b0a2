"""Data access layer built on SQLAlchemy sessions."""

from datetime import date, datetime, time, timedelta
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import models
from .exceptions import ResourceNotFoundError


class DoctorRepository:
    """CRUD operations for Doctor."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        name: str,
        specialization: str | None = None,
        phone: str | None = None,
        email: str | None = None,
    ) -> models.Doctor:
        doctor = models.Doctor(name=name, specialization=specialization, phone=phone, email=email)
        self.session.add(doctor)
        self.session.flush()
        return doctor

    def get(self, doctor_id: str) -> models.Doctor:
        doctor = self.session.get(models.Doctor, doctor_id)
        if doctor is None:
            raise ResourceNotFoundError(f"Doctor {doctor_id} not found.")
        return doctor

    def list(self) -> Sequence[models.Doctor]:
        return self.session.scalars(select(models.Doctor).order_by(models.Doctor.name)).all()

    def delete(self, doctor: models.Doctor) -> None:
        self.session.delete(doctor)
        self.session.flush()


class PatientRepository:
    """CRUD operations for Patient."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, full_name: str, **fields) -> models.Patient:
        patient = models.Patient(full_name=full_name, **fields)
        self.session.add(patient)
        self.session.flush()
        return patient

    def get(self, patient_id: str) -> models.Patient:
        patient = self.session.get(models.Patient, patient_id)
        if patient is None:
            raise ResourceNotFoundError(f"Patient {patient_id} not found.")
        return patient

    def list(self) -> Sequence[models.Patient]:
        stmt = select(models.Patient).order_by(models.Patient.created_at.desc())
        return self.session.scalars(stmt).all()

    def list_by_doctor(self, doctor_id: str) -> Sequence[models.Patient]:
        return self.session.scalars(
            select(models.Patient).where(models.Patient.assigned_doctor_id == doctor_id)
        ).all()

    def delete(self, patient: models.Patient) -> None:
        self.session.delete(patient)
        self.session.flush()


class AppointmentRepository:
    """CRUD operations for Appointment."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        patient_id: str,
        doctor_id: str,
        start_time: datetime,
        duration_minutes: int,
        type: str,
        reason: str | None = None,
        status: str = "scheduled",
        notes: str | None = None,
    ) -> models.Appointment:
        appointment = models.Appointment(
            patient_id=patient_id,
            doctor_id=doctor_id,
            start_time=start_time,
            duration_minutes=duration_minutes,
            type=type,
            reason=reason,
            status=status,
            notes=notes,
        )
        self.session.add(appointment)
        self.session.flush()
        return appointment

    def get(self, appointment_id: str) -> models.Appointment:
        appointment = self.session.get(models.Appointment, appointment_id)
        if appointment is None:
            raise ResourceNotFoundError(f"Appointment {appointment_id} not found.")
        return appointment

    def list(
        self,
        doctor_id: str | None = None,
        patient_id: str | None = None,
        status: str | None = None,
        visit_date: date | None = None,
    ) -> Sequence[models.Appointment]:
        stmt = select(models.Appointment)
        if doctor_id is not None:
            stmt = stmt.where(models.Appointment.doctor_id == doctor_id)
        if patient_id is not None:
            stmt = stmt.where(models.Appointment.patient_id == patient_id)
        if status:
            stmt = stmt.where(models.Appointment.status == status)
        if visit_date is not None:
            day_start = datetime.combine(visit_date, time.min)
            stmt = stmt.where(
                models.Appointment.start_time >= day_start,
                models.Appointment.start_time < day_start + timedelta(days=1),
            )
        return self.session.scalars(stmt.order_by(models.Appointment.start_time)).all()

    def delete(self, appointment: models.Appointment) -> None:
        self.session.delete(appointment)
        self.session.flush()
