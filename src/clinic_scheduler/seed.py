"""Initial data seeding for the clinic scheduler."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from clinic_scheduler import ClinicService, DoctorBusyError, configure_logging, init_db, session_scope


def seed() -> None:
    """Populate the database with starter doctors, patients and a few appointments."""
    configure_logging()
    init_db()
    with session_scope() as session:
        service = ClinicService(session)

        doctors_seed = [
            ("Dr. Amara Okafor", "General Practice"),
            ("Dr. Lucas Berg", "Cardiology"),
            ("Dr. Mei Tanaka", "Pediatrics"),
            ("Dr. Omar Haddad", "Dermatology"),
        ]
        existing_doctors = {d.name for d in service.list_doctors()}
        for name, specialization in doctors_seed:
            if name in existing_doctors:
                print(f"[doctor] exists {name}")
                continue
            service.create_doctor(name=name, specialization=specialization)
            print(f"[doctor] created {name} - {specialization}")

        patients_seed = [
            ("Grace Miller", date(1985, 5, 12), "female"),
            ("Daniel Ruiz", date(1990, 8, 23), "male"),
            ("Priya Nair", date(1978, 3, 5), "female"),
            ("Sam Kowalski", date(2010, 4, 15), "other"),
        ]
        existing_patients = {p.full_name for p in service.list_patients()}
        for name, dob, gender in patients_seed:
            if name in existing_patients:
                print(f"[patient] exists {name}")
                continue
            service.create_patient(full_name=name, date_of_birth=dob, gender=gender)
            print(f"[patient] created {name}")

        doctors = service.list_doctors()
        patients = service.list_patients()
        if doctors and patients and not service.list_appointments():
            tomorrow = datetime.combine(date.today() + timedelta(days=1), datetime.min.time())
            for idx, patient in enumerate(patients):
                doctor = doctors[idx % len(doctors)]
                try:
                    service.create_appointment(
                        patient_id=patient.id,
                        doctor_id=doctor.id,
                        start_time=tomorrow + timedelta(hours=9, minutes=30 * idx),
                        duration_minutes=30,
                        type="Checkup",
                        reason="Routine visit",
                    )
                except DoctorBusyError as exc:
                    print(f"[appointment] skipped: {exc}")
            print("[appointment] seeded sample appointments")


if __name__ == "__main__":
    seed()
