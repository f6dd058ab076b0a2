"""Streamlit presentation layer that consumes the business services."""

from datetime import date, datetime, time, timedelta

import pandas as pd
import plotly.express as px
import streamlit as st

from clinic_scheduler import configure_logging, init_db
from clinic_scheduler.db import session_scope
from clinic_scheduler.exceptions import (
    DatabaseConnectionError,
    DoctorBusyError,
    ResourceNotFoundError,
    ValidationError,
)
from clinic_scheduler.export import appointments_to_csv, export_filename, patients_to_csv
from clinic_scheduler.models import GENDERS
from clinic_scheduler.services import MIN_DURATION_MINUTES, ClinicService

STATUS_COLORS = {"scheduled": "#0d9488", "completed": "#10b981", "cancelled": "#9ca3af"}
CONFLICT_COLOR = "#ef4444"

configure_logging()
init_db()


def _commit_and_rerun(service: ClinicService) -> None:
    # st.rerun() unwinds through session_scope without committing
    service.session.commit()
    st.rerun()


def render_dashboard(service: ClinicService) -> None:
    st.subheader("Dashboard")

    summary = service.dashboard_summary()
    col1, col2, col3, col4, col5 = st.columns(5)
    col1.metric("Total Patients", summary["patients"])
    col2.metric("Total Doctors", summary["doctors"])
    col3.metric("Today's Appointments", summary["today"])
    col4.metric("Pending", summary["pending"])
    col5.metric("Conflicts", summary["conflicts"])

    appointments = service.list_appointments()
    if not appointments:
        st.info("No appointments scheduled.")
        return

    df = pd.DataFrame([{"doctor": a.doctor.name, "status": a.status} for a in appointments])
    per_doctor = df.groupby("doctor").size().reset_index(name="appointments")
    per_doctor = per_doctor.sort_values("appointments", ascending=False)
    fig = px.bar(
        per_doctor,
        x="doctor",
        y="appointments",
        text="appointments",
        color_discrete_sequence=[STATUS_COLORS["scheduled"]],
    )
    fig.update_traces(width=0.35, textposition="outside")
    fig.update_layout(
        xaxis_title="Doctor",
        yaxis_title="Appointments",
        yaxis=dict(showgrid=False, tick0=0, dtick=1, rangemode="tozero"),
        plot_bgcolor="white",
        paper_bgcolor="white",
        margin=dict(t=40, b=40, l=10, r=10),
        bargap=0.5,
    )
    st.plotly_chart(fig, use_container_width=True)


def _doctor_form(key: str, doctor=None) -> dict | None:
    """Doctor fields, prefilled when editing; returns the values once submitted."""
    with st.form(key):
        name = st.text_input("Name", key=f"{key}_name", value=doctor.name if doctor else "")
        specialization = st.text_input(
            "Specialization", key=f"{key}_specialization", value=(doctor.specialization or "") if doctor else ""
        )
        phone = st.text_input("Phone", key=f"{key}_phone", value=(doctor.phone or "") if doctor else "")
        email = st.text_input("Email", key=f"{key}_email", value=(doctor.email or "") if doctor else "")
        if not st.form_submit_button("Save doctor"):
            return None
    return {
        "name": name,
        "specialization": specialization or None,
        "phone": phone or None,
        "email": email or None,
    }


def _patient_form(key: str, doctors, patient=None) -> dict | None:
    doctor_options = {"Unassigned": None}
    doctor_options.update({f"{d.name} ({d.specialization or '-'})": d.id for d in doctors})
    doctor_labels = list(doctor_options.keys())
    current_doctor = patient.assigned_doctor_id if patient else None
    doctor_ids = list(doctor_options.values())
    doctor_index = doctor_ids.index(current_doctor) if current_doctor in doctor_ids else 0

    def current(field: str) -> str:
        return (getattr(patient, field) or "") if patient else ""

    with st.form(key):
        full_name = st.text_input("Full name", key=f"{key}_full_name", value=current("full_name"))
        record_birth = st.checkbox("Record date of birth", key=f"{key}_record_birth", value=bool(patient and patient.date_of_birth))
        birth_date = st.date_input(
            "Date of birth", key=f"{key}_birth", value=(patient and patient.date_of_birth) or date(1990, 1, 1)
        )
        gender_index = GENDERS.index(patient.gender) if patient and patient.gender in GENDERS else 0
        gender = st.selectbox("Gender", GENDERS, key=f"{key}_gender", index=gender_index)
        phone = st.text_input("Phone", key=f"{key}_phone", value=current("phone"))
        email = st.text_input("Email", key=f"{key}_email", value=current("email"))
        address = st.text_area("Address", key=f"{key}_address", value=current("address"), height=60)
        contact_name = st.text_input("Emergency contact name", key=f"{key}_contact_name", value=current("emergency_contact_name"))
        contact_phone = st.text_input("Emergency contact phone", key=f"{key}_contact_phone", value=current("emergency_contact_phone"))
        doctor_display = st.selectbox("Assigned doctor", doctor_labels, key=f"{key}_doctor", index=doctor_index)
        history = st.text_area("Medical history", key=f"{key}_history", value=current("medical_history"), height=80)
        if not st.form_submit_button("Save patient"):
            return None
    return {
        "full_name": full_name,
        "date_of_birth": birth_date if record_birth else None,
        "gender": gender,
        "phone": phone or None,
        "email": email or None,
        "address": address or None,
        "emergency_contact_name": contact_name or None,
        "emergency_contact_phone": contact_phone or None,
        "assigned_doctor_id": doctor_options[doctor_display],
        "medical_history": history or None,
    }


def _appointment_history(appointments) -> None:
    if not appointments:
        st.caption("No appointments scheduled.")
        return
    for appt in appointments:
        st.write(f"{appt.start_time:%Y-%m-%d %H:%M} | {appt.type} | {appt.status}")


def render_doctors(service: ClinicService) -> None:
    st.subheader("Doctors")

    with st.expander("Add doctor"):
        values = _doctor_form("create_doctor")
        if values is not None:
            try:
                service.create_doctor(**values)
                _commit_and_rerun(service)
            except ValidationError as exc:
                st.warning(str(exc))

    for doctor in service.list_doctors():
        col_info, col_delete = st.columns([6, 1])
        col_info.write(f"**{doctor.name}** | {doctor.specialization or '-'} | {doctor.phone or '-'}")
        if col_delete.button("Delete", key=f"delete_doctor_{doctor.id}"):
            try:
                service.delete_doctor(doctor.id)
                _commit_and_rerun(service)
            except ValidationError as exc:
                col_delete.error(str(exc))
        with col_info.expander("Profile"):
            st.write(f"Email: {doctor.email or '-'}")
            _appointment_history(service.list_appointments(doctor_id=doctor.id))
        with col_info.expander("Edit"):
            values = _doctor_form(f"edit_doctor_{doctor.id}", doctor)
            if values is not None:
                try:
                    service.update_doctor(doctor.id, **values)
                    _commit_and_rerun(service)
                except ValidationError as exc:
                    st.warning(str(exc))


def render_patients(service: ClinicService) -> None:
    st.subheader("Patients")
    doctors = service.list_doctors()

    with st.expander("Add patient"):
        values = _patient_form("create_patient", doctors)
        if values is not None:
            try:
                service.create_patient(**values)
                _commit_and_rerun(service)
            except (ValidationError, ResourceNotFoundError) as exc:
                st.warning(str(exc))

    query = st.text_input("Search patients", placeholder="Name, phone or email")
    patients = service.search_patients(query)
    if not patients:
        st.info("No patients match the search.")
        return

    for patient in patients:
        col_info, col_delete = st.columns([6, 1])
        doctor_name = patient.assigned_doctor.name if patient.assigned_doctor else "-"
        col_info.write(
            f"**{patient.full_name}** | {patient.phone or '-'} | {patient.email or '-'} | {doctor_name}"
        )
        if col_delete.button("Delete", key=f"delete_patient_{patient.id}"):
            try:
                service.delete_patient(patient.id)
                _commit_and_rerun(service)
            except ValidationError as exc:
                col_delete.error(str(exc))
        with col_info.expander("Profile"):
            st.write(f"Born: {patient.date_of_birth or '-'} | Gender: {patient.gender or '-'}")
            st.write(f"Address: {patient.address or '-'}")
            st.write(
                f"Emergency contact: {patient.emergency_contact_name or '-'} "
                f"({patient.emergency_contact_phone or '-'})"
            )
            st.write(f"Medical history: {patient.medical_history or '-'}")
            _appointment_history(service.list_appointments(patient_id=patient.id))
        with col_info.expander("Edit"):
            values = _patient_form(f"edit_patient_{patient.id}", doctors, patient)
            if values is not None:
                try:
                    service.update_patient(patient.id, **values)
                    _commit_and_rerun(service)
                except (ValidationError, ResourceNotFoundError) as exc:
                    st.warning(str(exc))


def render_scheduling(service: ClinicService) -> None:
    st.subheader("Schedule Appointment")

    patients = service.list_patients()
    doctors = service.list_doctors()
    if not patients or not doctors:
        st.info("Add at least one doctor and one patient first.")
        return

    patient_options = {f"{p.full_name} (#{p.id[:8]})": p.id for p in patients}
    doctor_options = {f"{d.name} - {d.specialization or '-'}": d.id for d in doctors}

    with st.form("create_appointment"):
        patient_display = st.selectbox("Patient", list(patient_options.keys()))
        doctor_display = st.selectbox("Doctor", list(doctor_options.keys()))
        visit_date = st.date_input("Date")
        visit_time = st.time_input("Time", value=time(9, 0))
        duration = st.number_input(
            "Duration (minutes)", min_value=MIN_DURATION_MINUTES, value=30, step=5
        )
        appointment_type = st.text_input("Type", placeholder="e.g., Checkup")
        reason = st.text_area("Reason", height=80)
        if st.form_submit_button("Schedule"):
            try:
                appointment = service.create_appointment(
                    patient_id=patient_options[patient_display],
                    doctor_id=doctor_options[doctor_display],
                    start_time=datetime.combine(visit_date, visit_time),
                    duration_minutes=int(duration),
                    type=appointment_type,
                    reason=reason or None,
                )
                st.success(f"Appointment scheduled for {appointment.start_time:%Y-%m-%d %H:%M}")
            except DoctorBusyError as exc:
                st.error(str(exc))
            except (ValidationError, ResourceNotFoundError) as exc:
                st.warning(str(exc))


def render_appointments(service: ClinicService) -> None:
    st.subheader("Appointments")

    doctors = service.list_doctors()
    doctor_filter = {"All": None}
    doctor_filter.update({d.name: d.id for d in doctors})
    status_filter = {"All": None, "Scheduled": "scheduled", "Completed": "completed", "Cancelled": "cancelled"}

    col_search, col_doctor, col_status = st.columns([2, 1, 1])
    query = col_search.text_input("Search appointments", placeholder="Type, reason, date, patient or doctor")
    selected_doctor = doctor_filter[col_doctor.selectbox("Doctor", list(doctor_filter.keys()))]
    selected_status = status_filter[col_status.selectbox("Status", list(status_filter.keys()))]

    conflicting = service.conflict_ids()
    appointments = service.search_appointments(query, status=selected_status, doctor_id=selected_doctor)
    if not appointments:
        st.info("No appointments match the filters.")
        return

    for appt in appointments:
        marker = ":red[⚠ conflict] " if appt.id in conflicting else ""
        col_info, col_complete, col_cancel, col_delete = st.columns([6, 1, 1, 1])
        col_info.markdown(
            f"{marker}**{appt.start_time:%Y-%m-%d %H:%M}** ({appt.duration_minutes} min) | "
            f"{appt.patient.full_name} with {appt.doctor.name} | {appt.type} | {appt.status}"
        )
        if appt.id in conflicting:
            with col_info.expander("Conflicts with"):
                for other in service.conflicts_for(appt.id):
                    st.write(f"{other.start_time:%H:%M} ({other.duration_minutes} min) {other.patient.full_name}")
        if appt.status == "scheduled":
            if col_complete.button("Complete", key=f"complete_{appt.id}"):
                service.complete_appointment(appt.id)
                _commit_and_rerun(service)
            if col_cancel.button("Cancel", key=f"cancel_{appt.id}"):
                service.cancel_appointment(appt.id)
                _commit_and_rerun(service)
        if col_delete.button("Delete", key=f"delete_{appt.id}"):
            try:
                service.delete_appointment(appt.id)
                _commit_and_rerun(service)
            except ValidationError as exc:
                col_delete.error(str(exc))


def render_calendar(service: ClinicService) -> None:
    st.subheader("Calendar")
    st.caption("Red appointments indicate scheduling conflicts")

    appointments = service.list_appointments()
    if not appointments:
        st.info("Nothing to show yet.")
        return

    conflicting = service.conflict_ids()
    df = pd.DataFrame(
        [
            {
                "start": a.start_time,
                "end": a.start_time + timedelta(minutes=a.duration_minutes),
                "doctor": a.doctor.name,
                "patient": a.patient.full_name,
                "state": "conflict" if a.id in conflicting else a.status,
            }
            for a in appointments
        ]
    )
    fig = px.timeline(
        df,
        x_start="start",
        x_end="end",
        y="doctor",
        color="state",
        hover_data=["patient"],
        color_discrete_map={**STATUS_COLORS, "conflict": CONFLICT_COLOR},
    )
    fig.update_layout(plot_bgcolor="white", paper_bgcolor="white", margin=dict(t=30, b=30, l=10, r=10))
    st.plotly_chart(fig, use_container_width=True)


def render_data_management(service: ClinicService) -> None:
    st.subheader("Data Management")
    patients = service.list_patients()
    doctors = service.list_doctors()
    appointments = service.list_appointments()

    col_patients, col_appointments = st.columns(2)
    col_patients.download_button(
        "Export Patients (CSV)",
        data=patients_to_csv(patients, doctors),
        file_name=export_filename("patients"),
        mime="text/csv",
    )
    col_appointments.download_button(
        "Export Appointments (CSV)",
        data=appointments_to_csv(appointments, patients, doctors),
        file_name=export_filename("appointments"),
        mime="text/csv",
    )
    st.caption(f"Total: {len(patients)} patients, {len(appointments)} appointments")


def main() -> None:
    st.set_page_config(page_title="Clinic Scheduler", page_icon="🏥", layout="wide")
    st.title("Clinic Scheduler")

    try:
        with session_scope() as session:
            service = ClinicService(session)
            pages = [
                ("Dashboard", render_dashboard),
                ("Doctors", render_doctors),
                ("Patients", render_patients),
                ("Schedule", render_scheduling),
                ("Appointments", render_appointments),
                ("Calendar", render_calendar),
                ("Data", render_data_management),
            ]
            for tab, (_, render) in zip(st.tabs([title for title, _ in pages]), pages):
                with tab:
                    render(service)
    except DatabaseConnectionError as exc:
        st.error(f"Database connection failed: {exc}")


if __name__ == "__main__":
    main()
