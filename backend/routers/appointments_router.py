"""
Appointments Router

Endpoints for:
- Booking (patients)
- Patient and doctor calendars
- Status changes, notes and cancellation

Booking failures of every kind return 400; the X-Error-Code header tells
them apart.
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db, User, Patient, Doctor
from auth import get_current_active_user, get_current_patient, get_current_doctor
import appointment_booking as booking
from errors import ClinicError, NotFoundError, to_http_exception
from models import (
    AppointmentResponse, BookAppointmentRequest, StatusUpdateRequest,
    NotesRequest, MessageResponse
)

router = APIRouter(tags=["Appointments"])


# =============================================================================
# BOOKING
# =============================================================================

@router.post("/appointments/book", response_model=AppointmentResponse)
def book_appointment(
    request: BookAppointmentRequest,
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    """Book an appointment for the signed-in patient."""
    try:
        when = booking.combine_date_time(request.appointment_date, request.appointment_time)
        appointment_type = booking.parse_type(request.type)
        return booking.book_appointment(
            db,
            patient_id=patient.id,
            doctor_id=request.doctor_id,
            appointment_datetime=when,
            reason=request.reason,
            appointment_type=appointment_type,
        )
    except ClinicError as e:
        raise to_http_exception(e, 400)


# =============================================================================
# CALENDARS
# =============================================================================

@router.get("/appointments/patient", response_model=List[AppointmentResponse])
def get_patient_appointments(
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    return booking.list_for_patient(db, patient.id)


@router.get("/appointments/patient/upcoming", response_model=List[AppointmentResponse])
def get_upcoming_patient_appointments(
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    return booking.list_upcoming_for_patient(db, patient.id)


@router.get("/appointments/doctor", response_model=List[AppointmentResponse])
def get_doctor_appointments(
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    return booking.list_for_doctor(db, doctor.id)


@router.get("/appointments/doctor/upcoming", response_model=List[AppointmentResponse])
def get_upcoming_doctor_appointments(
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    return booking.list_upcoming_for_doctor(db, doctor.id)


# =============================================================================
# SINGLE APPOINTMENT
# =============================================================================

@router.get("/appointments/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return booking.get_appointment(db, appointment_id)
    except NotFoundError as e:
        raise to_http_exception(e, 404)


@router.put("/appointments/{appointment_id}/status", response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    request: StatusUpdateRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """Set any status; transitions are not restricted."""
    try:
        status = booking.parse_status(request.status)
        return booking.update_appointment_status(db, appointment_id, status)
    except ClinicError as e:
        raise to_http_exception(e, 400)


@router.put("/appointments/{appointment_id}/notes", response_model=AppointmentResponse)
def add_appointment_notes(
    appointment_id: int,
    request: NotesRequest,
    doctor: Doctor = Depends(get_current_doctor),
    db: Session = Depends(get_db)
):
    try:
        return booking.add_notes(db, appointment_id, request.notes)
    except ClinicError as e:
        raise to_http_exception(e, 400)


@router.delete("/appointments/{appointment_id}", response_model=MessageResponse)
def cancel_appointment(
    appointment_id: int,
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    """Cancel one of the signed-in patient's appointments."""
    try:
        booking.cancel_appointment(db, appointment_id, patient_id=patient.id)
    except ClinicError as e:
        raise to_http_exception(e, 400)
    return {"message": "Appointment cancelled successfully"}
