"""
Appointment Booking

Books appointments against a doctor's calendar and manages their status.

Booking rules:
- patient and doctor must exist
- the doctor must be accepting bookings (is_available)
- no other non-cancelled appointment for that doctor may sit within
  SLOT_CONFLICT_WINDOW_MINUTES of the requested time (both ends inclusive)

The check and the insert run under a per-doctor lock, the doctor row is
selected FOR UPDATE, and the partial unique index on active
(doctor_id, appointment_date) rejects anything that still slips through.
"""

import re
import threading
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import SLOT_CONFLICT_WINDOW_MINUTES
from database import Appointment, AppointmentStatus, AppointmentType, Doctor, Patient
from errors import ConflictError, InvalidStateError, NotFoundError, ValidationFailedError
from structured_logging import log_appointment_change, log_booking_decision

_doctor_locks: Dict[int, threading.Lock] = {}
_doctor_locks_guard = threading.Lock()


def _lock_for(doctor_id: int) -> threading.Lock:
    with _doctor_locks_guard:
        lock = _doctor_locks.get(doctor_id)
        if lock is None:
            lock = _doctor_locks[doctor_id] = threading.Lock()
        return lock


# =============================================================================
# WIRE PARSING
# =============================================================================

_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_TIME_PATTERN = re.compile(r"[0-9]{2}:[0-9]{2}(:[0-9]{2}(\.[0-9]{1,6})?)?")
_TIME_FORMATS = ("%H:%M", "%H:%M:%S", "%H:%M:%S.%f")


def combine_date_time(appointment_date: str, appointment_time: str) -> datetime:
    """
    Join "YYYY-MM-DD" and "HH:MM[:SS[.ffffff]]" into a naive local datetime.

    Offsets, hour-only times and other ISO-8601 variants are refused; the
    calendar stores wall-clock times only.
    """
    invalid = ValidationFailedError(
        f"Invalid appointment date/time: {appointment_date!r} {appointment_time!r}"
    )
    if not isinstance(appointment_date, str) or not isinstance(appointment_time, str):
        raise invalid
    if not _DATE_PATTERN.fullmatch(appointment_date) or not _TIME_PATTERN.fullmatch(appointment_time):
        raise invalid

    time_format = _TIME_FORMATS[appointment_time.count(":") - 1 + ("." in appointment_time)]
    try:
        return datetime.strptime(f"{appointment_date}T{appointment_time}", f"%Y-%m-%dT{time_format}")
    except ValueError:
        raise invalid


def parse_type(value: Optional[str]) -> AppointmentType:
    if value is None or value == "":
        return AppointmentType.CONSULTATION
    try:
        return AppointmentType(value.upper())
    except ValueError:
        raise ValidationFailedError(f"Unknown appointment type: {value}")


def parse_status(value: Optional[str]) -> AppointmentStatus:
    if not value:
        raise ValidationFailedError("Status is required")
    try:
        return AppointmentStatus(value.upper())
    except ValueError:
        raise ValidationFailedError(f"Unknown appointment status: {value}")


# =============================================================================
# BOOKING
# =============================================================================

def find_conflicts(db: Session, doctor_id: int, when: datetime) -> List[Appointment]:
    """Active appointments for the doctor inside the conflict window around `when`."""
    window = timedelta(minutes=SLOT_CONFLICT_WINDOW_MINUTES)
    return (
        db.query(Appointment)
        .filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date.between(when - window, when + window),
            Appointment.status != AppointmentStatus.CANCELLED.value,
        )
        .all()
    )


def book_appointment(
    db: Session,
    patient_id: int,
    doctor_id: int,
    appointment_datetime: datetime,
    reason: Optional[str] = None,
    appointment_type: Optional[AppointmentType] = None,
) -> Appointment:
    appointment_type = appointment_type or AppointmentType.CONSULTATION
    decision = (patient_id, doctor_id, appointment_datetime)

    with _lock_for(doctor_id):
        patient = db.query(Patient).filter(Patient.id == patient_id).first()
        if patient is None:
            log_booking_decision("patient_not_found", *decision)
            raise NotFoundError("Patient not found")

        doctor = db.query(Doctor).filter(Doctor.id == doctor_id).with_for_update().first()
        if doctor is None:
            log_booking_decision("doctor_not_found", *decision)
            raise NotFoundError("Doctor not found")

        if not doctor.is_available:
            log_booking_decision("doctor_unavailable", *decision)
            raise InvalidStateError("Doctor is not available")

        conflicts = find_conflicts(db, doctor_id, appointment_datetime)
        if conflicts:
            log_booking_decision("slot_conflict", *decision, conflicting_ids=[a.id for a in conflicts])
            raise ConflictError("Doctor is not available at this time")

        appointment = Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=appointment_datetime,
            status=AppointmentStatus.SCHEDULED.value,
            type=appointment_type.value,
            reason=reason,
        )
        db.add(appointment)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            log_booking_decision("slot_taken_at_commit", *decision)
            raise ConflictError("Doctor is not available at this time")

        db.refresh(appointment)

    log_booking_decision("booked", *decision, appointment_id=appointment.id, appointment_type=appointment.type)
    return appointment


# =============================================================================
# LIFECYCLE
# =============================================================================

def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise NotFoundError("Appointment not found")
    return appointment


def update_appointment_status(db: Session, appointment_id: int, status: AppointmentStatus) -> Appointment:
    """Overwrite the status; any enumerated value is accepted from any state."""
    appointment = get_appointment(db, appointment_id)
    previous = appointment.status
    appointment.status = status.value
    try:
        db.commit()
    except IntegrityError:
        # reactivating a cancelled appointment whose exact slot was rebooked
        db.rollback()
        raise ConflictError("Doctor is not available at this time")
    db.refresh(appointment)

    log_appointment_change("status updated", appointment.id, from_status=previous, to_status=appointment.status)
    return appointment


def cancel_appointment(db: Session, appointment_id: int, patient_id: Optional[int] = None) -> Appointment:
    """
    Mark an appointment CANCELLED. The row is kept; its slot stops counting
    toward conflicts. With `patient_id`, only that patient's appointment
    can be cancelled.
    """
    appointment = get_appointment(db, appointment_id)
    if patient_id is not None and appointment.patient_id != patient_id:
        raise NotFoundError("Appointment not found")

    appointment.status = AppointmentStatus.CANCELLED.value
    db.commit()
    db.refresh(appointment)

    log_appointment_change("cancelled", appointment.id, doctor_id=appointment.doctor_id)
    return appointment


def add_notes(db: Session, appointment_id: int, notes: str) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    appointment.notes = notes
    db.commit()
    db.refresh(appointment)
    return appointment


# =============================================================================
# QUERIES
# =============================================================================

def list_for_patient(db: Session, patient_id: int) -> List[Appointment]:
    return (
        db.query(Appointment)
        .filter(Appointment.patient_id == patient_id)
        .order_by(Appointment.appointment_date.asc())
        .all()
    )


def list_for_doctor(db: Session, doctor_id: int) -> List[Appointment]:
    return (
        db.query(Appointment)
        .filter(Appointment.doctor_id == doctor_id)
        .order_by(Appointment.appointment_date.asc())
        .all()
    )


def list_upcoming_for_patient(db: Session, patient_id: int, now: Optional[datetime] = None) -> List[Appointment]:
    now = now or datetime.now()
    return (
        db.query(Appointment)
        .filter(Appointment.patient_id == patient_id, Appointment.appointment_date >= now)
        .order_by(Appointment.appointment_date.asc())
        .all()
    )


def list_upcoming_for_doctor(db: Session, doctor_id: int, now: Optional[datetime] = None) -> List[Appointment]:
    now = now or datetime.now()
    return (
        db.query(Appointment)
        .filter(Appointment.doctor_id == doctor_id, Appointment.appointment_date >= now)
        .order_by(Appointment.appointment_date.asc())
        .all()
    )
