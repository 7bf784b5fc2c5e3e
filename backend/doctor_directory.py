"""
Doctor Directory

Listing, search and admin maintenance of doctor profiles. Pages are
zero-based.
"""

import math
from typing import List

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from accounts import commit_new_account, create_user
from config import DEFAULT_PAGE_SIZE
from database import Doctor, User, RoleName
from errors import NotFoundError, ValidationFailedError
from structured_logging import get_logger

logger = get_logger(__name__)

# Profile columns an admin may set on create/update
PROFILE_FIELDS = (
    "specialty", "qualifications", "experience_years", "hospital_affiliation",
    "license_number", "consultation_fee", "bio", "is_available",
)


def _contains(column, text: str):
    return func.lower(column).like(f"%{text.lower()}%")


def list_all(db: Session) -> List[Doctor]:
    return db.query(Doctor).order_by(Doctor.id).all()


def list_page(db: Session, page: int = 0, size: int = DEFAULT_PAGE_SIZE) -> dict:
    if page < 0 or size < 1:
        raise ValidationFailedError("page must be >= 0 and size >= 1")

    total = db.query(func.count(Doctor.id)).scalar()
    content = (
        db.query(Doctor)
        .order_by(Doctor.id)
        .offset(page * size)
        .limit(size)
        .all()
    )
    return {
        "content": content,
        "page": page,
        "size": size,
        "total_elements": total,
        "total_pages": math.ceil(total / size) if total else 0,
    }


def get_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if doctor is None:
        raise NotFoundError("Doctor not found")
    return doctor


def get_doctor_by_user_id(db: Session, user_id: int) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.user_id == user_id).first()
    if doctor is None:
        raise NotFoundError("Doctor not found")
    return doctor


def list_available(db: Session) -> List[Doctor]:
    return db.query(Doctor).filter(Doctor.is_available.is_(True)).order_by(Doctor.id).all()


def list_by_specialty(db: Session, specialty: str) -> List[Doctor]:
    return db.query(Doctor).filter(_contains(Doctor.specialty, specialty)).order_by(Doctor.id).all()


def search(db: Session, query: str) -> List[Doctor]:
    """Case-insensitive substring match on first name, last name or specialty."""
    return (
        db.query(Doctor)
        .join(User, Doctor.user_id == User.id)
        .filter(
            or_(
                _contains(User.first_name, query),
                _contains(User.last_name, query),
                _contains(Doctor.specialty, query),
            )
        )
        .order_by(Doctor.id)
        .all()
    )


def create_doctor(db: Session, request) -> Doctor:
    """Create a DOCTOR user and its directory profile."""
    user = create_user(
        db,
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        password=request.password,
        role=RoleName.DOCTOR,
        phone=request.phone,
        date_of_birth=request.date_of_birth,
        gender=request.gender,
    )
    profile = {field: getattr(request, field) for field in PROFILE_FIELDS}
    doctor = Doctor(**profile)
    user.doctor = doctor
    commit_new_account(db)
    db.refresh(doctor)

    logger.info("Doctor created", extra={"doctor_id": doctor.id, "specialty": doctor.specialty})
    return doctor


def update_doctor(db: Session, doctor_id: int, request) -> Doctor:
    doctor = get_doctor(db, doctor_id)
    # null never overwrites a stored value; is_available is not nullable
    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        if field in PROFILE_FIELDS:
            setattr(doctor, field, value)
    db.commit()
    db.refresh(doctor)

    logger.info("Doctor updated", extra={"doctor_id": doctor.id, "fields": sorted(changes)})
    return doctor


def delete_doctor(db: Session, doctor_id: int) -> None:
    """Remove the doctor's user account; profile and appointments cascade."""
    doctor = get_doctor(db, doctor_id)
    user = doctor.user
    db.delete(user if user is not None else doctor)
    db.commit()
    logger.info("Doctor deleted", extra={"doctor_id": doctor_id})
