"""
Patient Records

Profile, health metrics and medical conditions for a patient. BMI is never
written directly: HealthMetrics derives it whenever weight or height is set.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from database import Patient, HealthMetrics, MedicalCondition, calculate_bmi
from errors import NotFoundError
from structured_logging import get_logger

logger = get_logger(__name__)

__all__ = [
    "calculate_bmi",
    "get_patient", "get_patient_by_user_id", "update_profile",
    "get_health_metrics", "update_health_metrics",
    "list_conditions", "list_active_conditions",
    "get_condition", "add_condition", "update_condition", "delete_condition",
]

PROFILE_FIELDS = ("first_name", "last_name", "phone", "date_of_birth", "gender")

METRIC_FIELDS = (
    "weight", "height", "heart_rate", "blood_pressure_systolic",
    "blood_pressure_diastolic", "blood_sugar", "cholesterol", "temperature",
)

CONDITION_FIELDS = ("name", "description", "severity", "diagnosed_date", "is_active", "medications")


def _plain(value):
    # enum members are stored by value
    return getattr(value, "value", value)


# =============================================================================
# PATIENTS
# =============================================================================

def get_patient(db: Session, patient_id: int) -> Patient:
    patient = db.query(Patient).filter(Patient.id == patient_id).first()
    if patient is None:
        raise NotFoundError("Patient not found")
    return patient


def get_patient_by_user_id(db: Session, user_id: int) -> Patient:
    patient = db.query(Patient).filter(Patient.user_id == user_id).first()
    if patient is None:
        raise NotFoundError("Patient not found")
    return patient


def update_profile(db: Session, patient_id: int, request) -> Patient:
    """Apply the fields present in `request` to the patient's user account."""
    patient = get_patient(db, patient_id)
    for field, value in request.model_dump(exclude_unset=True).items():
        if field in PROFILE_FIELDS:
            setattr(patient.user, field, _plain(value))
    db.commit()
    db.refresh(patient)
    return patient


# =============================================================================
# HEALTH METRICS
# =============================================================================

def get_health_metrics(db: Session, patient_id: int) -> Optional[HealthMetrics]:
    return db.query(HealthMetrics).filter(HealthMetrics.patient_id == patient_id).first()


def update_health_metrics(db: Session, patient_id: int, request) -> HealthMetrics:
    """
    Replace the patient's metrics snapshot, creating it on first use.

    Every measured field is overwritten, so a field left out of the request
    is cleared. BMI follows weight and height.
    """
    patient = get_patient(db, patient_id)
    metrics = get_health_metrics(db, patient.id)
    if metrics is None:
        metrics = HealthMetrics(patient_id=patient.id)
        db.add(metrics)

    for field in METRIC_FIELDS:
        setattr(metrics, field, getattr(request, field))

    db.commit()
    db.refresh(metrics)

    logger.info("Health metrics updated", extra={"patient_id": patient.id, "bmi": metrics.bmi})
    return metrics


# =============================================================================
# MEDICAL CONDITIONS
# =============================================================================

def list_conditions(db: Session, patient_id: int) -> List[MedicalCondition]:
    return (
        db.query(MedicalCondition)
        .filter(MedicalCondition.patient_id == patient_id)
        .order_by(MedicalCondition.id)
        .all()
    )


def list_active_conditions(db: Session, patient_id: int) -> List[MedicalCondition]:
    return (
        db.query(MedicalCondition)
        .filter(MedicalCondition.patient_id == patient_id, MedicalCondition.is_active.is_(True))
        .order_by(MedicalCondition.id)
        .all()
    )


def get_condition(db: Session, condition_id: int, patient_id: Optional[int] = None) -> MedicalCondition:
    query = db.query(MedicalCondition).filter(MedicalCondition.id == condition_id)
    if patient_id is not None:
        query = query.filter(MedicalCondition.patient_id == patient_id)
    condition = query.first()
    if condition is None:
        raise NotFoundError("Medical condition not found")
    return condition


def add_condition(db: Session, patient_id: int, request) -> MedicalCondition:
    patient = get_patient(db, patient_id)
    values = {field: _plain(getattr(request, field)) for field in CONDITION_FIELDS}
    condition = MedicalCondition(patient_id=patient.id, **values)
    db.add(condition)
    db.commit()
    db.refresh(condition)

    logger.info("Medical condition added", extra={"patient_id": patient.id, "condition_id": condition.id})
    return condition


def update_condition(
    db: Session, condition_id: int, request, patient_id: Optional[int] = None
) -> MedicalCondition:
    condition = get_condition(db, condition_id, patient_id)
    for field, value in request.model_dump(exclude_unset=True).items():
        if field in CONDITION_FIELDS:
            setattr(condition, field, _plain(value))
    db.commit()
    db.refresh(condition)
    return condition


def delete_condition(db: Session, condition_id: int, patient_id: Optional[int] = None) -> None:
    condition = get_condition(db, condition_id, patient_id)
    db.delete(condition)
    db.commit()
    logger.info("Medical condition deleted", extra={"condition_id": condition_id})
