"""
Patients Router

The signed-in patient's own record: profile, health metrics and medical
conditions.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db, Patient
from auth import get_current_patient
import patient_records as records
from errors import ClinicError, to_http_exception
from models import (
    PatientProfileResponse, ProfileUpdate, HealthMetricsResponse, HealthMetricsUpdate,
    ConditionResponse, ConditionCreate, ConditionUpdate, MessageResponse
)

router = APIRouter(tags=["Patients"])


# =============================================================================
# PROFILE
# =============================================================================

@router.get("/patients/profile", response_model=PatientProfileResponse)
def get_profile(patient: Patient = Depends(get_current_patient)):
    return patient


@router.put("/patients/profile", response_model=PatientProfileResponse)
def update_profile(
    request: ProfileUpdate,
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    try:
        return records.update_profile(db, patient.id, request)
    except ClinicError as e:
        raise to_http_exception(e, 400)


# =============================================================================
# HEALTH METRICS
# =============================================================================

@router.get("/patients/health-metrics", response_model=Optional[HealthMetricsResponse])
def get_health_metrics(
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    """Latest metrics, or null when none were recorded."""
    return records.get_health_metrics(db, patient.id)


@router.put("/patients/health-metrics", response_model=HealthMetricsResponse)
def update_health_metrics(
    request: HealthMetricsUpdate,
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    """Replace the metrics snapshot; BMI is derived from weight and height."""
    try:
        return records.update_health_metrics(db, patient.id, request)
    except ClinicError as e:
        raise to_http_exception(e, 400)


# =============================================================================
# MEDICAL CONDITIONS
# =============================================================================

@router.get("/patients/conditions", response_model=List[ConditionResponse])
def get_conditions(
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    return records.list_conditions(db, patient.id)


@router.get("/patients/conditions/active", response_model=List[ConditionResponse])
def get_active_conditions(
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    return records.list_active_conditions(db, patient.id)


@router.post("/patients/conditions", response_model=ConditionResponse)
def add_condition(
    request: ConditionCreate,
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    try:
        return records.add_condition(db, patient.id, request)
    except ClinicError as e:
        raise to_http_exception(e, 400)


@router.put("/patients/conditions/{condition_id}", response_model=ConditionResponse)
def update_condition(
    condition_id: int,
    request: ConditionUpdate,
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    try:
        return records.update_condition(db, condition_id, request, patient_id=patient.id)
    except ClinicError as e:
        raise to_http_exception(e, 400)


@router.delete("/patients/conditions/{condition_id}", response_model=MessageResponse)
def delete_condition(
    condition_id: int,
    patient: Patient = Depends(get_current_patient),
    db: Session = Depends(get_db)
):
    try:
        records.delete_condition(db, condition_id, patient_id=patient.id)
    except ClinicError as e:
        raise to_http_exception(e, 400)
    return {"message": "Condition deleted successfully"}
