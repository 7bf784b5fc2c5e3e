"""
Doctors Router

Public directory lookups plus admin maintenance of doctor profiles.
"""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db, User
from auth import get_current_admin_user
import doctor_directory as directory
from config import DEFAULT_PAGE_SIZE
from errors import ClinicError, NotFoundError, to_http_exception
from models import DoctorResponse, DoctorPage, DoctorCreate, DoctorUpdate, MessageResponse

router = APIRouter(tags=["Doctors"])


# =============================================================================
# DIRECTORY
# =============================================================================

@router.get("/doctors", response_model=DoctorPage)
def get_doctors(
    page: int = Query(0, ge=0),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Zero-based page of doctors ordered by id."""
    return directory.list_page(db, page=page, size=size)


@router.get("/doctors/all", response_model=List[DoctorResponse])
def get_all_doctors(db: Session = Depends(get_db)):
    return directory.list_all(db)


@router.get("/doctors/available", response_model=List[DoctorResponse])
def get_available_doctors(db: Session = Depends(get_db)):
    return directory.list_available(db)


@router.get("/doctors/specialty/{specialty}", response_model=List[DoctorResponse])
def get_doctors_by_specialty(specialty: str, db: Session = Depends(get_db)):
    return directory.list_by_specialty(db, specialty)


@router.get("/doctors/search", response_model=List[DoctorResponse])
def search_doctors(query: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    """Match first name, last name or specialty, ignoring case."""
    return directory.search(db, query)


@router.get("/doctors/{doctor_id}", response_model=DoctorResponse)
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    try:
        return directory.get_doctor(db, doctor_id)
    except NotFoundError as e:
        raise to_http_exception(e, 404)


# =============================================================================
# ADMINISTRATION
# =============================================================================

@router.post("/doctors", response_model=DoctorResponse)
def create_doctor(
    request: DoctorCreate,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    try:
        return directory.create_doctor(db, request)
    except ClinicError as e:
        raise to_http_exception(e, 400)


@router.put("/doctors/{doctor_id}", response_model=DoctorResponse)
def update_doctor(
    doctor_id: int,
    request: DoctorUpdate,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    try:
        return directory.update_doctor(db, doctor_id, request)
    except NotFoundError as e:
        raise to_http_exception(e, 404)


@router.delete("/doctors/{doctor_id}", response_model=MessageResponse)
def delete_doctor(
    doctor_id: int,
    current_user: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db)
):
    """Delete a doctor together with their account and appointments."""
    try:
        directory.delete_doctor(db, doctor_id)
    except NotFoundError as e:
        raise to_http_exception(e, 404)
    return {"message": "Doctor deleted successfully"}
