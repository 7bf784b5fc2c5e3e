"""
Sample data for local development and demos.

Run explicitly:
    python seed_data.py

Roles are created when the roles table is empty; sample users only when the
users table is empty, so running it again changes nothing.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from auth import get_password_hash
from database import (
    SessionLocal, create_tables, User, Role, Patient, Doctor, HealthMetrics,
    MedicalCondition, RoleName, Gender, Severity
)
from structured_logging import get_logger

logger = get_logger(__name__)

SAMPLE_PATIENT = {
    "first_name": "John",
    "last_name": "Doe",
    "email": "patient@medease.com",
    "password": "password123",
    "phone": "1234567890",
    "date_of_birth": date(1990, 5, 15),
    "gender": Gender.MALE,
}

SAMPLE_METRICS = {
    "height": 175.0,
    "weight": 70.0,
    "heart_rate": 72,
    "blood_pressure_systolic": 120,
    "blood_pressure_diastolic": 80,
    "blood_sugar": 95.0,
    "cholesterol": 180.0,
    "temperature": 98.6,
}

SAMPLE_CONDITION = {
    "name": "Hypertension",
    "description": "High blood pressure",
    "severity": Severity.MEDIUM,
    "diagnosed_date": date(2023, 1, 15),
    "is_active": True,
    "medications": "Lisinopril 10mg daily",
}

DOCTOR_PASSWORD = "doctor123"

SAMPLE_DOCTORS = [
    {
        "first_name": "Sarah",
        "last_name": "Johnson",
        "email": "dr.johnson@medease.com",
        "phone": "9876543210",
        "date_of_birth": date(1980, 3, 20),
        "gender": Gender.FEMALE,
        "specialty": "Cardiology",
        "qualifications": "MD, FACC",
        "experience_years": 15,
        "hospital_affiliation": "City General Hospital",
        "license_number": "MD12345",
        "consultation_fee": Decimal("200.00"),
        "bio": "Experienced cardiologist specializing in heart disease prevention and treatment.",
        "rating": 4.8,
        "total_reviews": 150,
    },
    {
        "first_name": "Michael",
        "last_name": "Smith",
        "email": "dr.smith@medease.com",
        "phone": "9876543211",
        "date_of_birth": date(1975, 8, 10),
        "gender": Gender.MALE,
        "specialty": "General Practice",
        "qualifications": "MD, MRCGP",
        "experience_years": 20,
        "hospital_affiliation": "Community Health Center",
        "license_number": "MD12346",
        "consultation_fee": Decimal("150.00"),
        "bio": "Family medicine physician providing comprehensive primary care.",
        "rating": 4.6,
        "total_reviews": 200,
    },
    {
        "first_name": "Emily",
        "last_name": "Davis",
        "email": "dr.davis@medease.com",
        "phone": "9876543212",
        "date_of_birth": date(1985, 12, 5),
        "gender": Gender.FEMALE,
        "specialty": "Dermatology",
        "qualifications": "MD, FAAD",
        "experience_years": 10,
        "hospital_affiliation": "Skin Care Clinic",
        "license_number": "MD12347",
        "consultation_fee": Decimal("180.00"),
        "bio": "Board-certified dermatologist specializing in skin conditions and cosmetic procedures.",
        "rating": 4.9,
        "total_reviews": 120,
    },
]

USER_FIELDS = ("first_name", "last_name", "email", "phone", "date_of_birth")


def _new_user(data: dict, password: str, role: Role) -> User:
    user = User(
        hashed_password=get_password_hash(password),
        gender=data["gender"].value,
        is_active=True,
        **{field: data[field] for field in USER_FIELDS},
    )
    user.roles.append(role)
    return user


def seed_roles(db: Session) -> dict:
    """Create the three roles if the table is empty; returns roles by name."""
    created = 0
    if db.query(Role).count() == 0:
        for name in RoleName:
            db.add(Role(name=name.value))
            created += 1
        db.flush()
    roles = {role.name: role for role in db.query(Role).all()}
    return {"roles": roles, "created": created}


def seed_database(db: Session) -> dict:
    """
    Populate an empty database with roles, one patient and three doctors.

    Returns a summary of what was created; all zeros when the database
    already had users.
    """
    summary = {"roles": 0, "patients": 0, "doctors": 0, "conditions": 0}

    role_result = seed_roles(db)
    summary["roles"] = role_result["created"]
    roles = role_result["roles"]

    if db.query(User).count() > 0:
        db.commit()
        logger.info("Seed skipped: users already present", extra={"summary": summary})
        return summary

    patient_user = _new_user(SAMPLE_PATIENT, SAMPLE_PATIENT["password"], roles[RoleName.PATIENT.value])
    patient = Patient()
    patient.health_metrics = HealthMetrics(**SAMPLE_METRICS)
    patient.conditions.append(
        MedicalCondition(**{**SAMPLE_CONDITION, "severity": SAMPLE_CONDITION["severity"].value})
    )
    patient_user.patient = patient
    db.add(patient_user)
    summary["patients"] += 1
    summary["conditions"] += 1

    for data in SAMPLE_DOCTORS:
        doctor_user = _new_user(data, DOCTOR_PASSWORD, roles[RoleName.DOCTOR.value])
        doctor_user.doctor = Doctor(
            specialty=data["specialty"],
            qualifications=data["qualifications"],
            experience_years=data["experience_years"],
            hospital_affiliation=data["hospital_affiliation"],
            license_number=data["license_number"],
            consultation_fee=data["consultation_fee"],
            bio=data["bio"],
            rating=data["rating"],
            total_reviews=data["total_reviews"],
            is_available=True,
        )
        db.add(doctor_user)
        summary["doctors"] += 1

    db.commit()
    logger.info("Sample data seeded", extra={"summary": summary})
    return summary


if __name__ == "__main__":
    create_tables()
    session = SessionLocal()
    try:
        result = seed_database(session)
    finally:
        session.close()
    print(f"Seed complete: {result}")
