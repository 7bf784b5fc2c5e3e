from sqlalchemy import (
    create_engine, event, Column, Integer, String, DateTime, Date, Boolean, Text,
    Float, Numeric, ForeignKey, Table, Index, text
)
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker, relationship, validates
import math
from datetime import datetime
from enum import Enum
from typing import Optional

from config import DATABASE_URL

# Handle PostgreSQL URL format differences
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# Create engine with appropriate connection args
connect_args = {"check_same_thread": False} if "sqlite" in DATABASE_URL else {}
engine = create_engine(DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

if DATABASE_URL.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        # SQLite ignores ON DELETE CASCADE unless this is set per connection
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

Base = declarative_base()


# =============================================================================
# ENUMERATIONS
# =============================================================================

class RoleName(str, Enum):
    """Authorization groups a user can hold"""
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"


class AppointmentStatus(str, Enum):
    """Status of an appointment"""
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class AppointmentType(str, Enum):
    """Kinds of clinical encounter"""
    CONSULTATION = "CONSULTATION"
    FOLLOW_UP = "FOLLOW_UP"
    EMERGENCY = "EMERGENCY"
    ROUTINE_CHECKUP = "ROUTINE_CHECKUP"
    SPECIALIST_REFERRAL = "SPECIALIST_REFERRAL"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


# =============================================================================
# IDENTITY
# =============================================================================

user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(20), unique=True, nullable=False)  # PATIENT, DOCTOR, ADMIN


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(100), unique=True, index=True, nullable=False)
    phone = Column(String(15))
    hashed_password = Column(String, nullable=False)
    date_of_birth = Column(Date)
    gender = Column(String)  # MALE, FEMALE, OTHER
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    roles = relationship("Role", secondary=user_roles, lazy="selectin")

    # Profiles owned by this identity
    patient = relationship("Patient", back_populates="user", uselist=False, cascade="all, delete-orphan")
    doctor = relationship("Doctor", back_populates="user", uselist=False, cascade="all, delete-orphan")

    @property
    def role_names(self):
        return sorted(role.name for role in self.roles)

    def has_role(self, *names) -> bool:
        wanted = {getattr(n, "value", n) for n in names}
        return any(role.name in wanted for role in self.roles)


# =============================================================================
# PATIENTS
# =============================================================================

class Patient(Base):
    """
    Patient - Clinical profile attached to a user account
    """
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="patient")
    health_metrics = relationship(
        "HealthMetrics", back_populates="patient", uselist=False, cascade="all, delete-orphan"
    )
    conditions = relationship("MedicalCondition", back_populates="patient", cascade="all, delete-orphan")
    appointments = relationship("Appointment", back_populates="patient", cascade="all, delete-orphan")

    @property
    def first_name(self):
        return self.user.first_name if self.user else None

    @property
    def last_name(self):
        return self.user.last_name if self.user else None

    @property
    def email(self):
        return self.user.email if self.user else None

    @property
    def phone(self):
        return self.user.phone if self.user else None

    @property
    def date_of_birth(self):
        return self.user.date_of_birth if self.user else None

    @property
    def gender(self):
        return self.user.gender if self.user else None


def calculate_bmi(weight: Optional[float], height: Optional[float]) -> Optional[float]:
    """Body Mass Index from weight in kg and height in cm, rounded to 2 places."""
    if weight is None or height is None or height <= 0:
        return None
    height_m = height / 100.0
    bmi = weight / (height_m * height_m)
    # half-up, so 22.625 is stored as 22.63
    return math.floor(bmi * 100 + 0.5) / 100


class HealthMetrics(Base):
    """
    Health Metrics - Latest vitals snapshot for a patient

    BMI is derived from weight and height and recalculated whenever either changes.
    """
    __tablename__ = "health_metrics"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), unique=True, nullable=False)

    weight = Column(Float)  # kg
    height = Column(Float)  # cm
    heart_rate = Column(Integer)  # bpm
    blood_pressure_systolic = Column(Integer)
    blood_pressure_diastolic = Column(Integer)
    blood_sugar = Column(Float)
    cholesterol = Column(Float)
    temperature = Column(Float)
    bmi = Column(Float)  # derived, see _recalculate_bmi

    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    patient = relationship("Patient", back_populates="health_metrics")

    @validates("weight", "height")
    def _recalculate_bmi(self, key, value):
        weight = value if key == "weight" else self.weight
        height = value if key == "height" else self.height
        self.bmi = calculate_bmi(weight, height)
        return value


class MedicalCondition(Base):
    """
    Medical Condition - A diagnosed condition on a patient's record
    """
    __tablename__ = "medical_conditions"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    description = Column(Text)
    severity = Column(String)  # LOW, MEDIUM, HIGH
    diagnosed_date = Column(Date)
    is_active = Column(Boolean, default=True)
    medications = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    patient = relationship("Patient", back_populates="conditions")


# =============================================================================
# DOCTORS
# =============================================================================

class Doctor(Base):
    """
    Doctor - Practitioner listing in the clinic directory
    """
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    # Practice information
    specialty = Column(String, index=True)
    qualifications = Column(String)  # "MD, FACC"
    experience_years = Column(Integer)
    hospital_affiliation = Column(String)
    license_number = Column(String)
    consultation_fee = Column(Numeric(10, 2))
    bio = Column(Text)

    # Ratings
    rating = Column(Float, default=0.0)
    total_reviews = Column(Integer, default=0)

    # Availability gates new bookings
    is_available = Column(Boolean, default=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="doctor")
    appointments = relationship("Appointment", back_populates="doctor", cascade="all, delete-orphan")

    @property
    def first_name(self):
        return self.user.first_name if self.user else None

    @property
    def last_name(self):
        return self.user.last_name if self.user else None

    @property
    def email(self):
        return self.user.email if self.user else None

    @property
    def phone(self):
        return self.user.phone if self.user else None


# =============================================================================
# APPOINTMENTS
# =============================================================================

class Appointment(Base):
    """
    Appointment - One scheduled clinical encounter between a patient and a doctor

    Appointments are never deleted through the API; cancelling is a status change.
    Only one active (non-cancelled) appointment may hold a given doctor/timestamp.
    """
    __tablename__ = "appointments"
    __table_args__ = (
        Index(
            "uq_appointments_doctor_active_slot",
            "doctor_id",
            "appointment_date",
            unique=True,
            sqlite_where=text("status != 'CANCELLED'"),
            postgresql_where=text("status != 'CANCELLED'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)

    appointment_date = Column(DateTime, nullable=False, index=True)
    status = Column(String, default=AppointmentStatus.SCHEDULED.value, nullable=False)
    type = Column(String, default=AppointmentType.CONSULTATION.value, nullable=False)

    reason = Column(Text)
    notes = Column(Text)
    prescription = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")

    @validates("patient_id", "doctor_id")
    def _freeze_participants(self, key, value):
        current = getattr(self, key)
        if self.id is not None and current is not None and value != current:
            raise ValueError(f"{key} cannot change once an appointment is booked")
        return value

    @property
    def doctor_name(self):
        if self.doctor and self.doctor.user:
            return f"{self.doctor.user.first_name} {self.doctor.user.last_name}"
        return None

    @property
    def doctor_specialty(self):
        return self.doctor.specialty if self.doctor else None

    @property
    def patient_name(self):
        if self.patient and self.patient.user:
            return f"{self.patient.user.first_name} {self.patient.user.last_name}"
        return None


def create_tables():
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
