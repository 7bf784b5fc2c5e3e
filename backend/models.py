from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime, date

from database import Gender, Severity


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class MessageResponse(CamelModel):
    message: str


# Authentication Models
class SignupRequest(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=15)
    password: str = Field(..., min_length=6, max_length=120)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None

    @field_validator("email")
    @classmethod
    def _email_length(cls, value):
        if len(value) > 100:
            raise ValueError("Email must be at most 100 characters")
        return value


class SigninRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class AuthResponse(CamelModel):
    token: str
    type: str = "Bearer"
    id: int
    email: str
    first_name: str
    last_name: str
    roles: List[str]
    refresh_token: Optional[str] = None


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class RefreshResponse(CamelModel):
    token: str
    type: str = "Bearer"
    expires_in: int


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=120)


class TokenUser(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    roles: List[str]


class TokenValidationResponse(CamelModel):
    valid: bool
    user: Optional[TokenUser] = None


class UserResponse(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    is_active: bool
    roles: List[str] = []

    @field_validator("roles", mode="before")
    @classmethod
    def _role_names(cls, value):
        return sorted(getattr(role, "name", role) for role in value or [])


# Doctor Models
class DoctorBase(CamelModel):
    specialty: Optional[str] = None
    qualifications: Optional[str] = None
    experience_years: Optional[int] = Field(None, ge=0)
    hospital_affiliation: Optional[str] = None
    license_number: Optional[str] = None
    consultation_fee: Optional[float] = Field(None, ge=0)
    bio: Optional[str] = None


class DoctorCreate(DoctorBase):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=15)
    password: str = Field(..., min_length=6, max_length=120)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    specialty: str = Field(..., min_length=1)
    is_available: bool = True


class DoctorUpdate(DoctorBase):
    is_available: Optional[bool] = None


class DoctorResponse(DoctorBase):
    id: int
    user_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    rating: Optional[float] = None
    total_reviews: Optional[int] = None
    is_available: bool


class DoctorPage(CamelModel):
    content: List[DoctorResponse]
    page: int
    size: int
    total_elements: int
    total_pages: int


# Appointment Models
class BookAppointmentRequest(CamelModel):
    doctor_id: int
    appointment_date: str  # YYYY-MM-DD
    appointment_time: str  # HH:MM[:SS]
    reason: Optional[str] = None
    type: Optional[str] = None


class StatusUpdateRequest(CamelModel):
    status: str


class NotesRequest(CamelModel):
    notes: str


class AppointmentResponse(CamelModel):
    id: int
    patient_id: int
    doctor_id: int
    patient_name: Optional[str] = None
    doctor_name: Optional[str] = None
    doctor_specialty: Optional[str] = None
    appointment_date: datetime
    status: str
    type: str
    reason: Optional[str] = None
    notes: Optional[str] = None
    prescription: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Patient Models
class PatientProfileResponse(CamelModel):
    id: int
    user_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None


class ProfileUpdate(CamelModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = Field(None, min_length=1, max_length=15)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None


class HealthMetricsBase(CamelModel):
    weight: Optional[float] = Field(None, gt=0)  # kg
    height: Optional[float] = Field(None, gt=0)  # cm
    heart_rate: Optional[int] = None
    blood_pressure_systolic: Optional[int] = None
    blood_pressure_diastolic: Optional[int] = None
    blood_sugar: Optional[float] = None
    cholesterol: Optional[float] = None
    temperature: Optional[float] = None


class HealthMetricsUpdate(HealthMetricsBase):
    """BMI is derived server-side; a client-sent value is ignored."""
    pass


class HealthMetricsResponse(HealthMetricsBase):
    id: int
    patient_id: int
    bmi: Optional[float] = None
    last_updated: Optional[datetime] = None


class ConditionBase(CamelModel):
    description: Optional[str] = None
    severity: Optional[Severity] = None
    diagnosed_date: Optional[date] = None
    medications: Optional[str] = None


class ConditionCreate(ConditionBase):
    name: str = Field(..., min_length=1)
    is_active: bool = True


class ConditionUpdate(ConditionBase):
    name: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None


class ConditionResponse(CamelModel):
    id: int
    patient_id: int
    name: str
    description: Optional[str] = None
    severity: Optional[str] = None
    diagnosed_date: Optional[date] = None
    is_active: bool
    medications: Optional[str] = None
    created_at: Optional[datetime] = None
