"""
Database Models

Key Models:
- User: Patient or doctor account, identified by email
- DoctorProfile: Public profile shown in the doctor directory
- Appointment: Booking between a patient and a doctor
- Analysis: Stored image analysis (AnalysisRecord), immutable once written
- AuditLog: Compliance tracking
"""
from datetime import datetime, timezone
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
import enum
from medportal import db


class UserRole(enum.Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"


class AppointmentStatus(enum.Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


def _utcnow():
    return datetime.now(timezone.utc)


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    given_name = db.Column(db.String(100))
    family_name = db.Column(db.String(100))
    role = db.Column(db.Enum(UserRole), default=UserRole.PATIENT)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    @property
    def is_doctor(self):
        return self.role == UserRole.DOCTOR

    @property
    def full_name(self):
        return " ".join(p for p in (self.given_name, self.family_name) if p)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'given_name': self.given_name or '',
            'family_name': self.family_name or '',
            'role': self.role.value if self.role else UserRole.PATIENT.value,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class DoctorProfile(db.Model):
    __tablename__ = 'doctor_profiles'

    # Fields a doctor may edit through the profile form
    EDITABLE_FIELDS = (
        'name', 'specialization', 'experience', 'degree', 'clinic_location',
        'fees', 'contact_number', 'hospital_affiliation', 'availability', 'bio',
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    specialization = db.Column(db.String(120), nullable=False, index=True)
    experience = db.Column(db.Integer, default=0)
    degree = db.Column(db.String(120))
    clinic_location = db.Column(db.String(255))
    fees = db.Column(db.Float, default=0.0)
    contact_number = db.Column(db.String(50))
    hospital_affiliation = db.Column(db.String(255))
    availability = db.Column(db.String(255))
    bio = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), onupdate=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'specialization': self.specialization,
            'experience': self.experience or 0,
            'degree': self.degree or '',
            'clinic_location': self.clinic_location or '',
            'fees': self.fees or 0.0,
            'contact_number': self.contact_number or '',
            'hospital_affiliation': self.hospital_affiliation or '',
            'availability': self.availability or '',
            'bio': self.bio or '',
        }

    def update_from_dict(self, data):
        """Update editable fields present in data"""
        for key in self.EDITABLE_FIELDS:
            if key in data:
                setattr(self, key, data[key])


class Appointment(db.Model):
    __tablename__ = 'appointments'

    id = db.Column(db.Integer, primary_key=True)
    patient_name = db.Column(db.String(200), nullable=False)
    patient_email = db.Column(db.String(255), nullable=False, index=True)
    doctor_name = db.Column(db.String(200), nullable=False)
    doctor_email = db.Column(db.String(255), nullable=False, index=True)
    appointment_date = db.Column(db.String(20), nullable=False)
    appointment_time = db.Column(db.String(20), nullable=False)
    reason = db.Column(db.Text)
    status = db.Column(db.Enum(AppointmentStatus), default=AppointmentStatus.PENDING)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), onupdate=_utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'patient_name': self.patient_name,
            'patient_email': self.patient_email,
            'doctor_name': self.doctor_name,
            'doctor_email': self.doctor_email,
            'appointment_date': self.appointment_date,
            'appointment_time': self.appointment_time,
            'reason': self.reason or '',
            'status': (self.status or AppointmentStatus.PENDING).value,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Analysis(db.Model):
    """
    Image analysis produced by the model and normalized before storage.

    Rows are written once by the analyze endpoint and never updated.
    potential_conditions only ever holds allow-listed disease names.
    """
    __tablename__ = 'analyses'

    id = db.Column(db.Integer, primary_key=True)
    owner_email = db.Column(db.String(255), nullable=False, index=True)
    diagnosis = db.Column(db.Text, default='')
    observations = db.Column(db.JSON, default=list)
    potential_conditions = db.Column(db.JSON, default=list)
    areas_of_concern = db.Column(db.JSON, default=list)
    image_data = db.Column(db.Text)  # base64
    mime_type = db.Column(db.String(100))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_record(self):
        """AnalysisRecord fields only, as fed back to the model"""
        return {
            'diagnosis': self.diagnosis or '',
            'observations': list(self.observations or []),
            'potential_conditions': list(self.potential_conditions or []),
            'areas_of_concern': list(self.areas_of_concern or []),
        }

    def to_dict(self, include_image=False):
        result = self.to_record()
        result['id'] = self.id
        result['owner_email'] = self.owner_email
        result['mime_type'] = self.mime_type
        if self.created_at:
            result['created_at'] = self.created_at.isoformat()
        if include_image:
            result['image_data'] = self.image_data
        return result


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    event_type = db.Column(db.String(100), nullable=False)
    event_description = db.Column(db.Text)
    ip_address = db.Column(db.String(45))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
