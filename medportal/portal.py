"""
Portal Blueprint - doctor directory, doctor profiles and appointments
"""
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user

from medportal import db
from medportal.auth import doctor_required, log_audit_event
from medportal.doctors import search_doctors, list_specializations
from medportal.models import DoctorProfile, Appointment, AppointmentStatus

portal_bp = Blueprint('portal', __name__)

DOCTOR_REQUIRED_FIELDS = ('name', 'specialization')
APPOINTMENT_REQUIRED_FIELDS = ('doctor_email', 'appointment_date', 'appointment_time')


def _truthy(value) -> bool:
    return (value or '').strip().lower() in {'1', 'true', 'yes', 'on'}


def clean_doctor_payload(payload):
    """Pick editable profile fields and coerce numbers. Returns (data, error)."""
    data = {k: payload[k] for k in DoctorProfile.EDITABLE_FIELDS if k in payload}
    for key, value in list(data.items()):
        if isinstance(value, str):
            data[key] = value.strip()
    try:
        if 'experience' in data:
            data['experience'] = int(data['experience'] or 0)
        if 'fees' in data:
            data['fees'] = float(data['fees'] or 0)
    except (TypeError, ValueError):
        return None, 'Experience and fees must be numbers'
    if data.get('experience', 0) < 0 or data.get('fees', 0) < 0:
        return None, 'Experience and fees cannot be negative'
    return data, ''


# ============ Doctors ============

@portal_bp.route('/doctors', methods=['GET'])
def list_doctors():
    email = (request.args.get('email') or '').strip().lower()
    if email:
        profile = DoctorProfile.query.filter_by(email=email).first()
        if profile is None:
            return jsonify({'error': 'Doctor profile not found'}), 404
        return jsonify(profile.to_dict()), 200

    max_fees = request.args.get('max_fees')
    try:
        max_fees = float(max_fees) if max_fees not in (None, '') else None
    except ValueError:
        return jsonify({'error': 'max_fees must be a number'}), 400

    doctors = [d.to_dict() for d in DoctorProfile.query.order_by(DoctorProfile.name).all()]
    results = search_doctors(
        doctors,
        query=request.args.get('q', ''),
        location=request.args.get('location', ''),
        max_fees=max_fees,
        specialization=request.args.get('specialization'),
        recommend=_truthy(request.args.get('recommend')),
    )
    return jsonify(results), 200


@portal_bp.route('/specializations', methods=['GET'])
def specializations():
    doctors = [d.to_dict() for d in DoctorProfile.query.all()]
    return jsonify(list_specializations(doctors)), 200


@portal_bp.route('/doctors', methods=['POST'])
@doctor_required
def create_doctor_profile():
    if DoctorProfile.query.filter_by(email=current_user.email).first():
        return jsonify({'error': 'Doctor profile already exists'}), 409

    payload = request.get_json(silent=True) or {}
    payload.setdefault('name', current_user.full_name)
    data, err = clean_doctor_payload(payload)
    if err:
        return jsonify({'error': err}), 400
    missing = [f for f in DOCTOR_REQUIRED_FIELDS if not data.get(f)]
    if missing:
        return jsonify({'error': f"Missing required fields: {', '.join(missing)}"}), 400

    profile = DoctorProfile(email=current_user.email)
    profile.update_from_dict(data)
    try:
        db.session.add(profile)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Doctor profile create failed for {current_user.email}: {e}')
        return jsonify({'error': 'Failed to create profile'}), 500

    log_audit_event('doctor_profile_created', f'Profile {profile.id} created')
    return jsonify({'message': 'Doctor profile created successfully!', 'doctor': profile.to_dict()}), 201


@portal_bp.route('/doctors', methods=['PUT'])
@doctor_required
def update_doctor_profile():
    profile = DoctorProfile.query.filter_by(email=current_user.email).first()
    if profile is None:
        return jsonify({'error': 'Doctor profile not found'}), 404

    data, err = clean_doctor_payload(request.get_json(silent=True) or {})
    if err:
        return jsonify({'error': err}), 400
    if any(f in data and not data[f] for f in DOCTOR_REQUIRED_FIELDS):
        return jsonify({'error': 'Name and specialization cannot be empty'}), 400

    profile.update_from_dict(data)
    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Doctor profile update failed for {current_user.email}: {e}')
        return jsonify({'error': 'Failed to update profile'}), 500

    log_audit_event('doctor_profile_updated', f'Profile {profile.id} updated')
    return jsonify({'message': 'Doctor profile updated successfully!', 'doctor': profile.to_dict()}), 200


# ============ Appointments ============

@portal_bp.route('/appointments', methods=['GET'])
@login_required
def list_appointments():
    kind = (request.args.get('type') or 'patient').strip().lower()
    if kind == 'doctor':
        if not current_user.is_doctor:
            return jsonify({'error': 'Doctor account required'}), 403
        query = Appointment.query.filter_by(doctor_email=current_user.email)
    elif kind == 'patient':
        query = Appointment.query.filter_by(patient_email=current_user.email)
    else:
        return jsonify({'error': "type must be 'patient' or 'doctor'"}), 400

    appointments = query.order_by(Appointment.appointment_date, Appointment.appointment_time).all()
    return jsonify([a.to_dict() for a in appointments]), 200


@portal_bp.route('/appointments', methods=['POST'])
@login_required
def book_appointment():
    payload = request.get_json(silent=True) or {}
    missing = [f for f in APPOINTMENT_REQUIRED_FIELDS if not str(payload.get(f) or '').strip()]
    if missing:
        return jsonify({'error': f"Missing required fields: {', '.join(missing)}"}), 400

    doctor_email = str(payload['doctor_email']).strip().lower()
    doctor = DoctorProfile.query.filter_by(email=doctor_email).first()
    if doctor is None:
        return jsonify({'error': 'Doctor not found'}), 404

    # Patient identity comes from the session, never from the payload
    appointment = Appointment(
        patient_name=current_user.full_name or current_user.email,
        patient_email=current_user.email,
        doctor_name=doctor.name,
        doctor_email=doctor.email,
        appointment_date=str(payload['appointment_date']).strip(),
        appointment_time=str(payload['appointment_time']).strip(),
        reason=str(payload.get('reason') or '').strip(),
        status=AppointmentStatus.PENDING,
    )
    try:
        db.session.add(appointment)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Appointment booking failed for {current_user.email}: {e}')
        return jsonify({'error': 'Failed to book appointment.'}), 500

    log_audit_event('appointment_booked', f'Appointment {appointment.id} with {doctor.email}')
    return jsonify({'message': 'Appointment booked successfully!', 'appointment': appointment.to_dict()}), 201


@portal_bp.route('/appointments/<int:appointment_id>', methods=['PATCH'])
@doctor_required
def update_appointment_status(appointment_id):
    payload = request.get_json(silent=True) or {}
    status_value = str(payload.get('status') or '').strip().capitalize()
    if status_value not in (AppointmentStatus.ACCEPTED.value, AppointmentStatus.REJECTED.value):
        return jsonify({'error': "status must be 'Accepted' or 'Rejected'"}), 400

    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        return jsonify({'error': 'Appointment not found'}), 404
    if appointment.doctor_email != current_user.email:
        return jsonify({'error': 'Not your appointment'}), 403

    appointment.status = AppointmentStatus(status_value)
    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f'Appointment {appointment_id} status update failed: {e}')
        return jsonify({'error': 'Failed to update appointment'}), 500

    log_audit_event('appointment_status', f'Appointment {appointment_id} {status_value.lower()}')
    return jsonify({'message': f'Appointment {status_value.lower()}', 'appointment': appointment.to_dict()}), 200


# ============ Users ============

@portal_bp.route('/users/me', methods=['GET'])
@login_required
def current_profile():
    result = current_user.to_dict()
    if current_user.is_doctor:
        profile = DoctorProfile.query.filter_by(email=current_user.email).first()
        result['doctor_profile'] = profile.to_dict() if profile else None
    return jsonify(result), 200
