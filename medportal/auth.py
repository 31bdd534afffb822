"""
Authentication routes and utilities
"""
from functools import wraps
from flask import Blueprint, render_template, redirect, url_for, request, flash, jsonify, current_app
from flask_login import login_user, logout_user, current_user, login_required
from medportal import db, login_manager
from medportal.models import User, UserRole, AuditLog

auth_bp = Blueprint('auth', __name__)

JSON_BLUEPRINTS = ('api', 'portal')


@login_manager.user_loader
def load_user(user_id):
    """Load user by ID"""
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    """JSON 401 for API callers, login redirect for pages"""
    if request.blueprint in JSON_BLUEPRINTS:
        return jsonify({'error': 'Unauthorized - No user email found'}), 401
    flash(login_manager.login_message, 'info')
    return redirect(url_for('auth.login', next=request.path))


def doctor_required(f):
    """Decorator to restrict an API route to doctor accounts"""
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if not current_user.is_doctor:
            return jsonify({'error': 'Doctor account required'}), 403
        return f(*args, **kwargs)
    return decorated_function


def log_audit_event(event_type, description, user=None):
    """Log audit event"""
    user = user or (current_user if current_user.is_authenticated else None)
    if user is None:
        return
    try:
        db.session.add(AuditLog(
            user_id=user.id,
            event_type=event_type,
            event_description=description,
            ip_address=request.remote_addr,
        ))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.warning(f'Audit log write failed for {event_type}: {e}')


@auth_bp.route('/')
def index():
    if current_user.is_authenticated:
        return render_template('index.html', user=current_user)
    return redirect(url_for('auth.login'))


@auth_bp.route('/register', methods=['GET', 'POST'])
def register():
    """User registration"""
    if current_user.is_authenticated:
        return redirect(url_for('auth.index'))

    if request.method == 'POST':
        email = request.form.get('email', '').strip().lower()
        password = request.form.get('password', '')
        password_confirm = request.form.get('password_confirm', '')
        given_name = request.form.get('given_name', '').strip()
        family_name = request.form.get('family_name', '').strip()
        role_value = request.form.get('role', UserRole.PATIENT.value).strip().lower()

        if not email or not password:
            flash('Email and password are required.', 'error')
            return render_template('auth/register.html'), 400

        if password != password_confirm:
            flash('Passwords do not match.', 'error')
            return render_template('auth/register.html'), 400

        if role_value not in {r.value for r in UserRole}:
            flash('Unknown account type.', 'error')
            return render_template('auth/register.html'), 400

        if User.query.filter_by(email=email).first():
            flash('Email already registered.', 'error')
            return render_template('auth/register.html'), 400

        user = User(
            email=email,
            given_name=given_name,
            family_name=family_name,
            role=UserRole(role_value),
        )
        user.set_password(password)

        try:
            db.session.add(user)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f'Registration failed for {email}: {e}')
            flash('Registration failed. Please try again.', 'error')
            return render_template('auth/register.html'), 500

        log_audit_event('user_registered', f'User {email} registered', user=user)

        login_user(user)
        flash('Registration successful! Welcome to MedPortal', 'success')
        return redirect(url_for('auth.index'))

    return render_template('auth/register.html')


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    """User login"""
    if current_user.is_authenticated:
        return redirect(url_for('auth.index'))

    if request.method == 'POST':
        email = request.form.get('email', '').strip().lower()
        password = request.form.get('password', '')
        remember = bool(request.form.get('remember'))

        user = User.query.filter_by(email=email).first()

        if user and user.check_password(password):
            login_user(user, remember=remember)
            log_audit_event('user_login', f'User {email} logged in')

            next_page = request.args.get('next')
            # Only follow local redirects
            if next_page and next_page.startswith('/') and not next_page.startswith('//'):
                return redirect(next_page)
            return redirect(url_for('auth.index'))

        flash('Invalid email or password.', 'error')

    return render_template('auth/login.html')


@auth_bp.route('/logout')
@login_required
def logout():
    """User logout"""
    log_audit_event('user_logout', f'User {current_user.email} logged out')
    logout_user()
    flash('You have been logged out.', 'info')
    return redirect(url_for('auth.login'))


@auth_bp.route('/api/auth/session')
def session_info():
    """Session lookup used by the frontend pages"""
    if not current_user.is_authenticated:
        return jsonify({'isAuthenticated': False, 'user': None})
    return jsonify({'isAuthenticated': True, 'user': current_user.to_dict()})
