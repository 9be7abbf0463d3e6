# ParkEase/controllers/auth_controller.py
from flask import redirect, url_for, request, flash, current_app, send_from_directory
from flask_login import login_user, logout_user, current_user, login_required

from models.models import User, Parking, ROLE_DRIVER, ROLE_OWNER
from services.registration import RegistrationGate
from utils import render_page, prevent_back_history, get_file_store, get_parking_classifier
from validators.rules import FormValidator, ValidationError, parse_bool


def init_auth_controller(app):
    """Initializes authentication and landing routes with the Flask app."""

    @app.route('/')
    def home():
        if current_user.is_authenticated:
            return redirect(url_for('dashboard'))
        return render_page('welcome',
                           ownerCount=User.query.filter_by(role=ROLE_OWNER).count(),
                           driverCount=User.query.filter_by(role=ROLE_DRIVER).count(),
                           parkingCount=Parking.query.count())

    @app.route('/dashboard')
    @login_required
    @prevent_back_history
    def dashboard():
        return render_page('dashboard')

    @app.route('/login', methods=['GET', 'POST'])
    def login():
        if current_user.is_authenticated:
            flash("You are already logged in!", "info")
            return redirect(url_for('dashboard'))

        if request.method == 'POST':
            validator = FormValidator(request.form)
            email = validator.string('email', required=True)
            validator.string('password', required=True)
            validator.validated()

            user = User.query.filter_by(email=email).first()
            if not user or not user.check_password(request.form.get('password')):
                raise ValidationError.single('email', 'These credentials do not match our records.')

            login_user(user, remember=parse_bool(request.form.get('remember')))
            flash(f"Welcome back, {user.name}!", "success")
            return redirect(url_for('dashboard'))

        return render_page('auth/login')

    @app.route('/register', methods=['GET', 'POST'])
    def register():
        if current_user.is_authenticated:
            flash("You are already registered and logged in!", "info")
            return redirect(url_for('dashboard'))

        if request.method == 'POST':
            gate = RegistrationGate(get_parking_classifier(), get_file_store())
            new_user = gate.register(request.form, request.files)
            login_user(new_user)
            flash("Registration successful!", "success")
            return redirect(url_for('dashboard'))

        return render_page('auth/register')

    @app.route('/logout', methods=['POST'])
    @login_required
    def logout():
        logout_user()
        flash("You have been logged out.", "info")
        return redirect(url_for('home'))

    @app.route('/storage/<path:filename>')
    def storage_file(filename):
        return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)
