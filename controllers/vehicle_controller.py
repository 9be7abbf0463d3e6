# ParkEase/controllers/vehicle_controller.py
from datetime import date

from flask import request, flash, redirect, url_for, abort, current_app
from flask_login import current_user, login_required

from models.models import db, Vehicle
from utils import render_page, prevent_back_history
from validators.license_plate import validate_license_plate, format_license_plate
from validators.rules import FormValidator, ValidationError, parse_bool

VEHICLE_MESSAGES = {
    'license_plate.required': 'License plate is required.',
    'license_plate.min': 'License plate must be at least 2 characters.',
    'license_plate.max': 'License plate cannot exceed 20 characters.',
    'brand.regex': 'Brand can only contain letters, numbers, spaces and hyphens.',
    'model.regex': 'Model can only contain letters, numbers, spaces and hyphens.',
    'color.regex': 'Color can only contain letters and spaces.',
    'year.min': 'Year must be 1900 or later.',
    'year.max': 'Year cannot be in the future.',
}
PLATE_TAKEN = 'This license plate is already registered in our system.'


def sanitize_string(value):
    """Trims and title-cases a free-text field; blank becomes None."""
    if value is None or not value.strip():
        return None
    return ' '.join(word.capitalize() for word in value.split())


def validate_vehicle_form(form, ignore_vehicle_id=None):
    validator = FormValidator(form, messages=VEHICLE_MESSAGES)
    plate = validator.string('license_plate', required=True, min_length=2, max_length=20)
    if plate is not None:
        verdict = validate_license_plate(plate)
        if not verdict.is_valid:
            validator.fail('license_plate', 'plate', verdict.message)
        else:
            formatted = format_license_plate(plate)
            taken = Vehicle.query.filter(Vehicle.license_plate == formatted)
            if ignore_vehicle_id is not None:
                taken = taken.filter(Vehicle.id != ignore_vehicle_id)
            if taken.first() is not None:
                validator.fail('license_plate', 'unique', PLATE_TAKEN)
            validator.validated_data['license_plate'] = formatted

    validator.string('brand', max_length=50, pattern=r'^[a-zA-Z0-9\s\-]+$')
    validator.string('model', max_length=50, pattern=r'^[a-zA-Z0-9\s\-]+$')
    validator.string('color', max_length=30, pattern=r'^[a-zA-Z\s]+$')
    validator.choice('type', Vehicle.TYPES)
    validator.number('year', minimum=1900, maximum=date.today().year + 1, integer=True)
    validator.boolean('is_primary')
    return validator.validated()


def init_vehicle_controller(app):
    """Initializes the driver's vehicle routes with the Flask app."""

    def require_driver(message):
        if not current_user.is_driver():
            abort(403, message)

    def owned_vehicle_or_403(vehicle_id):
        vehicle = db.get_or_404(Vehicle, vehicle_id)
        if vehicle.user_id != current_user.id:
            abort(403)
        return vehicle

    def back():
        return redirect(request.referrer or url_for('vehicles_index'))

    @app.route('/settings/vehicles')
    @login_required
    @prevent_back_history
    def vehicles_index():
        require_driver('Only drivers can access this page.')
        vehicles = (Vehicle.query.filter_by(user_id=current_user.id)
                    .order_by(Vehicle.is_primary.desc(), Vehicle.created_at.desc(), Vehicle.id.desc())
                    .all())
        return render_page('settings/vehicles',
                           vehicles=[vehicle.to_dict() for vehicle in vehicles],
                           vehicleTypes=Vehicle.TYPES)

    @app.route('/settings/vehicles', methods=['POST'])
    @login_required
    def vehicles_store():
        require_driver('Only drivers can add vehicles.')

        count = Vehicle.query.filter_by(user_id=current_user.id).count()
        limit = current_app.config['MAX_VEHICLES_PER_DRIVER']
        if count >= limit:
            raise ValidationError.single('vehicle', f'You can only register up to {limit} vehicles.')

        data = validate_vehicle_form(request.form)

        is_primary = count == 0 or data['is_primary']
        if is_primary:
            Vehicle.query.filter_by(user_id=current_user.id).update({'is_primary': False})

        vehicle = Vehicle(
            user_id=current_user.id,
            license_plate=data['license_plate'],
            brand=sanitize_string(data['brand']),
            model=sanitize_string(data['model']),
            color=sanitize_string(data['color']),
            type=data['type'],
            year=data['year'],
            is_primary=is_primary,
        )
        db.session.add(vehicle)
        db.session.commit()

        flash('Vehicle added successfully.', 'success')
        return back()

    @app.route('/settings/vehicles/<int:vehicle_id>', methods=['PUT', 'POST'])
    @login_required
    def vehicles_update(vehicle_id):
        vehicle = owned_vehicle_or_403(vehicle_id)
        data = validate_vehicle_form(request.form, ignore_vehicle_id=vehicle.id)

        make_primary = parse_bool(request.form.get('is_primary'))
        if make_primary:
            (Vehicle.query
             .filter(Vehicle.user_id == current_user.id, Vehicle.id != vehicle.id)
             .update({'is_primary': False}))

        vehicle.license_plate = data['license_plate']
        vehicle.brand = sanitize_string(data['brand'])
        vehicle.model = sanitize_string(data['model'])
        vehicle.color = sanitize_string(data['color'])
        vehicle.type = data['type']
        vehicle.year = data['year']
        vehicle.is_primary = make_primary or vehicle.is_primary
        db.session.commit()

        flash('Vehicle updated successfully.', 'success')
        return back()

    @app.route('/settings/vehicles/<int:vehicle_id>', methods=['DELETE'])
    @app.route('/settings/vehicles/<int:vehicle_id>/delete', methods=['POST'])
    @login_required
    def vehicles_destroy(vehicle_id):
        vehicle = owned_vehicle_or_403(vehicle_id)
        was_primary = vehicle.is_primary

        db.session.delete(vehicle)
        db.session.flush()

        if was_primary:
            successor = Vehicle.query.filter_by(user_id=current_user.id).order_by(Vehicle.id).first()
            if successor:
                successor.is_primary = True
        db.session.commit()

        flash('Vehicle removed successfully.', 'success')
        return back()

    @app.route('/settings/vehicles/<int:vehicle_id>/primary', methods=['PATCH', 'POST'])
    @login_required
    def vehicles_set_primary(vehicle_id):
        vehicle = owned_vehicle_or_403(vehicle_id)

        Vehicle.query.filter_by(user_id=current_user.id).update({'is_primary': False})
        vehicle.is_primary = True
        db.session.commit()

        flash('Primary vehicle updated.', 'success')
        return back()
