# ParkEase/controllers/reservation_controller.py
import logging
from datetime import datetime

from flask import request, flash, redirect, url_for, abort
from flask_login import current_user, login_required

from models.models import (db, Parking, Reservation, Vehicle, utcnow, PARKING_ACTIVE,
                           RESERVATION_PENDING, RESERVATION_ACTIVE, RESERVATION_COMPLETED,
                           RESERVATION_CANCELLED_AUTO, RESERVATION_CANCELLED_USER,
                           CANCELLED_STATUSES, ONGOING_STATUSES)
from utils import render_page
from validators.rules import FormValidator, ValidationError

logger = logging.getLogger(__name__)

DRIVERS_ONLY = 'Only drivers can reserve a parking.'
NOT_ACTIVE = 'This parking is not active for reservations.'
NO_SPOTS = 'No spots available in this parking.'
CLOSED = 'This parking is currently closed.'
NO_VEHICLE = 'You must add a vehicle to your account first.'


def is_bookable_now(parking, now=None):
    """Booking needs known opening hours; the closing time itself is already closed."""
    if parking.is_24h:
        return True
    if not parking.opening_time or not parking.closing_time:
        return False
    current = (now or datetime.now()).time().replace(second=0, microsecond=0)
    return parking.opening_time <= current < parking.closing_time


def booking_refusal(parking, has_vehicles=True, now=None):
    """First reason the parking cannot be booked right now, or None."""
    if parking.status != PARKING_ACTIVE:
        return NOT_ACTIVE
    if parking.available_spots <= 0:
        return NO_SPOTS
    if not is_bookable_now(parking, now):
        return CLOSED
    if not has_vehicles:
        return NO_VEHICLE
    return None


def expire_pending(reservation, now=None):
    """Flips an overdue pending reservation to cancelled_auto and frees its spot."""
    if reservation.status != RESERVATION_PENDING or not reservation.is_expired(now):
        return False
    reservation.status = RESERVATION_CANCELLED_AUTO
    reservation.release_spot()
    logger.info("Reservation %s expired, spot released at parking %s", reservation.id, reservation.parking_id)
    return True


def reservation_payload(reservation, now=None):
    parking = reservation.parking
    vehicle = reservation.vehicle
    return {
        'id': reservation.id,
        'status': reservation.status,
        'reserved_at': reservation.reference_time.isoformat(),
        'remaining_seconds': reservation.remaining_seconds(now),
        'parking': {
            'name': parking.name if parking else None,
            'address_label': parking.address_label if parking else None,
            'cancel_time_limit': parking.cancel_time_limit if parking else None,
        },
        'vehicle': {
            'license_plate': vehicle.license_plate if vehicle else None,
            'brand': vehicle.brand if vehicle else None,
            'model': vehicle.model if vehicle else None,
        },
    }


def init_reservation_controller(app):
    """Initializes the driver's reservation routes with the Flask app."""

    def require_driver():
        if not current_user.is_driver():
            abort(403, DRIVERS_ONLY)

    @app.route('/reservations')
    @login_required
    def reservations_index():
        now = utcnow()
        reservations = (Reservation.query.filter_by(user_id=current_user.id)
                        .order_by(Reservation.reserved_at.desc(), Reservation.id.desc())
                        .all())

        visible = []
        expired_any = False
        for reservation in reservations:
            if reservation.status in CANCELLED_STATUSES:
                continue
            if expire_pending(reservation, now):
                expired_any = True
                continue
            visible.append(reservation_payload(reservation, now))

        if expired_any:
            db.session.commit()

        return render_page('Reservations/Index', reservations=visible)

    @app.route('/parkings/<int:parking_id>/reserve')
    @login_required
    def reservations_create(parking_id):
        require_driver()
        parking = db.get_or_404(Parking, parking_id)

        vehicles = (Vehicle.query.filter_by(user_id=current_user.id)
                    .order_by(Vehicle.is_primary.desc(), Vehicle.id)
                    .all())
        reason = booking_refusal(parking, has_vehicles=bool(vehicles))

        return render_page('parking/reserve',
                           parking={
                               'id': parking.id,
                               'name': parking.name,
                               'address_label': parking.address_label,
                               'price_per_hour': float(parking.price_per_hour),
                               'available_spots': parking.available_spots,
                               'cancel_time_limit': parking.cancel_time_limit,
                               'photo_url': parking.photo_url,
                           },
                           vehicles=[{
                               'id': vehicle.id,
                               'license_plate': vehicle.license_plate,
                               'brand': vehicle.brand,
                               'model': vehicle.model,
                               'is_primary': vehicle.is_primary,
                           } for vehicle in vehicles],
                           canBook=reason is None,
                           notBookableReason=reason)

    @app.route('/parkings/<int:parking_id>/reserve', methods=['POST'])
    @login_required
    def reservations_store(parking_id):
        require_driver()
        parking = db.get_or_404(Parking, parking_id)

        validator = FormValidator(request.form)
        vehicle_id = validator.number('vehicle_id', required=True, integer=True)
        if vehicle_id is not None and not Vehicle.query.filter_by(id=vehicle_id, user_id=current_user.id).first():
            validator.fail('vehicle_id', 'exists', 'The selected vehicle id is invalid.')
        validator.validated()

        reason = booking_refusal(parking)
        if reason:
            raise ValidationError.single('reservation', reason)

        ongoing = (Reservation.query
                   .filter(Reservation.vehicle_id == vehicle_id, Reservation.status.in_(ONGOING_STATUSES))
                   .first())
        if ongoing:
            raise ValidationError.single('vehicle_id', 'This vehicle already has an ongoing reservation.')

        reservation = Reservation(
            user_id=current_user.id,
            parking_id=parking.id,
            vehicle_id=vehicle_id,
            status=RESERVATION_PENDING,
            reserved_at=utcnow(),
        )
        db.session.add(reservation)
        # The pending reservation holds a spot
        parking.available_spots -= 1
        db.session.commit()

        logger.info("Reservation %s created at parking %s", reservation.id, parking.id)
        flash('Reservation created successfully.', 'success')
        return redirect(url_for('reservations_create', parking_id=parking.id))

    @app.route('/reservations/<int:reservation_id>/cancel', methods=['POST', 'PATCH'])
    @login_required
    def reservations_cancel(reservation_id):
        reservation = db.get_or_404(Reservation, reservation_id)
        if reservation.user_id != current_user.id:
            abort(403, 'You cannot cancel this reservation.')

        if reservation.status in CANCELLED_STATUSES + (RESERVATION_COMPLETED,):
            raise ValidationError.single('reservation', 'This reservation can no longer be cancelled.')
        if reservation.status == RESERVATION_ACTIVE:
            raise ValidationError.single('reservation',
                                         'The vehicle has already entered the parking. Cancellation is not possible.')

        parking = reservation.parking
        if not parking or not parking.cancel_time_limit:
            raise ValidationError.single('reservation', 'This reservation cannot be cancelled.')

        if expire_pending(reservation):
            db.session.commit()
            raise ValidationError.single('reservation',
                                         'The cancellation deadline has passed. The reservation has expired.')

        reservation.status = RESERVATION_CANCELLED_USER
        reservation.release_spot()
        db.session.commit()

        flash('Reservation cancelled successfully.', 'success')
        return redirect(request.referrer or url_for('reservations_index'))
