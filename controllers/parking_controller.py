# ParkEase/controllers/parking_controller.py
import logging
from datetime import datetime

from flask import redirect, url_for, request, flash, jsonify, abort, current_app
from flask_login import current_user, login_required
from sqlalchemy import or_

from models.models import db, Parking, PARKING_ACTIVE, PARKING_INACTIVE
from services.file_store import TentativeUpload
from utils import (render_page, get_file_store, haversine_km, format_distance,
                   pagination_payload, paginate_list)
from validators.rules import FormValidator, ValidationError, parse_bool

logger = logging.getLogger(__name__)

PHOTO_FOLDER = 'parkings'
SORT_FIELDS = ('created_at', 'price_per_hour', 'available_spots', 'name')
SUGGESTION_MIN_LENGTH = 2
UPGRADE_MESSAGE = 'Upgrade to PREMIUM to add more parkings.'


def validate_parking_form(form, files, creating):
    validator = FormValidator(form, files)
    validator.string('name', required=True, max_length=255)
    validator.string('description', max_length=1000)
    validator.number('latitude', required=True, minimum=-90, maximum=90)
    validator.number('longitude', required=True, minimum=-180, maximum=180)
    validator.string('address_label', max_length=500)
    validator.number('total_spots', required=True, minimum=1, integer=True)
    validator.number('price_per_hour', required=True, minimum=0)
    validator.time('opening_time')
    validator.time('closing_time')
    validator.boolean('is_24h')
    validator.image('photo', required=creating)
    validator.string('city', required=not creating, max_length=255)
    validator.number('cancel_time_limit', minimum=1, integer=True)
    return validator.validated()


def ilike_any(columns, term):
    pattern = f"%{term}%"
    return or_(*[column.ilike(pattern) for column in columns])


def available_cities():
    """Distinct cities of active parkings, falling back to cities parsed from address labels."""
    rows = (db.session.query(Parking.city)
            .filter(Parking.status == PARKING_ACTIVE, Parking.city.isnot(None), Parking.city != '')
            .distinct()
            .all())
    cities = sorted({row.city for row in rows if row.city})
    if cities:
        return cities

    extracted = set()
    labels = (db.session.query(Parking.address_label)
              .filter(Parking.status == PARKING_ACTIVE, Parking.address_label.isnot(None))
              .all())
    for (label,) in labels:
        parts = label.split(',')
        if len(parts) >= 2:
            city = parts[-2].strip()
            if len(city) > 2:
                extracted.add(city)
    return sorted(extracted)


def sort_options(has_geo_search):
    options = [
        {'value': 'created_at', 'label': 'Most Recent', 'order': 'desc'},
        {'value': 'price_per_hour', 'label': 'Price: Low to High', 'order': 'asc'},
        {'value': 'price_per_hour', 'label': 'Price: High to Low', 'order': 'desc'},
        {'value': 'available_spots', 'label': 'Most Available Spots', 'order': 'desc'},
        {'value': 'name', 'label': 'Name (A-Z)', 'order': 'asc'},
    ]
    if has_geo_search:
        options.insert(0, {'value': 'distance', 'label': 'Nearest First', 'order': 'asc'})
    return options


def format_parking(parking, distance=None):
    owner = parking.owner
    data = {
        'id': parking.id,
        'name': parking.name,
        'description': parking.description,
        'address_label': parking.address_label,
        'city': parking.city_name,
        'latitude': float(parking.latitude),
        'longitude': float(parking.longitude),
        'total_spots': parking.total_spots,
        'available_spots': parking.available_spots,
        'detected_cars': parking.detected_cars,
        'price_per_hour': float(parking.price_per_hour),
        'opening_hours': parking.opening_hours,
        'is_24h': parking.is_24h,
        'is_open_now': parking.is_open_now(),
        'occupancy_percent': parking.occupancy_percent,
        'photo_url': parking.photo_url,
        'annotated_file_url': parking.annotated_file_url,
        'owner_name': (owner.company_name or owner.name) if owner else None,
        'status': parking.status,
        'created_at': parking.created_at.isoformat() if parking.created_at else None,
    }
    if distance is not None:
        data['distance'] = round(distance, 2)
        data['distance_text'] = format_distance(distance)
    return data


def _sort_value(parking, field):
    value = getattr(parking, field)
    if field == 'name':
        return (value or '').lower()
    if field == 'price_per_hour':
        return float(value)
    return value


def init_parking_controller(app):
    """Initializes parking routes with the Flask app."""

    def owned_parking_or_403(parking_id):
        parking = db.get_or_404(Parking, parking_id)
        if parking.user_id != current_user.id:
            abort(403)
        return parking

    def basic_limit():
        return current_app.config['BASIC_PARKING_LIMIT']

    @app.route('/parkings')
    @login_required
    def parkings_index():
        parkings = (Parking.query.filter_by(user_id=current_user.id)
                    .order_by(Parking.created_at.desc(), Parking.id.desc())
                    .all())
        return render_page('parking/index',
                           parkings=[parking.to_dict() for parking in parkings],
                           canAdd=current_user.can_add_parking(basic_limit()),
                           currentPlan=current_user.mode_compte,
                           isPremium=current_user.is_premium())

    @app.route('/parkings/create')
    @login_required
    def parkings_create():
        if not current_user.can_add_parking(basic_limit()):
            flash(UPGRADE_MESSAGE, "warning")
            return redirect(url_for('parkings_index'))
        return render_page('parking/create')

    @app.route('/parkings', methods=['POST'])
    @login_required
    def parkings_store():
        if not current_user.can_add_parking(basic_limit()):
            raise ValidationError.single('limit', UPGRADE_MESSAGE)

        data = validate_parking_form(request.form, request.files, creating=True)

        with TentativeUpload(get_file_store(), data['photo'], PHOTO_FOLDER) as upload:
            parking = Parking(
                user_id=current_user.id,
                name=data['name'],
                description=data['description'],
                latitude=data['latitude'],
                longitude=data['longitude'],
                address_label=data['address_label'],
                city=data['city'],
                total_spots=data['total_spots'],
                available_spots=data['total_spots'],
                detected_cars=0,
                price_per_hour=data['price_per_hour'],
                opening_time=data['opening_time'],
                closing_time=data['closing_time'],
                is_24h=data['is_24h'],
                photo_path=upload.path,
                annotated_file_path=None,
                status=PARKING_ACTIVE,
                cancel_time_limit=data['cancel_time_limit'],
            )
            try:
                db.session.add(parking)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            upload.commit()

        logger.info("Parking created: %s (id=%s, owner=%s)", parking.name, parking.id, current_user.id)
        flash(f'Parking "{parking.name}" created successfully!', "success")
        return redirect(url_for('parkings_index'))

    @app.route('/parkings/<int:parking_id>')
    @login_required
    def parkings_show(parking_id):
        parking = db.get_or_404(Parking, parking_id)
        return render_page('parking/show',
                           parking=parking.to_dict(),
                           isPremium=current_user.is_premium(),
                           isOwner=parking.user_id == current_user.id)

    @app.route('/parkings/<int:parking_id>/edit')
    @login_required
    def parkings_edit(parking_id):
        parking = owned_parking_or_403(parking_id)
        return render_page('parking/edit', parking=parking.to_dict())

    @app.route('/parkings/<int:parking_id>', methods=['PUT', 'POST'])
    @login_required
    def parkings_update(parking_id):
        parking = owned_parking_or_403(parking_id)
        data = validate_parking_form(request.form, request.files, creating=False)

        file_store = get_file_store()
        stale_files = []
        with TentativeUpload(file_store, data['photo'], PHOTO_FOLDER) as upload:
            if upload.path:
                stale_files = [parking.photo_path, parking.annotated_file_path]
                parking.photo_path = upload.path
                parking.annotated_file_path = None

            spots_diff = data['total_spots'] - parking.total_spots

            parking.name = data['name']
            parking.description = data['description']
            parking.latitude = data['latitude']
            parking.longitude = data['longitude']
            parking.address_label = data['address_label']
            parking.city = data['city']
            parking.total_spots = data['total_spots']
            parking.available_spots = max(0, parking.available_spots + spots_diff)
            parking.price_per_hour = data['price_per_hour']
            parking.opening_time = data['opening_time']
            parking.closing_time = data['closing_time']
            parking.is_24h = data['is_24h']
            parking.cancel_time_limit = data['cancel_time_limit']

            try:
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
            upload.commit()

        # Old files go only once the row no longer points at them
        for path in stale_files:
            file_store.delete(path)

        logger.info("Parking updated: %s (id=%s)", parking.name, parking.id)
        flash(f'Parking "{parking.name}" updated successfully!', "success")
        return redirect(url_for('parkings_index'))

    @app.route('/parkings/<int:parking_id>', methods=['DELETE'])
    @app.route('/parkings/<int:parking_id>/delete', methods=['POST'])
    @login_required
    def parkings_destroy(parking_id):
        parking = owned_parking_or_403(parking_id)
        name = parking.name

        file_store = get_file_store()
        file_store.delete(parking.photo_path)
        file_store.delete(parking.annotated_file_path)

        db.session.delete(parking)
        db.session.commit()

        logger.info("Parking deleted: %s", name)
        flash(f'Parking "{name}" deleted successfully!', "success")
        return redirect(url_for('parkings_index'))

    @app.route('/parkings/<int:parking_id>/toggle-status', methods=['POST'])
    @login_required
    def parkings_toggle_status(parking_id):
        parking = owned_parking_or_403(parking_id)
        parking.status = PARKING_INACTIVE if parking.status == PARKING_ACTIVE else PARKING_ACTIVE
        db.session.commit()

        logger.info("Parking status: %s -> %s", parking.name, parking.status)
        if parking.status == PARKING_ACTIVE:
            flash(f'Parking "{parking.name}" is now active.', "success")
        else:
            flash(f'Parking "{parking.name}" is now inactive (maintenance mode).', "warning")
        return redirect(request.referrer or url_for('parkings_index'))

    @app.route('/parkings/available')
    @login_required
    def parkings_available():
        args = request.args
        query = Parking.query.filter(Parking.status == PARKING_ACTIVE)

        # Text filters
        if args.get('name'):
            query = query.filter(ilike_any([Parking.name, Parking.description], args['name']))
        if args.get('city'):
            query = query.filter(ilike_any([Parking.city, Parking.address_label], args['city']))
        if args.get('address'):
            query = query.filter(Parking.address_label.ilike(f"%{args['address']}%"))
        if args.get('q'):
            query = query.filter(ilike_any(
                [Parking.name, Parking.city, Parking.address_label, Parking.description], args['q']))

        # Price and availability
        min_price = args.get('min_price', type=float)
        if min_price is not None:
            query = query.filter(Parking.price_per_hour >= min_price)
        max_price = args.get('max_price', type=float)
        if max_price is not None:
            query = query.filter(Parking.price_per_hour <= max_price)
        min_spots = args.get('min_spots', type=int)
        if min_spots is not None:
            query = query.filter(Parking.available_spots >= min_spots)
        if parse_bool(args.get('available_only')):
            query = query.filter(Parking.available_spots > 0)
        if parse_bool(args.get('open_now')):
            now = datetime.now().time().replace(microsecond=0)
            query = query.filter(or_(
                Parking.is_24h.is_(True),
                (Parking.opening_time <= now) & (Parking.closing_time >= now),
            ))

        latitude = args.get('latitude', type=float)
        longitude = args.get('longitude', type=float)
        has_geo_search = latitude is not None and longitude is not None

        sort_by = args.get('sort') or ('distance' if has_geo_search else 'created_at')
        default_order = 'asc' if sort_by in ('price_per_hour', 'distance') else 'desc'
        sort_order = args.get('order') or default_order
        if sort_order not in ('asc', 'desc'):
            sort_order = default_order

        per_page = current_app.config['PARKINGS_PER_PAGE']
        page = max(1, args.get('page', 1, type=int))

        if has_geo_search:
            radius = args.get('radius', current_app.config['DEFAULT_SEARCH_RADIUS_KM'], type=float)
            located = []
            for parking in query.filter(Parking.latitude.isnot(None), Parking.longitude.isnot(None)).all():
                distance = haversine_km(latitude, longitude, parking.latitude, parking.longitude)
                if distance <= radius:
                    located.append((parking, distance))

            reverse = sort_order == 'desc'
            if sort_by == 'distance':
                located.sort(key=lambda item: item[1], reverse=reverse)
            elif sort_by in SORT_FIELDS:
                located.sort(key=lambda item: _sort_value(item[0], sort_by), reverse=reverse)
            else:
                located.sort(key=lambda item: item[0].created_at, reverse=True)

            parkings = paginate_list([format_parking(parking, distance) for parking, distance in located],
                                     page, per_page)
        else:
            if sort_by in SORT_FIELDS:
                column = getattr(Parking, sort_by)
                ordering = [column.asc(), Parking.id.asc()] if sort_order == 'asc' else [column.desc(), Parking.id.desc()]
            else:
                ordering = [Parking.created_at.desc(), Parking.id.desc()]
            pagination = query.order_by(*ordering).paginate(page=page, per_page=per_page, error_out=False)
            parkings = pagination_payload([format_parking(parking) for parking in pagination.items],
                                          page, per_page, pagination.total)

        price_min, price_max = (db.session.query(db.func.min(Parking.price_per_hour),
                                                 db.func.max(Parking.price_per_hour))
                                .filter(Parking.status == PARKING_ACTIVE)
                                .one())

        filter_keys = ('q', 'name', 'city', 'address', 'min_price', 'max_price', 'min_spots',
                       'available_only', 'open_now', 'latitude', 'longitude', 'radius', 'sort', 'order')
        return render_page('parking/available',
                           parkings=parkings,
                           filters={key: args[key] for key in filter_keys if key in args},
                           cities=available_cities(),
                           priceRange={
                               'min': float(price_min) if price_min is not None else 0.0,
                               'max': float(price_max) if price_max is not None else 100.0,
                           },
                           sortOptions=sort_options(has_geo_search))

    @app.route('/parkings/suggestions')
    @login_required
    def parkings_suggestions():
        term = request.args.get('q', '')
        if len(term) < SUGGESTION_MIN_LENGTH:
            return jsonify([])

        parkings = (Parking.query
                    .filter(Parking.status == PARKING_ACTIVE,
                            ilike_any([Parking.name, Parking.address_label, Parking.city], term))
                    .limit(8)
                    .all())
        parking_suggestions = [{
            'type': 'parking',
            'id': parking.id,
            'label': parking.name,
            'sublabel': parking.city_name or parking.address_label,
            'price': float(parking.price_per_hour),
            'spots': parking.available_spots,
        } for parking in parkings]

        lowered = term.lower()
        city_suggestions = [{'type': 'city', 'label': city, 'sublabel': 'City'}
                            for city in available_cities() if lowered in city.lower()][:3]

        return jsonify((city_suggestions + parking_suggestions)[:10])
