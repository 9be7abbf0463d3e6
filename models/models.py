from datetime import datetime, timedelta, timezone

from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash
from flask_login import UserMixin

from services.file_store import storage_url

db = SQLAlchemy()

ROLE_DRIVER = 'driver'
ROLE_OWNER = 'owner'
ROLES = (ROLE_DRIVER, ROLE_OWNER)

MODE_BASIC = 'BASIC'
MODE_PREMIUM = 'PREMIUM'

ACCOUNT_ACTIVE = 'active'

PARKING_ACTIVE = 'active'
PARKING_INACTIVE = 'inactive'

RESERVATION_PENDING = 'pending'
RESERVATION_ACTIVE = 'active'
RESERVATION_CANCELLED_AUTO = 'cancelled_auto'
RESERVATION_CANCELLED_USER = 'cancelled_user'
RESERVATION_COMPLETED = 'completed'
CANCELLED_STATUSES = (RESERVATION_CANCELLED_AUTO, RESERVATION_CANCELLED_USER)
ONGOING_STATUSES = (RESERVATION_PENDING, RESERVATION_ACTIVE)


def utcnow():
    """Naive UTC timestamp, the way SQLite stores it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _format_time(value):
    return value.strftime('%H:%M') if value else None


def _isoformat(value):
    return value.isoformat() if value else None


class User(db.Model, UserMixin):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False) # hashed
    role = db.Column(db.String(20), default=ROLE_DRIVER, nullable=False) # 'driver' or 'owner'
    avatar_path = db.Column(db.String(255), nullable=True)

    # Owner onboarding
    parking_photo_path = db.Column(db.String(255), nullable=True)
    is_parking_verified = db.Column(db.Boolean, default=False, nullable=False)
    mode_compte = db.Column(db.String(20), nullable=True) # 'BASIC' or 'PREMIUM', null for drivers
    status = db.Column(db.String(20), default=ACCOUNT_ACTIVE, nullable=False)

    # Profile
    phone = db.Column(db.String(20), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    bio = db.Column(db.Text, nullable=True)
    company_name = db.Column(db.String(255), nullable=True)
    website = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    parkings = db.relationship('Parking', backref='owner', lazy=True, cascade="all, delete-orphan")
    vehicles = db.relationship('Vehicle', backref='user', lazy=True, cascade="all, delete-orphan")
    reservations = db.relationship('Reservation', backref='driver', lazy=True, cascade="all, delete-orphan")

    def set_password(self, password):
        self.password = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password, password)

    def get_id(self):
        return str(self.id)

    def is_driver(self):
        return self.role == ROLE_DRIVER

    def is_owner(self):
        return self.role == ROLE_OWNER

    def is_premium(self):
        return self.mode_compte == MODE_PREMIUM

    def is_basic(self):
        return self.mode_compte == MODE_BASIC

    def can_add_parking(self, basic_limit=3):
        """Owners only; the BASIC plan is capped at ``basic_limit`` parkings."""
        if not self.is_owner():
            return False
        if self.is_basic() and Parking.query.filter_by(user_id=self.id).count() >= basic_limit:
            return False
        return True

    def primary_vehicle(self):
        return Vehicle.query.filter_by(user_id=self.id, is_primary=True).first()

    @property
    def avatar_url(self):
        return storage_url(self.avatar_path)

    def profile_dict(self):
        return {
            'phone': self.phone,
            'address': self.address,
            'bio': self.bio,
            'company_name': self.company_name,
            'website': self.website,
        }

    def to_auth_dict(self):
        """Shape shared with every page as ``auth.user``."""
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'avatar': self.avatar_url,
            **self.profile_dict(),
            'is_parking_verified': self.is_parking_verified,
            'mode_compte': self.mode_compte,
            'status': self.status,
        }

    def __repr__(self):
        return f'<User {self.email}>'


class Parking(db.Model):
    __tablename__ = 'parkings'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Location
    latitude = db.Column(db.Numeric(10, 7, asdecimal=False), nullable=False)
    longitude = db.Column(db.Numeric(10, 7, asdecimal=False), nullable=False)
    address_label = db.Column(db.String(500), nullable=True)
    city = db.Column(db.String(255), nullable=True)

    # Capacity
    total_spots = db.Column(db.Integer, default=0, nullable=False)
    available_spots = db.Column(db.Integer, default=0, nullable=False)
    detected_cars = db.Column(db.Integer, default=0, nullable=False)

    price_per_hour = db.Column(db.Numeric(8, 2, asdecimal=False), default=0, nullable=False)

    # Opening hours
    opening_time = db.Column(db.Time, nullable=True)
    closing_time = db.Column(db.Time, nullable=True)
    is_24h = db.Column(db.Boolean, default=False, nullable=False)

    photo_path = db.Column(db.String(255), nullable=True)
    annotated_file_path = db.Column(db.String(255), nullable=True) # PREMIUM
    status = db.Column(db.String(20), default=PARKING_ACTIVE, nullable=False) # 'active' or 'inactive'
    cancel_time_limit = db.Column(db.Integer, nullable=True) # minutes a pending reservation is held

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    reservations = db.relationship('Reservation', backref='parking', lazy=True, cascade="all, delete-orphan")

    @property
    def photo_url(self):
        return storage_url(self.photo_path)

    @property
    def annotated_file_url(self):
        return storage_url(self.annotated_file_path)

    @property
    def city_name(self):
        """City, or the part of the address label before the country ("Street, City, Country")."""
        if self.city:
            return self.city
        if self.address_label:
            parts = self.address_label.split(',')
            if len(parts) >= 2:
                return parts[-2].strip()
            return parts[0].strip()
        return None

    @property
    def opening_hours(self):
        if self.is_24h:
            return '24/7'
        if self.opening_time and self.closing_time:
            return f"{_format_time(self.opening_time)} - {_format_time(self.closing_time)}"
        return 'Not specified'

    def is_open_now(self, now=None):
        # Unspecified hours count as open for display purposes
        if self.is_24h:
            return True
        if not self.opening_time or not self.closing_time:
            return True
        current = (now or datetime.now()).time().replace(second=0, microsecond=0)
        return self.opening_time <= current <= self.closing_time

    @property
    def occupancy_percent(self):
        if self.total_spots <= 0:
            return 0
        occupied = self.total_spots - self.available_spots
        return int(occupied * 100 / self.total_spots + 0.5)

    @property
    def cancel_time_text(self):
        return f"{self.cancel_time_limit} minutes before start"

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'description': self.description,
            'latitude': float(self.latitude),
            'longitude': float(self.longitude),
            'address_label': self.address_label,
            'city': self.city,
            'total_spots': self.total_spots,
            'available_spots': self.available_spots,
            'detected_cars': self.detected_cars,
            'price_per_hour': float(self.price_per_hour),
            'opening_time': _format_time(self.opening_time),
            'closing_time': _format_time(self.closing_time),
            'is_24h': self.is_24h,
            'photo_path': self.photo_path,
            'annotated_file_path': self.annotated_file_path,
            'status': self.status,
            'cancel_time_limit': self.cancel_time_limit,
            'created_at': _isoformat(self.created_at),
            'updated_at': _isoformat(self.updated_at),
            'photo_url': self.photo_url,
            'annotated_file_url': self.annotated_file_url,
        }

    def __repr__(self):
        return f'<Parking {self.name}>'


class Vehicle(db.Model):
    __tablename__ = 'vehicles'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    license_plate = db.Column(db.String(20), unique=True, nullable=False, index=True)
    brand = db.Column(db.String(50), nullable=True)
    model = db.Column(db.String(50), nullable=True)
    color = db.Column(db.String(30), nullable=True)
    type = db.Column(db.String(30), nullable=True)
    year = db.Column(db.Integer, nullable=True)
    is_primary = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    reservations = db.relationship('Reservation', backref='vehicle', lazy=True, cascade="all, delete-orphan")

    TYPES = {
        'sedan': 'Sedan',
        'suv': 'SUV',
        'hatchback': 'Hatchback',
        'truck': 'Truck',
        'van': 'Van',
        'motorcycle': 'Motorcycle',
        'electric': 'Electric',
        'hybrid': 'Hybrid',
        'other': 'Other',
    }

    @property
    def display_name(self):
        """e.g. "Toyota Corolla (AB-123-CD)"."""
        name = ' '.join(part for part in (self.brand, self.model) if part) or 'Vehicle'
        return f"{name} ({self.license_plate})"

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'license_plate': self.license_plate,
            'brand': self.brand,
            'model': self.model,
            'color': self.color,
            'type': self.type,
            'year': self.year,
            'is_primary': self.is_primary,
            'display_name': self.display_name,
            'created_at': _isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<Vehicle {self.license_plate}>'


class Reservation(db.Model):
    __tablename__ = 'reservations'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    parking_id = db.Column(db.Integer, db.ForeignKey('parkings.id', ondelete='CASCADE'), nullable=False)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicles.id', ondelete='CASCADE'), nullable=False)
    status = db.Column(db.String(20), default=RESERVATION_PENDING, nullable=False) # pending, active, cancelled_auto, cancelled_user, completed
    reserved_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def reference_time(self):
        return self.reserved_at or self.created_at

    def deadline(self):
        """End of the hold for a pending reservation, None when the parking sets no limit."""
        if not self.parking or not self.parking.cancel_time_limit:
            return None
        return self.reference_time + timedelta(minutes=self.parking.cancel_time_limit)

    def is_expired(self, now=None):
        deadline = self.deadline()
        return deadline is not None and (now or utcnow()) >= deadline

    def remaining_seconds(self, now=None):
        if self.status != RESERVATION_PENDING:
            return None
        deadline = self.deadline()
        if deadline is None:
            return None
        remaining = int((deadline - (now or utcnow())).total_seconds())
        return remaining if remaining > 0 else 0

    def release_spot(self):
        """Gives the held spot back to the parking, never above its capacity."""
        parking = self.parking
        if parking and parking.available_spots < parking.total_spots:
            parking.available_spots += 1

    def __repr__(self):
        return f'<Reservation {self.id} {self.status}>'
