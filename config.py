# ParkEase/config.py
import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    """Default settings. Every value can be overridden from the environment or a .env file."""

    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me-in-production')
    # Falls back to instance/parking.db when unset (see create_app)
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Public storage root; files are served under /storage/<path>
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER')
    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', 16 * 1024 * 1024))

    PARKING_CLASSIFIER_URL = os.environ.get('PARKING_CLASSIFIER_URL', 'http://127.0.0.1:5000/api/is_parking')
    PARKING_CLASSIFIER_TIMEOUT = float(os.environ.get('PARKING_CLASSIFIER_TIMEOUT', 30))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Business limits
    BASIC_PARKING_LIMIT = 3
    MAX_VEHICLES_PER_DRIVER = 5
    PARKINGS_PER_PAGE = 12
    DEFAULT_SEARCH_RADIUS_KM = 10.0
