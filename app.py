# ParkEase/app.py
import logging
import os

from flask import Flask, jsonify
from flask_login import LoginManager
from werkzeug.exceptions import HTTPException

from config import Config

# Import models
from models.models import db, User

# Import controllers
from controllers.auth_controller import init_auth_controller
from controllers.parking_controller import init_parking_controller
from controllers.vehicle_controller import init_vehicle_controller
from controllers.reservation_controller import init_reservation_controller
from controllers.profile_controller import init_profile_controller

from database_creator import init_database_commands
from services.classifier import HttpParkingClassifier
from services.file_store import PublicFileStore
from validators.rules import ValidationError

login_manager = LoginManager()
login_manager.login_view = 'login'
login_manager.login_message_category = 'info'


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


def register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        return jsonify({'message': error.message, 'errors': error.errors}), 422

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        if error.code is None or error.code < 400:
            return error
        return jsonify({'message': error.description}), error.code


# ---------------- Flask App Setup ----------------
def create_app(test_config=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.from_mapping(test_config)

    os.makedirs(app.instance_path, exist_ok=True)
    if not app.config.get('SQLALCHEMY_DATABASE_URI'):
        app.config['SQLALCHEMY_DATABASE_URI'] = f'sqlite:///{os.path.join(app.instance_path, "parking.db")}'
    if not app.config.get('UPLOAD_FOLDER'):
        app.config['UPLOAD_FOLDER'] = os.path.join(app.instance_path, 'storage', 'public')

    logging.basicConfig(level=app.config['LOG_LEVEL'], format="%(levelname)s: %(name)s — %(message)s")

    db.init_app(app)
    login_manager.init_app(app)

    app.extensions['file_store'] = PublicFileStore(app.config['UPLOAD_FOLDER'])
    app.extensions['parking_classifier'] = HttpParkingClassifier(
        app.config['PARKING_CLASSIFIER_URL'],
        timeout=app.config['PARKING_CLASSIFIER_TIMEOUT'],
    )

    register_error_handlers(app)

    # ---------------- Initialize Controllers ----------------
    init_auth_controller(app)
    init_parking_controller(app)
    init_vehicle_controller(app)
    init_reservation_controller(app)
    init_profile_controller(app)
    init_database_commands(app)

    with app.app_context():
        db.create_all()

    return app


if __name__ == '__main__':
    create_app().run(debug=True)
