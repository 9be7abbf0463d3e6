# ParkEase/services/registration.py
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.models import db, User, ROLES, ROLE_DRIVER, ROLE_OWNER, MODE_BASIC, ACCOUNT_ACTIVE
from services.file_store import TentativeUpload
from validators.rules import FormValidator, ValidationError

logger = logging.getLogger(__name__)

PARKING_PHOTO_FOLDER = 'parkings'

PHOTO_MESSAGES = {
    'parking_photo.required': 'Please upload an image of your parking.',
    'parking_photo.image': 'The parking file must be a valid image (jpg, png, ...).',
    'parking_photo.max': 'The parking image must not be larger than 4MB.',
}
PHOTO_REQUIRED = 'A parking photo is required for owner registration.'
NOT_A_PARKING = (
    'The uploaded image was not recognized as a valid parking. '
    'Please upload a clear photo of your parking lot.'
)


@dataclass(frozen=True)
class Admission:
    verified: bool
    status: str
    account_mode: Optional[str]
    photo_path: Optional[str] = None


DRIVER_ADMISSION = Admission(verified=False, status=ACCOUNT_ACTIVE, account_mode=None)


class RegistrationGate:
    """Admits new accounts.

    Drivers only need valid fields. Owners must also upload a photo of their
    parking: it is stored tentatively, shown to the classifier, and kept only
    when the classifier recognizes a parking and the user row is committed.
    A rejected attempt leaves neither a user row nor a stored photo.
    """

    def __init__(self, classifier, file_store):
        self.classifier = classifier
        self.file_store = file_store

    def validate(self, form, files):
        validator = FormValidator(form, files, messages=PHOTO_MESSAGES)
        validator.name()
        validator.email()
        validator.password()
        role = validator.choice('role', ROLES, required=True)
        if role == ROLE_OWNER:
            validator.image('parking_photo', required=True)
        return validator.validated()

    @contextmanager
    def admit(self, role, parking_photo=None):
        """Decides admission for an already validated attempt.

        The body of the ``with`` block is the commit step: if it raises, an
        owner's stored photo is deleted and the exception propagates.
        """
        if role == ROLE_DRIVER:
            yield DRIVER_ADMISSION
            return

        if parking_photo is None:
            raise ValidationError.single('parking_photo', PHOTO_REQUIRED)

        with TentativeUpload(self.file_store, parking_photo, PARKING_PHOTO_FOLDER) as upload:
            if not self.classifier.classify(upload.absolute_path):
                logger.info("Owner registration rejected: %s is not a parking", upload.path)
                raise ValidationError.single('parking_photo', NOT_A_PARKING)

            yield Admission(verified=True, status=ACCOUNT_ACTIVE, account_mode=MODE_BASIC, photo_path=upload.path)
            upload.commit()

    def register(self, form, files):
        data = self.validate(form, files)

        with self.admit(data['role'], data.get('parking_photo')) as admission:
            user = User(
                name=data['name'],
                email=data['email'],
                role=data['role'],
                parking_photo_path=admission.photo_path,
                is_parking_verified=admission.verified,
                mode_compte=admission.account_mode,
                status=admission.status,
            )
            user.set_password(data['password'])
            db.session.add(user)
            try:
                db.session.commit()
            except IntegrityError:
                # Lost a race on the unique email
                db.session.rollback()
                raise ValidationError.single('email', 'The email has already been taken.')
            except SQLAlchemyError:
                db.session.rollback()
                raise

        logger.info("Registered %s %s (verified=%s)", user.role, user.email, user.is_parking_verified)
        return user
