# ParkEase/validators/rules.py
"""Form validation shared by the controllers.

``FormValidator`` reads one field at a time, records the first failing rule
per field and raises ``ValidationError`` from ``validated()`` when anything
failed. Strings are trimmed and empty values count as missing.
"""
import re
from datetime import datetime

from email_validator import EmailNotValidError, validate_email
from PIL import Image, UnidentifiedImageError

from models.models import User

IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'bmp', 'gif', 'webp'}
MAX_IMAGE_KB = 4096
PASSWORD_MIN_LENGTH = 8

TRUE_VALUES = {'1', 'true', 'on', 'yes'}
FALSE_VALUES = {'0', 'false', 'off', 'no'}

EMAIL_DOT_AFTER_AT = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


class ValidationError(Exception):
    """Field-level errors, rendered as HTTP 422 ``{"message": ..., "errors": {...}}``."""

    def __init__(self, errors):
        self.errors = {field: list(messages) if isinstance(messages, (list, tuple)) else [messages]
                       for field, messages in errors.items()}
        super().__init__(self.message)

    @property
    def message(self):
        for messages in self.errors.values():
            if messages:
                return messages[0]
        return 'The given data was invalid.'

    @classmethod
    def single(cls, field, message):
        return cls({field: [message]})


def parse_bool(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_VALUES


def _label(field):
    return field.replace('_', ' ')


class FormValidator:
    def __init__(self, data, files=None, messages=None):
        self.data = data
        self.files = files or {}
        self.messages = messages or {}
        self.errors = {}
        self.validated_data = {}

    # -- helpers ---------------------------------------------------------------

    def fail(self, field, rule, default):
        if field not in self.errors:
            self.errors[field] = [self.messages.get(f"{field}.{rule}", default)]
        return None

    def has_error(self, field):
        return field in self.errors

    def raw(self, field):
        value = self.data.get(field)
        if isinstance(value, str):
            value = value.strip()
        return None if value == '' else value

    def _missing(self, field, required):
        if required:
            self.fail(field, 'required', f"The {_label(field)} field is required.")
        self.validated_data[field] = None
        return None

    def validated(self):
        if self.errors:
            raise ValidationError(self.errors)
        return self.validated_data

    # -- rules -------------------------------------------------------------------

    def string(self, field, required=False, min_length=None, max_length=None, pattern=None):
        value = self.raw(field)
        if value is None:
            return self._missing(field, required)
        if not isinstance(value, str):
            return self.fail(field, 'string', f"The {_label(field)} field must be a string.")
        if min_length is not None and len(value) < min_length:
            return self.fail(field, 'min', f"The {_label(field)} field must be at least {min_length} characters.")
        if max_length is not None and len(value) > max_length:
            return self.fail(field, 'max', f"The {_label(field)} field must not be greater than {max_length} characters.")
        if pattern is not None and not re.search(pattern, value):
            return self.fail(field, 'regex', f"The {_label(field)} field format is invalid.")
        self.validated_data[field] = value
        return value

    def number(self, field, required=False, minimum=None, maximum=None, integer=False):
        value = self.raw(field)
        if value is None:
            return self._missing(field, required)
        try:
            number = int(value) if integer else float(value)
        except (TypeError, ValueError):
            kind = 'an integer' if integer else 'a number'
            return self.fail(field, 'integer' if integer else 'numeric', f"The {_label(field)} field must be {kind}.")
        if minimum is not None and maximum is not None and not minimum <= number <= maximum:
            return self.fail(field, 'between', f"The {_label(field)} field must be between {minimum} and {maximum}.")
        if minimum is not None and number < minimum:
            return self.fail(field, 'min', f"The {_label(field)} field must be at least {minimum}.")
        if maximum is not None and number > maximum:
            return self.fail(field, 'max', f"The {_label(field)} field must not be greater than {maximum}.")
        self.validated_data[field] = number
        return number

    def boolean(self, field):
        value = self.raw(field)
        if value is None or isinstance(value, bool):
            self.validated_data[field] = bool(value)
            return bool(value)
        text = str(value).lower()
        if text not in TRUE_VALUES | FALSE_VALUES:
            return self.fail(field, 'boolean', f"The {_label(field)} field must be true or false.")
        self.validated_data[field] = text in TRUE_VALUES
        return self.validated_data[field]

    def time(self, field, required=False):
        value = self.raw(field)
        if value is None:
            return self._missing(field, required)
        try:
            parsed = datetime.strptime(str(value), '%H:%M').time()
        except ValueError:
            return self.fail(field, 'date_format', f"The {_label(field)} field must match the format H:i.")
        self.validated_data[field] = parsed
        return parsed

    def choice(self, field, options, required=False):
        value = self.raw(field)
        if value is None:
            return self._missing(field, required)
        if value not in options:
            return self.fail(field, 'in', f"The selected {_label(field)} is invalid.")
        self.validated_data[field] = value
        return value

    def image(self, field, required=False, max_kb=MAX_IMAGE_KB):
        upload = self.files.get(field)
        if upload is None or not getattr(upload, 'filename', None):
            return self._missing(field, required)
        if not is_image(upload):
            return self.fail(field, 'image', f"The {_label(field)} field must be an image.")
        if file_size(upload) > max_kb * 1024:
            return self.fail(field, 'max', f"The {_label(field)} field must not be greater than {max_kb} kilobytes.")
        self.validated_data[field] = upload
        return upload

    def confirmed(self, field):
        if self.has_error(field):
            return
        if self.data.get(field) != self.data.get(f"{field}_confirmation"):
            self.fail(field, 'confirmed', f"The {_label(field)} field confirmation does not match.")

    # -- profile rules -------------------------------------------------------------

    def name(self, field='name'):
        """Letters, spaces and hyphens only."""
        value = self.string(field, required=True, max_length=255)
        if value is not None and not is_person_name(value):
            self.validated_data.pop(field, None)
            return self.fail(field, 'regex', f"The {_label(field)} field format is invalid.")
        return value

    def email(self, field='email', ignore_user_id=None):
        """RFC 5322 address (email-validator) with a dot after the @, unique among users."""
        value = self.string(field, required=True, max_length=255)
        if value is None:
            return None
        if not is_rfc_email(value):
            self.validated_data.pop(field, None)
            return self.fail(field, 'email', f"The {_label(field)} field must be a valid email address.")
        if not EMAIL_DOT_AFTER_AT.match(value):
            self.validated_data.pop(field, None)
            return self.fail(field, 'regex', f"The {_label(field)} field format is invalid.")
        query = User.query.filter(User.email == value)
        if ignore_user_id is not None:
            query = query.filter(User.id != ignore_user_id)
        if query.first() is not None:
            self.validated_data.pop(field, None)
            return self.fail(field, 'unique', f"The {_label(field)} has already been taken.")
        return value

    def password(self, field='password'):
        value = self.data.get(field)
        if not value:
            return self._missing(field, True)
        if len(value) < PASSWORD_MIN_LENGTH:
            return self.fail(field, 'min', f"The {_label(field)} field must be at least {PASSWORD_MIN_LENGTH} characters.")
        self.confirmed(field)
        if not self.has_error(field):
            self.validated_data[field] = value
        return value


def is_person_name(value):
    """Letters of any script, whitespace and hyphens; digits, superscripts and fractions are refused."""
    return all(ch.isalpha() or ch.isspace() or ch == '-' for ch in value)


def is_rfc_email(value):
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def file_size(upload):
    stream = upload.stream
    position = stream.tell()
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(position)
    return size


def is_image(upload):
    """Checks the extension and that Pillow can actually decode the header."""
    extension = upload.filename.rsplit('.', 1)[-1].lower() if '.' in upload.filename else ''
    if extension not in IMAGE_EXTENSIONS:
        return False
    stream = upload.stream
    try:
        stream.seek(0)
        with Image.open(stream) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return False
    finally:
        stream.seek(0)
    return True
