# ParkEase/validators/license_plate.py
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Pattern


# Checks run in a fixed order; the first failing one decides the verdict.
class PlateRejection(str, Enum):
    TOO_SHORT = 'TOO_SHORT'
    TOO_LONG = 'TOO_LONG'
    FORBIDDEN_CHAR = 'FORBIDDEN_CHAR'
    RESERVED_PLATE = 'RESERVED_PLATE'
    MISSING_LETTER_OR_DIGIT = 'MISSING_LETTER_OR_DIGIT'
    TOO_SHORT_ALPHANUMERIC = 'TOO_SHORT_ALPHANUMERIC'
    INVALID_FORMAT = 'INVALID_FORMAT'
    REPEATED_CHARS = 'REPEATED_CHARS'
    NOT_MIXED = 'NOT_MIXED'


@dataclass(frozen=True)
class RegionalPlateFormat:
    name: str
    pattern: Pattern

    def matches(self, plate):
        return bool(self.pattern.search(plate))


def _format(name, regex):
    # ASCII only: a Kelvin sign must not pass for a K
    return RegionalPlateFormat(name=name, pattern=re.compile(regex, re.IGNORECASE | re.ASCII))


MIN_LENGTH = 4
MAX_LENGTH = 20
MAX_REPEATED_RUN = 4

# The Morocco alternation is anchored per branch, not as a whole.
REGIONAL_FORMATS = (
    _format('france', r'^[A-Z]{2}[-\s]?\d{3}[-\s]?[A-Z]{2}$'),                      # AB-123-CD
    _format('morocco', r'^(\d{3,5}[-\s|]?[A-Z]{1,2}[-\s|]?\d{1,2})|([A-Z]{2,3}[-\s]?\d{4,6})$'),  # 12345-A-1
    _format('germany', r'^[A-Z]{1,3}[-\s][A-Z]{1,2}[-\s]\d{1,4}[EH]?$'),            # M-AB-1234
    _format('spain', r'^\d{4}[-\s]?[A-Z]{3}$'),                                     # 1234-ABC
    _format('italy', r'^[A-Z]{2}[-\s]?\d{3}[-\s]?[A-Z]{2}$'),                       # AB-123-CD
    _format('belgium', r'^[12][-\s]?[A-Z]{3}[-\s]?\d{3}$'),                         # 1-ABC-123
    _format('uk', r'^[A-Z]{2}\d{2}[-\s]?[A-Z]{3}$'),                                # AB12 CDE
    _format('usa', r'^[A-Z0-9]{4,8}$'),                                             # 4 to 8 alphanumerics
)

# At least two letters and two digits in a row somewhere, 4-20 plate characters.
GENERIC_FORMAT = _format('generic', r'^(?=.*[A-Z]{2,})(?=.*\d{2,})[A-Z0-9\-\s]{4,20}$')

FORBIDDEN_CHARS = (
    '@', '#', '$', '%', '&', '*', '(', ')', '!', '?', '+', '=', '<', '>', '/', '\\',
    '"', "'", ';', ':', ',', '.', '{', '}', '[', ']', '~', '`',
)

RESERVED_PLATES = frozenset({
    'TEST', 'FAKE', 'NULL', 'VOID', 'NONE', 'NA', 'ADMIN',
    'XXX', 'XXXX', '000', '0000', '00000', 'AAAA', 'ZZZZ',
    'POLICE', 'ARMY', 'GOVT', 'VIP', 'FBI', 'CIA',
})

MESSAGES = {
    PlateRejection.TOO_SHORT: 'The license plate must be at least 4 characters (too short).',
    PlateRejection.TOO_LONG: 'The license plate cannot exceed 20 characters.',
    PlateRejection.FORBIDDEN_CHAR: 'The license plate contains invalid characters ({char}).',
    PlateRejection.RESERVED_PLATE: 'This license plate is reserved and not allowed.',
    PlateRejection.MISSING_LETTER_OR_DIGIT: 'The license plate must contain both letters AND numbers.',
    PlateRejection.TOO_SHORT_ALPHANUMERIC: 'The license plate must contain at least 4 alphanumeric characters.',
    PlateRejection.INVALID_FORMAT: (
        'Invalid license plate format. Must have at least 2 letters and 2 numbers '
        '(e.g., AB-1234 or 12-AB-34).'
    ),
    PlateRejection.REPEATED_CHARS: 'The license plate contains too many repeated characters.',
    PlateRejection.NOT_MIXED: 'The license plate must contain a mix of letters and numbers.',
}

TRIM_CHARS = ' \t\n\r\0\x0b'
ASCII_UPPER = str.maketrans('abcdefghijklmnopqrstuvwxyz', 'ABCDEFGHIJKLMNOPQRSTUVWXYZ')

_NON_ALNUM = re.compile(r'[^A-Z0-9]')
_LETTER = re.compile(r'[A-Z]', re.IGNORECASE | re.ASCII)
_DIGIT = re.compile(r'[0-9]')
_REPEATED_RUN = re.compile(r'(.)\1{%d,}' % MAX_REPEATED_RUN)
_ONLY_LETTERS = re.compile(r'^[A-Z]+$')
_ONLY_DIGITS = re.compile(r'^[0-9]+$')


@dataclass(frozen=True)
class PlateVerdict:
    plate: str
    cleaned: str
    reason: Optional[PlateRejection] = None
    char: Optional[str] = None
    format_name: Optional[str] = None

    @property
    def is_valid(self):
        return self.reason is None

    @property
    def message(self):
        if self.reason is None:
            return None
        return MESSAGES[self.reason].format(char=self.char)


def normalize_plate(raw):
    """Trimmed and uppercased; only ASCII letters change case."""
    text = '' if raw is None else str(raw)
    return text.strip(TRIM_CHARS).translate(ASCII_UPPER)


def clean_plate(plate):
    return _NON_ALNUM.sub('', plate)


def match_plate_format(plate):
    """Name of the first format the plate matches. Regional formats win over the generic one."""
    for fmt in REGIONAL_FORMATS:
        if fmt.matches(plate):
            return fmt.name
    if GENERIC_FORMAT.matches(plate):
        return GENERIC_FORMAT.name
    return None


def validate_license_plate(raw):
    plate = normalize_plate(raw)
    cleaned = clean_plate(plate)

    def reject(reason, char=None):
        return PlateVerdict(plate=plate, cleaned=cleaned, reason=reason, char=char)

    if len(plate) < MIN_LENGTH:
        return reject(PlateRejection.TOO_SHORT)
    if len(plate) > MAX_LENGTH:
        return reject(PlateRejection.TOO_LONG)

    for char in FORBIDDEN_CHARS:
        if char in plate:
            return reject(PlateRejection.FORBIDDEN_CHAR, char)

    if cleaned in RESERVED_PLATES:
        return reject(PlateRejection.RESERVED_PLATE)

    if not _LETTER.search(plate) or not _DIGIT.search(plate):
        return reject(PlateRejection.MISSING_LETTER_OR_DIGIT)

    if len(cleaned) < MIN_LENGTH:
        return reject(PlateRejection.TOO_SHORT_ALPHANUMERIC)

    format_name = match_plate_format(plate)
    if format_name is None:
        return reject(PlateRejection.INVALID_FORMAT)

    if _REPEATED_RUN.search(cleaned):
        return reject(PlateRejection.REPEATED_CHARS)

    if _ONLY_LETTERS.match(cleaned) or _ONLY_DIGITS.match(cleaned):
        return reject(PlateRejection.NOT_MIXED)

    return PlateVerdict(plate=plate, cleaned=cleaned, format_name=format_name)


_FRENCH_BARE = re.compile(r'^([A-Z]{2})(\d{3})([A-Z]{2})$', re.ASCII)
_NOT_PLATE_CHAR = re.compile(r'[^A-Za-z0-9\-]')


def format_license_plate(raw):
    """Storage form: letters, digits and hyphens only, uppercased; bare French plates get their hyphens."""
    plate = _NOT_PLATE_CHAR.sub('', raw or '').translate(ASCII_UPPER)
    match = _FRENCH_BARE.match(plate)
    if match:
        return '-'.join(match.groups())
    return plate
