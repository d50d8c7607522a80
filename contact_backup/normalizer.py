"""
Normalization helpers that turn raw contact strings into comparison keys.

Two kinds of phone keys are produced here:

- ``normalize_phone`` strips everything that is not an ASCII digit. This is
  the key used by duplicate detection unless a phone region is configured.
- ``phone_match_key`` parses the number with the phonenumbers library for a
  given region and returns its E.164 digits, so a national number such as
  "05321112233" (region TR) and "+90 532 111 22 33" produce the same key.
  Numbers that do not parse fall back to the plain digit key.

Region codes are resolved once, at the command line, by get_default_region.

Dependencies:
    - phonenumbers: Third-party library for phone number parsing and formatting
    - typing: Standard library for type hints
    - logging: Standard library for logging
    - locale: Standard library for locale detection
"""
# pylint: disable=logging-fstring-interpolation

import locale
import logging
from typing import Optional, Tuple

import phonenumbers
from phonenumbers import NumberParseException

logger = logging.getLogger("contact_backup")

DEFAULT_REGION = "US"

_ASCII_DIGITS = frozenset("0123456789")


def normalize_phone(phone_number: str) -> str:
    """
    Remove every character that is not an ASCII decimal digit.

    The result may be empty (e.g. for "N/A"); callers that group by this key
    must skip empty results.

    :param phone_number: Raw phone number text
    :return: Digit-only string
    """
    if not phone_number:
        return ''
    return ''.join(ch for ch in phone_number if ch in _ASCII_DIGITS)


def split_display_name(display_name: str) -> Tuple[str, str]:
    """
    Split a single display name into first and last name.

    Surrounding whitespace is trimmed and the name is split on the first
    run of whitespace: the first token is the first name, the remainder
    (if any) is the last name.

    :param display_name: Display name as supplied by a store
    :return: Tuple of (first_name, last_name)
    """
    if not display_name:
        return '', ''
    parts = display_name.strip().split(None, 1)
    if not parts:
        return '', ''
    first_name = parts[0]
    last_name = parts[1] if len(parts) > 1 else ''
    return first_name, last_name


def detect_region_from_locale() -> Optional[str]:
    """
    Guess the phone region from the process locale.

    A locale such as "tr_TR" or "en_GB.UTF-8" yields "TR" or "GB".

    :return: Upper-case territory code, or None if the locale has none
    """
    try:
        language_code, _ = locale.getlocale()
    except ValueError as e:
        logger.debug(f"Locale unavailable: {e}")
        return None

    if not language_code or '_' not in language_code:
        return None

    territory = language_code.rsplit('_', 1)[1].split('.', 1)[0].upper()
    if not territory.isalpha():
        return None
    logger.debug(f"Locale territory: {territory}")
    return territory


def validate_region_code(region_code: Optional[str]) -> bool:
    """
    Check that ``region_code`` is an upper-case two-letter code known to
    phonenumbers (e.g. "TR", but not "tr", "XX" or "TUR").
    """
    return (
        bool(region_code)
        and len(region_code) == 2
        and region_code.isalpha()
        and region_code.isupper()
        and region_code in phonenumbers.SUPPORTED_REGIONS
    )


def get_default_region(
    provided_region: Optional[str] = None,
    auto_detect: bool = True,
    require_explicit: bool = False
) -> Optional[str]:
    """
    Pick the region used to read national phone numbers.

    The provided code wins when it is valid (case is ignored). Otherwise the
    locale territory is tried if ``auto_detect`` is set. If neither works
    the result is None when ``require_explicit`` is set, DEFAULT_REGION
    otherwise.

    :param provided_region: Region given by the user, if any
    :param auto_detect: Fall back to the locale territory
    :param require_explicit: Never fall back to DEFAULT_REGION
    :return: Two-letter region code, or None
    """
    candidates = []
    if provided_region:
        candidates.append(('given', provided_region.strip().upper()))
    if auto_detect:
        candidates.append(('locale', detect_region_from_locale()))

    for source, region in candidates:
        if validate_region_code(region):
            logger.info(f"Phone region {region} ({source})")
            return region
        if region:
            logger.warning(f"Ignoring unknown phone region '{region}'")

    if require_explicit:
        return None

    logger.warning(
        f"No phone region could be determined, using {DEFAULT_REGION}; "
        f"pass --phone-region to choose one"
    )
    return DEFAULT_REGION


def normalize_phone_to_e164(
    phone_number: str,
    default_region: Optional[str] = DEFAULT_REGION
) -> Optional[str]:
    """
    Format a phone number as E.164, e.g. "05321112233" (TR) becomes
    "+905321112233".

    National numbers are read in ``default_region``; numbers starting
    with "+" are also tried without a region.

    :param phone_number: Raw phone number text
    :param default_region: Region for numbers without a country code
    :return: E.164 string, or None if the number is not valid
    """
    text = (phone_number or '').strip()
    if not text:
        return None

    regions = [default_region]
    if text.startswith('+') and default_region is not None:
        regions.append(None)

    for region in regions:
        try:
            parsed = phonenumbers.parse(text, region)
        except NumberParseException:
            continue
        if phonenumbers.is_valid_number(parsed):
            return phonenumbers.format_number(
                parsed, phonenumbers.PhoneNumberFormat.E164
            )

    logger.debug(f"Not a valid number for E.164: {text}")
    return None


def phone_match_key(phone_number: str, region: Optional[str] = None) -> str:
    """
    Compute the key used to match phone numbers across contacts.

    Without a region this is ``normalize_phone``. With a region, valid
    numbers are keyed by their E.164 digits and anything else by its plain
    digits.

    :param phone_number: Raw phone number text
    :param region: Optional 2-letter region code
    :return: Digit-only key (possibly empty)
    """
    if region:
        e164 = normalize_phone_to_e164(phone_number, region)
        if e164:
            return normalize_phone(e164)
    return normalize_phone(phone_number)
