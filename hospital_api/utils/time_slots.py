import re


_TWELVE_HOUR_PATTERN = re.compile(r'^(\d{1,2})[:\-]?(\d{2})(AM|PM)$')
_TWENTY_FOUR_HOUR_PATTERN = re.compile(r'^(\d{1,2})[:\-](\d{2})$')
_KEY_UNSAFE_CHARACTERS = re.compile(r'[:\s]')


class InvalidSlotTimeError(ValueError):
    pass


def normalize_time(value: str) -> str:
    """Normalize "2:30 PM", "2:30pm", "14:30" or "14-30" to "HH:mm" (24-hour)."""
    if not isinstance(value, str):
        raise InvalidSlotTimeError(f'Unsupported time value: {value!r}')

    compact = re.sub(r'\s+', '', value).upper()

    twelve_hour = _TWELVE_HOUR_PATTERN.match(compact)
    if twelve_hour:
        hours, minutes, period = int(twelve_hour.group(1)), int(twelve_hour.group(2)), twelve_hour.group(3)
        if not 1 <= hours <= 12:
            raise InvalidSlotTimeError(f'Invalid 12-hour time: {value!r}')
        if period == 'PM' and hours != 12:
            hours += 12
        elif period == 'AM' and hours == 12:
            hours = 0
    else:
        twenty_four_hour = _TWENTY_FOUR_HOUR_PATTERN.match(compact)
        if not twenty_four_hour:
            raise InvalidSlotTimeError(f'Unrecognized time format: {value!r}')
        hours, minutes = int(twenty_four_hour.group(1)), int(twenty_four_hour.group(2))
        if hours > 23:
            raise InvalidSlotTimeError(f'Invalid 24-hour time: {value!r}')

    if minutes > 59:
        raise InvalidSlotTimeError(f'Invalid minutes in time: {value!r}')

    return f'{hours:02d}:{minutes:02d}'


def build_slot_key(doctor_id: str | None, slot_date: str | None, slot_time: str | None) -> str | None:
    """Deterministic appointment_slots key for a doctor/date/time, or None when incomplete.

    "2:30 PM" and "14:30" produce the same key. Raises InvalidSlotTimeError when the
    time cannot be normalized.
    """
    if not doctor_id or not doctor_id.strip():
        return None
    if not slot_date or not slot_date.strip():
        return None
    if not slot_time or not slot_time.strip():
        return None

    normalized_time = normalize_time(slot_time)
    return _KEY_UNSAFE_CHARACTERS.sub('-', f'{doctor_id.strip()}_{slot_date.strip()}_{normalized_time}')


def format_time_display(value: str) -> str:
    hours, minutes = (int(part) for part in normalize_time(value).split(':'))
    period = 'PM' if hours >= 12 else 'AM'
    display_hours = hours % 12 or 12
    return f'{display_hours}:{minutes:02d} {period}'
