from typing import Optional
import re

_NON_DIGITS = re.compile(r"\D+")


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Strip formatting from a phone number, keeping a leading '+'.

    Returns None for missing, blank or digit-less input. Normalizing an
    already-normalized number returns it unchanged.
    """
    if phone is None:
        return None

    phone = phone.strip()
    if phone == "":
        return None

    leading_plus = phone.startswith("+")
    digits = _NON_DIGITS.sub("", phone)
    if digits == "":
        return None

    return f"+{digits}" if leading_plus else digits
