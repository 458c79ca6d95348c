# crm/utils/referral.py

"""
Реферальные коды партнёров: [инициалы][6 цифр], например John Doe → JD123456.
Уникальность проверяет вызывающий код (см. services/auth.py).
"""

import re
import secrets

REFERRAL_CODE_PATTERN = re.compile(r"^[A-Z]{0,3}\d{6}$")
MAX_INITIALS = 3


def generate_referral_code(full_name: str) -> str:
    """До трёх первых букв слов имени в верхнем регистре + число 100000–999999."""
    words = full_name.split()[:MAX_INITIALS]
    initials = "".join(w[0].upper() for w in words if w[0].isascii() and w[0].isalpha())
    digits = 100000 + secrets.randbelow(900000)
    return f"{initials}{digits}"


def is_valid_referral_code(code: str) -> bool:
    return REFERRAL_CODE_PATTERN.match(code) is not None


def normalize_referral_code(code: str) -> str:
    return code.strip().upper()
