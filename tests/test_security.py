# tests/test_security.py

import re
from datetime import timedelta

import pytest
from jwt import encode

from crm.utils.referral import generate_referral_code, is_valid_referral_code, normalize_referral_code
from crm.utils.security import (
    ACCESS_TOKEN,
    REFRESH_TOKEN,
    hash_password,
    verify_password,
    validate_password_strength,
    token_claims,
    create_access_token,
    create_refresh_token,
    verify_token,
    random_opaque_token,
)

REFERRAL_FORMAT = re.compile(r"^[A-Z]{0,3}\d{6}$")


# ────────────── Пароли ──────────────
def test_hash_is_not_plaintext_and_verifies():
    hashed = hash_password("Valid1234")
    assert hashed != "Valid1234"
    assert verify_password("Valid1234", hashed)
    assert not verify_password("Valid12345", hashed)


def test_hash_is_salted():
    assert hash_password("Valid1234") != hash_password("Valid1234")


def test_verify_password_rejects_empty_or_unknown_hash():
    assert not verify_password("Valid1234", None)
    assert not verify_password("Valid1234", "")
    assert not verify_password("Valid1234", "not-a-hash")


@pytest.mark.parametrize("password, fragment", [
    ("weak", "at least 8"),
    ("A1" + "a" * 127, "must not exceed 128"),
    ("alllowercase1", "uppercase"),
    ("ALLUPPERCASE1", "lowercase"),
    ("NoDigitsHere", "number"),
])
def test_weak_passwords_are_rejected(password, fragment):
    check = validate_password_strength(password)
    assert not check.valid
    assert fragment in check.message


def test_first_failing_reason_only():
    # короткий и без заглавных: сообщается только длина
    check = validate_password_strength("abc")
    assert check.message == "Password must be at least 8 characters"


def test_strong_password_accepted():
    check = validate_password_strength("Valid1234")
    assert check.valid
    assert check.message is None


# ────────────── Токены ──────────────
def test_access_token_roundtrip_claims():
    token = create_access_token(token_claims("user-1", "a@example.com", "admin"))
    payload = verify_token(token, ACCESS_TOKEN)
    assert payload["sub"] == "user-1"
    assert payload["email"] == "a@example.com"
    assert payload["role"] == "admin"
    assert payload["exp"] - payload["iat"] == 15 * 60


def test_refresh_token_carries_session_key_and_lifetime():
    token = create_refresh_token(token_claims("user-1", "a@example.com", "builder"), "session-key")
    payload = verify_token(token, REFRESH_TOKEN)
    assert payload["sid"] == "session-key"
    assert payload["exp"] - payload["iat"] == 7 * 24 * 60 * 60


def test_expired_token_returns_none():
    token = create_access_token(token_claims("user-1", "a@example.com", "admin"), timedelta(seconds=-1))
    assert verify_token(token, ACCESS_TOKEN) is None


def test_expired_refresh_token_readable_without_exp_check():
    token = create_refresh_token(token_claims("user-1", "a@example.com", "admin"), "sid-1", timedelta(seconds=-1))
    assert verify_token(token, REFRESH_TOKEN) is None
    assert verify_token(token, REFRESH_TOKEN, verify_exp=False)["sid"] == "sid-1"


def test_token_types_are_not_interchangeable():
    claims = token_claims("user-1", "a@example.com", "admin")
    assert verify_token(create_refresh_token(claims, "sid"), ACCESS_TOKEN) is None
    assert verify_token(create_access_token(claims), REFRESH_TOKEN) is None


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_malformed_token_returns_none(token):
    assert verify_token(token, ACCESS_TOKEN) is None


def test_token_signed_with_other_secret_returns_none():
    forged = encode({"sub": "user-1", "type": "access"}, "another-secret-key-with-at-least-32-bytes", algorithm="HS256")
    assert verify_token(forged, ACCESS_TOKEN) is None


def test_random_opaque_token_is_256_bit_hex():
    token = random_opaque_token()
    assert re.fullmatch(r"[0-9a-f]{64}", token)
    assert token != random_opaque_token()


# ────────────── Реферальные коды ──────────────
@pytest.mark.parametrize("name", ["John Doe", "mary ann smith jones", "Cher", "  spaced   out  ", "", "Émile Zola", "3rd Street"])
def test_referral_code_format(name):
    for _ in range(20):
        assert REFERRAL_FORMAT.match(generate_referral_code(name))


def test_referral_code_uses_up_to_three_initials():
    assert generate_referral_code("John Doe")[:2] == "JD"
    assert generate_referral_code("mary ann smith jones")[:3] == "MAS"
    assert generate_referral_code("mary ann smith jones")[3:].isdigit()


def test_referral_code_random_suffix_differs():
    codes = {generate_referral_code("John Doe") for _ in range(10)}
    assert len(codes) > 1


def test_referral_code_validation_and_normalization():
    assert is_valid_referral_code("JD123456")
    assert is_valid_referral_code("123456")
    assert not is_valid_referral_code("jd123456")
    assert not is_valid_referral_code("ABCD123456")
    assert not is_valid_referral_code("JD12345")
    assert not is_valid_referral_code("JD-123456")
    assert normalize_referral_code(" jd123456 ") == "JD123456"


@pytest.mark.parametrize("name", ["John Doe", "Łukasz Żak", "Ελένη Παπαδοπούλου", "", "42"])
def test_generated_codes_pass_validation(name):
    code = generate_referral_code(name)
    assert is_valid_referral_code(code)


def test_digits_only_code_for_name_without_ascii_initials():
    code = generate_referral_code("Łukasz Żak")
    assert code.isdigit() and len(code) == 6
    assert is_valid_referral_code(code)
