from tokens import (
    generate_csrf_token,
    generate_reset_token,
    validate_csrf_token,
    validate_reset_token,
)


def test_csrf_token_round_trip_and_tampering() -> None:
    token = generate_csrf_token()
    assert validate_csrf_token(token)
    assert not validate_csrf_token(token + "x")
    assert not validate_csrf_token("")


def test_expired_csrf_token_is_rejected() -> None:
    assert not validate_csrf_token(generate_csrf_token(max_age_hours=-1))


def test_reset_token_is_not_interchangeable_with_csrf() -> None:
    reset = generate_reset_token()
    assert validate_reset_token(reset)
    assert not validate_reset_token(generate_csrf_token())
    assert not validate_csrf_token(reset)
    assert not validate_reset_token("garbage")
