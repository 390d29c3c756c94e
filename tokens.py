import time

from itsdangerous import BadData, URLSafeSerializer, URLSafeTimedSerializer

from config import get_settings

RESET_TOKEN_MAX_AGE_SECS = 300


def _serializer() -> URLSafeSerializer:
    settings = get_settings()
    return URLSafeSerializer(settings.csrf_secret, salt="csrf-token")


def _reset_serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.csrf_secret, salt="ledger-reset")


def generate_csrf_token(max_age_hours: int = 2) -> str:
    serializer = _serializer()
    timestamp = int(time.time())
    expiry = timestamp + (max_age_hours * 3600)
    return serializer.dumps({"ts": timestamp, "exp": expiry})


def validate_csrf_token(token: str) -> bool:
    serializer = _serializer()
    try:
        data = serializer.loads(token)
    except BadData:
        return False
    if not isinstance(data, dict):
        return False
    return int(time.time()) <= data.get("exp", 0)


def generate_reset_token() -> str:
    return _reset_serializer().dumps({"action": "reset"})


def validate_reset_token(token: str, max_age: int = RESET_TOKEN_MAX_AGE_SECS) -> bool:
    try:
        data = _reset_serializer().loads(token, max_age=max_age)
    except BadData:
        return False
    return isinstance(data, dict) and data.get("action") == "reset"
