# admin_mfa/core/security.py
import base64
import secrets
import string
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from io import BytesIO
from typing import Any, Optional

import pyotp
import qrcode
from jose import jwt, JWTError
from passlib.context import CryptContext

from admin_mfa.core.config import settings

# contraseñas de login primario (lado host)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# recovery codes: bcrypt con costo configurable (>= 10)
recovery_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.MFA_RECOVERY_CODE_ROUNDS,
)

RECOVERY_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
# mayor múltiplo de 62 <= 256; los bytes >= este valor se descartan
RECOVERY_REJECT_THRESHOLD = 256 - (256 % len(RECOVERY_ALPHABET))

# 20 bytes -> 32 chars base32 (160 bits)
SECRET_BASE32_LENGTH = 32


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


# --- generador de códigos ---

def generate_totp_secret() -> str:
    return pyotp.random_base32(length=SECRET_BASE32_LENGTH)


def generate_recovery_code(
        length: int | None = None,
        randbytes: Callable[[int], bytes] = secrets.token_bytes,
        ) -> str:
    """
    Código alfanumérico sin sesgo de módulo (rejection sampling sobre bytes).
    `randbytes` se puede reemplazar en tests para instrumentar el RNG.
    """
    if length is None:
        length = settings.MFA_RECOVERY_CODE_LENGTH
    size = len(RECOVERY_ALPHABET)
    chars: list[str] = []
    while len(chars) < length:
        for value in randbytes(length):
            if value >= RECOVERY_REJECT_THRESHOLD:
                continue
            chars.append(RECOVERY_ALPHABET[value % size])
            if len(chars) == length:
                break
    return "".join(chars)


def generate_recovery_codes(count: int | None = None, length: int | None = None) -> list[str]:
    if count is None:
        count = settings.MFA_RECOVERY_CODE_COUNT
    codes: list[str] = []
    while len(codes) < count:
        code = generate_recovery_code(length)
        if code not in codes:
            codes.append(code)
    return codes


def hash_recovery_code(code: str) -> str:
    return recovery_context.hash(code)


def verify_recovery_code(code: str, hashed: str) -> bool:
    try:
        return recovery_context.verify(code, hashed)
    except ValueError:
        # hash corrupto o con formato desconocido
        return False


# --- TOTP ---

def _totp(secret: str, issuer: Optional[str] = None) -> pyotp.TOTP:
    return pyotp.TOTP(
        secret,
        digits=settings.MFA_TOTP_DIGITS,
        interval=settings.MFA_TOTP_INTERVAL,
        issuer=issuer,
    )


def totp_uri_from_secret(secret: str, label: str, issuer: str | None = None) -> str:
    issuer = issuer or None
    return _totp(secret, issuer).provisioning_uri(name=label, issuer_name=issuer)


def totp_code_at(secret: str, for_time: datetime | float) -> str:
    return _totp(secret).at(for_time)


def normalize_totp(code: str) -> str:
    # "123 456" / "123-456" -> "123456"; letras no se descartan (eso es un recovery code)
    return "".join(code.split()).replace("-", "")


def verify_totp(
        otp: str,
        secret: str,
        window: int | None = None,
        for_time: datetime | float | None = None,
        ) -> bool:
    """
    Acepta el paso actual y +-`window` pasos adyacentes.
    pyotp compara con hmac.compare_digest (tiempo constante).
    """
    if not otp or not secret:
        return False
    otp = normalize_totp(otp)
    if not (otp.isascii() and otp.isdigit()) or len(otp) != settings.MFA_TOTP_DIGITS:
        return False
    if window is None:
        window = settings.MFA_TOTP_VALID_WINDOW
    if for_time is None:
        for_time = time.time()
    return _totp(secret).verify(otp, for_time=for_time, valid_window=window)


def qr_png_base64_from_text(text: str) -> str:
    img = qrcode.make(text)
    buf = BytesIO()
    img.save(buf, "PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


# --- JWT ---

def encode_token(
        subject: str,
        token_type: str,
        expires_delta: timedelta,
        extra: Optional[dict] = None,
        ) -> tuple[str, datetime]:
    now = datetime.now(tz=timezone.utc)
    expire = now + expires_delta
    to_encode: dict[str, Any] = {"sub": subject, "type": token_type, "iat": now, "exp": expire}
    if extra:
        to_encode.update(extra)
    token = jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expire


def decode_token(token: str, token_type: str) -> dict[str, Any] | None:
    """Devuelve el payload si la firma, el vencimiento y el tipo son válidos."""
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != token_type:
        return None
    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub:
        return None
    return payload
