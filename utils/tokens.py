"""
Emisión y verificación de tokens firmados (JWT, HS256).

Los tokens son autocontenidos: llevan los claims del usuario, el propósito del
token y su expiración. No se guardan del lado del servidor para las sesiones.
"""
import enum
import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

import jwt
import pytz
from fastapi import Depends
from pydantic import BaseModel, ValidationError

from config import ConfigurationError, Settings, get_settings
from models.models import UserType

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

SESSION_TTL = timedelta(hours=24)
VERIFICATION_TTL = timedelta(hours=24)
RESET_TTL = timedelta(hours=1)

DEV_FALLBACK_SECRET = "fallback-dev-secret-do-not-use-in-production"


class TokenPurpose(str, enum.Enum):
    SESSION = "session"
    EMAIL_VERIFICATION = "email-verification"
    PASSWORD_RESET = "password-reset"


class TokenClaims(BaseModel):
    """Claims tipados que viajan dentro de un token."""
    sub: str
    email: str
    role: Optional[UserType] = None
    purpose: TokenPurpose = TokenPurpose.SESSION
    iat: int
    exp: int
    jti: Optional[str] = None


def _utc_now() -> datetime:
    return datetime.now(pytz.utc)


class TokenCodec:
    """
    Firma y verifica tokens con una clave simétrica del servidor.

    Args:
        secret (str): Clave de firma.
        clock (Callable): Función que devuelve la hora actual (con zona horaria).
    """

    def __init__(self, secret: str, clock: Callable[[], datetime] = _utc_now):
        if not secret:
            raise ConfigurationError("JWT_SECRET is required")
        self.secret = secret
        self.clock = clock

    def issue(self, payload: dict, ttl: timedelta) -> str:
        """
        Genera un token firmado con los claims dados y una expiración `ttl`.

        Args:
            payload (dict): Claims del token (sub, email, role, purpose).
            ttl (timedelta): Tiempo de vida del token.

        Returns:
            str: El token firmado.

        Raises:
            ValidationError: Si los claims no cumplen con `TokenClaims`.
        """
        now = self.clock()
        data = {key: value for key, value in payload.items() if key not in ("iat", "exp", "jti")}
        claims = TokenClaims(
            **data,
            iat=int(now.timestamp()),
            exp=int((now + ttl).timestamp()),
            jti=uuid.uuid4().hex,
        )
        return jwt.encode(claims.model_dump(mode="json", exclude_none=True), self.secret, algorithm=ALGORITHM)

    def verify(self, token: Optional[str], purpose: Optional[TokenPurpose] = None) -> Optional[TokenClaims]:
        """
        Verifica firma, expiración y estructura de un token.

        Nunca lanza excepciones: cualquier fallo se reporta como None.

        Args:
            token (str): El token a verificar.
            purpose (TokenPurpose, optional): Propósito que debe tener el token.

        Returns:
            TokenClaims: Los claims del token, o None si el token no es válido.
        """
        if not token or not isinstance(token, str):
            return None
        try:
            decoded = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "iat", "sub"]},
            )
            claims = TokenClaims.model_validate(decoded)
        except jwt.ExpiredSignatureError:
            logger.info("Token expirado")
            return None
        except jwt.InvalidTokenError as e:
            logger.info(f"Token inválido: {e}")
            return None
        except ValidationError as e:
            logger.warning(f"Claims del token con formato inválido: {e.error_count()}")
            return None

        if purpose is not None and claims.purpose != purpose:
            logger.info(f"Propósito del token no coincide: {claims.purpose.value} != {purpose.value}")
            return None
        return claims


def build_token_codec(settings: Settings) -> TokenCodec:
    if settings.secret_key:
        return TokenCodec(settings.secret_key)
    if settings.is_production:
        logger.error("JWT_SECRET no está definido en producción")
        raise ConfigurationError("JWT_SECRET is required")
    logger.warning("JWT_SECRET no está definido, usando la clave de desarrollo")
    return TokenCodec(DEV_FALLBACK_SECRET)


def get_token_codec(settings: Settings = Depends(get_settings)) -> TokenCodec:
    return build_token_codec(settings)
