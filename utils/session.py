import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request
from starlette.responses import Response

from config import Settings, get_settings
from utils.tokens import TokenClaims, TokenCodec, TokenPurpose, get_token_codec, SESSION_TTL

logger = logging.getLogger(__name__)

COOKIE_NAME = "token"
BEARER_PREFIX = "Bearer "


def get_token_from_request(request: Request) -> Optional[str]:
    """
    Extrae el token de sesión de la petición.

    Primero revisa el encabezado `Authorization: Bearer <token>` y, si no está,
    la cookie de sesión.

    Args:
        request (Request): La petición entrante.

    Returns:
        str: El token encontrado, o None si no hay ninguno.
    """
    try:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith(BEARER_PREFIX):
            token = auth_header[len(BEARER_PREFIX):].strip()
            if token:
                return token

        return request.cookies.get(COOKIE_NAME) or None
    except Exception as e:
        logger.error(f"Error al extraer el token de la petición: {e}")
        return None


def resolve_session(request: Request, codec: TokenCodec) -> Optional[TokenClaims]:
    """
    Resuelve la sesión de la petición a partir de su token.

    Returns:
        TokenClaims: Los claims de la sesión, o None si el token falta, está
        malformado, expiró o no es un token de sesión.
    """
    token = get_token_from_request(request)
    if not token:
        return None
    return codec.verify(token, purpose=TokenPurpose.SESSION)


def get_current_session(request: Request, codec: TokenCodec = Depends(get_token_codec)) -> Optional[TokenClaims]:
    return resolve_session(request, codec)


def require_session(session: Optional[TokenClaims] = Depends(get_current_session)) -> TokenClaims:
    """
    Dependencia para endpoints que exigen una sesión válida.

    Raises:
        HTTPException: 401 si no hay una sesión válida.
    """
    if session is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return session


class CookieSessionStore:
    """
    Escribe y borra la cookie de sesión en la respuesta saliente.

    Args:
        secure (bool): Marca la cookie como `Secure` (solo en producción).
    """

    def __init__(self, secure: bool = False):
        self.secure = secure

    def login(self, response: Response, token: str) -> bool:
        try:
            # Limpiar cualquier token anterior
            response.delete_cookie(COOKIE_NAME, path="/", secure=self.secure, httponly=True, samesite="lax")
            response.set_cookie(
                COOKIE_NAME,
                token,
                max_age=int(SESSION_TTL.total_seconds()),
                path="/",
                secure=self.secure,
                httponly=True,
                samesite="lax",
            )
            return True
        except Exception as e:
            logger.error(f"Error al establecer la cookie de sesión: {e}")
            return False

    def logout(self, response: Response) -> bool:
        try:
            response.delete_cookie(COOKIE_NAME, path="/", secure=self.secure, httponly=True, samesite="lax")
            return True
        except Exception as e:
            logger.error(f"Error al borrar la cookie de sesión: {e}")
            return False


def get_cookie_store(settings: Settings = Depends(get_settings)) -> CookieSessionStore:
    return CookieSessionStore(secure=settings.cookie_secure)
