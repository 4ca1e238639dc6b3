from decimal import Decimal
from typing import Any, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel


def _serialize(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    return value


def create_response(
    status: str,
    message: str,
    data: Optional[Any] = None,
    status_code: int = 200,
    headers: Optional[dict] = None
) -> JSONResponse:
    """
    Crea una respuesta JSON estructurada para ser devuelta por la API.

    Las respuestas de error repiten el mensaje en el campo `error`.

    Args:
        status (str): Estado de la respuesta ("success" o "error").
        message (str): Mensaje que describe el estado de la respuesta.
        data (Optional[Any], optional): Datos adicionales a incluir en la respuesta. Por defecto es None.
        status_code (int, optional): Código de estado HTTP a devolver. Por defecto es 200.
        headers (Optional[dict], optional): Cabeceras adicionales, p. ej. `Allow` en un 405.

    Returns:
        JSONResponse: Respuesta en formato JSON que incluye el estado, mensaje y datos.
    """
    content = {
        "status": status,
        "message": message,
        "data": _serialize(data) if data is not None else {}
    }
    if status == "error":
        content["error"] = message

    return JSONResponse(status_code=status_code, content=content, headers=headers)


def error_response(message: str, status_code: int = 400, data: Optional[Any] = None) -> JSONResponse:
    return create_response("error", message, data, status_code=status_code)


def unauthenticated_response(message: str = "Not authenticated") -> JSONResponse:
    """
    Respuesta para peticiones sin una sesión válida.

    Returns:
        JSONResponse: Respuesta 401 en formato JSON.
    """
    return create_response(
        status="error",
        message=message,
        data={"authenticated": False},
        status_code=401
    )
