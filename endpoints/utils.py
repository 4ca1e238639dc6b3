import logging

from fastapi import APIRouter, Depends, Request

from config import Settings, get_settings
from models.models import UserType, get_utc_now

logger = logging.getLogger(__name__)

router = APIRouter()
health_router = APIRouter()


@router.get("/user-types", summary="Obtener tipos de usuario", description="Obtiene los tipos de cuenta que se pueden elegir al registrarse.")
def list_user_types():
    """
    Obtiene los tipos de cuenta disponibles en el registro.

    Returns:
        dict: Diccionario con el estado, mensaje y la lista de tipos.
    """
    return {
        "status": "success",
        "message": "User types retrieved successfully",
        "data": [
            {"name": user_type.value}
            for user_type in UserType
            if user_type != UserType.ADMIN
        ]
    }


@health_router.get("/healthcheck")
def healthcheck(request: Request, settings: Settings = Depends(get_settings)):
    """
    Estado del servicio: conexión a la base de datos y variables de entorno presentes.

    Nunca expone los valores de la configuración, solo si están definidos.
    """
    database = getattr(request.app.state, "database", None)
    database_status = "connected" if database is not None and database.ping() else "disconnected"
    if database_status != "connected":
        logger.warning("Healthcheck: base de datos desconectada")

    return {
        "status": "healthy",
        "timestamp": get_utc_now().isoformat(),
        "environment": settings.environment,
        "database": database_status,
        "config": {
            "database": bool(settings.database_url),
            "jwt": bool(settings.secret_key),
            "smtp": bool(settings.smtp_host and settings.smtp_user),
            "appUrl": bool(settings.app_url),
        },
    }
