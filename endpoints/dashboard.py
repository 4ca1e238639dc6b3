import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dataBase import get_db_session
from endpoints.user import find_session_user
from models.models import UserType
from utils.response import create_response, error_response
from utils.session import require_session
from utils.tokens import TokenClaims

logger = logging.getLogger(__name__)

router = APIRouter()


def empty_dashboard() -> dict:
    return {
        "orders": {"total": 0, "pending": 0, "completed": 0, "canceled": 0},
        "balance": {"outstanding": 0, "credit": 0},
        "notifications": [],
    }


@router.get("/buyer")
def buyer_dashboard(session: TokenClaims = Depends(require_session), db: Session = Depends(get_db_session)):
    """
    Resumen del panel del comprador.

    Solo los usuarios con rol BUYER pueden consultarlo. Los pedidos y pagos aún
    no se almacenan, por lo que los totales se devuelven en cero.
    """
    if session.role != UserType.BUYER:
        logger.info(f"Acceso al panel de comprador denegado para {session.sub} ({session.role})")
        return error_response("Only buyers can access this information", status_code=403)

    try:
        user = find_session_user(db, session)
    except SQLAlchemyError as e:
        logger.error(f"Error al consultar el panel de {session.sub}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load dashboard")

    if not user:
        return error_response("User not found", status_code=404)

    return create_response("success", "Dashboard data retrieved successfully", empty_dashboard())
