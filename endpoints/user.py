import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dataBase import get_db_session
from models.models import PROFILE_FIELDS, User
from utils.response import create_response, error_response
from utils.session import require_session
from utils.tokens import TokenClaims

logger = logging.getLogger(__name__)

router = APIRouter()

# Métricas del panel para usuarios sin pedidos
EMPTY_METRICS = {
    "totalOrders": 0,
    "pendingOrders": 0,
    "completedOrders": 0,
    "totalSpent": 0,
    "accountBalance": 0,
    "notifications": 0,
}


class UpdateProfile(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipCode: Optional[str] = None
    businessName: Optional[str] = None
    businessType: Optional[str] = None
    registrationNumber: Optional[str] = None
    website: Optional[str] = None


def find_session_user(db: Session, session: TokenClaims) -> Optional[User]:
    """
    Busca el usuario de la sesión por su id y, si no existe, por su correo.

    Args:
        db (Session): La sesión de base de datos activa.
        session (TokenClaims): Claims de la sesión actual.

    Returns:
        User: El usuario encontrado, o None.
    """
    user = db.query(User).filter(User.id == session.sub).first()
    if not user and session.email:
        user = db.query(User).filter(User.email == session.email.lower()).first()
    return user


@router.get("/profile")
def get_profile(session: TokenClaims = Depends(require_session), db: Session = Depends(get_db_session)):
    """
    Obtiene el perfil del usuario autenticado.

    Returns:
        JSONResponse: Datos del perfil (sin el hash de la contraseña) y métricas del panel.
    """
    try:
        user = find_session_user(db, session)
    except SQLAlchemyError as e:
        logger.error(f"Error al consultar el perfil de {session.sub}: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve user profile")

    if not user:
        return error_response("User not found", status_code=404)

    profile = user.to_profile()
    profile["metrics"] = dict(EMPTY_METRICS)
    return create_response("success", "Profile retrieved successfully", profile)


@router.put("/profile")
def update_profile(
    profile: UpdateProfile,
    session: TokenClaims = Depends(require_session),
    db: Session = Depends(get_db_session),
):
    """
    Actualiza los datos de perfil del usuario autenticado.

    Solo se modifican los campos enviados en el cuerpo. `zipCode` se guarda
    como código postal.
    """
    changes = profile.model_dump(exclude_unset=True)
    if "zipCode" in changes:
        changes["postalCode"] = changes.pop("zipCode")
    if not changes:
        return error_response("No profile fields provided")

    try:
        user = find_session_user(db, session)
        if not user:
            return error_response("User not found", status_code=404)

        for api_name, value in changes.items():
            setattr(user, PROFILE_FIELDS[api_name], value)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error al actualizar el perfil de {session.sub}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update profile")

    logger.info(f"Perfil actualizado para {user.email}: {', '.join(sorted(changes))}")
    return create_response("success", "Profile updated successfully", user.to_profile())
