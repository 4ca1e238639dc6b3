"""
Endpoints de desarrollo: inicio de sesión y perfil simulados.

Este paquete no forma parte de la distribución instalable. `main.create_app`
solo lo importa cuando ENABLE_DEV_ENDPOINTS está activo fuera de producción.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, EmailStr
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dataBase import get_db_session
from models.models import User, UserType, get_utc_now
from utils.response import create_response
from utils.session import CookieSessionStore, get_cookie_store, get_current_session
from utils.tokens import SESSION_TTL, TokenClaims, TokenCodec, get_token_codec

logger = logging.getLogger(__name__)

router = APIRouter()

MOCK_USER_ID = "mock-user-id-123"
MOCK_PASSWORD_HASH = "hashed_mock_password"


class MockLoginRequest(BaseModel):
    email: EmailStr
    password: str


def mock_profile(user_id: str) -> dict:
    return {
        "id": user_id,
        "firstName": "John",
        "lastName": "Doe",
        "email": "john.doe@example.com",
        "phone": "+1 (555) 123-4567",
        "type": UserType.BUYER.value,
        "emailVerified": True,
        "createdAt": "2023-04-15T10:30:00+00:00",
        "updatedAt": get_utc_now().isoformat(),
        "country": "United States",
        "address": "123 Main St",
        "city": "New York",
        "state": "NY",
        "postalCode": "10001",
        "businessName": "Acme Optical",
        "businessType": "Retail",
        "registrationNumber": "BUS12345",
        "website": "https://example.com",
        "profileImage": "https://i.pravatar.cc/300",
    }


def ensure_mock_user(db: Session, email: str) -> User:
    user = db.query(User).filter(User.id == MOCK_USER_ID).first()
    if user:
        if user.user_type != UserType.BUYER:
            user.user_type = UserType.BUYER
            db.commit()
        return user

    logger.info(f"Creando el usuario de desarrollo {MOCK_USER_ID}")
    user = User(
        id=MOCK_USER_ID,
        email=email.lower(),
        password_hash=MOCK_PASSWORD_HASH,
        user_type=UserType.BUYER,
        email_verified=True,
        first_name="Mock",
        last_name="User",
    )
    db.add(user)
    db.commit()
    return user


@router.post("/auth/mock-login")
def mock_login(
    request: MockLoginRequest,
    db: Session = Depends(get_db_session),
    codec: TokenCodec = Depends(get_token_codec),
    cookie_store: CookieSessionStore = Depends(get_cookie_store),
):
    """Emite una sesión de comprador para el usuario de desarrollo, sin validar la contraseña."""
    try:
        user = ensure_mock_user(db, request.email)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error con el usuario de desarrollo: {e}")
        raise HTTPException(status_code=500, detail="Failed to prepare mock user")

    token = codec.issue({"sub": user.id, "email": user.email, "role": UserType.BUYER}, SESSION_TTL)
    response = create_response(
        "success",
        "Mock authentication successful",
        {"token": token, "userType": UserType.BUYER.value},
    )
    cookie_store.login(response, token)
    return response


@router.get("/user/mock-profile")
def get_mock_profile(session: Optional[TokenClaims] = Depends(get_current_session)):
    user_id = session.sub if session else "mock-user-id"
    return create_response("success", "Mock profile", mock_profile(user_id))


@router.put("/user/mock-profile")
def update_mock_profile(
    body: dict = Body(...),
    session: Optional[TokenClaims] = Depends(get_current_session),
):
    user_id = session.sub if session else "mock-user-id"
    profile = mock_profile(user_id)
    profile.update(body)
    profile["id"] = user_id
    profile["updatedAt"] = get_utc_now().isoformat()
    return create_response("success", "Mock profile updated", profile)
