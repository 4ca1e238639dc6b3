import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import Settings, get_settings
from dataBase import get_db_session
from models.models import User, UserType, generate_user_id
from utils.email import EmailDeliveryError, EmailSender, get_email_sender
from utils.response import create_response, error_response, unauthenticated_response
from utils.security import hash_password, validate_password_strength, verify_password, MIN_PASSWORD_LENGTH
from utils.session import CookieSessionStore, get_cookie_store, get_current_session
from utils.tokens import (
    RESET_TTL,
    SESSION_TTL,
    VERIFICATION_TTL,
    TokenClaims,
    TokenCodec,
    TokenPurpose,
    get_token_codec,
)

logger = logging.getLogger(__name__)

router = APIRouter()

FORGOT_PASSWORD_MESSAGE = "If an account exists, you will receive a password reset email."
PASSWORD_LENGTH_MESSAGE = f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    type: UserType = UserType.BUYER
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    businessName: Optional[str] = None
    businessType: Optional[str] = None
    terms: Optional[bool] = None

    @field_validator("type", mode="before")
    @classmethod
    def upper_type(cls, value):
        return value.upper() if isinstance(value, str) else value


class EmailRequest(BaseModel):
    email: EmailStr


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class PasswordReset(BaseModel):
    token: str
    newPassword: str


def issue_verification_token(codec: TokenCodec, user: User) -> str:
    return codec.issue(
        {"sub": user.id, "email": user.email, "purpose": TokenPurpose.EMAIL_VERIFICATION},
        VERIFICATION_TTL,
    )


@router.post("/register")
def register_user(
    user: UserCreate,
    db: Session = Depends(get_db_session),
    codec: TokenCodec = Depends(get_token_codec),
    email_sender: EmailSender = Depends(get_email_sender),
):
    """
    Registra un nuevo usuario sin verificar y le envía el correo de verificación.

    - **email**: El correo electrónico del usuario.
    - **password**: La contraseña (mínimo 8 caracteres).
    - **type**: BUYER o SUPPLIER.
    - **firstName**, **lastName**, **phone**, **country**, **businessName**, **businessType**: Datos de perfil opcionales.

    Si el envío del correo falla el registro no se revierte; el usuario puede
    pedir un nuevo correo con `/resend-verification`.
    """
    email = normalize_email(user.email)

    if user.type == UserType.ADMIN:
        return error_response("Invalid account type")

    if not validate_password_strength(user.password):
        return error_response(PASSWORD_LENGTH_MESSAGE)

    if db.query(User).filter(User.email == email).first():
        return error_response("Email already registered")

    try:
        new_user = User(
            id=generate_user_id(),
            email=email,
            password_hash=hash_password(user.password),
            user_type=user.type,
            email_verified=False,
            first_name=user.firstName,
            last_name=user.lastName,
            phone=user.phone,
            country=user.country,
            business_name=user.businessName,
            business_type=user.businessType,
        )
        verification_token = issue_verification_token(codec, new_user)
        new_user.verification_token = verification_token

        db.add(new_user)
        db.commit()
    except IntegrityError:
        # Otro registro con el mismo correo se confirmó primero
        db.rollback()
        return error_response("Email already registered")
    except Exception as e:
        db.rollback()
        logger.error(f"Error al registrar usuario {email}: {e}")
        raise HTTPException(status_code=500, detail="Registration failed")

    logger.info(f"Usuario registrado: {email}")

    try:
        email_sender.send_verification_email(email, verification_token)
    except EmailDeliveryError as e:
        logger.error(f"No se pudo enviar el correo de verificación a {email}: {e}")

    return create_response("success", "Registration successful. Please check your email to verify your account.")


@router.get("/verify-email")
def verify_email(
    token: Optional[str] = None,
    db: Session = Depends(get_db_session),
    codec: TokenCodec = Depends(get_token_codec),
):
    """
    Verifica el correo electrónico de un usuario.

    - **token**: El token enviado en el enlace del correo.

    Repetir la verificación de una cuenta ya verificada responde con éxito sin
    modificar nada.
    """
    if not token:
        return error_response("Verification token required")

    claims = codec.verify(token, purpose=TokenPurpose.EMAIL_VERIFICATION)
    if not claims:
        return error_response("Invalid verification token")

    user = db.query(User).filter(User.email == normalize_email(claims.email)).first()
    if not user or user.id != claims.sub:
        return error_response("User not found", status_code=404)

    if user.email_verified:
        return create_response("success", "Email already verified")

    if user.verification_token != token:
        logger.info(f"Token de verificación reemplazado para {user.email}")
        return error_response("Invalid verification token")

    try:
        user.email_verified = True
        user.verification_token = None
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error al verificar el correo {user.email}: {e}")
        raise HTTPException(status_code=500, detail="Email verification failed")

    logger.info(f"Correo verificado: {user.email}")
    return create_response("success", "Email verified successfully")


@router.post("/resend-verification")
def resend_verification(
    request: EmailRequest,
    db: Session = Depends(get_db_session),
    codec: TokenCodec = Depends(get_token_codec),
    email_sender: EmailSender = Depends(get_email_sender),
):
    """
    Genera un nuevo token de verificación y lo envía por correo.

    - **email**: El correo electrónico de la cuenta sin verificar.
    """
    user = db.query(User).filter(User.email == normalize_email(request.email)).first()
    if not user:
        return error_response("User not found", status_code=404)

    if user.email_verified:
        return error_response("Email already verified")

    try:
        verification_token = issue_verification_token(codec, user)
        user.verification_token = verification_token
        db.commit()
        email_sender.send_verification_email(user.email, verification_token)
    except Exception as e:
        db.rollback()
        logger.error(f"Error al reenviar la verificación a {user.email}: {e}")
        raise HTTPException(status_code=500, detail="Failed to resend verification email")

    return create_response("success", "Verification email sent successfully")


@router.post("/login")
def login(
    request: LoginRequest,
    db: Session = Depends(get_db_session),
    codec: TokenCodec = Depends(get_token_codec),
    cookie_store: CookieSessionStore = Depends(get_cookie_store),
):
    """
    Inicio de Sesión

    Autentica al usuario con correo y contraseña. Si las credenciales son
    válidas y el correo está verificado, emite un token de sesión de 24 horas,
    lo guarda en la cookie `token` y también lo devuelve en el cuerpo.

    - **Respuestas**:
      - **200 OK**: `data` contiene `token` y `userType`.
      - **400 Bad Request**: Credenciales incorrectas.
      - **403 Forbidden**: El correo no ha sido verificado (`needsVerification`).
    """
    email = normalize_email(request.email)
    user = db.query(User).filter(User.email == email).first()

    if not user or not verify_password(request.password, user.password_hash):
        logger.info(f"Intento de inicio de sesión fallido para {email}")
        return error_response("Invalid email or password")

    if not user.email_verified:
        return error_response(
            "Please verify your email before logging in",
            status_code=403,
            data={"needsVerification": True, "email": user.email},
        )

    token = codec.issue({"sub": user.id, "email": user.email, "role": user.user_type}, SESSION_TTL)
    response = create_response(
        "success",
        "Login successful",
        {"token": token, "userType": user.user_type.value},
    )
    if not cookie_store.login(response, token):
        logger.warning(f"No se pudo establecer la cookie de sesión para {user.email}")

    logger.info(f"Inicio de sesión exitoso para {user.email} ({user.user_type.value})")
    return response


@router.post("/logout")
def logout(cookie_store: CookieSessionStore = Depends(get_cookie_store)):
    """Cierra la sesión borrando la cookie de sesión."""
    response = create_response("success", "Logged out successfully")
    if not cookie_store.logout(response):
        raise HTTPException(status_code=500, detail="Failed to logout")
    return response


@router.get("/verify")
def verify_session(session: Optional[TokenClaims] = Depends(get_current_session)):
    """
    Comprueba la sesión actual (cookie o encabezado `Authorization: Bearer`).

    Devuelve solo la información mínima del usuario autenticado.
    """
    if session is None:
        return unauthenticated_response("Invalid or expired token")

    return create_response("success", "Authenticated", {
        "authenticated": True,
        "user": {
            "id": session.sub,
            "email": session.email,
            "type": session.role.value if session.role else None,
        },
    })


@router.post("/forgot-password")
def forgot_password(
    request: EmailRequest,
    db: Session = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
    codec: TokenCodec = Depends(get_token_codec),
    email_sender: EmailSender = Depends(get_email_sender),
):
    """
    Inicia el proceso de restablecimiento de contraseña.

    - **email**: El correo electrónico del usuario que solicita el restablecimiento.

    La respuesta es la misma exista o no la cuenta. Una nueva solicitud
    reemplaza el token anterior.
    """
    missing = settings.missing_reset_config()
    if missing:
        logger.error(f"Faltan variables de entorno para el restablecimiento de contraseña: {', '.join(missing)}")
        return error_response("Server configuration error", status_code=500)

    email = normalize_email(request.email)
    user = db.query(User).filter(User.email == email).first()

    if not user:
        logger.info("Solicitud de restablecimiento para un correo no registrado")
        return create_response("success", FORGOT_PASSWORD_MESSAGE)

    try:
        reset_token = codec.issue(
            {"sub": user.id, "email": user.email, "purpose": TokenPurpose.PASSWORD_RESET},
            RESET_TTL,
        )
        user.reset_token = reset_token
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error durante el proceso de restablecimiento de contraseña: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to process password reset request")

    # Un fallo del correo no debe distinguir cuentas existentes de inexistentes
    try:
        email_sender.send_password_reset_email(user.email, reset_token)
    except EmailDeliveryError as e:
        logger.error(f"No se pudo enviar el correo de restablecimiento a {user.email}: {str(e)}")
        return create_response("success", FORGOT_PASSWORD_MESSAGE)

    logger.info(f"Correo de restablecimiento enviado a {user.email}")
    return create_response("success", FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password")
def reset_password(
    reset: PasswordReset,
    db: Session = Depends(get_db_session),
    codec: TokenCodec = Depends(get_token_codec),
):
    """
    Restablece la contraseña con un token de restablecimiento vigente.

    - **token**: El token recibido por correo (vigencia de 1 hora).
    - **newPassword**: La nueva contraseña.

    El token solo sirve una vez y solo si es el último emitido para la cuenta.
    """
    if not reset.token or not reset.newPassword:
        return error_response("Missing required fields")

    claims = codec.verify(reset.token, purpose=TokenPurpose.PASSWORD_RESET)
    if not claims:
        return error_response("Invalid or expired token")

    user = db.query(User).filter(User.id == claims.sub).first()
    if not user or user.reset_token != reset.token:
        logger.info(f"Token de restablecimiento no vigente para {claims.email}")
        return error_response("Invalid or expired token")

    if not validate_password_strength(reset.newPassword):
        return error_response(PASSWORD_LENGTH_MESSAGE)

    try:
        user.password_hash = hash_password(reset.newPassword)
        user.reset_token = None
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error al restablecer la contraseña: {e}")
        raise HTTPException(status_code=500, detail="Failed to reset password")

    logger.info(f"Contraseña restablecida para {user.email}")
    return create_response("success", "Password reset successful")
