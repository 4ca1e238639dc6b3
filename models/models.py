import enum
import uuid
from datetime import datetime

import pytz
from sqlalchemy import Boolean, Column, DateTime, Enum, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def get_utc_now():
    return datetime.now(pytz.utc)


def generate_user_id() -> str:
    return str(uuid.uuid4())


class UserType(str, enum.Enum):
    """Tipos de usuario del marketplace."""
    BUYER = "BUYER"
    SUPPLIER = "SUPPLIER"
    ADMIN = "ADMIN"


# Campos de perfil que el usuario puede editar, con su nombre en la API
PROFILE_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "phone": "phone",
    "country": "country",
    "address": "address",
    "city": "city",
    "state": "state",
    "postalCode": "postal_code",
    "businessName": "business_name",
    "businessType": "business_type",
    "registrationNumber": "registration_number",
    "website": "website",
    "profileImage": "profile_image",
}


class User(Base):
    """
    Modelo de base de datos para representar un usuario (comprador o proveedor).

    Atributos:
    ----------
    id : str
        Identificador único del usuario (clave primaria).
    email : str
        Correo electrónico del usuario (único).
    password_hash : str
        Hash de la contraseña.
    user_type : UserType
        Rol del usuario en el marketplace.
    email_verified : bool
        Indica si el correo fue verificado.
    verification_token : str
        Último token de verificación de correo emitido.
    reset_token : str
        Último token de restablecimiento de contraseña emitido.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_user_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    user_type = Column(Enum(UserType, name="user_type"), nullable=False, default=UserType.BUYER)
    email_verified = Column(Boolean, nullable=False, default=False)
    verification_token = Column(String(1024), nullable=True)
    reset_token = Column(String(1024), nullable=True)

    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    country = Column(String(100), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    business_name = Column(String(255), nullable=True)
    business_type = Column(String(100), nullable=True)
    registration_number = Column(String(100), nullable=True)
    website = Column(String(255), nullable=True)
    profile_image = Column(String(1024), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=get_utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=get_utc_now, onupdate=get_utc_now)

    def to_profile(self) -> dict:
        """
        Representación pública del usuario, sin el hash de la contraseña ni los tokens.

        Returns:
            dict: Datos de perfil con las claves usadas por la API.
        """
        profile = {
            "id": self.id,
            "email": self.email,
            "type": self.user_type.value if self.user_type else None,
            "emailVerified": bool(self.email_verified),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        for api_name, column in PROFILE_FIELDS.items():
            profile[api_name] = getattr(self, column)
        return profile
