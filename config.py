import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import Request


def reload_env():
    """
    Carga las variables de entorno desde el archivo .env,
    sobrescribiendo las existentes si es necesario.
    """
    load_dotenv(override=True)


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class ConfigurationError(RuntimeError):
    """Falta una variable de configuración requerida por la operación."""


@dataclass(frozen=True)
class Settings:
    """
    Configuración del proceso leída desde variables de entorno.

    Atributos:
    ----------
    environment : str
        Entorno de ejecución (development, test o production).
    secret_key : str
        Clave usada para firmar los tokens (JWT_SECRET).
    database_url : str
        Cadena de conexión de SQLAlchemy.
    smtp_* : str / int / bool
        Datos de acceso al servidor de correo.
    app_url : str
        URL pública usada para construir los enlaces de los correos.
    enable_dev_endpoints : bool
        Activa los endpoints de prueba (solo fuera de producción).
    """
    environment: str = "development"
    secret_key: Optional[str] = None
    database_url: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: int = 465
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from: Optional[str] = None
    smtp_secure: bool = True
    app_url: str = "http://localhost:3000"
    enable_dev_endpoints: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        reload_env()
        return cls(
            environment=(os.getenv("APP_ENV") or "development").strip().lower(),
            secret_key=os.getenv("JWT_SECRET") or None,
            database_url=os.getenv("DATABASE_URL") or None,
            smtp_host=os.getenv("SMTP_HOST") or None,
            smtp_port=int(os.getenv("SMTP_PORT") or 465),
            smtp_user=os.getenv("SMTP_USER") or None,
            smtp_password=os.getenv("SMTP_PASSWORD") or None,
            smtp_from=os.getenv("SMTP_FROM") or None,
            smtp_secure=_as_bool(os.getenv("SMTP_SECURE"), default=True),
            app_url=(os.getenv("APP_URL") or "http://localhost:3000").rstrip("/"),
            enable_dev_endpoints=_as_bool(os.getenv("ENABLE_DEV_ENDPOINTS")),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cookie_secure(self) -> bool:
        return self.is_production

    @property
    def dev_endpoints_enabled(self) -> bool:
        # Nunca en producción, aunque la bandera esté activa
        return self.enable_dev_endpoints and not self.is_production

    def missing_reset_config(self) -> List[str]:
        """Devuelve los nombres de las variables que faltan para el restablecimiento de contraseña."""
        missing = []
        if not self.secret_key:
            missing.append("JWT_SECRET")
        if not self.smtp_host:
            missing.append("SMTP_HOST")
        if not self.smtp_user:
            missing.append("SMTP_USER")
        return missing


def get_settings(request: Request) -> Settings:
    """Dependencia de FastAPI que devuelve la configuración de la aplicación."""
    return request.app.state.settings
