import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import ConfigurationError, Settings
from dataBase import Database
from endpoints import auth, dashboard, user, utils
from models.models import Base
from utils.response import create_response

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return create_response("error", str(exc.detail), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        fields = [".".join(str(part) for part in error["loc"] if part != "body") for error in exc.errors()]
        return create_response(
            "error",
            "Missing or invalid fields",
            {"fields": [field for field in fields if field]},
            status_code=400
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_exception_handler(request: Request, exc: ConfigurationError):
        logger.error(f"Error de configuración en {request.url.path}: {exc}")
        return create_response("error", "Server configuration error", status_code=500)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Construye la aplicación con su configuración y su manejador de base de datos.

    Args:
        settings (Settings, optional): Configuración; por defecto se lee del entorno.
        database (Database, optional): Manejador de base de datos; por defecto usa DATABASE_URL.

    Returns:
        FastAPI: La aplicación lista para servir.
    """
    settings = settings or Settings.from_env()
    database = database or Database(settings.database_url, pool_pre_ping=True)

    app = FastAPI(title="Optical Marketplace API")
    app.state.settings = settings
    app.state.database = database

    register_exception_handlers(app)

    # Incluir las rutas de auth con prefijo y etiqueta
    app.include_router(auth.router, prefix="/auth", tags=["Authentication"])

    # Incluir las rutas de perfil de usuario
    app.include_router(user.router, prefix="/user", tags=["User"])

    # Incluir las rutas del panel
    app.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])

    # Incluir las rutas de utilidades y el healthcheck
    app.include_router(utils.router, prefix="/utils", tags=["Utilities"])
    app.include_router(utils.health_router, tags=["Utilities"])

    if settings.dev_endpoints_enabled:
        from devtools import mock_endpoints

        app.include_router(mock_endpoints.router, tags=["Development"])
        logger.warning(f"Endpoints de desarrollo habilitados (entorno: {settings.environment})")

    @app.get("/")
    def read_root():
        """
        Ruta raíz que retorna un mensaje de bienvenida.

        Returns:
            dict: Un diccionario con un mensaje de bienvenida.
        """
        return {"message": "Welcome to the Optical Marketplace API!"}

    @app.on_event("startup")
    def startup_event():
        if not database.url:
            logger.warning("DATABASE_URL no está definido; las rutas con base de datos fallarán")
            return
        engine = database.connect()
        Base.metadata.create_all(bind=engine)
        logger.info("Base de datos lista.")

    @app.on_event("shutdown")
    def shutdown_event():
        database.dispose()

    return app


_settings = Settings.from_env()
logging.basicConfig(level=_settings.log_level)

app = create_app(_settings)
