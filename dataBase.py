import logging
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config import ConfigurationError

logger = logging.getLogger(__name__)


class Database:
    """
    Manejador explícito de la conexión a la base de datos.

    Se construye en la fábrica de la aplicación, se conecta en el evento de
    arranque y se libera en el evento de apagado. Las peticiones obtienen una
    sesión propia a través de la dependencia `get_db_session`.

    Args:
        url (str): Cadena de conexión de SQLAlchemy.
        **engine_kwargs: Argumentos adicionales para `create_engine`.
    """

    def __init__(self, url: Optional[str], **engine_kwargs):
        self.url = url
        self.engine_kwargs = engine_kwargs
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None

    def connect(self) -> Engine:
        if self.engine is not None:
            return self.engine
        if not self.url:
            raise ConfigurationError("DATABASE_URL is required")

        self.engine = create_engine(self.url, **self.engine_kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        logger.info(f"Motor de base de datos inicializado ({self.engine.dialect.name})")
        return self.engine

    def ping(self) -> bool:
        try:
            with self.connect().connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Error al conectar a la base de datos: {e}")
            return False

    def session(self) -> Iterator[Session]:
        """
        Proporciona una sesión de base de datos y asegura que se cierre
        correctamente después de su uso.

        Yields:
            Session: Una sesión de base de datos.
        """
        self.connect()
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def dispose(self):
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Conexiones de base de datos liberadas")
        self.engine = None
        self.SessionLocal = None


def get_db_session(request: Request) -> Iterator[Session]:
    """
    Dependencia de FastAPI que entrega una sesión del `Database` de la aplicación.

    Yields:
        Session: Una sesión de base de datos.
    """
    database: Optional[Database] = getattr(request.app.state, "database", None)
    if database is None:
        raise ConfigurationError("Database handle is not configured")
    yield from database.session()
