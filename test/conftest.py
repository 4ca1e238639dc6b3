import os
import sys
from datetime import datetime, timedelta

import pytest
import pytz
from sqlalchemy.pool import StaticPool

# Agrega la ruta raíz del proyecto al sys.path
sys.path.append(os.path.dirname(os.path.abspath(__file__)) + '/../')

from config import Settings
from dataBase import Database, get_db_session
from main import create_app
from models.models import Base, User, UserType, generate_user_id
from utils.email import EmailDeliveryError, get_email_sender
from utils.security import hash_password
from utils.tokens import SESSION_TTL, TokenCodec

TEST_SECRET = "test-secret-key-with-at-least-32-bytes-of-entropy"


class FakeEmailSender:
    """Registra los correos en memoria en lugar de enviarlos."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send_email(self, email, token, email_type):
        if self.fail:
            raise EmailDeliveryError("SMTP relay unavailable")
        self.sent.append({"email": email, "token": token, "type": email_type})

    def send_verification_email(self, email, token):
        self.send_email(email, token, "verification")

    def send_password_reset_email(self, email, token):
        self.send_email(email, token, "reset")

    def last(self, email_type):
        matches = [item for item in self.sent if item["type"] == email_type]
        return matches[-1] if matches else None


def make_settings(**overrides) -> Settings:
    values = dict(
        environment="test",
        secret_key=TEST_SECRET,
        database_url="sqlite://",
        smtp_host="smtp.example.com",
        smtp_user="mailer@example.com",
        smtp_password="smtp-password",
        smtp_from="no-reply@example.com",
        app_url="http://localhost:3000",
    )
    values.update(overrides)
    return Settings(**values)


def past_clock(hours: float):
    return lambda: datetime.now(pytz.utc) - timedelta(hours=hours)


@pytest.fixture(scope="function")
def settings():
    return make_settings()


@pytest.fixture(scope="function")
def codec():
    return TokenCodec(TEST_SECRET)


@pytest.fixture(scope="function")
def database():
    """Base de datos SQLite en memoria, nueva para cada prueba."""
    db = Database("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=db.connect())
    yield db
    db.dispose()


@pytest.fixture(scope="function")
def session_for_tests(database):
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def email_sender():
    return FakeEmailSender()


def apply_overrides(app, session, email_sender):
    # Función para sobrescribir la dependencia get_db_session
    def override_get_db_session():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    return app


@pytest.fixture(scope="function")
def app_with_overrides(settings, database, session_for_tests, email_sender):
    app = apply_overrides(create_app(settings, database), session_for_tests, email_sender)
    yield app
    app.dependency_overrides.clear()


def create_user(session, email, password="Password123!", user_type=UserType.BUYER, verified=True, **fields):
    user = User(
        id=generate_user_id(),
        email=email,
        password_hash=hash_password(password),
        user_type=user_type,
        email_verified=verified,
        **fields
    )
    session.add(user)
    session.commit()
    return user


def session_token_for(codec, user):
    return codec.issue({"sub": user.id, "email": user.email, "role": user.user_type}, SESSION_TTL)
