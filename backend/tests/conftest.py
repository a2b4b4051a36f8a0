import asyncio
import inspect
import os
import tempfile

# Settings are read at import time, so configure the environment first
_test_tmp_dir = tempfile.mkdtemp(prefix="blogauth_test_")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only-do-not-use-in-production")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_INIT_MODE", "create_all")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FILE", os.path.join(_test_tmp_dir, "test.log"))

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from blogauth.core.database import Base  # noqa: E402
from blogauth.core.security import token_issuer  # noqa: E402
from blogauth.services.auth_service import AuthService  # noqa: E402
from blogauth.services.captcha_service import CaptchaService, CaptchaStore  # noqa: E402
from blogauth.services.rate_limiter import rate_limiter  # noqa: E402
from blogauth.services.session_store import SessionStore  # noqa: E402

CAPTCHA_TEXT = "AB12"


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def captcha():
    return CaptchaService(
        CaptchaStore(ttl_seconds=300),
        text_factory=lambda: CAPTCHA_TEXT,
        renderer=lambda text: b"\x89PNG fake " + text.encode(),
    )


@pytest.fixture
def auth(captcha):
    return AuthService(issuer=token_issuer, sessions=SessionStore(), captcha=captcha)


@pytest.fixture
def app(db_session, captcha, auth):
    from blogauth.main import app as fastapi_app
    from blogauth.api.deps import get_auth_service, get_captcha_service
    from blogauth.core.database import get_db

    fastapi_app.dependency_overrides[get_db] = lambda: db_session
    fastapi_app.dependency_overrides[get_captcha_service] = lambda: captcha
    fastapi_app.dependency_overrides[get_auth_service] = lambda: auth
    rate_limiter.reset()
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()
    rate_limiter.reset()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")
