from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from loginguard.config import settings
from urllib.parse import quote_plus, unquote, urlparse, urlunparse


def encode_database_url(url: str) -> str:
    if not url:
        return url

    parsed = urlparse(url)
    if not parsed.password:
        return url

    encoded_password = quote_plus(unquote(parsed.password), safe='')
    netloc = f"{parsed.username or ''}:{encoded_password}@{parsed.hostname or ''}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return urlunparse((
        parsed.scheme,
        netloc,
        parsed.path or '',
        parsed.params or '',
        parsed.query or '',
        parsed.fragment or ''
    ))


def create_database_engine(url: str = None):
    db_url = encode_database_url(url or settings.database_url)

    if db_url.startswith("sqlite"):
        return create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            echo=False
        )

    return create_engine(
        db_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        connect_args={"connect_timeout": 10},
        echo=False
    )


engine = create_database_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

