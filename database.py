"""
=============================================================================
DATABASE.PY — Configuración de la Base de Datos
=============================================================================
Este archivo configura la conexión a la base de datos.

¿Cómo sabe cuál usar?
→ Si existe DATABASE_URL, usa esa URL tal cual (PostgreSQL, MySQL...).
→ Si no, pero hay DB_HOST, monta una URL de MySQL con DB_USER/DB_PASSWORD/DB_NAME.
→ Si no hay nada, usa SQLite local (un archivo .db).

SQLAlchemy nos deja escribir consultas en Python. Todas las consultas
se envían PARAMETRIZADAS: nunca se pega texto del usuario dentro del SQL.
"""

import os
from urllib.parse import quote_plus

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

import config  # noqa: F401  (carga el .env antes de leer variables)

# ─────────────────────────────────────────────────────────────────────────────
# CONEXIÓN
# ─────────────────────────────────────────────────────────────────────────────


def build_database_url() -> str:
    """Decide la URL de conexión a partir de las variables de entorno"""
    url = os.getenv("DATABASE_URL")
    if url:
        # Los proveedores dan "postgres://" pero SQLAlchemy necesita el driver
        # explícito. Usamos psycopg (v3).
        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+psycopg://", 1)
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+psycopg://", 1)
        if url.startswith("mysql://"):
            return url.replace("mysql://", "mysql+mysqlconnector://", 1)
        return url

    host = os.getenv("DB_HOST")
    if host:
        user = quote_plus(os.getenv("DB_USER", "root"))
        password = quote_plus(os.getenv("DB_PASSWORD", ""))
        name = os.getenv("DB_NAME", "wellnest")
        port = os.getenv("DB_PORT", "3306")
        return f"mysql+mysqlconnector://{user}:{password}@{host}:{port}/{name}?charset=utf8mb4"

    return "sqlite:///./wellnest.db"


DATABASE_URL = build_database_url()

# ─────────────────────────────────────────────────────────────────────────────
# ENGINE
# ─────────────────────────────────────────────────────────────────────────────
# connect_args={"check_same_thread": False} → solo para SQLite, porque el
# dashboard lee desde varios hilos a la vez.


def make_engine(url: str):
    engine_args = {}
    if url.startswith("sqlite"):
        engine_args["connect_args"] = {"check_same_thread": False}
    else:
        # pool_pre_ping → si la conexión murió, se reabre antes de usarla
        engine_args["pool_pre_ping"] = True
        engine_args["pool_recycle"] = 1800

    new_engine = create_engine(url, echo=False, **engine_args)

    if url.startswith("sqlite"):
        # SQLite no aplica ON DELETE CASCADE si no se activa a mano
        @event.listens_for(new_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


engine = make_engine(DATABASE_URL)

# ─────────────────────────────────────────────────────────────────────────────
# SESSION
# ─────────────────────────────────────────────────────────────────────────────
# SessionLocal es una "fábrica" de sesiones. Cada petición abre la suya.

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ─────────────────────────────────────────────────────────────────────────────
# BASE (Clase base para los modelos)
# ─────────────────────────────────────────────────────────────────────────────

Base = declarative_base()


def get_db():
    """
    Dependencia de FastAPI: crea una sesión y la cierra al terminar.

      @app.get("/algo")
      def mi_endpoint(db: Session = Depends(get_db)):
          ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """
    Dependencia para quien necesita abrir VARIAS sesiones (el dashboard
    hace cuatro lecturas en paralelo, una sesión por hilo).
    """
    return SessionLocal


def init_db(bind=None):
    """
    Crea todas las tablas si no existen.
    Se llama una vez al arrancar la aplicación.
    """
    import models  # noqa: F401  (registra las tablas en Base.metadata)

    Base.metadata.create_all(bind=bind or engine)
