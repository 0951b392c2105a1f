"""
=============================================================================
CONFIG.PY — Configuración por Variables de Entorno
=============================================================================
Todo lo que cambia entre tu PC y producción vive aquí.

En local: crea un archivo .env en la raíz (python-dotenv lo carga solo).
En producción: define las variables en el panel del hosting.

Variables reconocidas:
  PORT                  → puerto de uvicorn (por defecto 3000)
  DATABASE_URL          → URL completa de la BD (tiene prioridad)
  DB_HOST/DB_PORT/DB_USER/DB_PASSWORD/DB_NAME → MySQL si no hay DATABASE_URL
  JWT_SECRET            → clave para firmar tokens
  JWT_EXPIRES_IN        → "7d", "12h", "30m", "45s" o segundos
  FRONTEND_ORIGIN       → origen permitido por CORS
  HF_TOKEN              → credencial de Hugging Face (DeepSeek)
  GEMINI_API_KEY        → credencial de Gemini (proveedor alternativo)
  DEEPSEEK_MOCK         → "true" para no llamar nunca a la IA real
  ENVIRONMENT           → "production" oculta los errores internos
"""

import os
import re

from dotenv import load_dotenv

load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Lee una variable tipo "true"/"1"/"yes" como booleano"""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str, default_seconds: int = 7 * 86400) -> int:
    """
    Convierte "7d", "12h", "30m", "45s" o "3600" en segundos.
    Si el formato no se entiende, devuelve el valor por defecto.
    """
    if not value:
        return default_seconds
    match = re.fullmatch(r"\s*(\d+)\s*([smhd]?)\s*", value.lower())
    if not match:
        return default_seconds
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS.get(unit or "s", 1)


# ─────────────────────────────────────────────────────────────────────────────
# SERVIDOR
# ─────────────────────────────────────────────────────────────────────────────

PORT = env_int("PORT", 3000)
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
FRONTEND_ORIGIN = os.getenv("FRONTEND_ORIGIN", "http://localhost:5173")
COOKIE_SECURE = env_bool("COOKIE_SECURE", ENVIRONMENT == "production")


def is_production() -> bool:
    return ENVIRONMENT.lower() == "production"


# ─────────────────────────────────────────────────────────────────────────────
# AUTH
# ─────────────────────────────────────────────────────────────────────────────

JWT_SECRET = os.getenv("JWT_SECRET", "wellnest-dev-secret-cambiar-en-produccion")
JWT_EXPIRES_IN = os.getenv("JWT_EXPIRES_IN", "7d")
JWT_EXPIRES_SECONDS = parse_duration(JWT_EXPIRES_IN)
