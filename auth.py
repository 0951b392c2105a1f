"""
=============================================================================
AUTH.PY — Sistema de Autenticación
=============================================================================
Gestiona:
  - Hashing de contraseñas (nunca guardar contraseñas en texto plano)
  - Creación y verificación de tokens JWT
  - Obtener el usuario actual desde un token

JWT (JSON Web Token):
  Es una cadena de texto que identifica al usuario.
  Flujo:
    1. Usuario envía email + contraseña
    2. Si son correctos, el servidor genera un JWT
    3. El navegador lo guarda en una cookie "token" (httpOnly) y/o el
       cliente lo manda en la cabecera "Authorization: Bearer <token>"
    4. El servidor verifica el JWT y sabe quién es el usuario

  Cualquier fallo (sin token, token roto, caducado, usuario borrado)
  acaba igual: 401. Así nadie puede averiguar qué usuarios existen.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from config import JWT_SECRET, JWT_EXPIRES_SECONDS
from database import get_db
from models import User

# ─────────────────────────────────────────────────────────────────────────────
# CONFIGURACIÓN
# ─────────────────────────────────────────────────────────────────────────────

ALGORITHM = "HS256"
COOKIE_NAME = "token"

# ─────────────────────────────────────────────────────────────────────────────
# HASHING DE CONTRASEÑAS
# ─────────────────────────────────────────────────────────────────────────────
# bcrypt convierte "mi_contraseña" en algo como "$2b$12$LJ3m5..."
# Es IRREVERSIBLE: no puedes obtener la contraseña original desde el hash.


def hash_password(password: str) -> str:
    """Convierte una contraseña en texto plano a un hash seguro"""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compara una contraseña en texto plano con un hash almacenado"""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Hash corrupto en BD → como si la contraseña no coincidiera
        return False


# ─────────────────────────────────────────────────────────────────────────────
# TOKENS JWT
# ─────────────────────────────────────────────────────────────────────────────

def create_access_token(user_id: int, email: str, expires_in: Optional[int] = None) -> str:
    """
    Crea un token JWT con el ID y email del usuario.

    El token contiene:
      - sub (subject): el ID del usuario
      - email: para referencia
      - exp (expiration): cuándo caduca (JWT_EXPIRES_IN, 7 días por defecto)
    """
    seconds = JWT_EXPIRES_SECONDS if expires_in is None else expires_in
    expire = datetime.now(timezone.utc) + timedelta(seconds=seconds)
    to_encode = {
        "sub": str(user_id),
        "email": email,
        "exp": expire
    }
    return jwt.encode(to_encode, JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """
    Decodifica un token JWT y devuelve sus datos.
    Si el token es inválido o ha expirado, devuelve None.
    """
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[ALGORITHM])
    except JWTError:
        return None


# ─────────────────────────────────────────────────────────────────────────────
# DEPENDENCIA: OBTENER USUARIO ACTUAL
# ─────────────────────────────────────────────────────────────────────────────

security = HTTPBearer(auto_error=False)
# auto_error=False → si no hay cabecera, no corta aquí: aún puede venir la cookie


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"}
    )


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    token: Optional[str] = Cookie(default=None),
    db: Session = Depends(get_db)
) -> User:
    """
    Extrae el usuario del token JWT (cabecera Bearer primero, cookie después).

    Se usa así en los endpoints:
      @app.get("/api/goals")
      def list_goals(user: User = Depends(get_current_user)):
          ...
    """
    raw_token = credentials.credentials if credentials else token
    if not raw_token:
        raise _unauthorized("No autenticado")

    payload = decode_token(raw_token)
    if payload is None:
        raise _unauthorized("Token inválido o expirado")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise _unauthorized("Token sin identificador de usuario")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise _unauthorized("Usuario no encontrado")

    return user
