"""
=============================================================================
MODELS.PY — Todos los Modelos (Tablas) de la Base de Datos
=============================================================================
Cada clase aquí = una tabla en la base de datos.
Cada atributo de la clase = una columna en esa tabla.

RELACIONES:
  USER
  ├── goals[]
  ├── mood_entries[]
  ├── meditation_sessions[]  (las suyas; las globales tienen user_id NULL)
  ├── meditation_runs[]
  └── journal_entries[]

Si se borra un usuario, se borra TODO lo suyo (ON DELETE CASCADE).
"""

import enum
import secrets
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Boolean, Text, DateTime, ForeignKey, Enum, JSON
)
from sqlalchemy.orm import relationship

from database import Base


def utcnow() -> datetime:
    """Fecha/hora actual en UTC, sin tzinfo (así la guardan todas las BDs)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def gen_id(prefix: str) -> str:
    """IDs de texto tipo "mood3f9a0c..." para los recursos que los admiten del cliente"""
    return f"{prefix}{secrets.token_hex(8)}"


# =============================================================================
# ===================== ENUMS (Tipos predefinidos) ============================
# =============================================================================

class GoalPriority(str, enum.Enum):
    """Prioridad de un objetivo"""
    low = "low"
    medium = "medium"
    high = "high"


class JournalMood(str, enum.Enum):
    """Ánimo de una entrada de diario. En la BD va el nombre, en la API el emoji."""
    happy = "happy"      # 😊
    neutral = "neutral"  # 😐
    sad = "sad"          # 😔


class Sentiment(str, enum.Enum):
    """Sentimiento que asigna la IA (o la heurística) a un texto"""
    positive = "positive"
    neutral = "neutral"
    negative = "negative"


JOURNAL_MOOD_EMOJI = {
    JournalMood.happy.value: "😊",
    JournalMood.neutral.value: "😐",
    JournalMood.sad.value: "😔",
}
EMOJI_JOURNAL_MOOD = {emoji: mood for mood, emoji in JOURNAL_MOOD_EMOJI.items()}


# =============================================================================
# ===================== TABLA 1: USERS ========================================
# =============================================================================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    # Nunca guardamos la contraseña, solo su hash bcrypt

    created_at = Column(DateTime, default=utcnow)

    # cascade="all, delete-orphan" → si borras el usuario, se borran todos sus datos
    goals = relationship("Goal", back_populates="user", cascade="all, delete-orphan",
                         passive_deletes=True)
    mood_entries = relationship("MoodEntry", back_populates="user", cascade="all, delete-orphan",
                                passive_deletes=True)
    meditation_sessions = relationship("MeditationSession", back_populates="user",
                                       cascade="all, delete-orphan", passive_deletes=True)
    meditation_runs = relationship("MeditationRun", back_populates="user",
                                   cascade="all, delete-orphan", passive_deletes=True)
    journal_entries = relationship("JournalEntry", back_populates="user",
                                   cascade="all, delete-orphan", passive_deletes=True)


# =============================================================================
# ===================== TABLA 2: GOALS ========================================
# =============================================================================
# Regla: completed_at tiene valor SI Y SOLO SI completed es True.
# La tabla no lo impone; lo normaliza stores.update_goal en cada escritura.

class Goal(Base):
    __tablename__ = "goals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    note = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    due_at = Column(DateTime, nullable=True)

    completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    priority = Column(
        Enum("low", "medium", "high", name="goal_priority"),
        default=GoalPriority.medium.value, nullable=False
    )
    tags = Column(JSON, nullable=True)
    # tags → ["salud", "running"]. Puede venir corrupto de versiones viejas:
    # al leer, cualquier cosa que no sea lista se trata como []

    user = relationship("User", back_populates="goals")


# =============================================================================
# ===================== TABLA 3: MOOD_ENTRIES =================================
# =============================================================================

class MoodEntry(Base):
    __tablename__ = "mood_entries"

    id = Column(String(100), primary_key=True, default=lambda: gen_id("mood"))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    score = Column(Integer, nullable=False)
    # score → 1 (fatal) a 5 (genial)
    energy = Column(Integer, nullable=True, default=3)
    intensity = Column(Integer, nullable=True, default=3)
    # energy / intensity se añadieron después: filas antiguas pueden tener NULL

    emoji = Column(String(16), default="😐")
    note = Column(Text, nullable=True)

    date = Column(DateTime, nullable=False, index=True)
    # date → el momento que elige el usuario, no tiene por qué ser "ahora"
    tags = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="mood_entries")


# =============================================================================
# ===================== TABLA 4: MEDITATION_SESSIONS ==========================
# =============================================================================
# Plantillas de meditación. user_id NULL = sesión global (la ve todo el mundo).

class MeditationSession(Base):
    __tablename__ = "meditation_sessions"

    id = Column(String(100), primary_key=True, default=lambda: gen_id("s"))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)

    title = Column(String(200), nullable=False)
    minutes = Column(Integer, default=10, nullable=False)
    description = Column(Text, nullable=True)
    custom = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="meditation_sessions")


# =============================================================================
# ===================== TABLA 5: MEDITATION_RUNS ==============================
# =============================================================================
# Cada vez que el usuario medita. session_id NO es clave foránea: si se
# edita o borra la sesión, el historial se queda como estaba (el título
# se copia al crear el run).

class MeditationRun(Base):
    __tablename__ = "meditation_runs"

    id = Column(String(100), primary_key=True, default=lambda: gen_id("r"))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    session_id = Column(String(100), nullable=True)
    session_title = Column(String(200), nullable=True)

    started_at = Column(DateTime, nullable=False, index=True)
    ended_at = Column(DateTime, nullable=True)

    planned_minutes = Column(Integer, default=0, nullable=False)
    actual_seconds = Column(Integer, default=0, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    note = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="meditation_runs")


# =============================================================================
# ===================== TABLA 6: JOURNAL_ENTRIES ==============================
# =============================================================================

class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id = Column(String(100), primary_key=True, default=lambda: gen_id("journal"))
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    mood = Column(
        Enum("happy", "neutral", "sad", name="journal_mood"),
        default=JournalMood.happy.value, nullable=False
    )
    text = Column(Text, nullable=False)
    tags = Column(JSON, nullable=True)

    # ── Resultado de la IA ──
    summary = Column(Text, nullable=True)
    sentiment = Column(
        Enum("positive", "neutral", "negative", name="journal_sentiment"),
        nullable=True
    )

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="journal_entries")
