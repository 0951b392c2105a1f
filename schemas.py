"""
=============================================================================
SCHEMAS.PY — Esquemas de Validación (Pydantic)
=============================================================================
¿Por qué separar Models y Schemas?
  - Models (SQLAlchemy) → definen las TABLAS de la BD
  - Schemas (Pydantic) → definen qué DATOS acepta/devuelve la API

snake_case vs camelCase:
  El frontend a veces manda "dueAt" y a veces "due_at". En vez de mirar
  los dos nombres en cada sitio, TODOS los esquemas de entrada heredan de
  RequestModel, que acepta ambos. Dentro del backend solo existe snake_case,
  y las respuestas salen siempre en snake_case.

Convención de nombres:
  XxxCreate → para crear algo nuevo (POST)
  XxxUpdate → para actualizar algo (PUT)
  XxxResponse → lo que devuelve la API (GET)
"""

import json
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from models import EMOJI_JOURNAL_MOOD, JOURNAL_MOOD_EMOJI


# =============================================================================
# ===================== UTILIDADES ============================================
# =============================================================================

def parse_tags(raw: Any) -> Optional[list[str]]:
    """
    Acepta tags en cualquier forma razonable:
      ["a", "b"]     → ["a", "b"]
      '["a", "b"]'   → ["a", "b"]
      "a, b"         → ["a", "b"]
      None / ""      → None
    """
    if raw is None:
        return None
    if isinstance(raw, (list, tuple)):
        return [str(t) for t in raw]
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return [str(t) for t in parsed]
        parts = [p.strip() for p in text.split(",") if p.strip()]
        return parts or None
    return None


def stored_tags(raw: Any) -> list[str]:
    """Tags tal como salen de la BD. Si están corruptos → lista vacía, nunca error."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if isinstance(raw, list):
        return [str(t) for t in raw]
    return []


def normalize_rating(value: Any, default: int) -> int:
    """
    Deja un valor de 1 a 5. Lo que no sea número → default.
    Lo que se salga del rango → se recorta al extremo más cercano.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return default
    return max(1, min(5, number))


def to_int(value: Any, default: int = 0) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def parse_journal_mood(value: Any) -> Optional[str]:
    """Emoji o nombre → nombre guardado en BD ("happy", "neutral", "sad")"""
    if value is None:
        return None
    text = str(value).strip()
    if text in EMOJI_JOURNAL_MOOD:
        return EMOJI_JOURNAL_MOOD[text]
    if text.lower() in JOURNAL_MOOD_EMOJI:
        return text.lower()
    return "happy"


def as_utc_aware(value: datetime) -> datetime:
    """La BD guarda UTC sin zona. Al salir se marca como UTC → "...Z" en el JSON."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


TagList = Annotated[Optional[list[str]], BeforeValidator(parse_tags)]
JournalMoodIn = Annotated[Optional[str], BeforeValidator(parse_journal_mood)]
UTCDateTime = Annotated[datetime, AfterValidator(as_utc_aware)]


class RequestModel(BaseModel):
    """Base de todos los cuerpos de petición: acepta snake_case y camelCase"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# ===================== AUTH ==================================================
# =============================================================================

class UserRegister(RequestModel):
    """Datos para registrar un usuario nuevo"""
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6, description="Mínimo 6 caracteres")


class UserLogin(RequestModel):
    """Datos para iniciar sesión"""
    email: EmailStr
    password: str = Field(min_length=1)


class UserResponse(BaseModel):
    """Datos públicos del usuario (nunca el hash)"""
    id: int
    name: str
    email: str
    created_at: Optional[UTCDateTime] = None
    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Respuesta de login/registro"""
    token: str
    user: UserResponse


# =============================================================================
# ===================== GOALS =================================================
# =============================================================================

Priority = Literal["low", "medium", "high"]


class GoalCreate(RequestModel):
    title: str = Field(min_length=1, max_length=255)
    note: Optional[str] = None
    due_at: Optional[datetime] = None
    priority: Priority = "medium"
    tags: TagList = None


class GoalUpdate(RequestModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    note: Optional[str] = None
    due_at: Optional[datetime] = None
    completed: Optional[bool] = None
    completed_at: Optional[datetime] = None
    priority: Optional[Priority] = None
    tags: TagList = None


class GoalResponse(BaseModel):
    id: int
    title: str
    note: Optional[str] = None
    created_at: Optional[UTCDateTime] = None
    due_at: Optional[UTCDateTime] = None
    completed: bool = False
    completed_at: Optional[UTCDateTime] = None
    priority: str = "medium"
    tags: list[str] = []
    model_config = {"from_attributes": True}

    @field_validator("tags", mode="before")
    @classmethod
    def _stored_tags(cls, value):
        return stored_tags(value)

    @field_validator("priority", mode="before")
    @classmethod
    def _priority(cls, value):
        return value if value in ("low", "medium", "high") else "medium"


# =============================================================================
# ===================== MOOD ==================================================
# =============================================================================
# score/energy/intensity se aceptan "sucios" (texto, fuera de rango...).
# stores.py los deja en 1-5 en vez de rechazar la petición.

class MoodEntryCreate(RequestModel):
    id: Optional[str] = Field(default=None, max_length=100)
    score: Any = None
    energy: Any = None
    intensity: Any = None
    emoji: Optional[str] = None
    note: Optional[str] = None
    date: Optional[datetime] = None
    tags: TagList = None


class MoodEntryUpdate(RequestModel):
    score: Any = None
    energy: Any = None
    intensity: Any = None
    emoji: Optional[str] = None
    note: Optional[str] = None
    date: Optional[datetime] = None
    tags: TagList = None


class MoodEntryResponse(BaseModel):
    id: str
    score: int = 1
    energy: int = 3
    intensity: int = 3
    emoji: Optional[str] = None
    note: Optional[str] = None
    date: Optional[UTCDateTime] = None
    tags: list[str] = []
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None
    model_config = {"from_attributes": True}

    @field_validator("score", mode="before")
    @classmethod
    def _score(cls, value):
        return normalize_rating(value, 1)

    @field_validator("energy", "intensity", mode="before")
    @classmethod
    def _rating(cls, value):
        return normalize_rating(value, 3)

    @field_validator("tags", mode="before")
    @classmethod
    def _stored_tags(cls, value):
        return stored_tags(value)


# =============================================================================
# ===================== MEDITATION ============================================
# =============================================================================

class MeditationSessionCreate(RequestModel):
    id: Optional[str] = Field(default=None, max_length=100)
    title: Optional[str] = Field(default=None, max_length=200)
    minutes: Any = 10
    description: Optional[str] = None
    custom: bool = True


class MeditationSessionUpdate(RequestModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    minutes: Any = None
    description: Optional[str] = None
    custom: Optional[bool] = None


class MeditationSessionResponse(BaseModel):
    id: str
    user_id: Optional[int] = None
    title: str
    minutes: int = 0
    description: Optional[str] = None
    custom: bool = False
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None
    model_config = {"from_attributes": True}

    @field_validator("minutes", mode="before")
    @classmethod
    def _minutes(cls, value):
        return to_int(value)


class MeditationRunCreate(RequestModel):
    id: Optional[str] = Field(default=None, max_length=100)
    session_id: Optional[str] = None
    session_title: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    planned_minutes: Any = 0
    actual_seconds: Any = 0
    completed: bool = False
    note: Optional[str] = None


class MeditationRunUpdate(RequestModel):
    session_id: Optional[str] = None
    session_title: Optional[str] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    planned_minutes: Any = None
    actual_seconds: Any = None
    completed: Optional[bool] = None
    note: Optional[str] = None


class MeditationRunResponse(BaseModel):
    id: str
    session_id: Optional[str] = None
    session_title: Optional[str] = None
    started_at: Optional[UTCDateTime] = None
    ended_at: Optional[UTCDateTime] = None
    planned_minutes: int = 0
    actual_seconds: int = 0
    completed: bool = False
    note: Optional[str] = None
    created_at: Optional[UTCDateTime] = None
    model_config = {"from_attributes": True}

    @field_validator("planned_minutes", "actual_seconds", mode="before")
    @classmethod
    def _ints(cls, value):
        return to_int(value)


# =============================================================================
# ===================== JOURNAL ===============================================
# =============================================================================

class JournalEntryCreate(RequestModel):
    id: Optional[str] = Field(default=None, max_length=100)
    mood: JournalMoodIn = None
    text: Optional[str] = None
    tags: TagList = None


class JournalEntryUpdate(RequestModel):
    mood: JournalMoodIn = None
    text: Optional[str] = None
    tags: TagList = None
    summary: Optional[str] = None
    sentiment: Optional[Literal["positive", "neutral", "negative"]] = None


class JournalEntryResponse(BaseModel):
    id: str
    mood: str = "😊"
    # mood → se muestra como emoji aunque en BD vaya el nombre
    text: str
    tags: list[str] = []
    summary: Optional[str] = None
    sentiment: Optional[str] = None
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None
    model_config = {"from_attributes": True}

    @field_validator("mood", mode="before")
    @classmethod
    def _emoji(cls, value):
        if value in EMOJI_JOURNAL_MOOD:
            return value
        return JOURNAL_MOOD_EMOJI.get(value, "😊")

    @field_validator("tags", mode="before")
    @classmethod
    def _stored_tags(cls, value):
        return stored_tags(value)


class JournalSummaryResponse(JournalEntryResponse):
    """Entrada recién resumida, con info de qué proveedor lo hizo"""
    ai_provider: str
    ai_analysis: Optional[dict] = None


# =============================================================================
# ===================== DASHBOARD =============================================
# =============================================================================

class PriorityBreakdown(BaseModel):
    open: int = 0
    completed: int = 0


class DashboardStats(BaseModel):
    total_goals: int = 0
    completed_goals: int = 0
    open_goals: int = 0
    completion_rate: int = 0
    avg_mood: float = 0
    total_med_minutes: int = 0
    total_med_sessions: int = 0
    journal_count: int = 0
    journal_with_summary: int = 0
    mood_counts: list[int] = [0, 0, 0, 0, 0]
    # mood_counts[0] → nº de moods con score 1, ..., mood_counts[4] → score 5
    goals_by_priority: dict[str, PriorityBreakdown] = {}


class DashboardOverview(BaseModel):
    goals: list[GoalResponse]
    moods: list[MoodEntryResponse]
    med_runs: list[MeditationRunResponse]
    journal_entries: list[JournalEntryResponse]
    stats: DashboardStats
    last_updated: UTCDateTime


# Lo que manda el frontend a /dashboard/ai/analyze. Son "fotos" de sus datos
# en caché: campos sueltos y tolerantes, por eso casi todo es opcional.

class GoalSnapshot(RequestModel):
    title: Optional[str] = None
    completed: bool = False
    priority: Optional[str] = None

    @field_validator("completed", mode="before")
    @classmethod
    def _truthy(cls, value):
        return bool(value) and value not in ("0", "false", "False")


class MoodSnapshot(RequestModel):
    score: int = 0
    date: Optional[datetime] = None

    @field_validator("score", mode="before")
    @classmethod
    def _score(cls, value):
        return to_int(value)


class RunSnapshot(RequestModel):
    session_title: Optional[str] = None
    actual_seconds: int = 0
    started_at: Optional[datetime] = None

    @field_validator("actual_seconds", mode="before")
    @classmethod
    def _seconds(cls, value):
        return to_int(value)


class JournalSnapshot(RequestModel):
    summary: Optional[str] = None


class AnalyzeRequest(RequestModel):
    goals: Optional[list[GoalSnapshot]] = None
    moods: Optional[list[MoodSnapshot]] = None
    med_runs: Optional[list[RunSnapshot]] = None
    journal_entries: list[JournalSnapshot] = []
    timestamp: Optional[str] = None
