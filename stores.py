"""
=============================================================================
STORES.PY — Acceso a Datos (CRUD de cada recurso)
=============================================================================
Aquí vive TODO lo que toca la base de datos. Los endpoints de main.py no
hacen consultas: llaman a estas funciones.

Cada recurso tiene las mismas 5 operaciones:
  list_xxx(db, user_id)              → lista, lo más nuevo primero
  get_xxx(db, user_id, id)           → uno, o None si no existe / no es tuyo
  create_xxx(db, user_id, data)      → crea y devuelve la fila
  update_xxx(db, user_id, id, data)  → cambia SOLO lo que venga; None si no es tuyo
  delete_xxx(db, user_id, id)        → True si borró algo, False si no

Regla de oro: TODAS las consultas filtran por user_id. Si pides el objetivo
de otro usuario, la consulta simplemente no lo encuentra (→ 404 arriba).

Los errores de BD NO se capturan aquí: suben hasta main.py, que los
convierte en un 500 (o 409 si es un id duplicado).
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from models import (
    Goal, MoodEntry, MeditationSession, MeditationRun, JournalEntry, utcnow
)
from schemas import (
    GoalCreate, GoalUpdate,
    MoodEntryCreate, MoodEntryUpdate,
    MeditationSessionCreate, MeditationSessionUpdate,
    MeditationRunCreate, MeditationRunUpdate,
    JournalEntryCreate, JournalEntryUpdate,
    normalize_rating, to_int,
)

logger = logging.getLogger("wellnest.stores")


# ─────────────────────────────────────────────────────────────────────────────
# UTILIDADES
# ─────────────────────────────────────────────────────────────────────────────

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Fechas con zona horaria → UTC sin tzinfo (como se guardan).
    "2024-05-01T10:00:00+02:00" se guarda como 08:00.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _apply(row, changes: dict, not_null: tuple = ()):
    """
    Copia los cambios a la fila. Un None en una columna obligatoria
    se ignora en vez de romper la restricción NOT NULL.
    """
    for key, value in changes.items():
        if value is None and key in not_null:
            continue
        if isinstance(value, datetime):
            value = as_utc(value)
        setattr(row, key, value)


def _save(db: Session, row):
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


# =============================================================================
# ===================== GOALS =================================================
# =============================================================================

def _normalize_completion(goal: Goal):
    """completed_at tiene valor si y solo si el objetivo está completado"""
    if goal.completed:
        if goal.completed_at is None:
            goal.completed_at = utcnow()
    else:
        goal.completed_at = None


def list_goals(db: Session, user_id: int, since: Optional[datetime] = None) -> list[Goal]:
    query = db.query(Goal).filter(Goal.user_id == user_id)
    if since is not None:
        query = query.filter(Goal.created_at >= as_utc(since))
    return query.order_by(Goal.created_at.desc(), Goal.id.desc()).all()


def get_goal(db: Session, user_id: int, goal_id: int) -> Optional[Goal]:
    return db.query(Goal).filter(Goal.id == goal_id, Goal.user_id == user_id).first()


def create_goal(db: Session, user_id: int, data: GoalCreate) -> Goal:
    """Crea un objetivo. Siempre nace sin completar."""
    goal = Goal(
        user_id=user_id,
        title=data.title,
        note=data.note,
        due_at=as_utc(data.due_at),
        priority=data.priority,
        tags=data.tags,
        completed=False,
        completed_at=None,
    )
    _save(db, goal)
    logger.info(f"🎯 Objetivo creado: {goal.id} (user: {user_id})")
    return goal


def update_goal(db: Session, user_id: int, goal_id: int, data: GoalUpdate) -> Optional[Goal]:
    """
    Actualiza un objetivo.

    Marcar completed=True sin fecha → completed_at = ahora (si no la tenía).
    Marcar completed=False → completed_at se borra, venga lo que venga.
    """
    goal = get_goal(db, user_id, goal_id)
    if goal is None:
        return None

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        return goal

    _apply(goal, changes, not_null=("title", "priority", "completed"))
    _normalize_completion(goal)
    return _save(db, goal)


def delete_goal(db: Session, user_id: int, goal_id: int) -> bool:
    deleted = db.query(Goal).filter(Goal.id == goal_id, Goal.user_id == user_id).delete()
    db.commit()
    return deleted > 0


# =============================================================================
# ===================== MOOD ==================================================
# =============================================================================
# score/energy/intensity se recortan a 1-5 al escribir (y al leer, en schemas).

def list_moods(
    db: Session, user_id: int,
    since: Optional[datetime] = None, limit: Optional[int] = None
) -> list[MoodEntry]:
    query = db.query(MoodEntry).filter(MoodEntry.user_id == user_id)
    if since is not None:
        query = query.filter(MoodEntry.date >= as_utc(since))
    query = query.order_by(MoodEntry.date.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_mood(db: Session, user_id: int, mood_id: str) -> Optional[MoodEntry]:
    return db.query(MoodEntry).filter(
        MoodEntry.id == mood_id, MoodEntry.user_id == user_id
    ).first()


def create_mood(db: Session, user_id: int, data: MoodEntryCreate) -> MoodEntry:
    entry = MoodEntry(
        user_id=user_id,
        score=normalize_rating(data.score, 1),
        energy=normalize_rating(data.energy, 3),
        intensity=normalize_rating(data.intensity, 3),
        emoji=data.emoji or "😐",
        note=data.note or None,
        date=as_utc(data.date) or utcnow(),
        tags=data.tags,
    )
    if data.id:
        entry.id = data.id
    _save(db, entry)
    logger.info(f"🙂 Mood registrado: {entry.id} score={entry.score} (user: {user_id})")
    return entry


def update_mood(db: Session, user_id: int, mood_id: str, data: MoodEntryUpdate) -> Optional[MoodEntry]:
    entry = get_mood(db, user_id, mood_id)
    if entry is None:
        return None

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        return entry

    # null en score/energy/intensity → se deja el valor guardado
    if changes.get("score") is not None:
        changes["score"] = normalize_rating(changes["score"], 1)
    for field in ("energy", "intensity"):
        if changes.get(field) is not None:
            changes[field] = normalize_rating(changes[field], 3)
    if "note" in changes:
        changes["note"] = changes["note"] or None

    _apply(entry, changes, not_null=("date", "emoji", "score", "energy", "intensity"))
    return _save(db, entry)


def delete_mood(db: Session, user_id: int, mood_id: str) -> bool:
    deleted = db.query(MoodEntry).filter(
        MoodEntry.id == mood_id, MoodEntry.user_id == user_id
    ).delete()
    db.commit()
    return deleted > 0


# =============================================================================
# ===================== MEDITATION: SESSIONS ==================================
# =============================================================================
# Un usuario VE las sesiones globales (user_id NULL) y las suyas,
# pero solo puede EDITAR o BORRAR las suyas.

DEFAULT_SESSIONS = [
    {"id": "s-breath-5", "title": "Respiración consciente", "minutes": 5,
     "description": "Atención a la respiración para empezar el día."},
    {"id": "s-body-scan-10", "title": "Escaneo corporal", "minutes": 10,
     "description": "Recorre el cuerpo de pies a cabeza soltando tensión."},
    {"id": "s-calm-15", "title": "Calma profunda", "minutes": 15,
     "description": "Sesión larga para bajar revoluciones al final del día."},
]


def seed_default_sessions(db: Session) -> int:
    """Inserta las sesiones globales si aún no existen. Devuelve cuántas creó."""
    created = 0
    for data in DEFAULT_SESSIONS:
        if db.query(MeditationSession).filter(MeditationSession.id == data["id"]).first():
            continue
        db.add(MeditationSession(user_id=None, custom=False, **data))
        created += 1
    if created:
        db.commit()
    return created


def _visible_sessions(db: Session, user_id: int):
    return db.query(MeditationSession).filter(
        or_(MeditationSession.user_id.is_(None), MeditationSession.user_id == user_id)
    )


def list_sessions(db: Session, user_id: int) -> list[MeditationSession]:
    """Globales primero (custom=False), luego las propias; dentro, lo más nuevo primero"""
    return _visible_sessions(db, user_id).order_by(
        MeditationSession.custom.asc(), MeditationSession.created_at.desc()
    ).all()


def get_session(db: Session, user_id: int, session_id: str) -> Optional[MeditationSession]:
    return _visible_sessions(db, user_id).filter(MeditationSession.id == session_id).first()


def _own_session(db: Session, user_id: int, session_id: str) -> Optional[MeditationSession]:
    return db.query(MeditationSession).filter(
        MeditationSession.id == session_id, MeditationSession.user_id == user_id
    ).first()


def create_session(db: Session, user_id: int, data: MeditationSessionCreate) -> MeditationSession:
    session = MeditationSession(
        user_id=user_id,
        title=data.title,
        minutes=to_int(data.minutes) or 10,
        description=data.description,
        custom=bool(data.custom),
    )
    if data.id:
        session.id = data.id
    _save(db, session)
    logger.info(f"🧘 Sesión creada: {session.id} '{session.title}' (user: {user_id})")
    return session


def update_session(
    db: Session, user_id: int, session_id: str, data: MeditationSessionUpdate
) -> Optional[MeditationSession]:
    session = _own_session(db, user_id, session_id)
    if session is None:
        return None

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        return session

    if "minutes" in changes:
        changes["minutes"] = to_int(changes["minutes"])
    _apply(session, changes, not_null=("title", "minutes", "custom"))
    return _save(db, session)


def delete_session(db: Session, user_id: int, session_id: str) -> bool:
    deleted = db.query(MeditationSession).filter(
        MeditationSession.id == session_id, MeditationSession.user_id == user_id
    ).delete()
    db.commit()
    return deleted > 0


# =============================================================================
# ===================== MEDITATION: RUNS ======================================
# =============================================================================

def list_runs(
    db: Session, user_id: int,
    since: Optional[datetime] = None, limit: Optional[int] = None
) -> list[MeditationRun]:
    query = db.query(MeditationRun).filter(MeditationRun.user_id == user_id)
    if since is not None:
        query = query.filter(MeditationRun.started_at >= as_utc(since))
    query = query.order_by(MeditationRun.started_at.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_run(db: Session, user_id: int, run_id: str) -> Optional[MeditationRun]:
    return db.query(MeditationRun).filter(
        MeditationRun.id == run_id, MeditationRun.user_id == user_id
    ).first()


def create_run(db: Session, user_id: int, data: MeditationRunCreate) -> MeditationRun:
    """
    Guarda una meditación hecha. Si solo viene session_id, se copia el
    título de la sesión AHORA: si luego la renombran o la borran, el
    historial no cambia.
    """
    session_title = data.session_title
    if data.session_id and not session_title:
        session = get_session(db, user_id, data.session_id)
        if session is not None:
            session_title = session.title

    run = MeditationRun(
        user_id=user_id,
        session_id=data.session_id,
        session_title=session_title,
        started_at=as_utc(data.started_at),
        ended_at=as_utc(data.ended_at),
        planned_minutes=to_int(data.planned_minutes),
        actual_seconds=to_int(data.actual_seconds),
        completed=bool(data.completed),
        note=data.note,
    )
    if data.id:
        run.id = data.id
    _save(db, run)
    logger.info(f"⏱️ Meditación registrada: {run.id} {run.actual_seconds}s (user: {user_id})")
    return run


def update_run(db: Session, user_id: int, run_id: str, data: MeditationRunUpdate) -> Optional[MeditationRun]:
    run = get_run(db, user_id, run_id)
    if run is None:
        return None

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        return run

    for field in ("planned_minutes", "actual_seconds"):
        if field in changes:
            changes[field] = to_int(changes[field])
    _apply(run, changes, not_null=("started_at", "planned_minutes", "actual_seconds", "completed"))
    return _save(db, run)


def delete_run(db: Session, user_id: int, run_id: str) -> bool:
    deleted = db.query(MeditationRun).filter(
        MeditationRun.id == run_id, MeditationRun.user_id == user_id
    ).delete()
    db.commit()
    return deleted > 0


# =============================================================================
# ===================== JOURNAL ===============================================
# =============================================================================

def list_entries(
    db: Session, user_id: int,
    since: Optional[datetime] = None, limit: Optional[int] = None
) -> list[JournalEntry]:
    query = db.query(JournalEntry).filter(JournalEntry.user_id == user_id)
    if since is not None:
        query = query.filter(JournalEntry.created_at >= as_utc(since))
    query = query.order_by(JournalEntry.created_at.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_entry(db: Session, user_id: int, entry_id: str) -> Optional[JournalEntry]:
    return db.query(JournalEntry).filter(
        JournalEntry.id == entry_id, JournalEntry.user_id == user_id
    ).first()


def create_entry(db: Session, user_id: int, data: JournalEntryCreate) -> JournalEntry:
    entry = JournalEntry(
        user_id=user_id,
        mood=data.mood or "happy",
        text=data.text,
        tags=data.tags,
    )
    if data.id:
        entry.id = data.id
    _save(db, entry)
    logger.info(f"📓 Entrada de diario creada: {entry.id} (user: {user_id})")
    return entry


def update_entry(db: Session, user_id: int, entry_id: str, data: JournalEntryUpdate) -> Optional[JournalEntry]:
    entry = get_entry(db, user_id, entry_id)
    if entry is None:
        return None

    changes = data.model_dump(exclude_unset=True)
    if not changes:
        return entry

    if "summary" in changes:
        changes["summary"] = changes["summary"] or None
    _apply(entry, changes, not_null=("mood", "text"))
    return _save(db, entry)


def delete_entry(db: Session, user_id: int, entry_id: str) -> bool:
    deleted = db.query(JournalEntry).filter(
        JournalEntry.id == entry_id, JournalEntry.user_id == user_id
    ).delete()
    db.commit()
    return deleted > 0
