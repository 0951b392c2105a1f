"""
=============================================================================
DASHBOARD.PY — Resumen y Estadísticas del Usuario
=============================================================================
El dashboard junta los 4 recursos (objetivos, moods, meditaciones, diario)
y calcula números para pintar gráficas.

  get_dashboard_overview → los datos recientes + estadísticas
  get_detailed_stats     → estadísticas de 7 días, 30 días y siempre
  get_trends             → una fila por día (mood medio, minutos, objetivos)

calculate_stats es una función PURA: no toca la BD, solo recibe listas.
Por eso sirve igual para filas de la BD que para los datos que manda el
frontend a /dashboard/ai/analyze.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

import stores
from models import utcnow
from schemas import normalize_rating

logger = logging.getLogger("wellnest.dashboard")

# Cuántas filas recientes manda el overview de cada recurso
OVERVIEW_MOOD_LIMIT = 50
OVERVIEW_RUN_LIMIT = 50
OVERVIEW_JOURNAL_LIMIT = 20

TREND_PERIODS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}

PRIORITIES = ("low", "medium", "high")


def _as_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _minutes(seconds) -> int:
    """Segundos → minutos redondeados (90s → 2, 89s → 1)"""
    return int(_as_int(seconds) / 60 + 0.5)


# =============================================================================
# ===================== ESTADÍSTICAS ==========================================
# =============================================================================

def calculate_stats(
    goals: Optional[Iterable] = None,
    moods: Optional[Iterable] = None,
    runs: Optional[Iterable] = None,
    entries: Optional[Iterable] = None,
) -> dict:
    """
    Calcula todas las estadísticas del dashboard.

    Acepta cualquier objeto con los atributos necesarios (filas de SQLAlchemy
    o snapshots de Pydantic). El orden de las listas no importa.
    """
    goals = list(goals or [])
    moods = list(moods or [])
    runs = list(runs or [])
    entries = list(entries or [])

    total_goals = len(goals)
    completed_goals = sum(1 for g in goals if getattr(g, "completed", False))
    open_goals = total_goals - completed_goals

    # Igual que MoodEntryResponse: scores fuera de 1-5 se recortan antes de contar
    scores = [normalize_rating(getattr(m, "score", None), 1) for m in moods]
    avg_mood = int(sum(scores) / len(scores) * 10 + 0.5) / 10 if scores else 0

    # mood_counts[i] → cuántos moods con score i+1
    mood_counts = [0, 0, 0, 0, 0]
    for score in scores:
        mood_counts[score - 1] += 1

    goals_by_priority = {p: {"open": 0, "completed": 0} for p in PRIORITIES}
    for goal in goals:
        priority = getattr(goal, "priority", None)
        if priority not in goals_by_priority:
            priority = "medium"
        bucket = "completed" if getattr(goal, "completed", False) else "open"
        goals_by_priority[priority][bucket] += 1

    return {
        "total_goals": total_goals,
        "completed_goals": completed_goals,
        "open_goals": open_goals,
        "completion_rate": int(completed_goals * 100 / total_goals + 0.5) if total_goals else 0,
        "avg_mood": avg_mood,
        "total_med_minutes": sum(_minutes(getattr(r, "actual_seconds", 0)) for r in runs),
        "total_med_sessions": len(runs),
        "journal_count": len(entries),
        "journal_with_summary": sum(1 for e in entries if getattr(e, "summary", None)),
        "mood_counts": mood_counts,
        "goals_by_priority": goals_by_priority,
    }


# =============================================================================
# ===================== OVERVIEW (lecturas en paralelo) =======================
# =============================================================================

def _read(session_factory, reader, user_id: int, **kwargs):
    """Una lectura con su propia sesión (las sesiones no se comparten entre hilos)"""
    with session_factory() as db:
        return reader(db, user_id, **kwargs)


def get_dashboard_overview(session_factory, user_id: int) -> dict:
    """
    Lee los 4 recursos a la vez en un pool de 4 hilos y calcula las stats.
    Si una lectura falla, la excepción sube (→ 500): no se devuelven
    datos a medias.
    """
    with ThreadPoolExecutor(max_workers=4) as pool:
        goals_f = pool.submit(_read, session_factory, stores.list_goals, user_id)
        moods_f = pool.submit(_read, session_factory, stores.list_moods, user_id,
                              limit=OVERVIEW_MOOD_LIMIT)
        runs_f = pool.submit(_read, session_factory, stores.list_runs, user_id,
                             limit=OVERVIEW_RUN_LIMIT)
        entries_f = pool.submit(_read, session_factory, stores.list_entries, user_id,
                                limit=OVERVIEW_JOURNAL_LIMIT)

        goals = goals_f.result()
        moods = moods_f.result()
        runs = runs_f.result()
        entries = entries_f.result()

    logger.info(
        f"📊 Overview user {user_id}: {len(goals)} objetivos, {len(moods)} moods, "
        f"{len(runs)} meditaciones, {len(entries)} entradas"
    )
    return {
        "goals": goals,
        "moods": moods,
        "med_runs": runs,
        "journal_entries": entries,
        "stats": calculate_stats(goals, moods, runs, entries),
        "last_updated": utcnow(),
    }


# =============================================================================
# ===================== STATS POR PERIODO =====================================
# =============================================================================

def get_stats_for_period(db: Session, user_id: int, start: Optional[datetime]) -> dict:
    """
    Stats de lo que pasó desde `start`: objetivos creados, moods fechados,
    meditaciones empezadas y entradas escritas a partir de esa fecha.
    start=None → todo.
    """
    return calculate_stats(
        stores.list_goals(db, user_id, since=start),
        stores.list_moods(db, user_id, since=start),
        stores.list_runs(db, user_id, since=start),
        stores.list_entries(db, user_id, since=start),
    )


def get_detailed_stats(session_factory, user_id: int, now: Optional[datetime] = None) -> dict:
    """Stats de siempre + bloque "periods" con 7 días, 30 días y siempre"""
    now = now or utcnow()
    with session_factory() as db:
        all_time = get_stats_for_period(db, user_id, None)
        periods = {
            "last_7_days": get_stats_for_period(db, user_id, now - timedelta(days=7)),
            "last_30_days": get_stats_for_period(db, user_id, now - timedelta(days=30)),
            "all_time": all_time,
        }
    return {**all_time, "periods": periods}


# =============================================================================
# ===================== TENDENCIAS (una fila por día) =========================
# =============================================================================

def _day(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def build_trends(goals, moods, runs, start: date, end: date) -> list[dict]:
    """
    Un bucket por cada día entre start y end (ambos incluidos):
      {date, mood_avg, mood_count, meditation_minutes, goals_created, goals_completed}
    Días sin moods → mood_avg None (no 0, que sería "un día fatal").
    """
    days = {}
    current = start
    while current <= end:
        days[current] = {
            "date": current.isoformat(),
            "mood_avg": None,
            "mood_count": 0,
            "meditation_minutes": 0,
            "goals_created": 0,
            "goals_completed": 0,
        }
        current += timedelta(days=1)

    mood_sums = {}
    for mood in moods:
        day = _day(getattr(mood, "date", None))
        if day in days:
            mood_sums[day] = mood_sums.get(day, 0) + normalize_rating(mood.score, 1)
            days[day]["mood_count"] += 1

    for day, total in mood_sums.items():
        days[day]["mood_avg"] = round(total / days[day]["mood_count"], 1)

    for run in runs:
        day = _day(getattr(run, "started_at", None))
        if day in days:
            days[day]["meditation_minutes"] += _minutes(run.actual_seconds)

    for goal in goals:
        created = _day(getattr(goal, "created_at", None))
        if created in days:
            days[created]["goals_created"] += 1
        completed = _day(getattr(goal, "completed_at", None))
        if getattr(goal, "completed", False) and completed in days:
            days[completed]["goals_completed"] += 1

    return list(days.values())


def get_trends(db: Session, user_id: int, period: str = "30d", now: Optional[datetime] = None) -> list[dict]:
    """Tendencias diarias del periodo ("7d", "30d", "90d" o "1y"). Otro valor → ValueError."""
    if period not in TREND_PERIODS:
        raise ValueError(f"Periodo no válido: {period}. Usa uno de {', '.join(TREND_PERIODS)}")

    now = now or utcnow()
    end = now.date()
    start = end - timedelta(days=TREND_PERIODS[period] - 1)
    since = datetime.combine(start, datetime.min.time())

    # Objetivos: todos, porque uno creado hace meses puede completarse hoy
    goals = stores.list_goals(db, user_id)
    moods = stores.list_moods(db, user_id, since=since)
    runs = stores.list_runs(db, user_id, since=since)
    return build_trends(goals, moods, runs, start, end)
