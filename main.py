"""
=============================================================================
MAIN.PY — La API de WellNest
=============================================================================
Este archivo define TODOS los endpoints de la API REST.

Organización por secciones:
  1. AUTH        → Registro, login, logout, perfil
  2. GOALS       → CRUD de objetivos
  3. MOOD        → CRUD de registros de ánimo
  4. MEDITATION  → Sesiones (plantillas) y runs (meditaciones hechas)
  5. JOURNAL     → CRUD del diario + resumen con IA
  6. DASHBOARD   → Overview, stats, tendencias y análisis con IA
  7. AI          → Estado del proveedor de IA

Los endpoints son finos: validan, llaman a stores.py / dashboard.py / ai.py
y envuelven el resultado ({"goal": ...}, {"entries": [...]}, etc.).
Las respuestas salen siempre en snake_case.
"""

import logging
import time
import traceback
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Depends, HTTPException, status, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import dashboard
import stores
from ai import AIService, build_ai_service
from auth import (
    COOKIE_NAME, hash_password, verify_password, create_access_token,
    get_current_user
)
from config import (
    COOKIE_SECURE, FRONTEND_ORIGIN, JWT_EXPIRES_SECONDS, LOG_LEVEL, PORT, is_production
)
from database import get_db, get_session_factory, init_db, SessionLocal
from models import *
from schemas import *

# ─────────────────────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("wellnest.api")


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN (Arranque y apagado)
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Arranque:
      1. Crear tablas si no existen
      2. Sesiones de meditación globales (seed)
      3. Servicio de IA (uno para todo el proceso)
    """
    logger.info("🚀 Arrancando WellNest...")

    init_db()
    logger.info("✅ Base de datos inicializada")

    db = SessionLocal()
    try:
        created = stores.seed_default_sessions(db)
        if created:
            logger.info(f"🌱 {created} sesiones de meditación globales creadas")
    finally:
        db.close()

    app.state.ai_service = build_ai_service()

    logger.info("🎉 WellNest operativo")
    yield
    logger.info("👋 Apagado completo")


# ─────────────────────────────────────────────────────────────────────────────
# APLICACIÓN FASTAPI
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="WellNest API",
    description="Backend de seguimiento de bienestar: objetivos, ánimo, meditación y diario",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS → solo el frontend, y con cookies (allow_credentials)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Una línea por petición: método, ruta, status y tiempo"""
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(f"{request.method} {request.url.path} → {response.status_code} ({elapsed_ms:.0f}ms)")
    return response


def get_ai_service(request: Request) -> AIService:
    """
    Dependencia: el servicio de IA creado en el lifespan.
    Si la app arrancó sin lifespan, se crea aquí la primera vez.
    """
    service = getattr(request.app.state, "ai_service", None)
    if service is None:
        service = build_ai_service()
        request.app.state.ai_service = service
    return service


# ─────────────────────────────────────────────────────────────────────────────
# MANEJO DE ERRORES
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Datos mal formados → 400 con el primer error legible y la lista completa"""
    errors = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    first = errors[0] if errors else {"loc": [], "msg": "Datos no válidos"}
    field_name = first["loc"][-1] if first["loc"] else "body"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": f"{field_name}: {first['msg']}", "errors": errors}
    )


@app.exception_handler(IntegrityError)
async def integrity_exception_handler(request: Request, exc: IntegrityError):
    """Id duplicado u otra restricción de la BD → 409"""
    logger.warning(f"⚠️ Conflicto de integridad en {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Ya existe un registro con ese identificador"}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Captura errores no manejados. En producción no se enseña el detalle."""
    error_trace = traceback.format_exc()
    logger.error(f"❌ Error no manejado en {request.url.path}: {exc}\n{error_trace}")
    if is_production():
        return JSONResponse(status_code=500, content={"detail": "Error interno del servidor"})
    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "type": type(exc).__name__,
            "path": request.url.path
        }
    )


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


# =============================================================================
# ===================== HEALTH CHECK ==========================================
# =============================================================================

@app.get("/", tags=["Health"])
def health_check():
    """Verifica que la API está viva"""
    return {
        "status": "ok",
        "app": "WellNest",
        "version": "1.0.0",
        "timestamp": utcnow().isoformat()
    }


@app.get("/db-check", tags=["Health"])
def db_check(db: Session = Depends(get_db)):
    """Hace un SELECT 1 para comprobar que la BD responde"""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"❌ La BD no responde: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "error", "database": "unreachable"}
        )
    return {"status": "ok", "database": "connected"}


# =============================================================================
# ===================== SECCIÓN 1: AUTH =======================================
# =============================================================================

def _set_token_cookie(response: Response, token: str):
    # httponly → el JavaScript del navegador no puede leerla
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        max_age=JWT_EXPIRES_SECONDS,
    )


@app.post("/api/auth/register", response_model=AuthResponse, status_code=201, tags=["Auth"])
def register(data: UserRegister, response: Response, db: Session = Depends(get_db)):
    """
    Registra un usuario nuevo.

    Flujo:
      1. Verificar que el email no existe
      2. Hashear la contraseña
      3. Crear el usuario en BD
      4. Generar token JWT (y dejarlo en la cookie)
    """
    email = data.email.lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Ya existe una cuenta con este email"
        )

    user = User(
        name=data.name.strip(),
        email=email,
        password_hash=hash_password(data.password)
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    token = create_access_token(user.id, user.email)
    _set_token_cookie(response, token)

    logger.info(f"👤 Nuevo usuario registrado: {user.name} ({user.email})")
    return AuthResponse(token=token, user=UserResponse.model_validate(user))


@app.post("/api/auth/login", response_model=AuthResponse, tags=["Auth"])
def login(data: UserLogin, response: Response, db: Session = Depends(get_db)):
    """Inicia sesión con email y contraseña"""
    user = db.query(User).filter(User.email == data.email.lower()).first()

    if not user or not verify_password(data.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email o contraseña incorrectos"
        )

    token = create_access_token(user.id, user.email)
    _set_token_cookie(response, token)
    return AuthResponse(token=token, user=UserResponse.model_validate(user))


@app.post("/api/auth/logout", tags=["Auth"])
def logout(response: Response):
    """Borra la cookie del token"""
    response.delete_cookie(COOKIE_NAME)
    return {"message": "Sesión cerrada"}


@app.get("/api/auth/me", tags=["Auth"])
def get_me(user: User = Depends(get_current_user)):
    """Devuelve el perfil del usuario actual"""
    return {"user": UserResponse.model_validate(user)}


# =============================================================================
# ===================== SECCIÓN 2: GOALS ======================================
# =============================================================================

@app.get("/api/goals", tags=["Goals"])
def list_goals(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Lista objetivos, los más nuevos primero"""
    goals = stores.list_goals(db, user.id)
    return {"goals": [GoalResponse.model_validate(g) for g in goals]}


@app.post("/api/goals", status_code=201, tags=["Goals"])
def create_goal(data: GoalCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Crea un objetivo (title obligatorio)"""
    if not data.title.strip():
        raise _bad_request("El título es obligatorio")
    goal = stores.create_goal(db, user.id, data)
    return {"goal": GoalResponse.model_validate(goal)}


@app.get("/api/goals/{goal_id}", tags=["Goals"])
def get_goal(goal_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    goal = stores.get_goal(db, user.id, goal_id)
    if not goal:
        raise _not_found("Objetivo no encontrado")
    return {"goal": GoalResponse.model_validate(goal)}


@app.put("/api/goals/{goal_id}", tags=["Goals"])
def update_goal(
    goal_id: int, data: GoalUpdate,
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """
    Actualiza un objetivo (solo los campos que vengan).
    completed=true → completed_at = ahora; completed=false → completed_at = null.
    """
    goal = stores.update_goal(db, user.id, goal_id, data)
    if not goal:
        raise _not_found("Objetivo no encontrado")
    return {"goal": GoalResponse.model_validate(goal)}


@app.delete("/api/goals/{goal_id}", tags=["Goals"])
def delete_goal(goal_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not stores.delete_goal(db, user.id, goal_id):
        raise _not_found("Objetivo no encontrado")
    return {"deleted": True}


# =============================================================================
# ===================== SECCIÓN 3: MOOD =======================================
# =============================================================================

@app.get("/api/mood/entries", tags=["Mood"])
def list_moods(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Lista registros de ánimo por fecha, los más recientes primero"""
    entries = stores.list_moods(db, user.id)
    return {"entries": [MoodEntryResponse.model_validate(e) for e in entries]}


@app.post("/api/mood/entries", status_code=201, tags=["Mood"])
def create_mood(data: MoodEntryCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Registra el ánimo. score y date son obligatorios; 1-5 se recorta, no se rechaza."""
    if data.score is None or data.score == "" or data.date is None:
        raise _bad_request("score y date son obligatorios")
    entry = stores.create_mood(db, user.id, data)
    return {"entry": MoodEntryResponse.model_validate(entry)}


@app.get("/api/mood/entries/{entry_id}", tags=["Mood"])
def get_mood(entry_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    entry = stores.get_mood(db, user.id, entry_id)
    if not entry:
        raise _not_found("Registro de ánimo no encontrado")
    return {"entry": MoodEntryResponse.model_validate(entry)}


@app.put("/api/mood/entries/{entry_id}", tags=["Mood"])
def update_mood(
    entry_id: str, data: MoodEntryUpdate,
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    entry = stores.update_mood(db, user.id, entry_id, data)
    if not entry:
        raise _not_found("Registro de ánimo no encontrado")
    return {"entry": MoodEntryResponse.model_validate(entry)}


@app.delete("/api/mood/entries/{entry_id}", tags=["Mood"])
def delete_mood(entry_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not stores.delete_mood(db, user.id, entry_id):
        raise _not_found("Registro de ánimo no encontrado")
    return {"deleted": True}


# =============================================================================
# ===================== SECCIÓN 4: MEDITATION =================================
# =============================================================================

# ─── Sesiones (plantillas) ───

@app.get("/api/meditation/sessions", tags=["Meditation"])
def list_sessions(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Sesiones globales + las propias del usuario"""
    sessions = stores.list_sessions(db, user.id)
    return {"sessions": [MeditationSessionResponse.model_validate(s) for s in sessions]}


@app.post("/api/meditation/sessions", status_code=201, tags=["Meditation"])
def create_session(
    data: MeditationSessionCreate,
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    if not data.title or not data.title.strip():
        raise _bad_request("El título es obligatorio")
    session = stores.create_session(db, user.id, data)
    return {"session": MeditationSessionResponse.model_validate(session)}


@app.get("/api/meditation/sessions/{session_id}", tags=["Meditation"])
def get_session(session_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    session = stores.get_session(db, user.id, session_id)
    if not session:
        raise _not_found("Sesión no encontrada")
    return {"session": MeditationSessionResponse.model_validate(session)}


@app.put("/api/meditation/sessions/{session_id}", tags=["Meditation"])
def update_session(
    session_id: str, data: MeditationSessionUpdate,
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """Solo se pueden editar las sesiones propias (las globales dan 404)"""
    session = stores.update_session(db, user.id, session_id, data)
    if not session:
        raise _not_found("Sesión no encontrada")
    return {"session": MeditationSessionResponse.model_validate(session)}


@app.delete("/api/meditation/sessions/{session_id}", tags=["Meditation"])
def delete_session(session_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not stores.delete_session(db, user.id, session_id):
        raise _not_found("Sesión no encontrada")
    return {"deleted": True}


# ─── Runs (meditaciones hechas) ───

@app.get("/api/meditation/runs", tags=["Meditation"])
def list_runs(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    runs = stores.list_runs(db, user.id)
    return {"runs": [MeditationRunResponse.model_validate(r) for r in runs]}


@app.post("/api/meditation/runs", status_code=201, tags=["Meditation"])
def create_run(data: MeditationRunCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if data.started_at is None:
        raise _bad_request("started_at es obligatorio")
    run = stores.create_run(db, user.id, data)
    return {"run": MeditationRunResponse.model_validate(run)}


@app.get("/api/meditation/runs/{run_id}", tags=["Meditation"])
def get_run(run_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    run = stores.get_run(db, user.id, run_id)
    if not run:
        raise _not_found("Meditación no encontrada")
    return {"run": MeditationRunResponse.model_validate(run)}


@app.put("/api/meditation/runs/{run_id}", tags=["Meditation"])
def update_run(
    run_id: str, data: MeditationRunUpdate,
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    run = stores.update_run(db, user.id, run_id, data)
    if not run:
        raise _not_found("Meditación no encontrada")
    return {"run": MeditationRunResponse.model_validate(run)}


@app.delete("/api/meditation/runs/{run_id}", tags=["Meditation"])
def delete_run(run_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not stores.delete_run(db, user.id, run_id):
        raise _not_found("Meditación no encontrada")
    return {"deleted": True}


# =============================================================================
# ===================== SECCIÓN 5: JOURNAL ====================================
# =============================================================================

@app.get("/api/journal/entries", tags=["Journal"])
def list_entries(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    entries = stores.list_entries(db, user.id)
    return {"entries": [JournalEntryResponse.model_validate(e) for e in entries]}


@app.post("/api/journal/entries", status_code=201, tags=["Journal"])
def create_entry(data: JournalEntryCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Nueva entrada de diario. El mood puede venir como emoji o como nombre."""
    if not data.text or not data.text.strip():
        raise _bad_request("El texto es obligatorio")
    entry = stores.create_entry(db, user.id, data)
    return {"entry": JournalEntryResponse.model_validate(entry)}


@app.get("/api/journal/entries/{entry_id}", tags=["Journal"])
def get_entry(entry_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    entry = stores.get_entry(db, user.id, entry_id)
    if not entry:
        raise _not_found("Entrada no encontrada")
    return {"entry": JournalEntryResponse.model_validate(entry)}


@app.put("/api/journal/entries/{entry_id}", tags=["Journal"])
def update_entry(
    entry_id: str, data: JournalEntryUpdate,
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    if data.text is not None and not data.text.strip():
        raise _bad_request("El texto no puede quedar vacío")
    entry = stores.update_entry(db, user.id, entry_id, data)
    if not entry:
        raise _not_found("Entrada no encontrada")
    return {"entry": JournalEntryResponse.model_validate(entry)}


@app.delete("/api/journal/entries/{entry_id}", tags=["Journal"])
def delete_entry(entry_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not stores.delete_entry(db, user.id, entry_id):
        raise _not_found("Entrada no encontrada")
    return {"deleted": True}


@app.post("/api/journal/entries/{entry_id}/summarize", tags=["Journal"])
def summarize_entry(
    entry_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    ai: AIService = Depends(get_ai_service)
):
    """
    Resume la entrada con IA y guarda summary + sentiment.
    Si la IA falla, se guarda el resumen heurístico: nunca da error por la IA.
    """
    entry = stores.get_entry(db, user.id, entry_id)
    if not entry:
        raise _not_found("Entrada no encontrada")

    result = ai.summarize_text(entry.text)
    entry = stores.update_entry(
        db, user.id, entry_id,
        JournalEntryUpdate(summary=result.summary, sentiment=result.sentiment)
    )
    logger.info(f"📝 Entrada {entry_id} resumida con {result.provider} ({result.sentiment})")

    summarized = JournalSummaryResponse(
        **JournalEntryResponse.model_validate(entry).model_dump(),
        ai_provider=result.provider,
        ai_analysis=result.analysis,
    )
    return {"entry": summarized}


# =============================================================================
# ===================== SECCIÓN 6: DASHBOARD ==================================
# =============================================================================

@app.get("/api/dashboard/overview", tags=["Dashboard"])
def dashboard_overview(
    user: User = Depends(get_current_user),
    session_factory=Depends(get_session_factory)
):
    """Todo lo reciente de golpe + estadísticas (4 lecturas en paralelo)"""
    data = dashboard.get_dashboard_overview(session_factory, user.id)
    overview = DashboardOverview(
        goals=[GoalResponse.model_validate(g) for g in data["goals"]],
        moods=[MoodEntryResponse.model_validate(m) for m in data["moods"]],
        med_runs=[MeditationRunResponse.model_validate(r) for r in data["med_runs"]],
        journal_entries=[JournalEntryResponse.model_validate(e) for e in data["journal_entries"]],
        stats=DashboardStats(**data["stats"]),
        last_updated=data["last_updated"],
    )
    return {"success": True, "data": overview, "timestamp": utcnow().isoformat()}


@app.post("/api/dashboard/ai/analyze", tags=["Dashboard"])
def dashboard_analyze(
    data: AnalyzeRequest,
    user: User = Depends(get_current_user),
    ai: AIService = Depends(get_ai_service)
):
    """
    Análisis con IA de los datos que YA tiene el frontend (no relee la BD).
    goals, moods y medRuns son obligatorios (pueden ser listas vacías).
    """
    if data.goals is None or data.moods is None or data.med_runs is None:
        raise _bad_request("Faltan datos: goals, moods y medRuns son obligatorios")

    result = ai.analyze_dashboard(data.goals, data.moods, data.med_runs, data.journal_entries)
    logger.info(f"🧠 Análisis para user {user.id} con {result.provider}")
    return {
        "success": True,
        "summary": result.summary,
        "suggestions": result.suggestions,
        "insights": result.insights,
        "provider": result.provider,
        "confidence": result.confidence,
        "sentiment": result.sentiment,
        "timestamp": result.generated_at.isoformat(),
    }


@app.get("/api/dashboard/stats", tags=["Dashboard"])
def dashboard_stats(
    user: User = Depends(get_current_user),
    session_factory=Depends(get_session_factory)
):
    """Stats de siempre + últimos 7 y 30 días"""
    stats = dashboard.get_detailed_stats(session_factory, user.id)
    return {"success": True, "stats": stats, "timestamp": utcnow().isoformat()}


@app.get("/api/dashboard/trends", tags=["Dashboard"])
def dashboard_trends(
    period: str = Query("30d", description="7d, 30d, 90d o 1y"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Una fila por día con mood medio, minutos de meditación y objetivos"""
    try:
        trends = dashboard.get_trends(db, user.id, period)
    except ValueError as e:
        raise _bad_request(str(e))
    return {"success": True, "trends": trends, "period": period, "timestamp": utcnow().isoformat()}


# =============================================================================
# ===================== SECCIÓN 7: AI =========================================
# =============================================================================

@app.get("/api/ai/status", tags=["AI"])
def ai_status(ai: AIService = Depends(get_ai_service)):
    """Qué proveedor de IA está activo (sin enseñar ninguna clave)"""
    return ai.status()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=PORT, reload=False)
