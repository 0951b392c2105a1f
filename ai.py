"""
=============================================================================
AI.PY — Resúmenes e Insights con IA (DeepSeek / Gemini)
=============================================================================
Dos usos:
  1. summarize_text      → resume una entrada de diario + sentimiento
  2. analyze_dashboard   → análisis general con sugerencias e insights

Cada llamada pasa por estos escalones, en orden:

  DEEPSEEK_MOCK=true ──→ respuesta fija ("mock"), sin red
  sin proveedor      ──→ heurística local ("fallback")
  llamada remota     ──→ timeout por intento + reintentos con espera creciente
       falla todo    ──→ heurística local ("fallback")
  respuesta          ──→ parse_model_output
       JSON válido   ──→ StructuredPayload → se validan los campos
       texto libre   ──→ ParseFailure → extracción manual línea a línea

Pase lo que pase, NUNCA sale una excepción de aquí hacia la API:
el usuario siempre recibe un resumen, aunque sea el heurístico.

Proveedores:
  DeepSeek → huggingface_hub.InferenceClient (HF_TOKEN)
  Gemini   → google.generativeai (GEMINI_API_KEY)
"""

import json
import logging
import os
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Union

from pydantic import BaseModel

from config import env_bool, env_float, env_int
from dashboard import calculate_stats
from models import utcnow

logger = logging.getLogger("wellnest.ai")

SENTIMENTS = ("positive", "neutral", "negative")

MOCK_PAYLOAD = {
    "summary": "Mock summary: consistent progress and steady mood.",
    "sentiment": "neutral",
}


# =============================================================================
# ===================== CONFIGURACIÓN =========================================
# =============================================================================

@dataclass
class AISettings:
    provider: Optional[str] = None
    hf_token: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-1.5-flash"
    mock: bool = False
    timeout: float = 8.0
    retries: int = 1

    @classmethod
    def from_env(cls) -> "AISettings":
        """
        Elige proveedor:
          AI_PROVIDER=deepseek|gemini → ese
          si no, HF_TOKEN → deepseek; si no, GEMINI_API_KEY → gemini; si no, ninguno
        """
        hf_token = os.getenv("HF_TOKEN") or None
        gemini_api_key = os.getenv("GEMINI_API_KEY") or None

        provider = (os.getenv("AI_PROVIDER") or "").strip().lower() or None
        if provider is None:
            if hf_token:
                provider = "deepseek"
            elif gemini_api_key:
                provider = "gemini"

        return cls(
            provider=provider,
            hf_token=hf_token,
            gemini_api_key=gemini_api_key,
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
            mock=env_bool("DEEPSEEK_MOCK"),
            timeout=env_float("AI_TIMEOUT_SECONDS", 8.0),
            retries=max(0, env_int("AI_RETRIES", 1)),
        )


# =============================================================================
# ===================== PROVEEDORES ===========================================
# =============================================================================
# Un proveedor solo sabe hacer una cosa: prompt → texto.
# Si algo va mal, lanza la excepción que sea; AIService se encarga.

class ProviderError(Exception):
    """El proveedor respondió, pero sin nada utilizable"""


class DeepSeekProvider:
    name = "deepseek"
    model = "deepseek-ai/DeepSeek-V3.2-Exp"
    inference_provider = "novita"

    def __init__(self, token: str):
        self.token = token

    def complete(self, prompt: str, max_tokens: int, temperature: float, timeout: float) -> str:
        from huggingface_hub import InferenceClient

        client = InferenceClient(provider=self.inference_provider, api_key=self.token, timeout=timeout)
        completion = client.chat_completion(
            messages=[{"role": "user", "content": prompt}],
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            top_p=0.9,
        )
        if not completion.choices or completion.choices[0].message is None:
            raise ProviderError("Respuesta de DeepSeek sin contenido")
        return (completion.choices[0].message.content or "").strip()


class GeminiProvider:
    name = "gemini"

    def __init__(self, api_key: str, model: str = "gemini-1.5-flash"):
        import google.generativeai as genai

        genai.configure(api_key=api_key)
        self.model = model
        self._model = genai.GenerativeModel(model)

    def complete(self, prompt: str, max_tokens: int, temperature: float, timeout: float) -> str:
        response = self._model.generate_content(
            prompt,
            generation_config={"max_output_tokens": max_tokens, "temperature": temperature},
            request_options={"timeout": timeout},
        )
        return (response.text or "").strip()


def build_provider(settings: AISettings):
    """
    Crea el proveedor configurado, o None si falta la credencial.
    Si el SDK no se puede importar o configurar → None también: la app
    arranca igual y los resúmenes salen de la heurística.
    """
    try:
        if settings.provider == "deepseek" and settings.hf_token:
            return DeepSeekProvider(settings.hf_token)
        if settings.provider == "gemini" and settings.gemini_api_key:
            return GeminiProvider(settings.gemini_api_key, settings.gemini_model)
    except Exception as exc:
        logger.warning(f"⚠️ No se pudo crear el cliente de IA '{settings.provider}': {exc}. Se usará la heurística")
        return None
    if settings.provider:
        logger.warning(f"⚠️ Proveedor de IA '{settings.provider}' sin credencial: se usará la heurística")
    return None


# =============================================================================
# ===================== PARSEO DE RESPUESTAS ==================================
# =============================================================================
# parse_model_output nunca lanza: devuelve una de estas dos cosas.

@dataclass
class StructuredPayload:
    data: dict


@dataclass
class ParseFailure:
    reason: str
    raw: str


ParseResult = Union[StructuredPayload, ParseFailure]

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_fences(text: str) -> str:
    """Quita los ```json ... ``` con los que los modelos envuelven el JSON"""
    return _FENCE_RE.sub("", text).strip()


def _balanced_object(text: str, start: int) -> Optional[str]:
    """Desde un '{', busca su '}' pareja. Las llaves dentro de strings no cuentan."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def extract_json_object(text: str) -> Optional[dict]:
    """
    Devuelve el primer objeto JSON completo que aparezca en el texto.
      'Claro! {"summary": "a {b}"} espero que ayude' → {"summary": "a {b}"}
    """
    start = text.find("{")
    while start != -1:
        candidate = _balanced_object(text, start)
        if candidate is not None:
            try:
                parsed = json.loads(candidate)
            except ValueError:
                parsed = None
            if isinstance(parsed, dict):
                return parsed
        start = text.find("{", start + 1)
    return None


def parse_model_output(raw: Any) -> ParseResult:
    if isinstance(raw, dict):
        return StructuredPayload(raw)
    if not isinstance(raw, str) or not raw.strip():
        return ParseFailure("respuesta vacía", "" if raw is None else str(raw))

    data = extract_json_object(strip_fences(raw))
    if data is None:
        return ParseFailure("no hay ningún objeto JSON", raw)
    return StructuredPayload(data)


# =============================================================================
# ===================== VALIDACIÓN DE CAMPOS ==================================
# =============================================================================

def sentiment_from_keywords(text: str) -> str:
    lowered = (text or "").lower()
    if any(word in lowered for word in ("positive", "good", "happy")):
        return "positive"
    if any(word in lowered for word in ("negative", "bad", "sad")):
        return "negative"
    return "neutral"


def normalize_sentiment(value: Any, summary: str = "") -> str:
    """Sentimiento válido tal cual; si no, se deduce del resumen"""
    if isinstance(value, str) and value.strip().lower() in SENTIMENTS:
        return value.strip().lower()
    return sentiment_from_keywords(summary)


def normalize_summary(data: dict) -> dict:
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = "Summary not available"
    return {"summary": summary, "sentiment": normalize_sentiment(data.get("sentiment"), summary)}


def extract_summary_manually(raw: str) -> dict:
    """Para respuestas que no son JSON: busca una línea tipo 'Summary: ...'"""
    summary = None
    for line in raw.splitlines():
        if "summary" in line.lower() and ":" in line:
            summary = line.split(":", 1)[1].strip().replace('"', "").replace("'", "")

    lowered = raw.lower()
    sentiment = "neutral"
    if "positive" in lowered:
        sentiment = "positive"
    elif "negative" in lowered:
        sentiment = "negative"

    return {"summary": summary or "Unable to extract summary from response", "sentiment": sentiment}


DEFAULT_SUGGESTIONS = [
    "Continue your current tracking habits",
    "Set specific, measurable goals",
    "Maintain regular meditation practice",
    "Review your progress weekly",
]

DEFAULT_ANALYSIS_SUMMARY = "Your wellness journey shows consistent engagement across multiple areas."


def goal_progress_label(completion_rate: float) -> str:
    if completion_rate > 60:
        return "excellent"
    if completion_rate > 30:
        return "good"
    return "needs_focus"


def normalize_analysis(data: dict, stats: dict) -> dict:
    """
    Rellena lo que falte del JSON del modelo:
      suggestions: lista → máx 4; texto suelto → [texto]; nada → 4 por defecto
      insights:    si faltan, salen del sentimiento y la tasa de completado
    """
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = DEFAULT_ANALYSIS_SUMMARY

    suggestions = data.get("suggestions")
    if isinstance(suggestions, list):
        suggestions = [str(s) for s in suggestions if s][:4]
    elif isinstance(suggestions, str) and suggestions.strip():
        suggestions = [suggestions]
    else:
        suggestions = []
    if not suggestions:
        suggestions = list(DEFAULT_SUGGESTIONS)

    raw_sentiment = data.get("sentiment")
    sentiment = normalize_sentiment(raw_sentiment, summary) if raw_sentiment else None

    derived = {
        "mood_trend": {"positive": "improving", "negative": "declining"}.get(sentiment, "stable"),
        "goal_progress": goal_progress_label(stats.get("completion_rate", 0)),
        "mindfulness": "consistent",
    }
    insights = data.get("insights")
    if isinstance(insights, dict):
        derived.update({k: str(v) for k, v in insights.items() if k in derived and v})

    confidence = data.get("confidence")
    return {
        "summary": summary,
        "suggestions": suggestions,
        "insights": derived,
        "sentiment": sentiment,
        "confidence": confidence if isinstance(confidence, str) and confidence else "high",
    }


def extract_insights_manually(raw: str) -> dict:
    lowered = raw.lower()
    summary = "Your wellness data shows active engagement across goals, mood tracking, and mindfulness practices."
    if "progress" in lowered or "improvement" in lowered:
        summary = "Your wellness journey demonstrates positive progress and consistent engagement with your goals."
    elif "challenge" in lowered or "difficult" in lowered:
        summary = "Your data reveals some challenges, but also shows commitment to tracking and self-improvement."

    return {
        "summary": summary,
        "suggestions": [
            "Review your goal completion patterns for insights",
            "Consider increasing meditation frequency if possible",
            "Track mood patterns to identify triggers",
            "Celebrate your progress and maintain consistency",
        ],
        "insights": {"mood_trend": "stable", "goal_progress": "good", "mindfulness": "consistent"},
        "sentiment": None,
        "confidence": "medium",
    }


# =============================================================================
# ===================== HEURÍSTICAS (sin IA) ==================================
# =============================================================================

POSITIVE_WORDS = [
    "happy", "good", "great", "excellent", "wonderful", "amazing", "love", "joy",
    "excited", "grateful", "pleased", "delighted", "thrilled", "optimistic",
    "cheerful", "fantastic", "awesome", "brilliant", "perfect", "satisfied",
    "proud", "accomplished", "successful", "relaxed", "peaceful",
]

NEGATIVE_WORDS = [
    "sad", "bad", "terrible", "awful", "hate", "angry", "frustrated", "stressed",
    "worried", "disappointed", "upset", "depressed", "anxious", "overwhelmed",
    "miserable", "horrible", "disgusting", "annoyed", "irritated", "exhausted",
    "tired", "difficult", "challenging", "tough",
]


def heuristic_summary(text: str) -> dict:
    """
    Resumen sin IA: cuenta palabras y frases, y decide el sentimiento por
    mayoría de palabras positivas/negativas ("good" cuenta dentro de "goodbye").
    """
    words = len(text.split())
    sentences = len([s for s in re.split(r"[.!?]+", text) if s.strip()])

    lowered = text.lower()
    positive = sum(1 for word in POSITIVE_WORDS if word in lowered)
    negative = sum(1 for word in NEGATIVE_WORDS if word in lowered)

    sentiment = "neutral"
    if positive > negative:
        sentiment = "positive"
    elif negative > positive:
        sentiment = "negative"

    # Primer trozo con texto: "...ok" → "ok"
    fragments = [s.strip() for s in re.split(r"[.!?]", text) if s.strip()]
    first = fragments[0] if fragments else ""
    if len(first) > 50:
        first = first[:50] + "..."

    closing = {
        "positive": "Shows generally positive emotions and experiences.",
        "negative": "Reflects some challenges or difficult emotions.",
        "neutral": "Maintains a balanced, neutral tone.",
    }[sentiment]
    plural = "" if sentences == 1 else "s"
    header = f"Journal entry with {words} words and {sentences} sentence{plural}."

    return {
        "summary": " ".join(part for part in (header, first, closing) if part),
        "sentiment": sentiment,
        "analysis": {
            "word_count": words,
            "sentence_count": sentences,
            "positive_signals": positive,
            "negative_signals": negative,
        },
    }


def fallback_analysis(stats: dict, mood_count: int) -> dict:
    """Análisis por reglas a partir de las estadísticas"""
    rate = stats["completion_rate"]
    summary = (
        f"You've been actively tracking your wellness with {stats['total_goals']} goals, "
        f"{mood_count} mood entries, and {stats['total_med_sessions']} meditation sessions. "
    )
    if rate > 70:
        summary += "Your goal completion rate is excellent, showing strong commitment to your objectives."
    elif rate > 40:
        summary += "You're making good progress on your goals with room for continued growth."
    else:
        summary += "Consider reviewing your goals to ensure they're achievable and aligned with your priorities."

    suggestions = []
    if stats["open_goals"] > 5:
        suggestions.append("Focus on completing existing goals before adding new ones")
    if stats["avg_mood"] < 3.5:
        suggestions.append("Consider mood-boosting activities like exercise or social connection")
    if stats["total_med_sessions"] < 5:
        suggestions.append("Try incorporating more regular meditation sessions")
    elif stats["total_med_minutes"] < 60:
        suggestions.append("Consider longer meditation sessions for deeper practice")
    if len(suggestions) < 3:
        suggestions += [
            "Continue your consistent tracking habits",
            "Set weekly review times to assess progress",
            "Celebrate small wins along your wellness journey",
        ]

    avg_mood = stats["avg_mood"]
    sessions = stats["total_med_sessions"]
    return {
        "summary": summary,
        "suggestions": suggestions[:4],
        "insights": {
            "mood_trend": "positive" if avg_mood > 3.5 else "stable" if avg_mood > 2.5 else "needs_attention",
            "goal_progress": goal_progress_label(rate),
            "mindfulness": "consistent" if sessions > 10 else "developing" if sessions > 3 else "beginning",
        },
        "sentiment": None,
        "confidence": "medium",
    }


# =============================================================================
# ===================== PROMPTS ===============================================
# =============================================================================

def build_journal_prompt(text: str) -> str:
    # json.dumps escapa comillas y saltos de línea del texto del usuario
    return f"""Please analyze the following journal entry and respond with ONLY a JSON object in this exact format:

{{"summary": "A brief 2-3 sentence summary", "sentiment": "positive"}}

The sentiment must be exactly one of: "positive", "neutral", or "negative"

Journal entry to analyze:
{json.dumps(text)}

Respond with only the JSON, no other text:"""


def build_analysis_prompt(goals, moods, runs, stats: dict) -> str:
    by_priority = stats["goals_by_priority"]
    counts = stats["mood_counts"]

    recent_goals = ", ".join(str(getattr(g, "title", None) or "Goal") for g in goals[:5]) or "None"
    recent_moods = ", ".join(str(getattr(m, "score", 0)) for m in moods[:7]) or "None"
    recent_runs = ", ".join(
        f"{getattr(r, 'session_title', None) or 'Session'} "
        f"({round((getattr(r, 'actual_seconds', 0) or 0) / 60)}min)"
        for r in runs[:3]
    ) or "None"

    def priority_total(name):
        return by_priority[name]["open"] + by_priority[name]["completed"]

    return f"""Please analyze this user's wellness data and provide insights in this exact JSON format:

{{
  "summary": "2-3 sentence overall analysis of their wellness journey and current patterns",
  "suggestions": ["suggestion 1", "suggestion 2", "suggestion 3"],
  "insights": {{
    "mood_trend": "improving/stable/declining",
    "goal_progress": "excellent/good/needs_focus",
    "mindfulness": "consistent/sporadic/beginning"
  }}
}}

User Data Analysis:
- Goals: {stats['total_goals']} total, {stats['completed_goals']} completed ({stats['completion_rate']}% completion rate)
- Priority breakdown: {priority_total('high')} high, {priority_total('medium')} medium, {priority_total('low')} low priority goals
- Recent goal titles: {recent_goals}

- Mood tracking: {len(moods)} entries, average score {stats['avg_mood']}/5
- Recent mood scores: {recent_moods}
- Mood distribution: Score 1={counts[0]}, 2={counts[1]}, 3={counts[2]}, 4={counts[3]}, 5={counts[4]}

- Meditation: {stats['total_med_sessions']} sessions, {stats['total_med_minutes']} total minutes
- Recent sessions: {recent_runs}

- Journal entries: {stats['journal_count']} total, {stats['journal_with_summary']} with AI summaries

Focus on patterns, progress, and actionable suggestions. Respond with only the JSON:"""


# =============================================================================
# ===================== RESULTADOS ============================================
# =============================================================================

class Insights(BaseModel):
    mood_trend: str
    goal_progress: str
    mindfulness: str


class AnalysisResult(BaseModel):
    summary: str
    suggestions: list[str]
    insights: Insights
    provider: str
    confidence: str = "medium"
    sentiment: Optional[str] = None
    generated_at: datetime


class SummaryResult(BaseModel):
    summary: str
    sentiment: str
    provider: str
    fallback: bool = False
    analysis: Optional[dict] = None


# =============================================================================
# ===================== SERVICIO ==============================================
# =============================================================================

@dataclass
class AIService:
    """
    Se crea UNA vez al arrancar (ver lifespan en main.py) y llega a los
    endpoints con Depends(get_ai_service). En los tests se cambia por uno
    con un proveedor falso.
    """
    settings: AISettings = field(default_factory=AISettings)
    provider: Any = None
    sleep: Callable[[float], None] = time.sleep

    @property
    def provider_name(self) -> Optional[str]:
        return getattr(self.provider, "name", None)

    def status(self) -> dict:
        """Qué IA está activa (nunca devuelve la clave)"""
        return {
            "provider": self.provider_name,
            "configured": self.provider is not None,
            "mock": self.settings.mock,
            "model": getattr(self.provider, "model", None),
            "timeout_seconds": self.settings.timeout,
            "retries": self.settings.retries,
        }

    def _complete(self, prompt: str, max_tokens: int, temperature: float) -> Optional[str]:
        """
        Llama al proveedor con reintentos. Espera 0.6s, 1.2s, 2.4s...
        entre intentos. Devuelve None si todos fallan.
        """
        attempts = self.settings.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                text = self.provider.complete(prompt, max_tokens, temperature, self.settings.timeout)
                if not text:
                    raise ProviderError("respuesta vacía")
                return text
            except Exception as exc:
                logger.warning(f"⚠️ {self.provider_name}: intento {attempt}/{attempts} fallido: {exc}")
                if attempt < attempts:
                    self.sleep(0.3 * 2 ** attempt)
        return None

    # ─── Diario ───

    def summarize_text(self, text: str) -> SummaryResult:
        if self.settings.mock:
            return SummaryResult(provider="mock", **MOCK_PAYLOAD)

        if self.provider is None:
            logger.info("🔧 Sin proveedor de IA: resumen heurístico")
            return SummaryResult(provider="fallback", fallback=True, **heuristic_summary(text))

        logger.info(f"🤖 Resumiendo con {self.provider_name} ({len(text)} caracteres)")
        raw = self._complete(build_journal_prompt(text), max_tokens=200, temperature=0.3)
        if raw is None:
            return SummaryResult(provider="fallback", fallback=True, **heuristic_summary(text))

        parsed = parse_model_output(raw)
        if isinstance(parsed, StructuredPayload):
            return SummaryResult(provider=self.provider_name, **normalize_summary(parsed.data))

        logger.warning(f"🔧 Respuesta no JSON ({parsed.reason}): extracción manual")
        return SummaryResult(provider=self.provider_name, **extract_summary_manually(parsed.raw))

    # ─── Dashboard ───

    def analyze_dashboard(self, goals, moods, runs, entries) -> AnalysisResult:
        goals, moods, runs, entries = list(goals), list(moods), list(runs), list(entries)
        stats = calculate_stats(goals, moods, runs, entries)

        if self.settings.mock:
            return self._analysis("mock", normalize_analysis(MOCK_PAYLOAD, stats))

        if self.provider is None:
            logger.info("🔧 Sin proveedor de IA: análisis por reglas")
            return self._analysis("fallback", fallback_analysis(stats, len(moods)))

        prompt = build_analysis_prompt(goals, moods, runs, stats)
        raw = self._complete(prompt, max_tokens=400, temperature=0.7)
        if raw is None:
            return self._analysis("fallback", fallback_analysis(stats, len(moods)))

        parsed = parse_model_output(raw)
        if isinstance(parsed, StructuredPayload):
            return self._analysis(self.provider_name, normalize_analysis(parsed.data, stats))

        logger.warning(f"🔧 Análisis no JSON ({parsed.reason}): extracción manual")
        return self._analysis(self.provider_name, extract_insights_manually(parsed.raw))

    @staticmethod
    def _analysis(provider: str, data: dict) -> AnalysisResult:
        return AnalysisResult(provider=provider, generated_at=utcnow(), **data)


def build_ai_service(settings: Optional[AISettings] = None) -> AIService:
    settings = settings or AISettings.from_env()
    provider = None if settings.mock else build_provider(settings)
    service = AIService(settings=settings, provider=provider)
    if settings.mock:
        logger.info("🧪 IA en modo mock (DEEPSEEK_MOCK=true)")
    elif provider is None:
        logger.warning("⚠️ IA sin configurar: se usarán resúmenes heurísticos")
    else:
        logger.info(f"✅ IA lista: {provider.name}")
    return service
