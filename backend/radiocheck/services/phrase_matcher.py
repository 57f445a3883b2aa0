"""
Phrase matching against a transcript with a language model.

The model must answer with exactly one JSON object per phrase, in the order
the phrases were sent. Results are paired with phrases by position and the
count is checked before anything is persisted; the phrase text itself always
comes from the caller, never from the model.
"""
import json
import re
from typing import Any, List, Optional

import structlog
from openai import OpenAIError

from radiocheck.core.config import get_settings
from radiocheck.schemas import PhraseMatch
from radiocheck.services import cache, utils
from radiocheck.services.errors import MatcherResponseError, UpstreamError

logger = structlog.get_logger()
settings = get_settings()

VALIDATION_RATES = ("High", "Medium", "Low")
SYSTEM_PROMPT = "Eres un auditor de medios. Responde SOLO con JSON válido."

PROMPT_TEMPLATE = """Actúa como un Auditor de Medios profesional.

OBJETIVO:
Revisa la TRANSCRIPCIÓN de una grabación de radio y localiza cada frase de la lista.

TRANSCRIPCIÓN (segmentos con tiempos en segundos, o texto plano):
{context}

FRASES A BUSCAR ({count}):
{phrase_list}

REGLAS:
1. Busca cada frase en la transcripción; puede estar repartida entre segmentos consecutivos.
2. Si abarca varios segmentos, usa el "start" del primero y el "end" del último.
3. Devuelve los tiempos como números en segundos (ej: 125.5), nunca como "MM:SS".
4. Tolera errores menores de transcripción, acentos y puntuación.
5. Devuelve EXACTAMENTE {count} objetos, uno por frase y en el MISMO orden de la lista.
6. Si una frase no aparece, incluye igualmente su objeto con "is_match": false y tiempos null.
7. "validation_rate" es "High", "Medium" o "Low" según la confianza.

FORMATO DE RESPUESTA (solo el array JSON):
[
  {{
    "target_phrase": "frase buscada",
    "is_match": true,
    "transcription": "texto encontrado o vacío",
    "validation_rate": "High",
    "start_seconds": 1395.5,
    "end_seconds": 1401.2,
    "details": "explicación de la coincidencia o de por qué no se encontró"
  }}
]
"""

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def build_prompt(context: str, phrases: List[str]) -> str:
    phrase_list = "\n".join(f'{i}. "{phrase}"' for i, phrase in enumerate(phrases, 1))
    return PROMPT_TEMPLATE.format(context=context, count=len(phrases), phrase_list=phrase_list)


def parse_matcher_response(text: str) -> List[dict]:
    """Strip markdown fences and decode the JSON array."""
    cleaned = _FENCE_RE.sub("", text or "").strip()
    start = cleaned.find("[")
    end = cleaned.rfind("]")
    if start != -1 and end > start:
        cleaned = cleaned[start:end + 1]
    if not cleaned:
        raise MatcherResponseError("La IA devolvió una respuesta vacía")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.error("matcher.parse_failed", error=str(exc), preview=cleaned[:200])
        raise MatcherResponseError("La IA devolvió un JSON inválido") from exc
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise MatcherResponseError("La IA no devolvió un array de resultados")
    return data


def _seconds(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _rate(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    for rate in VALIDATION_RATES:
        if value.strip().lower() == rate.lower():
            return rate
    return None


def pair_results(phrases: List[str], raw: List[dict]) -> List[PhraseMatch]:
    """
    Pair model output with phrases by position.

    An empty array is accepted (the caller closes the row with a
    placeholder). Any other count mismatch raises MatcherResponseError.
    """
    if not raw:
        return []
    if len(raw) != len(phrases):
        logger.error("matcher.count_mismatch", expected=len(phrases), received=len(raw))
        raise MatcherResponseError(
            f"La IA devolvió {len(raw)} resultados para {len(phrases)} frases"
        )

    results: List[PhraseMatch] = []
    for phrase, item in zip(phrases, raw):
        returned = item.get("target_phrase")
        if returned and str(returned).strip().lower() != phrase.strip().lower():
            logger.warning("matcher.phrase_text_differs", expected=phrase, received=returned)
        start = _seconds(item.get("start_seconds"))
        end = _seconds(item.get("end_seconds"))
        results.append(
            PhraseMatch(
                target_phrase=phrase,
                is_match=bool(item.get("is_match")),
                transcription=str(item.get("transcription") or ""),
                validation_rate=_rate(item.get("validation_rate")),
                start_seconds=start,
                end_seconds=end,
                timestamp_start=utils.format_timestamp(start),
                timestamp_end=utils.format_timestamp(end),
                details=item.get("details"),
            )
        )
    return results


def _response_text(response) -> str:
    text = getattr(response, "output_text", None)
    if text:
        return text
    chunks = []
    for item in getattr(response, "output", None) or []:
        for content in getattr(item, "content", []) or []:
            value = getattr(content, "text", None)
            if isinstance(value, str):
                chunks.append(value)
    return "".join(chunks)


def request_matches(context: str, phrases: List[str], client=None) -> List[dict]:
    """Ask the model (or the cache) for raw per-phrase results."""
    key = cache.content_key(settings.openai_responses_model, context, phrases)
    cached = cache.get_cached(key)
    if isinstance(cached, list):
        return cached

    client = client or utils.get_openai_client()
    if client is None:
        raise UpstreamError("OPENAI_API_KEY no está configurada")

    logger.info("matcher.request", phrases=len(phrases), context_chars=len(context))
    try:
        response = client.responses.create(
            model=settings.openai_responses_model,
            input=[
                {"role": "system", "content": [{"type": "input_text", "text": SYSTEM_PROMPT}]},
                {"role": "user", "content": [{"type": "input_text", "text": build_prompt(context, phrases)}]},
            ],
            temperature=settings.matcher_temperature,
        )
    except OpenAIError as exc:
        logger.error("matcher.request_failed", error=str(exc))
        raise UpstreamError(f"Error consultando la IA: {exc}") from exc

    raw = parse_matcher_response(_response_text(response))
    # cache only answers that pair with the phrases
    pair_results(phrases, raw)
    cache.set_cached(key, raw)
    return raw


def match_phrases(context: str, phrases: List[str], client=None) -> List[PhraseMatch]:
    return pair_results(phrases, request_matches(context, phrases, client=client))
