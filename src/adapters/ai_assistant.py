"""Adaptador IA: análisis financiero y asistente de la comunidad.

Responsabilidad:
- Construir un contexto compacto a partir de la sesión (transacciones con el
  nombre de su categoría, miembros con su ministerio).
- Llamar al proveedor IA (SDK OpenAI compatible) con reintentos ante fallos
  transitorios.
- Devolver siempre un `InsightReport`: si no hay API key o el proveedor falla,
  el texto es el mensaje de respaldo (`fallback=True`).
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from typing import Any, Sequence

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    RateLimitError,
)

from core.config import AppSettings
from core.domain.language import Language
from core.domain.models import Category, InsightReport, Ministry, Person, Transaction

logger = logging.getLogger(__name__)

# Cap para evitar prompts gigantes en comunidades grandes.
_MAX_CONTEXT_ITEMS = 500


def build_ai_client(settings: AppSettings) -> AsyncOpenAI:
    return AsyncOpenAI(
        api_key=settings.ai_api_key,
        base_url=settings.ai_base_url,
        timeout=settings.ai_timeout_seconds,
        max_retries=0,
    )


def _category_names(categories: Sequence[Category]) -> dict[str, str]:
    return {c.id: c.name for c in categories}


def summarize_transactions(
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
) -> list[dict[str, Any]]:
    names = _category_names(categories)
    return [
        {
            "type": tx.type.value,
            "amount": tx.value,
            "category": names.get(tx.category_id, "Unknown"),
            "date": tx.date,
        }
        for tx in transactions[:_MAX_CONTEXT_ITEMS]
    ]


def build_assistant_context(
    *,
    people: Sequence[Person],
    ministries: Sequence[Ministry],
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
) -> dict[str, Any]:
    """Contexto simplificado: sin teléfonos, direcciones ni correos."""

    ministry_names = {m.id: m.name for m in ministries}
    names = _category_names(categories)
    return {
        "miembros": [
            {
                "nombre": p.full_name,
                "identificacion": p.identification,
                "ministerio": ministry_names.get(p.ministry_id),
                "bautizado": "Sí" if p.is_baptized else "No",
                "poblacion": p.population_group.value,
            }
            for p in people[:_MAX_CONTEXT_ITEMS]
        ],
        "finanzas": [
            {
                "tipo": tx.type.value,
                "valor": tx.value,
                "categoria": names.get(tx.category_id),
                "fecha": tx.date,
                "concepto": tx.observations,
            }
            for tx in transactions[:_MAX_CONTEXT_ITEMS]
        ],
    }


def _insights_prompt(language: Language) -> str:
    return language.pick(
        es=(
            "Analiza estos datos financieros de una comunidad religiosa/social y proporciona "
            "un resumen ejecutivo en español.\n"
            "Detecta tendencias, posibles áreas de ahorro y fuentes de ingresos principales."
        ),
        en=(
            "Analyse this financial data from a religious/social community and write an "
            "executive summary in English.\n"
            "Point out trends, possible savings and the main income sources."
        ),
    )


def _assistant_prompt(language: Language) -> str:
    return language.pick(
        es=(
            'Eres el Asistente Inteligente de "ComunidadPro". Tu objetivo es ayudar al '
            "administrador a consultar datos de su comunidad.\n"
            "Responde de forma clara, profesional y amable en español.\n"
            "Si te preguntan por totales de dinero, haz los cálculos basados en los datos proporcionados."
        ),
        en=(
            'You are the "ComunidadPro" assistant. Help the administrator query their '
            "community data.\n"
            "Answer clearly, professionally and kindly in English.\n"
            "When asked for money totals, compute them from the provided data."
        ),
    )


def _insights_fallback(language: Language) -> str:
    return language.pick(
        es="No se pudo generar el análisis de IA en este momento.",
        en="The AI analysis could not be generated right now.",
    )


def _assistant_fallback(language: Language) -> str:
    return language.pick(
        es="Lo siento, tuve un problema al procesar tu consulta. Inténtalo de nuevo.",
        en="Sorry, I had a problem processing your question. Please try again.",
    )


def _retry_delay(exc: Exception, attempt: int) -> float:
    retry_after = None
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if headers is not None:
        try:
            retry_after = float(headers.get("retry-after"))
        except (TypeError, ValueError):
            retry_after = None
    base = retry_after if retry_after is not None else 1.25 * (2**attempt)
    return base + random.uniform(0.0, 0.35)


async def _complete(
    client: AsyncOpenAI,
    *,
    settings: AppSettings,
    messages: list[dict[str, str]],
    temperature: float,
) -> str:
    """Una respuesta del modelo; reintenta rate limits, timeouts y errores de red."""

    last_error: Exception | None = None
    for attempt in range(settings.ai_max_retries + 1):
        try:
            response = await client.chat.completions.create(
                model=settings.ai_model,
                messages=messages,  # type: ignore[arg-type]
                temperature=temperature,
            )
            content = (response.choices[0].message.content or "").strip()
            if not content:
                raise ValueError("empty completion")
            return content
        except (RateLimitError, APITimeoutError, APIConnectionError) as exc:
            last_error = exc
        except APIStatusError as exc:
            last_error = exc
            if exc.status_code != 429:
                break
        if attempt < settings.ai_max_retries:
            await asyncio.sleep(_retry_delay(last_error, attempt))

    assert last_error is not None
    raise last_error


async def _run(
    *,
    settings: AppSettings,
    client: AsyncOpenAI | None,
    system: str,
    user_content: str,
    temperature: float,
    fallback: str,
) -> InsightReport:
    if client is None and not settings.ai_enabled:
        logger.info("AI disabled (no API key); returning fallback message")
        return InsightReport(text=fallback, fallback=True)

    ai = client or build_ai_client(settings)
    messages = [
        {"role": "system", "content": system},
        {"role": "user", "content": user_content},
    ]
    try:
        text = await _complete(ai, settings=settings, messages=messages, temperature=temperature)
    except (APIStatusError, RateLimitError, APITimeoutError, APIConnectionError, ValueError) as exc:
        logger.error("AI provider failed: %s", exc)
        return InsightReport(text=fallback, fallback=True)
    finally:
        if client is None:
            await ai.close()
    return InsightReport(text=text, model=settings.ai_model)


async def get_financial_insights(
    *,
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
    settings: AppSettings,
    language: Language | None = None,
    client: AsyncOpenAI | None = None,
) -> InsightReport:
    language = language or settings.default_language
    payload = json.dumps(summarize_transactions(transactions, categories), ensure_ascii=False)
    return await _run(
        settings=settings,
        client=client,
        system=_insights_prompt(language),
        user_content=language.pick(es="Datos:\n", en="Data:\n") + payload,
        temperature=0.7,
        fallback=_insights_fallback(language),
    )


async def ask_community_assistant(
    query: str,
    *,
    people: Sequence[Person],
    ministries: Sequence[Ministry],
    transactions: Sequence[Transaction],
    categories: Sequence[Category],
    settings: AppSettings,
    language: Language | None = None,
    client: AsyncOpenAI | None = None,
) -> InsightReport:
    language = language or settings.default_language
    if not query.strip():
        raise ValueError("query must not be empty")

    context = build_assistant_context(
        people=people,
        ministries=ministries,
        transactions=transactions,
        categories=categories,
    )
    user_content = (
        language.pick(es="CONTEXTO DE LA COMUNIDAD:\n", en="COMMUNITY CONTEXT:\n")
        + json.dumps(context, ensure_ascii=False)
        + language.pick(es="\n\nPREGUNTA DEL USUARIO:\n", en="\n\nUSER QUESTION:\n")
        + f'"{query.strip()}"'
    )
    return await _run(
        settings=settings,
        client=client,
        system=_assistant_prompt(language),
        user_content=user_content,
        temperature=0.2,
        fallback=_assistant_fallback(language),
    )
