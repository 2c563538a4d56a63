"""
Structured analysis of transcripts via a language model.

The transcript is split into sentence-aligned chunks, each chunk is sent on
its own to either the hosted chat-completion API or a self-hosted generation
server (Ollama ``/api/generate``), the replies are parsed with
:func:`callscribe.analysis_parser.parse_analysis_response` and merged with
:func:`callscribe.analysis_merger.merge_analyses`.

Chunks are processed one at a time.  A chunk that fails after its retries, or
whose reply contains no recognisable section, is skipped; the merged result
is then marked ``partial``.  Only when no chunk succeeds does the run fail,
re-raising the last error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import requests

from .analysis_merger import merge_analyses
from .analysis_parser import parse_analysis_response
from .chunker import MAX_CHUNK_SIZE, split_for_analysis
from .config import HOSTED_CHAT_URL, AnalysisConfig
from .errors import FormatError, PipelineError, RemoteError, TransportFailure, TransportTimeout
from .models import Analysis, AnalysisSource
from .retry import ANALYSIS_POLICY, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

DECODING_TEMPERATURE = 0.3
REQUEST_TIMEOUT = 300

SYSTEM_PROMPT = (
    "Ти - експерт з аналізу розмов. Твоє завдання - надавати структурований та детальний "
    "аналіз транскрибованих розмов, фокусуючись на проблемах, рішеннях та загальній "
    "атмосфері спілкування."
)

PROMPT_TEMPLATE = """Проаналізуй наступну транскрипцію розмови та надай структурований аналіз.

Вимоги до аналізу:

1. ПРОБЛЕМИ:
   - Виділи конкретні проблеми, про які йдеться в розмові
   - Кожна проблема має бути чітко сформульована
   - Уникай загальних формулювань
   - Якщо проблема складна, розбий її на конкретні аспекти

2. РІШЕННЯ:
   - Для кожної виявленої проблеми вкажи конкретне рішення
   - Рішення мають бути практичними та здійсненними
   - Вказуй конкретні кроки або дії
   - Якщо рішення не було запропоновано в розмові, не вигадуй його

3. ТЕМПЕРАТУРА РОЗМОВИ (оцінка від 1 до 10):
   Критерії оцінки:
   - 1-3: Холодна, формальна, можливо конфліктна розмова
   - 4-6: Нейтральна, робоча розмова
   - 7-8: Тепла, дружня розмова
   - 9-10: Дуже тепла, емоційно позитивна розмова

4. КОРОТКИЙ ЗМІСТ:
   - Стисло опиши основну суть розмови (2-3 речення)
   - Вкажи ключові результати або домовленості

Транскрипція розмови:
{transcript}

Надай аналіз у такому форматі:
ПРОБЛЕМИ:
1. [Проблема 1]
2. [Проблема 2]

РІШЕННЯ:
1. [Рішення 1]
2. [Рішення 2]

ТЕМПЕРАТУРА РОЗМОВИ: [Число]/10
[Обґрунтування оцінки]

КОРОТКИЙ ЗМІСТ:
[Текст]"""


@dataclass
class AnalysisRun:
    analysis: Analysis
    source: AnalysisSource
    chunks: int
    failed_chunks: int


def build_analysis_prompt(chunk: str) -> str:
    return PROMPT_TEMPLATE.format(transcript=chunk)


def _post(url: str, payload: dict, headers: dict) -> dict:
    try:
        response = requests.post(url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
    except requests.Timeout as exc:
        raise TransportTimeout(f"Analysis request to {url} timed out") from exc
    except requests.RequestException as exc:
        raise TransportFailure(f"Analysis request failed: {exc}") from exc
    if not response.ok:
        try:
            data = response.json()
            error = data.get("error") if isinstance(data, dict) else None
            message = error.get("message") if isinstance(error, dict) else error
        except ValueError:
            message = response.text
        raise RemoteError(f"Analysis API error: {message or 'Unknown error'}", response.status_code)
    try:
        data = response.json()
    except ValueError as exc:
        raise FormatError("Analysis response is not JSON") from exc
    if not isinstance(data, dict):
        raise FormatError("Analysis response is not a JSON object")
    return data


def _request_local(prompt: str, config: AnalysisConfig) -> str:
    data = _post(
        f"{config.local_model_url.rstrip('/')}/api/generate",
        {
            "model": config.local_model_name,
            "prompt": prompt,
            "stream": False,
            "temperature": DECODING_TEMPERATURE,
        },
        {"Content-Type": "application/json"},
    )
    text = data.get("response")
    if not isinstance(text, str):
        raise FormatError("Local model response has no 'response' text")
    return text


def _request_remote(prompt: str, config: AnalysisConfig) -> str:
    data = _post(
        HOSTED_CHAT_URL,
        {
            "model": config.openai_model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": DECODING_TEMPERATURE,
        },
        {"Content-Type": "application/json", "Authorization": f"Bearer {config.api_key}"},
    )
    try:
        text = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise FormatError("Chat completion response has no message content") from exc
    if not isinstance(text, str):
        raise FormatError("Chat completion message content is not text")
    return text


def analyze_chunk(
    chunk: str,
    config: AnalysisConfig,
    *,
    policy: RetryPolicy = ANALYSIS_POLICY,
) -> str:
    """Send one chunk to the configured model and return its raw reply."""
    config.validate()
    prompt = build_analysis_prompt(chunk)
    request = _request_local if config.use_local_model else _request_remote
    return call_with_retry(lambda: request(prompt, config), policy)


def run_analysis(
    transcript: str,
    config: AnalysisConfig,
    *,
    policy: RetryPolicy = ANALYSIS_POLICY,
    max_chars: int = MAX_CHUNK_SIZE,
    on_chunk: Optional[Callable[[int, int], None]] = None,
) -> Optional[AnalysisRun]:
    """Analyse ``transcript`` chunk by chunk and merge the results.

    Args:
        transcript: Normalised transcript.
        config: Analysis endpoint configuration.
        policy: Retry policy applied to each chunk call.
        max_chars: Chunk size bound.
        on_chunk: Called as ``on_chunk(index, total)`` before each chunk.

    Returns:
        The merged run, or ``None`` when the transcript is empty.

    Raises:
        ConfigurationError: Neither an API key nor a local URL is configured.
        PipelineError: Every chunk failed; the last error is re-raised.
    """
    config.validate()
    chunks = split_for_analysis(transcript, max_chars=max_chars)
    if not chunks:
        return None

    results: List[Analysis] = []
    last_error: Optional[PipelineError] = None
    for index, chunk in enumerate(chunks):
        if on_chunk is not None:
            on_chunk(index, len(chunks))
        try:
            reply = analyze_chunk(chunk, config, policy=policy)
        except PipelineError as exc:
            if not exc.retryable:
                raise
            logger.warning("Analysis of chunk %d/%d failed: %s", index + 1, len(chunks), exc)
            last_error = exc
            continue
        parsed = parse_analysis_response(reply)
        if not parsed.recognized:
            logger.warning("Analysis reply for chunk %d/%d had no recognisable sections", index + 1, len(chunks))
            last_error = FormatError(f"Unrecognised analysis reply for chunk {index + 1}")
            continue
        results.append(parsed.to_analysis())

    if not results:
        assert last_error is not None
        raise last_error

    merged = merge_analyses(results)
    failed = len(chunks) - len(results)
    merged.partial = merged.partial or failed > 0
    source = AnalysisSource.LOCAL if config.use_local_model else AnalysisSource.REMOTE
    return AnalysisRun(analysis=merged, source=source, chunks=len(chunks), failed_chunks=failed)
