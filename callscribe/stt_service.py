"""
Speech-to-text service wrapper.

This module sends audio to a Whisper-compatible transcription endpoint, either
the hosted OpenAI API (authenticated with an API key) or a self-hosted server
speaking the same multipart protocol.  :func:`transcribe` retries transient
failures with exponential backoff; status and progress persistence is left
to the caller, which can hook into the attempt lifecycle through callbacks.

Usage::

    from callscribe.config import TranscriptionTarget
    from callscribe.stt_service import transcribe

    text = transcribe(audio_bytes, "call.mp3", TranscriptionTarget(api_key="sk-..."))
"""

from __future__ import annotations

import json
import logging
from typing import Callable, Dict, Optional

import requests

from .config import TranscriptionTarget
from .errors import FormatError, RemoteError, TransportFailure, TransportTimeout, ValidationError
from .retry import TRANSCRIPTION_POLICY, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

TRANSCRIPTION_MODEL = "whisper-1"
DECODING_TEMPERATURE = 0.2
DOMAIN_PROMPT = "Це розмова українською мовою, можливо з домішками російських слів."
REQUEST_TIMEOUT = 300
TIMEOUT_MESSAGE = "Transcription request timed out after 5 minutes"


def build_transcription_form(target: TranscriptionTarget) -> Dict[str, str]:
    """Return the non-file multipart fields of a transcription request."""
    return {
        "model": TRANSCRIPTION_MODEL,
        "response_format": "json",
        "language": target.language,
        "temperature": str(DECODING_TEMPERATURE),
        "prompt": DOMAIN_PROMPT,
    }


def _error_message(response: requests.Response) -> str:
    default = f"HTTP error! status: {response.status_code}"
    try:
        data = response.json()
    except ValueError:
        return response.text or default
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return default


def request_transcript(
    audio: bytes,
    filename: str,
    target: TranscriptionTarget,
    *,
    mimetype: Optional[str] = None,
    timeout: float = REQUEST_TIMEOUT,
    on_response: Optional[Callable[[], None]] = None,
) -> str:
    """Perform a single transcription request.

    Args:
        audio: Raw audio bytes.
        filename: Original file name, forwarded with the upload.
        target: Endpoint and credentials.
        mimetype: Content type of the audio part.
        timeout: Seconds before the request is abandoned.
        on_response: Called once a response (of any status) has arrived.

    Returns:
        The transcript text from the ``text`` field of the JSON reply.

    Raises:
        TransportTimeout: The request exceeded ``timeout``.
        TransportFailure: No response was received.
        RemoteError: The service answered with a non-2xx status.
        FormatError: The reply is not a JSON object with a string ``text``.
    """
    headers = {"Accept": "application/json"}
    if not target.use_local_server:
        headers["Authorization"] = f"Bearer {target.api_key}"
    try:
        response = requests.post(
            target.endpoint,
            headers=headers,
            data=build_transcription_form(target),
            files={"file": (filename, audio, mimetype or "application/octet-stream")},
            timeout=timeout,
        )
    except requests.Timeout as exc:
        raise TransportTimeout(TIMEOUT_MESSAGE) from exc
    except requests.RequestException as exc:
        raise TransportFailure(f"Transcription request failed: {exc}") from exc

    if on_response is not None:
        on_response()
    if not response.ok:
        raise RemoteError(_error_message(response), response.status_code)
    try:
        result = response.json()
    except ValueError as exc:
        raise FormatError(f"Invalid response format: {response.text[:500]}") from exc
    if not isinstance(result, dict) or not isinstance(result.get("text"), str):
        raise FormatError(f"Invalid response format: {json.dumps(result, ensure_ascii=False)[:500]}")
    return result["text"]


def transcribe(
    audio: bytes,
    filename: str,
    target: TranscriptionTarget,
    *,
    mimetype: Optional[str] = None,
    policy: RetryPolicy = TRANSCRIPTION_POLICY,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
    on_response: Optional[Callable[[], None]] = None,
) -> str:
    """Transcribe ``audio``, retrying transient failures.

    Args:
        audio: Raw audio bytes.
        filename: Original file name.
        target: Endpoint and credentials.
        mimetype: Content type of the audio.
        policy: Attempt cap and backoff; defaults to three attempts with
            ``min(2**k, 10)`` seconds between them.
        on_retry: Called as ``on_retry(attempt, error)`` before waiting ahead
            of zero-based ``attempt``.
        on_response: Forwarded to :func:`request_transcript`.

    Returns:
        The raw transcript text.

    Raises:
        ConfigurationError: Neither an API key nor a local server is set.
        ValidationError: No audio bytes were supplied.
        PipelineError: The last error once all attempts have failed.
    """
    target.validate()
    if not audio:
        raise ValidationError("Missing file data")

    def _attempt() -> str:
        return request_transcript(
            audio, filename, target, mimetype=mimetype, on_response=on_response
        )

    def _before_retry(attempt: int, error: BaseException) -> None:
        logger.warning("Transcription of %s failed (%s); retry %d of %d", filename, error, attempt + 1, policy.max_attempts)
        if on_retry is not None:
            on_retry(attempt, error)

    logger.info("Starting transcription of %s via %s", filename, target.endpoint)
    text = call_with_retry(_attempt, policy, before_retry=_before_retry)
    logger.info("Transcription of %s complete (%d characters)", filename, len(text))
    return text
