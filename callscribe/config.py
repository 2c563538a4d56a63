"""
Configuration for the transcription and analysis calls.

Everything is read from environment variables, mirroring how the Cloud
Function entrypoints were configured:

* ``OPENAI_API_KEY`` – key for the hosted transcription and chat endpoints.
* ``USE_LOCAL_SERVER`` – set to ``true`` to transcribe with a self-hosted
  Whisper-compatible server at ``TRANSCRIPTION_SERVER_URL``.
* ``ENABLE_ANALYSIS`` – set to ``true`` to run the analysis pass.
* ``ANALYSIS_USE_LOCAL_MODEL`` / ``LOCAL_MODEL_URL`` – use a self-hosted
  generation server (Ollama style ``/api/generate``) for analysis.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from .errors import ConfigurationError

HOSTED_TRANSCRIPTION_URL = "https://api.openai.com/v1/audio/transcriptions"
HOSTED_CHAT_URL = "https://api.openai.com/v1/chat/completions"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class TranscriptionTarget:
    """Where audio is sent: the hosted endpoint (needs ``api_key``) or a
    self-hosted server (needs ``server_url``)."""

    api_key: str = ""
    server_url: str = HOSTED_TRANSCRIPTION_URL
    use_local_server: bool = False
    language: str = "uk"

    @property
    def endpoint(self) -> str:
        return self.server_url if self.use_local_server else HOSTED_TRANSCRIPTION_URL

    def validate(self) -> None:
        if self.use_local_server and not self.server_url:
            raise ConfigurationError("Local transcription server URL is not configured")
        if not self.use_local_server and not self.api_key:
            raise ConfigurationError("Please configure API key or local server before uploading files")


@dataclass
class AnalysisConfig:
    enabled: bool = False
    use_local_model: bool = False
    local_model_url: str = "http://ollama:11434"
    local_model_name: str = "mistral"
    openai_model: str = "gpt-4"
    api_key: str = ""

    def validate(self) -> None:
        if self.use_local_model and not self.local_model_url:
            raise ConfigurationError("Local model URL is required when using local model")
        if not self.use_local_model and not self.api_key:
            raise ConfigurationError("OpenAI API key is required for analysis when not using local model")


@dataclass
class PipelineConfig:
    target: TranscriptionTarget = field(default_factory=TranscriptionTarget)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    job_bucket: Optional[str] = None
    job_prefix: str = "jobs/"
    cache_sync_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        api_key = os.environ.get("OPENAI_API_KEY", "")
        target = TranscriptionTarget(
            api_key=api_key,
            server_url=os.environ.get("TRANSCRIPTION_SERVER_URL", HOSTED_TRANSCRIPTION_URL),
            use_local_server=_env_flag("USE_LOCAL_SERVER"),
            language=os.environ.get("TRANSCRIPTION_LANGUAGE", "uk"),
        )
        analysis = AnalysisConfig(
            enabled=_env_flag("ENABLE_ANALYSIS"),
            use_local_model=_env_flag("ANALYSIS_USE_LOCAL_MODEL"),
            local_model_url=os.environ.get("LOCAL_MODEL_URL", "http://ollama:11434"),
            local_model_name=os.environ.get("LOCAL_MODEL_NAME", "mistral"),
            openai_model=os.environ.get("OPENAI_ANALYSIS_MODEL", "gpt-4"),
            api_key=os.environ.get("ANALYSIS_API_KEY") or api_key,
        )
        return cls(
            target=target,
            analysis=analysis,
            job_bucket=os.environ.get("JOB_BUCKET") or None,
            job_prefix=os.environ.get("JOB_PREFIX", "jobs/"),
            cache_sync_url=os.environ.get("CACHE_SYNC_URL") or None,
        )
