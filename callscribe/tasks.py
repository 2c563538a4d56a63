"""
Orchestration layer for the transcription pipeline.

This module defines the functions called from the HTTP entrypoints in
:mod:`callscribe.main`.  They coordinate the steps of the pipeline:

* :func:`create_job` validates an upload, refuses duplicates and records a
  ``pending`` job.
* :func:`process_job` moves the job to ``processing``, sends the audio to the
  speech-to-text service (with retries), removes repeats, normalises the
  text and completes the job.  When analysis is enabled the transcript is
  then analysed; an analysis failure is logged but never fails the job.
* :func:`reanalyze_job` runs the analysis again for a completed job.
* :func:`process_batch` processes several uploads one after the other.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from . import audio_processor, stt_service
from .analysis_runner import run_analysis
from .config import PipelineConfig
from .errors import DuplicateJobError, PipelineError, ValidationError
from .job_state import JobStateMachine
from .job_store import JobStore
from .models import Job, JobStatus, LogLevel
from .retry import ANALYSIS_POLICY, PERSISTENCE_POLICY, TRANSCRIPTION_POLICY, RetryPolicy
from .transcript_cleaner import clean_transcript
from .transcript_normalizer import normalize_transcript

logger = logging.getLogger(__name__)

PROGRESS_UPLOADING = 25
PROGRESS_RESPONSE = 75


def create_job(
    store: JobStore,
    name: str,
    data: Optional[bytes],
    mimetype: Optional[str],
    *,
    probe: bool = True,
) -> Job:
    """Validate an upload and store it as a pending job.

    Raises:
        ValidationError: The payload is empty or not audio.
        DuplicateJobError: A job for ``name`` already exists.
    """
    audio_processor.validate_audio(data, mimetype, name)
    existing = store.check_duplicate(name)
    if existing:
        raise DuplicateJobError(name, existing)
    job = Job(name=name, size_bytes=len(data))
    if probe:
        job.duration_seconds = audio_processor.probe_duration(data, name)
    store.create(job)
    logger.info("Created job %s for %s (%d bytes)", job.id, name, job.size_bytes)
    return job


def _analyse(
    machine: JobStateMachine,
    config: PipelineConfig,
    policy: RetryPolicy,
) -> None:
    machine.log(LogLevel.INFO, "Starting automatic analysis...")
    run = run_analysis(
        machine.job.transcript or "",
        config.analysis,
        policy=policy,
        on_chunk=lambda index, total: machine.log(LogLevel.INFO, f"Analyzing part {index + 1} of {total}..."),
    )
    if run is None:
        machine.log(LogLevel.INFO, "Transcript is empty; analysis skipped")
        return
    machine.attach_analysis(run.analysis, run.source)
    if run.failed_chunks:
        machine.log(
            LogLevel.WARNING,
            f"Analysis is partial: {run.failed_chunks} of {run.chunks} parts could not be analysed",
        )
    machine.log(LogLevel.INFO, "Analysis completed successfully")


def process_job(
    job: Job,
    audio: bytes,
    store: JobStore,
    config: PipelineConfig,
    *,
    mimetype: Optional[str] = None,
    transcription_policy: RetryPolicy = TRANSCRIPTION_POLICY,
    analysis_policy: RetryPolicy = ANALYSIS_POLICY,
    persistence_policy: RetryPolicy = PERSISTENCE_POLICY,
) -> Job:
    """Run one pending job through transcription and, optionally, analysis.

    Args:
        job: A job in ``pending`` status, already stored.
        audio: Raw audio bytes.
        store: Persistence collaborator.
        config: Transcription and analysis settings.
        mimetype: Content type of ``audio``.

    Returns:
        The completed job.

    Raises:
        Exception: Whatever made the transcription fail, after the job has
            been moved to ``failed``.
    """
    machine = JobStateMachine(job, store, persistence_policy=persistence_policy)
    target = config.target
    try:
        if not audio:
            raise ValidationError("Missing file data")
        target.validate()
        machine.start()
        machine.checkpoint(PROGRESS_UPLOADING, f"Uploading file {job.name} to transcription service...")
        raw = stt_service.transcribe(
            audio,
            job.name,
            target,
            mimetype=mimetype,
            policy=transcription_policy,
            on_retry=lambda attempt, error: machine.log(
                LogLevel.WARNING,
                f"Retrying transcription (attempt {attempt + 1} of {transcription_policy.max_attempts})",
            ),
            on_response=lambda: machine.checkpoint(PROGRESS_RESPONSE),
        )
        transcript = normalize_transcript(clean_transcript(raw))
        machine.complete(transcript, language=target.language)
    except Exception as exc:
        if not job.status.terminal:
            machine.fail(str(exc) or exc.__class__.__name__)
        raise

    if config.analysis.enabled:
        try:
            _analyse(machine, config, analysis_policy)
        except Exception as exc:
            logger.exception("Analysis of job %s failed", job.id)
            machine.log(LogLevel.ERROR, f"Analysis failed: {exc}")
    return job


def reanalyze_job(
    job_id: str,
    store: JobStore,
    config: PipelineConfig,
    *,
    analysis_policy: RetryPolicy = ANALYSIS_POLICY,
    persistence_policy: RetryPolicy = PERSISTENCE_POLICY,
) -> Job:
    """Analyse a completed job again, replacing its analysis.

    Raises:
        ValidationError: The job is not completed.
        PipelineError: The analysis failed; the job keeps its status.
    """
    job = store.get(job_id)
    if job.status is not JobStatus.COMPLETED:
        raise ValidationError(f"Job {job_id} is {job.status.value}; only completed jobs can be analysed")
    machine = JobStateMachine(job, store, persistence_policy=persistence_policy)
    try:
        _analyse(machine, config, analysis_policy)
    except PipelineError as exc:
        machine.log(LogLevel.ERROR, f"Analysis failed: {exc}")
        raise
    return job


def process_batch(
    items: Iterable[Tuple[Job, bytes, Optional[str]]],
    store: JobStore,
    config: PipelineConfig,
    **policies: RetryPolicy,
) -> List[Job]:
    """Process ``(job, audio, mimetype)`` items in order, continuing past failures."""
    processed: List[Job] = []
    for job, audio, mimetype in items:
        try:
            process_job(job, audio, store, config, mimetype=mimetype, **policies)
        except PipelineError as exc:
            logger.warning("Job %s (%s) failed: %s", job.id, job.name, exc)
        processed.append(job)
    return processed
