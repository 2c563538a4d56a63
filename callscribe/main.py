"""
HTTP entrypoints for the transcription pipeline.

Routes:

* ``POST /jobs`` – multipart upload (``file``); creates a job and processes it
  synchronously.
* ``GET /jobs/<id>`` and ``GET /jobs/<id>/logs`` – job record and audit trail.
* ``POST /jobs/<id>/analyze`` – run the analysis again for a completed job.
* ``POST /sync`` – ask the external cache-sync function to run.

Configuration comes from the environment (see :mod:`callscribe.config`).
Jobs are kept in Cloud Storage when ``JOB_BUCKET`` is set and in memory
otherwise.
"""

from __future__ import annotations

import json
import logging
import os

from flask import Flask, jsonify, request

from . import tasks
from .config import PipelineConfig
from .errors import DuplicateJobError, PipelineError, ValidationError
from .job_store import GcsJobStore, InMemoryJobStore, JobNotFound, JobStore
from .sync_gate import SyncGate, trigger_cache_sync

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO, format="%(message)s")

app = Flask(__name__)
config = PipelineConfig.from_env()


def build_store(cfg: PipelineConfig) -> JobStore:
    if cfg.job_bucket:
        return GcsJobStore(cfg.job_bucket, prefix=cfg.job_prefix)
    return InMemoryJobStore()


store = build_store(config)
sync_gate = SyncGate()


def _event(name: str, **fields) -> None:
    logger.info(json.dumps({"event": name, **fields}, ensure_ascii=False, default=str))


@app.errorhandler(JobNotFound)
def _not_found(exc):
    return jsonify({"error": f"Job {exc.args[0]} not found"}), 404


@app.route("/jobs", methods=["POST"])
def submit_job():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return jsonify({"error": "Missing file data"}), 400
    data = upload.read()
    _event("upload", file=upload.filename, size=len(data), mimetype=upload.mimetype)
    try:
        job = tasks.create_job(store, upload.filename, data, upload.mimetype)
    except DuplicateJobError as exc:
        _event("duplicate", file=upload.filename, existing=exc.existing_id)
        return jsonify({"error": str(exc), "duplicate_of": exc.existing_id}), 409
    except ValidationError as exc:
        _event("rejected", file=upload.filename, reason=str(exc))
        return jsonify({"error": str(exc)}), 400

    try:
        tasks.process_job(job, data, store, config, mimetype=upload.mimetype)
    except PipelineError as exc:
        _event("job_failed", job=job.id, error=str(exc))
        status = 400 if not exc.retryable else 502
        return jsonify(job.to_dict()), status
    except Exception:
        logger.exception("Error processing job %s", job.id)
        return jsonify(job.to_dict()), 500
    _event("job_completed", job=job.id, seconds=job.processing_time_seconds)
    return jsonify(job.to_dict()), 200


@app.route("/jobs/<job_id>", methods=["GET"])
def get_job(job_id: str):
    return jsonify(store.get(job_id).to_dict())


@app.route("/jobs/<job_id>/logs", methods=["GET"])
def get_job_logs(job_id: str):
    store.get(job_id)
    return jsonify([entry.to_dict() for entry in store.logs(job_id)])


@app.route("/jobs/<job_id>/analyze", methods=["POST"])
def analyze_job(job_id: str):
    try:
        job = tasks.reanalyze_job(job_id, store, config)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 409
    except PipelineError as exc:
        _event("analysis_failed", job=job_id, error=str(exc))
        return jsonify({"error": str(exc)}), 400 if not exc.retryable else 502
    return jsonify(job.to_dict()), 200


@app.route("/sync", methods=["POST"])
def sync_cache():
    if not config.cache_sync_url:
        return jsonify({"error": "CACHE_SYNC_URL is not configured"}), 400
    try:
        result = trigger_cache_sync(sync_gate, config.cache_sync_url)
    except PipelineError as exc:
        logger.exception("Cache sync failed")
        return jsonify({"error": str(exc)}), 502
    if result is None:
        return jsonify({"status": "skipped"}), 429
    return jsonify({"status": "ok", "result": result}), 202


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port)
