import io
from unittest.mock import Mock

import pytest

import callscribe.main as main
import callscribe.stt_service as stt
import callscribe.sync_gate as sg
from callscribe import audio_processor
from callscribe.config import PipelineConfig, TranscriptionTarget
from callscribe.job_store import InMemoryJobStore


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(main, 'store', InMemoryJobStore())
    monkeypatch.setattr(main, 'config', PipelineConfig(target=TranscriptionTarget(api_key='key')))
    monkeypatch.setattr(main, 'sync_gate', sg.SyncGate())
    monkeypatch.setattr(audio_processor, 'probe_duration', lambda data, name: None)
    return main.app.test_client()


def _upload(client, name='call.mp3', data=b'audio', mimetype='audio/mpeg'):
    return client.post(
        '/jobs',
        data={'file': (io.BytesIO(data), name, mimetype)},
        content_type='multipart/form-data',
    )


def test_submit_and_fetch_job(client, monkeypatch):
    monkeypatch.setattr(
        stt.requests, 'post',
        lambda *a, **k: Mock(status_code=200, ok=True, json=lambda: {'text': 'Добрий день.'}),
    )
    resp = _upload(client)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['status'] == 'completed'
    assert body['transcript'] == 'Добрий день.'

    job_id = body['id']
    assert client.get(f'/jobs/{job_id}').get_json()['progress'] == 100
    logs = client.get(f'/jobs/{job_id}/logs').get_json()
    assert logs[-1]['message'] == 'Transcription completed successfully'

    duplicate = _upload(client)
    assert duplicate.status_code == 409
    assert duplicate.get_json()['duplicate_of'] == job_id


def test_rejects_missing_and_invalid_uploads(client):
    assert client.post('/jobs', data={}, content_type='multipart/form-data').status_code == 400
    resp = _upload(client, name='notes.txt', mimetype='text/plain')
    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Invalid file type: text/plain'


def test_configuration_error_fails_job(client, monkeypatch):
    monkeypatch.setattr(main, 'config', PipelineConfig())
    resp = _upload(client)
    assert resp.status_code == 400
    body = resp.get_json()
    assert body['status'] == 'failed'
    assert body['progress'] == 0
    assert 'API key' in body['error']


def test_unknown_job_is_404(client):
    assert client.get('/jobs/nope').status_code == 404
    assert client.get('/jobs/nope/logs').status_code == 404


def test_analyze_requires_completed_job(client):
    job = main.tasks.create_job(main.store, 'call.mp3', b'audio', 'audio/mpeg', probe=False)
    assert client.post(f'/jobs/{job.id}/analyze').status_code == 409


def test_sync_endpoint(client, monkeypatch):
    assert client.post('/sync').status_code == 400

    monkeypatch.setattr(main, 'config', PipelineConfig(cache_sync_url='https://sync.example/run'))
    monkeypatch.setattr(
        sg.requests, 'post',
        lambda *a, **k: Mock(ok=True, status_code=200, content=b'{}', json=lambda: {'message': 'done'}),
    )
    resp = client.post('/sync')
    assert resp.status_code == 202
    assert resp.get_json()['result'] == {'message': 'done'}
    assert client.post('/sync').status_code == 429
