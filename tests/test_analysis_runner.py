from unittest.mock import Mock

import pytest
import requests

import callscribe.analysis_runner as ar
from callscribe.config import HOSTED_CHAT_URL, AnalysisConfig
from callscribe.errors import ConfigurationError, FormatError, RemoteError, TransportTimeout
from callscribe.models import AnalysisSource
from callscribe.retry import ANALYSIS_POLICY

POLICY = ANALYSIS_POLICY.without_sleep()


def _reply(temperature, problem='Проблема з рахунком'):
    return (
        f'ПРОБЛЕМИ:\n1. {problem}\n\n'
        'РІШЕННЯ:\n1. Перерахувати\n\n'
        f'ТЕМПЕРАТУРА РОЗМОВИ: {temperature}/10\nспокійно\n\n'
        'КОРОТКИЙ ЗМІСТ:\nКлієнт отримав відповідь.'
    )


def _chat(text, status=200):
    payload = {'choices': [{'message': {'content': text}}]}
    return Mock(status_code=status, ok=200 <= status < 300, json=lambda: payload, text='')


def _long_transcript():
    sentence = 'Клієнт довго пояснював ситуацію з рахунком за минулий місяць.'
    return ' '.join([sentence] * 600)


def test_remote_request_shape(monkeypatch):
    captured = {}

    def fake_post(url, **kwargs):
        captured['url'] = url
        captured.update(kwargs)
        return _chat(_reply(7))

    monkeypatch.setattr(ar.requests, 'post', fake_post)
    config = AnalysisConfig(enabled=True, api_key='key', openai_model='gpt-4')
    run = ar.run_analysis('Коротка розмова.', config, policy=POLICY)
    assert captured['url'] == HOSTED_CHAT_URL
    body = captured['json']
    assert body['model'] == 'gpt-4'
    assert body['temperature'] == ar.DECODING_TEMPERATURE
    assert body['messages'][0]['role'] == 'system'
    assert 'Коротка розмова.' in body['messages'][1]['content']
    assert captured['headers']['Authorization'] == 'Bearer key'
    assert run.source is AnalysisSource.REMOTE
    assert run.analysis.temperature == 7
    assert run.analysis.partial is False


def test_local_request_shape(monkeypatch):
    captured = {}

    def fake_post(url, **kwargs):
        captured['url'] = url
        captured.update(kwargs)
        return Mock(status_code=200, ok=True, json=lambda: {'response': _reply(3)})

    monkeypatch.setattr(ar.requests, 'post', fake_post)
    config = AnalysisConfig(enabled=True, use_local_model=True, local_model_url='http://ollama:11434/')
    run = ar.run_analysis('Текст.', config, policy=POLICY)
    assert captured['url'] == 'http://ollama:11434/api/generate'
    assert captured['json']['model'] == 'mistral'
    assert captured['json']['stream'] is False
    assert run.source is AnalysisSource.LOCAL
    assert run.analysis.temperature == 3


def test_missing_configuration_is_fatal(monkeypatch):
    post = Mock()
    monkeypatch.setattr(ar.requests, 'post', post)
    with pytest.raises(ConfigurationError):
        ar.run_analysis('Текст.', AnalysisConfig(enabled=True), policy=POLICY)
    with pytest.raises(ConfigurationError):
        ar.run_analysis('Текст.', AnalysisConfig(enabled=True, use_local_model=True, local_model_url=''), policy=POLICY)
    post.assert_not_called()


def test_long_transcript_is_analysed_in_order_and_merged(monkeypatch):
    temperatures = [4, 8, 9, 2]
    prompts = []

    def fake_post(url, **kwargs):
        prompts.append(kwargs['json']['messages'][1]['content'])
        return _chat(_reply(temperatures[len(prompts) - 1], problem=f'Проблема номер {len(prompts)} з рахунком'))

    monkeypatch.setattr(ar.requests, 'post', fake_post)
    transcript = _long_transcript()
    chunks = ar.split_for_analysis(transcript)
    assert len(chunks) >= 2
    chunked = []
    run = ar.run_analysis(
        transcript, AnalysisConfig(enabled=True, api_key='k'),
        policy=POLICY, on_chunk=lambda i, n: chunked.append((i, n)),
    )
    assert len(prompts) == len(chunks)
    assert chunked == [(i, len(chunks)) for i in range(len(chunks))]
    for prompt, chunk in zip(prompts, chunks):
        assert chunk in prompt
    used = temperatures[:len(chunks)]
    assert run.analysis.temperature == int(sum(used) / len(used) + 0.5)
    assert run.analysis.problems == [f'Проблема номер {i + 1} з рахунком' for i in range(len(chunks))]
    assert run.chunks == len(chunks)


def test_failed_chunk_yields_partial_result(monkeypatch):
    replies = [_chat(_reply(6))] + [_chat('', status=500)] * 10

    monkeypatch.setattr(ar.requests, 'post', lambda *a, **k: replies.pop(0))
    run = ar.run_analysis(
        _long_transcript(), AnalysisConfig(enabled=True, api_key='k'), policy=POLICY, max_chars=20000,
    )
    assert run.analysis.partial is True
    assert run.failed_chunks == run.chunks - 1
    assert run.analysis.temperature == 6


def test_every_chunk_failing_raises_last_error(monkeypatch):
    def fake_post(*a, **k):
        raise requests.Timeout()

    monkeypatch.setattr(ar.requests, 'post', fake_post)
    with pytest.raises(TransportTimeout):
        ar.run_analysis('Один. Два.', AnalysisConfig(enabled=True, api_key='k'), policy=POLICY)


def test_unrecognised_reply_is_skipped(monkeypatch):
    monkeypatch.setattr(ar.requests, 'post', lambda *a, **k: _chat('I cannot help with that.'))
    with pytest.raises(FormatError) as info:
        ar.run_analysis('Один.', AnalysisConfig(enabled=True, api_key='k'), policy=POLICY)
    assert 'Unrecognised' in str(info.value)


def test_remote_error_message(monkeypatch):
    response = Mock(status_code=429, ok=False, json=lambda: {'error': {'message': 'Rate limit'}}, text='')
    monkeypatch.setattr(ar.requests, 'post', lambda *a, **k: response)
    with pytest.raises(RemoteError, match='Rate limit'):
        ar.analyze_chunk('Текст.', AnalysisConfig(enabled=True, api_key='k'), policy=POLICY)


def test_empty_transcript_skips_analysis(monkeypatch):
    post = Mock()
    monkeypatch.setattr(ar.requests, 'post', post)
    assert ar.run_analysis('  ', AnalysisConfig(enabled=True, api_key='k'), policy=POLICY) is None
    post.assert_not_called()
