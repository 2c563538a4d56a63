import pytest

from callscribe.analysis_merger import merge_analyses
from callscribe.models import Analysis


def test_temperature_is_rounded_mean():
    assert merge_analyses([Analysis(temperature=4), Analysis(temperature=8)]).temperature == 6
    assert merge_analyses([Analysis(temperature=5), Analysis(temperature=6)]).temperature == 6
    assert merge_analyses([Analysis(temperature=7)]).temperature == 7


def test_lists_keep_first_seen_order_without_duplicates():
    merged = merge_analyses([
        Analysis(problems=['b', 'a'], solutions=['x']),
        Analysis(problems=['a', 'c'], solutions=['x', 'y']),
    ])
    assert merged.problems == ['b', 'a', 'c']
    assert merged.solutions == ['x', 'y']


def test_summaries_joined_with_blank_line_skipping_empty():
    merged = merge_analyses([Analysis(summary='one'), Analysis(summary=''), Analysis(summary='two')])
    assert merged.summary == 'one\n\ntwo'


def test_default_marker_only_when_every_chunk_defaulted():
    assert merge_analyses([Analysis(temperature_defaulted=True), Analysis(temperature_defaulted=False)]).temperature_defaulted is False
    assert merge_analyses([Analysis(temperature_defaulted=True)]).temperature_defaulted is True


def test_empty_list_is_rejected():
    with pytest.raises(ValueError):
        merge_analyses([])
