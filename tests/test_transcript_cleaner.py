import callscribe.transcript_cleaner as tc


def test_split_sentences_keeps_punctuation_and_trailing_fragment():
    assert tc.split_sentences('Hi there. How are you?! fine') == ['Hi there.', 'How are you?!', 'fine']
    assert tc.split_sentences('') == []


def test_immediate_word_repeat_is_removed():
    assert tc.clean_transcript('the the cat sat.') == 'the cat sat.'


def test_stutter_is_collapsed():
    assert tc.clean_sentence('the the the problem problem') == 'the problem'


def test_first_word_is_always_kept():
    assert tc.clean_sentence('Hello') == 'Hello'
    assert tc.clean_sentence('') == ''


def test_repeated_sentence_is_dropped():
    text = 'We need a new router. We need a new router. Thanks.'
    assert tc.clean_transcript(text) == 'We need a new router. Thanks.'


def test_sentence_comparison_is_case_insensitive():
    assert tc.clean_transcript('Call me back. call me BACK.') == 'Call me back.'


def test_distinct_sentences_survive_and_are_space_joined():
    text = 'Добрий день.   Мене звати Олена!\nЧим можу допомогти?'
    assert tc.clean_transcript(text) == 'Добрий день. Мене звати Олена! Чим можу допомогти?'
