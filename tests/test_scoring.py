from types import SimpleNamespace

from runner.scoring import is_answer_correct, quantize


def answer(text=None, option=None):
    return SimpleNamespace(answer_text=text, selected_option=option)


def test_single_choice_exact_match():
    definition = {'type': 'multiple_choice', 'correct_answer': 'B'}
    assert is_answer_correct(definition, answer(option='B')) is True
    assert is_answer_correct(definition, answer(option={'key': 'B'})) is True
    assert is_answer_correct(definition, answer(option='C')) is False
    assert is_answer_correct(definition, answer(option=['B', 'C'])) is False


def test_multi_select_uses_set_equality():
    definition = {'type': 'multiple_choice', 'correct_answer': ['A', 'C']}
    assert is_answer_correct(definition, answer(option=['C', 'A'])) is True
    assert is_answer_correct(definition, answer(option=['A'])) is False
    assert is_answer_correct(definition, answer(option=['A', 'C', 'D'])) is False


def test_true_false_accepts_booleans_and_strings():
    definition = {'type': 'true_false', 'correct_answer': True}
    assert is_answer_correct(definition, answer(option='true')) is True
    assert is_answer_correct(definition, answer(option=True)) is True
    assert is_answer_correct(definition, answer(option=False)) is False


def test_fill_in_blank_is_case_insensitive():
    definition = {'type': 'fill_in_blank', 'correct_answer': ['Buenos Aires', 'CABA']}
    assert is_answer_correct(definition, answer(text='  buenos aires ')) is True
    assert is_answer_correct(definition, answer(text='caba')) is True
    assert is_answer_correct(definition, answer(text='Córdoba')) is False


def test_manual_types_return_none():
    assert is_answer_correct({'type': 'essay', 'correct_answer': None}, answer(text='...')) is None
    assert is_answer_correct({'type': 'matching', 'correct_answer': {'1': 'a'}}, answer(option={'1': 'a'})) is None


def test_quantize_rounds_half_up():
    assert str(quantize('66.665')) == '66.67'
    assert str(quantize(8)) == '8.00'
