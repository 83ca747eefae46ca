import random

import pytest

from trivia_server.services.trivia.errors import NotFoundError, ValidationError
from trivia_server.services.trivia.questions import Question, QuestionStore, to_id


def _q(category, text, answers=('yes',)):
    return Question(category=category, question=text, answers=tuple(answers))


@pytest.fixture()
def store():
    return QuestionStore(questions=[
        _q('sg', 'What is H2O?', ['water']),
        _q('ae', 'Who painted the Mona Lisa?', ['davinci', 'leonardo']),
        _q('sg', 'What planet is red?', ['mars']),
        _q('pokemon', 'Which type is Pikachu?', ['electric']),
    ])


def test_to_id():
    assert to_id('Leonardo da Vinci!') == 'leonardodavinci'
    assert to_id('') == ''
    assert to_id(None) == ''


def test_questions_are_kept_sorted_by_category(store):
    categories = [q.category for q in store.questions]
    assert categories == sorted(categories)


def test_slice_category(store):
    sliced = store.slice_category('sg')
    assert [q.question for q in sliced] == ['What is H2O?', 'What planet is red?']
    assert store.slice_category('misc') == []


def test_insert_lands_in_its_category_run(store):
    index = store.insert(_q('pokemon', 'Which Pokemon evolves into Raichu?', ['pikachu']))
    assert store.questions[index].question == 'Which Pokemon evolves into Raichu?'
    assert [q.question for q in store.slice_category('pokemon')][-1] == 'Which Pokemon evolves into Raichu?'
    categories = [q.category for q in store.questions]
    assert categories == sorted(categories)


def test_validate_cleans_answers(store):
    question = store.validate('SG', ' How many legs has a spider? ', ['Eight', '8', 'eight', '!!'], submitted_by='alice')
    assert question.category == 'sg'
    assert question.question == 'How many legs has a spider?'
    assert question.answers == ('eight', '8')
    assert question.submitted_by == 'alice'


@pytest.mark.parametrize('category, text, answers', [
    ('nope', 'A question?', ['a']),
    ('sg', '', ['a']),
    ('sg', 'x' * 300, ['a']),
    ('sg', 'What is H2O?', ['water']),
    ('sg', 'A new question?', ['!!!']),
    ('sg', 'A new question?', ['a' * 40]),
])
def test_validate_rejects(store, category, text, answers):
    with pytest.raises(ValidationError):
        store.validate(category, text, answers)


def test_submissions_only_in_main_categories(store):
    with pytest.raises(ValidationError):
        store.validate('misc', 'A misc question?', ['a'], submission=True)
    assert store.validate('misc', 'A misc question?', ['a']).category == 'misc'


def test_accept_by_selector(store):
    for i in range(4):
        store.add(_q('ae', f'Submitted {i}?'), submission=True)
    assert store.accept('1, 3-4') == 3
    assert [q.question for q in store.review()] == ['Submitted 1?']
    assert len(store.slice_category('ae')) == 4


def test_reject_all(store):
    store.add(_q('ae', 'Submitted?'), submission=True)
    assert store.reject('all') == 1
    assert store.review() == []
    assert len(store.slice_category('ae')) == 1


@pytest.mark.parametrize('selector', ['', 'abc', '3-1', '9'])
def test_bad_selectors(store, selector):
    store.add(_q('ae', 'Submitted?'), submission=True)
    with pytest.raises(ValidationError):
        store.accept(selector)
    assert len(store.review()) == 1


def test_delete_and_move(store):
    removed = store.delete('what is h2o')
    assert removed.question == 'What is H2O?'
    with pytest.raises(NotFoundError):
        store.delete('What is H2O?')

    moved = store.move('What planet is red?', 'misc')
    assert moved.category == 'misc'
    assert store.slice_category('sg') == []
    with pytest.raises(ValidationError):
        store.move('What planet is red?', 'misc')


def test_clear_only_special_categories(store):
    store.add(_q('misc', 'Misc one?'))
    store.add(_q('misc', 'Misc two?'))
    with pytest.raises(ValidationError):
        store.clear_category('sg')
    assert store.clear_category('misc') == 2
    assert store.slice_category('misc') == []


def test_distribution(store):
    result = store.distribution()
    assert result['total'] == 4
    counts = {row['category']: row['count'] for row in result['categories']}
    assert counts == {'ae': 1, 'misc': 0, 'pokemon': 1, 'sg': 2, 'subcat': 0}


def test_search(store):
    assert [q.question for q in store.search('planet')] == ['What planet is red?']
    with pytest.raises(ValidationError):
        store.search('  ')


def test_build_queue_for_category(store):
    store.add(_q('sg', 'What is NaCl?', ['salt']))
    store.add(_q('sg', 'What is the largest ocean?', ['pacific']))
    questions, label = store.build_queue('sg', 'short', random.Random(1))
    assert label == 'Science and Geography'
    assert len(questions) == 4
    assert {q.category for q in questions} == {'sg'}
    # The queue is a copy; playing it leaves the bank untouched
    questions.pop()
    assert len(store.slice_category('sg')) == 4


def test_build_queue_needs_enough_questions(store):
    with pytest.raises(ValidationError):
        store.build_queue('ae', 'short')
    with pytest.raises(ValidationError):
        store.build_queue('sg', 'long')


def test_build_queue_all_skips_special_categories(store):
    store.add(_q('misc', 'Misc one?'))
    questions, label = store.build_queue('all', 'short')
    assert label == 'All'
    assert len(questions) == 4


def test_build_queue_rejects_unknown_arguments(store):
    with pytest.raises(ValidationError):
        store.build_queue('nope', 'short')
    with pytest.raises(ValidationError):
        store.build_queue('sg', 'forever')


def test_store_flushes_to_storage():
    saved = []

    class Storage:
        def save(self, **sections):
            saved.append(sections)

    store = QuestionStore(storage=Storage())
    store.add(_q('sg', 'Flushed?'))
    assert saved[-1]['questions'][0]['question'] == 'Flushed?'
    assert saved[-1]['submissions'] == []


def test_slices_return_inserted_subsets_in_insertion_order():
    store = QuestionStore()
    inserted = {'ae': [], 'pokemon': [], 'sg': []}
    rng = random.Random(7)
    for i in range(30):
        category = rng.choice(sorted(inserted))
        question = _q(category, f'{category} question {i}?')
        store.insert(question)
        inserted[category].append(question)
    for category, questions in inserted.items():
        assert store.slice_category(category) == questions
