from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from trivia_server import get_rooms
from trivia_server.services.trivia.errors import TriviaError
from trivia_server.services.trivia.questions import to_id


questions = Blueprint('questions', __name__)


@questions.errorhandler(TriviaError)
def handle_trivia_error(exc):
    return jsonify({'error': str(exc)}), exc.status_code


def _store():
    return get_rooms().store


def _entries(data):
    # A single question object or a list of them
    return data if isinstance(data, list) else [data]


def _answers(raw):
    if isinstance(raw, str):
        return raw.split(',')
    return raw or []


def _add_entries(submission):
    store = _store()
    data = request.get_json(silent=True) or {}
    added, errors = [], []
    for entry in _entries(data):
        try:
            question = store.validate(
                entry.get('category') or '',
                entry.get('question') or '',
                _answers(entry.get('answers')),
                submitted_by=current_user.userid,
                submission=submission,
            )
        except TriviaError as exc:
            errors.append(str(exc))
            continue
        store.add(question, submission=submission)
        added.append(question.to_dict())
    status = 201 if added else 400
    return jsonify({'added': added, 'errors': errors}), status


@questions.route('/add', methods=['POST'])
@login_required
def add_questions():
    """
    Adds question(s) straight to the live question bank.
    """
    return _add_entries(submission=False)


@questions.route('/submit', methods=['POST'])
@login_required
def submit_questions():
    """
    Queues question(s) for review.
    """
    return _add_entries(submission=True)


@questions.route('/review', methods=['GET'])
@login_required
def review_submissions():
    submissions = _store().review()
    return jsonify([
        dict(question.to_dict(), index=i) for i, question in enumerate(submissions, start=1)
    ])


@questions.route('/accept', methods=['POST'])
@login_required
def accept_submissions():
    data = request.get_json(silent=True) or {}
    count = _store().accept(str(data.get('selector') or ''))
    current_app.logger.info(f"[review] {current_user.userid} accepted {count} submission(s)")
    return jsonify({'message': f'{count} submission(s) added to the question database.', 'count': count})


@questions.route('/reject', methods=['POST'])
@login_required
def reject_submissions():
    data = request.get_json(silent=True) or {}
    count = _store().reject(str(data.get('selector') or ''))
    current_app.logger.info(f"[review] {current_user.userid} rejected {count} submission(s)")
    return jsonify({'message': f'{count} submission(s) removed from the submission database.', 'count': count})


@questions.route('/delete', methods=['POST'])
@login_required
def delete_question():
    data = request.get_json(silent=True) or {}
    removed = _store().delete(data.get('question') or '')
    return jsonify({'message': f"Question '{removed.question}' was removed.", 'question': removed.to_dict()})


@questions.route('/move', methods=['POST'])
@login_required
def move_question():
    data = request.get_json(silent=True) or {}
    moved = _store().move(data.get('question') or '', data.get('category') or '')
    return jsonify({'message': f"Question moved to '{moved.category}'.", 'question': moved.to_dict()})


@questions.route('/clear', methods=['POST'])
@login_required
def clear_category():
    data = request.get_json(silent=True) or {}
    count = _store().clear_category(data.get('category') or '')
    return jsonify({'message': f'{count} question(s) removed.', 'count': count})


@questions.route('', methods=['GET'])
def question_distribution():
    return jsonify(_store().distribution())


@questions.route('/category/<string:category>', methods=['GET'])
@login_required
def list_category(category):
    category = to_id(category)
    listed = [q for q in _store().slice_category(category) if q.kind == 'trivia']
    return jsonify({'category': category, 'questions': [q.to_dict() for q in listed]})


@questions.route('/search', methods=['GET'])
@login_required
def search_questions():
    kind = to_id(request.args.get('type', 'questions'))
    if kind in ('questions', 'question', 'qs', 'q'):
        submission = False
    elif kind in ('submissions', 'submission', 'subs', 'sub'):
        submission = True
    else:
        return jsonify({'error': 'No valid search category was entered. Valid categories: submissions, subs, questions, qs'}), 400
    results = _store().search(request.args.get('q', ''), submission=submission)
    return jsonify([q.to_dict() for q in results])
