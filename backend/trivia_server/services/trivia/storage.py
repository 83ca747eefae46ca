"""Persistence of the trivia data document.

The document is a flat mapping with the sections ``questions``,
``submissions``, ``leaderboard`` and ``altLeaderboard``; each section is one
``TriviaDocument`` row holding JSON.
"""

import json
import logging

from trivia_server import db
from trivia_server.models import TriviaDocument

logger = logging.getLogger(__name__)

SECTIONS = ('questions', 'submissions', 'leaderboard', 'altLeaderboard')


def normalize_document(data):
    """Fill in missing or malformed sections of a loaded document."""
    if not isinstance(data, dict):
        data = {}
    document = {}
    for key in SECTIONS:
        value = data.get(key)
        if key in ('questions', 'submissions'):
            document[key] = value if isinstance(value, list) else []
        else:
            document[key] = value if isinstance(value, dict) else {}
    return document


class TriviaStorage:
    def __init__(self, app):
        self.app = app

    def load(self):
        with self.app.app_context():
            if not db.inspect(db.engine).has_table(TriviaDocument.__tablename__):
                logger.warning('[trivia-load] trivia_document table missing; starting with an empty bank')
                return normalize_document({})
            rows = TriviaDocument.query.all()
            document = normalize_document({row.key: row.value for row in rows})
        logger.info(
            f"[trivia-load] questions={len(document['questions'])} submissions={len(document['submissions'])} "
            f"players={len(document['leaderboard'])}"
        )
        return document

    def save(self, **sections):
        unknown = set(sections) - set(SECTIONS)
        if unknown:
            raise KeyError(f"Unknown trivia document sections: {sorted(unknown)}")
        with self.app.app_context():
            try:
                for key, value in sections.items():
                    row = db.session.get(TriviaDocument, key)
                    if row is None:
                        row = TriviaDocument(key=key)
                    row.value = value
                    db.session.add(row)
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise
        logger.info(f"[trivia-save] sections={sorted(sections)}")

    def import_file(self, path):
        with open(path, encoding='utf-8') as handle:
            document = normalize_document(json.load(handle))
        # Questions saved before the type field existed are plain trivia.
        for question in document['questions']:
            question.setdefault('type', 'trivia')
        self.save(**document)
        return document

    def export_file(self, path):
        document = self.load()
        with open(path, 'w', encoding='utf-8') as handle:
            json.dump(document, handle, indent=2)
        return document
