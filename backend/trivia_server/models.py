from trivia_server import db, bcrypt
from trivia_server.services.trivia.questions import to_id
from flask_login import UserMixin
import json


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    userid = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    previous_names = db.relationship('UserName', back_populates='user', cascade='all, delete-orphan')
    addresses = db.relationship('UserAddress', back_populates='user', cascade='all, delete-orphan')

    def __init__(self, **kwargs):
        super(User, self).__init__(**kwargs)
        if self.username and not self.userid:
            self.userid = to_id(self.username)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def rename(self, new_name):
        """Switch to a new display name, remembering the old id as an alias."""
        old_id = self.userid
        self.username = new_name
        self.userid = to_id(new_name)
        if old_id != self.userid and old_id not in {n.userid for n in self.previous_names}:
            self.previous_names.append(UserName(userid=old_id))

    def remember_address(self, address):
        if address and address not in {a.address for a in self.addresses}:
            self.addresses.append(UserAddress(address=address))

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'userid': self.userid,
            'previous_names': sorted(n.userid for n in self.previous_names),
        }


class UserName(db.Model):
    __tablename__ = 'user_name'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    userid = db.Column(db.String(64), nullable=False, index=True)
    user = db.relationship('User', back_populates='previous_names')


class UserAddress(db.Model):
    __tablename__ = 'user_address'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    address = db.Column(db.String(64), nullable=False, index=True)
    user = db.relationship('User', back_populates='addresses')


class TriviaDocument(db.Model):
    """One section of the trivia data document, stored as JSON text."""
    __tablename__ = 'trivia_document'
    key = db.Column(db.String(32), primary_key=True)
    payload = db.Column(db.Text, nullable=False, default='null')

    @property
    def value(self):
        try:
            return json.loads(self.payload)
        except (TypeError, ValueError):
            return None

    @value.setter
    def value(self, data):
        self.payload = json.dumps(data)
