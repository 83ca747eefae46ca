from trivia_server.models import User, UserName


class UserDirectory:
    """Identity resolution backed by the user tables.

    Two identities overlap when they are the same account, when one is a
    previous name of the other, when they share a previous name, or when
    they share an IP address.
    """

    def __init__(self, app):
        self.app = app

    def _lookup(self, identity):
        user = User.query.filter_by(userid=identity).first()
        if user is None:
            alias = UserName.query.filter_by(userid=identity).first()
            user = alias.user if alias else None
        return user

    @staticmethod
    def _names(user, identity):
        if user is None:
            return {identity}
        return {user.userid, identity} | {n.userid for n in user.previous_names}

    def identities_overlap(self, first, second):
        if first == second:
            return True
        with self.app.app_context():
            first_user = self._lookup(first)
            second_user = self._lookup(second)
            if first_user is not None and first_user is second_user:
                return True
            if self._names(first_user, first) & self._names(second_user, second):
                return True
            if first_user is None or second_user is None:
                return False
            first_ips = {a.address for a in first_user.addresses}
            return any(a.address in first_ips for a in second_user.addresses)

    def aliases(self, identity):
        with self.app.app_context():
            return self._names(self._lookup(identity), identity) - {identity}

    def display_name(self, identity):
        with self.app.app_context():
            user = self._lookup(identity)
            return user.username if user else identity
