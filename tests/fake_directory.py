"""
In-memory SCIM directory used by the tests through httpx.MockTransport.
"""

import json
import itertools

import httpx

ENDPOINT = 'https://scim.example.com/scim/v2'
TOKEN = 'test-token-123'


class FakeDirectory:
    """Minimal SCIM /Users implementation with injectable failures."""

    def __init__(self, users=None):
        self.users = {}
        self.requests = []
        self.create_status = {}
        self.delete_status = {}
        self.list_status = None
        self._ids = itertools.count(100)
        for user in users or []:
            self.users[user['id']] = dict(user)

    def add_user(self, user_name, user_id=None):
        user_id = user_id or str(next(self._ids))
        self.users[user_id] = {'id': user_id, 'userName': user_name}
        return user_id

    def user_names(self):
        return sorted(user['userName'] for user in self.users.values())

    def transport(self):
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.headers.get('Authorization') != f"Bearer {TOKEN}":
            return httpx.Response(401, json={'detail': 'unauthorized'})

        path = request.url.path
        base = httpx.URL(ENDPOINT).path + '/Users'

        if request.method == 'GET' and path == base:
            if self.list_status:
                return httpx.Response(self.list_status, json={'detail': 'failure'})
            resources = list(self.users.values())
            return httpx.Response(200, json={'totalResults': len(resources), 'Resources': resources})

        if request.method == 'POST' and path == base:
            body = json.loads(request.content)
            forced = self.create_status.get(body['userName'])
            if forced:
                return httpx.Response(forced, json={'detail': 'forced failure'})
            taken = {user['userName'].lower() for user in self.users.values()}
            if body['userName'].lower() in taken:
                return httpx.Response(409, json={'detail': 'Duplicate userName'})
            user_id = str(next(self._ids))
            self.users[user_id] = {'id': user_id, **body}
            return httpx.Response(201, json=self.users[user_id])

        if request.method == 'DELETE' and path.startswith(base + '/'):
            user_id = path[len(base) + 1:]
            forced = self.delete_status.get(user_id)
            if forced:
                return httpx.Response(forced, json={'detail': 'forced failure'})
            if user_id not in self.users:
                return httpx.Response(404, json={'detail': 'Not found'})
            del self.users[user_id]
            return httpx.Response(204)

        return httpx.Response(400, json={'detail': 'unsupported request'})
