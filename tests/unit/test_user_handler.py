"""
Unit tests for UserHandler, against an in-memory collection.
"""

import json
import logging
import time
from datetime import datetime

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect

from conftest import EncodingCollection, FakeCollection, SlowCollection
from userapi.handlers import UserHandler
from userapi.http.request import HTTPRequest
from userapi.http.router import Router
from userapi.http.status_codes import HTTPStatus
from userapi.store import UserStore


MISSING_ID = "000000000000000000000000"


def get(handler: UserHandler, user_id: str):
    return handler.get_user(HTTPRequest(method="GET", path=f"/user/{user_id}", path_params={"id": user_id}))


def post(handler: UserHandler, body: bytes):
    return handler.create_user(HTTPRequest(method="POST", path="/user", body=body))


def delete(handler: UserHandler, user_id: str):
    return handler.delete_user(HTTPRequest(method="DELETE", path=f"/user/{user_id}", path_params={"id": user_id}))


def assert_plain_error(response, status: HTTPStatus, message: str):
    assert response.status == status
    assert response.body == (message + "\n").encode()
    assert response.headers["Content-Type"].startswith("text/plain")
    assert response.headers["X-Content-Type-Options"] == "nosniff"


class BrokenCollection(FakeCollection):
    """Every call fails as if the replica set lost its primary."""

    def find_one(self, filter):
        self.calls["find_one"] += 1
        raise AutoReconnect("connection closed")

    def insert_one(self, document):
        self.calls["insert_one"] += 1
        raise AutoReconnect("connection closed")

    def delete_one(self, filter):
        self.calls["delete_one"] += 1
        raise AutoReconnect("connection closed")


class TestCreateUser:

    def test_create_returns_201_with_new_id(self, handler, collection):
        response = post(handler, b'{"name":"Ada"}')

        assert response.status == HTTPStatus.CREATED
        assert response.headers["Content-Type"] == "application/json"
        data = json.loads(response.body)
        assert data["name"] == "Ada"
        assert ObjectId.is_valid(data["id"])
        assert response.headers["Location"] == f"/user/{data['id']}"
        assert ObjectId(data["id"]) in collection.documents

    def test_create_ignores_client_id(self, handler, collection):
        supplied = "65a1f0c2e4b0a1b2c3d4e5f6"
        response = post(handler, json.dumps({"id": supplied, "_id": supplied, "name": "Ada"}).encode())

        data = json.loads(response.body)
        assert response.status == HTTPStatus.CREATED
        assert data["id"] != supplied
        assert ObjectId(supplied) not in collection.documents
        stored = collection.documents[ObjectId(data["id"])]
        assert stored == {"_id": ObjectId(data["id"]), "name": "Ada"}

    @pytest.mark.parametrize("body", [
        b"",
        b"{not json",
        b"[1, 2]",
        b'"Ada"',
        b"null",
        b"\xff\xfe",
        b'{"x": NaN}',
        b'{"x": Infinity}',
        b'{"a": ' + b"[" * 200000 + b"]" * 200000 + b"}",
    ], ids=["empty", "garbage", "array", "string", "null", "not-utf8", "nan", "infinity", "deep-nesting"])
    def test_invalid_body_is_400_without_db_call(self, handler, collection, body):
        response = post(handler, body)

        assert_plain_error(response, HTTPStatus.BAD_REQUEST, "Invalid request body")
        assert collection.total_calls == 0

    def test_unstorable_body_is_creation_500(self):
        collection = EncodingCollection()
        handler = UserHandler(UserStore(collection))

        response = post(handler, b'{"n": 18446744073709551616}')

        assert_plain_error(
            response,
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "Internal server error during user creation",
        )
        assert collection.documents == {}

    def test_store_failure_is_generic_500(self, caplog):
        collection = BrokenCollection()
        handler = UserHandler(UserStore(collection))

        with caplog.at_level(logging.ERROR, logger="userapi.handlers.users"):
            response = post(handler, b'{"name":"Ada"}')

        assert_plain_error(
            response,
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "Internal server error during user creation",
        )
        assert b"connection closed" not in response.body
        assert "connection closed" in caplog.text


class TestGetUser:

    def test_round_trip(self, handler):
        created = json.loads(post(handler, b'{"name":"Ada","email":"ada@example.com","age":36}').body)

        response = get(handler, created["id"])

        assert response.status == HTTPStatus.OK
        assert response.headers["Content-Type"] == "application/json"
        assert json.loads(response.body) == created

    def test_missing_is_404(self, handler, collection):
        response = get(handler, MISSING_ID)

        assert_plain_error(response, HTTPStatus.NOT_FOUND, "User not found")
        assert collection.calls["find_one"] == 1

    def test_invalid_id_is_400_without_db_call(self, handler, collection):
        response = get(handler, "not-an-id")

        assert_plain_error(response, HTTPStatus.BAD_REQUEST, "Invalid user ID format")
        assert collection.total_calls == 0

    def test_store_failure_is_generic_500(self):
        handler = UserHandler(UserStore(BrokenCollection()))

        response = get(handler, MISSING_ID)

        assert_plain_error(response, HTTPStatus.INTERNAL_SERVER_ERROR, "Internal server error")

    def test_unencodable_record_is_500(self, handler, collection):
        oid = ObjectId()
        collection.documents[oid] = {"_id": oid, "born": datetime(1815, 12, 10)}

        response = get(handler, str(oid))

        assert_plain_error(response, HTTPStatus.INTERNAL_SERVER_ERROR, "Internal server error")

    def test_stored_nan_is_500(self, handler, collection):
        oid = ObjectId()
        collection.documents[oid] = {"_id": oid, "score": float("nan")}

        response = get(handler, str(oid))

        assert_plain_error(response, HTTPStatus.INTERNAL_SERVER_ERROR, "Internal server error")


class TestDeleteUser:

    def test_delete_then_delete_again(self, handler, collection):
        user_id = json.loads(post(handler, b'{"name":"Ada"}').body)["id"]

        first = delete(handler, user_id)
        assert first.status == HTTPStatus.OK
        assert first.headers["Content-Type"] == "text/plain"
        assert first.body == f"Deleted User {user_id}\n".encode()
        assert collection.documents == {}

        second = delete(handler, user_id)
        assert_plain_error(second, HTTPStatus.NOT_FOUND, "User not found")

    def test_get_after_delete_is_404(self, handler):
        user_id = json.loads(post(handler, b'{"name":"Ada"}').body)["id"]
        delete(handler, user_id)

        assert get(handler, user_id).status == HTTPStatus.NOT_FOUND

    def test_invalid_id_is_400_without_db_call(self, handler, collection):
        response = delete(handler, "xyz")

        assert_plain_error(response, HTTPStatus.BAD_REQUEST, "Invalid user ID format")
        assert collection.total_calls == 0

    def test_store_failure_is_generic_500(self):
        handler = UserHandler(UserStore(BrokenCollection()))

        response = delete(handler, MISSING_ID)

        assert_plain_error(
            response,
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "Internal server error during user deletion",
        )


class TestTimeouts:
    """A database call that runs out of time is a plain 500, never retried."""

    @pytest.mark.parametrize("call,expected", [
        (lambda h: get(h, MISSING_ID), "Internal server error"),
        (lambda h: post(h, b'{"name":"Ada"}'), "Internal server error during user creation"),
        (lambda h: delete(h, MISSING_ID), "Internal server error during user deletion"),
    ])
    def test_slow_store(self, call, expected):
        collection = SlowCollection(delay=0.2)
        handler = UserHandler(UserStore(collection, timeout=0.1))

        start = time.monotonic()
        response = call(handler)
        elapsed = time.monotonic() - start

        assert_plain_error(response, HTTPStatus.INTERNAL_SERVER_ERROR, expected)
        assert elapsed < 2.0
        assert collection.total_calls == 1


class TestRegister:

    def test_routes(self, handler):
        router = Router()
        handler.register(router)

        routes = {(r.method, r.path) for r in router.routes()}
        assert routes == {
            ("GET", "/user/:id"),
            ("POST", "/user"),
            ("DELETE", "/user/:id"),
        }

    def test_dispatch_through_router(self, handler):
        router = Router()
        handler.register(router)

        response = router.handle(HTTPRequest(method="POST", path="/user", body=b'{"name":"Ada"}'))
        user_id = json.loads(response.body)["id"]

        response = router.handle(HTTPRequest(method="GET", path=f"/user/{user_id}"))
        assert json.loads(response.body) == {"id": user_id, "name": "Ada"}

        response = router.handle(HTTPRequest(method="PUT", path=f"/user/{user_id}"))
        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
        assert response.headers["Allow"] == "DELETE, GET"
