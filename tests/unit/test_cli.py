"""
Unit tests for the command-line entry point.
"""

from contextlib import contextmanager

import pytest

from userapi import __main__ as cli
from userapi.errors import StoreConnectionError, StoreUnreachableError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("HTTP_PORT", "MONGO_URI", "MONGO_DATABASE", "MONGO_COLLECTION"):
        monkeypatch.delenv(name, raising=False)


class FakeApp:
    def __init__(self, config, store):
        self.config = config
        self.store = store
        self.ran = False

    def run(self):
        self.ran = True


def failing_store(error):
    def open_store(config):
        raise error
    return open_store


class TestMain:

    def test_runs_and_closes(self, monkeypatch):
        events = []
        apps = []

        @contextmanager
        def open_store(config):
            events.append("open")
            yield {config.database: {config.collection: "collection"}}
            events.append("close")

        def create_app(config, store):
            apps.append(FakeApp(config, store))
            return apps[0]

        monkeypatch.setattr(cli, "open_store", open_store)
        monkeypatch.setattr(cli, "create_app", create_app)

        assert cli.main(["--port", "9100", "--database", "db", "--collection", "people"]) == 0

        assert events == ["open", "close"]
        assert apps[0].ran
        assert apps[0].config.port == 9100
        assert apps[0].store.collection == "collection"
        assert apps[0].store.timeout == 5.0

    @pytest.mark.parametrize("error", [
        StoreConnectionError("Failed to create MongoDB client: bad uri"),
        StoreUnreachableError("Failed to ping MongoDB: connection refused"),
    ])
    def test_startup_error_exits_1(self, monkeypatch, error):
        monkeypatch.setattr(cli, "open_store", failing_store(error))
        monkeypatch.setattr(cli, "create_app", pytest.fail)

        assert cli.main([]) == 1

    def test_bind_failure_exits_1(self, monkeypatch):
        @contextmanager
        def open_store(config):
            yield {config.database: {config.collection: None}}

        class Unbindable(FakeApp):
            def run(self):
                raise OSError("Address already in use")

        monkeypatch.setattr(cli, "open_store", open_store)
        monkeypatch.setattr(cli, "create_app", Unbindable)

        assert cli.main([]) == 1

    def test_invalid_config_exits_1(self, monkeypatch):
        monkeypatch.setattr(cli, "open_store", pytest.fail)

        assert cli.main(["--port", "0"]) == 1
