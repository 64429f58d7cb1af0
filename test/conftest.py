from __future__ import annotations

import typing

import pytest

from curlmux.client import Client

from . import FakeEngine


@pytest.fixture()
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture()
def client(engine: FakeEngine) -> typing.Generator[Client, None, None]:
    with Client(engine=engine) as client:
        yield client
