import asyncio
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import START_MILLIS
from flexid.core.config import settings
from flexid.core.layout import BitLayout
from flexid.main import app, get_generator
from flexid.utils.checksum import verify_checksum
from flexid.utils.snowflake import FlexIdGenerator


@pytest.fixture
def generator(clock):
    return FlexIdGenerator(BitLayout(), clock=clock)


@pytest.fixture
def client(generator):
    app.dependency_overrides[get_generator] = lambda: generator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_create_id_from_key(client):
    response = client.post("/ids", json={"key": "test"})

    assert response.status_code == 201
    body = response.json()
    assert body["partition"] == 0x13
    assert body["hex"] == f"{body['id']:016x}"
    assert verify_checksum(body["id"])


def test_create_id_from_partition(client, generator):
    response = client.post("/ids", json={"partition": 0x41})

    assert response.status_code == 201
    assert response.json()["partition"] == 0x01
    assert generator.extract_millis(response.json()["id"]) == START_MILLIS


def test_create_id_uses_default_partition(client):
    response = client.post("/ids", json={})

    assert response.status_code == 201
    assert response.json()["partition"] == 0


@pytest.mark.parametrize(
    "body",
    [
        {"partition": 1, "key": "test"},
        {"partition": -1},
        {"key": ""},
    ],
)
def test_create_id_rejects_invalid_body(client, body):
    assert client.post("/ids", json=body).status_code == 422


def test_create_id_overflow_returns_503(client, clock):
    exhausted = FlexIdGenerator(BitLayout(sequence_bits=0), clock=clock)
    exhausted.generate(0)
    app.dependency_overrides[get_generator] = lambda: exhausted

    response = client.post("/ids", json={"partition": 0})

    assert response.status_code == 503
    assert response.json()["detail"] == "Sequence exhausted, retry shortly"


def test_waiting_for_sequence_does_not_block_event_loop(client, clock, monkeypatch):
    exhausted = FlexIdGenerator(BitLayout(sequence_bits=0), clock=clock)
    exhausted.generate(0)
    app.dependency_overrides[get_generator] = lambda: exhausted
    monkeypatch.setattr(settings, "MAX_WAIT_MS", 300)

    async def request_while_ticking():
        started = time.monotonic()
        ticks = []

        async def ticker():
            while True:
                await asyncio.sleep(0.01)
                ticks.append(time.monotonic() - started)

        task = asyncio.create_task(ticker())
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            response = await http.post("/ids", json={"partition": 0})
        task.cancel()
        return response, ticks

    response, ticks = asyncio.run(request_while_ticking())

    assert response.status_code == 503
    assert ticks
    assert ticks[0] < 0.2


def test_create_batch(client, generator):
    response = client.post("/ids/batch", json={"count": 3, "partition": 5})

    assert response.status_code == 201
    body = response.json()
    assert body["partition"] == 5
    assert len(body["ids"]) == 3
    assert [generator.extract_sequence(value) for value in body["ids"]] == [0, 1, 2]


@pytest.mark.parametrize("count", [0, 100000])
def test_create_batch_rejects_bad_count(client, count):
    assert client.post("/ids/batch", json={"count": count}).status_code == 422


def test_create_batch_cap_follows_settings(client, monkeypatch):
    monkeypatch.setattr(settings, "MAX_BATCH_SIZE", 2)

    response = client.post("/ids/batch", json={"count": 3})

    assert response.status_code == 422
    assert response.json()["detail"] == "At most 2 ids per batch"
    assert client.post("/ids/batch", json={"count": 2}).status_code == 201


def test_decode_id(client, generator):
    value = generator.generate(9)

    response = client.get(f"/ids/{value}")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == value
    assert body["millis"] == START_MILLIS
    assert body["partition"] == 9
    assert body["sequence"] == 0
    assert body["valid"] is True


@pytest.mark.parametrize("value", ["-1", "abc"])
def test_decode_rejects_invalid_value(client, value):
    assert client.get(f"/ids/{value}").status_code == 422


def test_verify_id(client):
    assert client.get(f"/ids/{0x7FFFFFF7}/verify").json() == {"id": 0x7FFFFFF7, "valid": True}
    assert client.get(f"/ids/{0x7FFFFFF3}/verify").json() == {"id": 0x7FFFFFF3, "valid": False}


def test_verify_without_checksum_field(client, clock):
    no_checksum = FlexIdGenerator(BitLayout(checksum_bits=0), clock=clock)
    app.dependency_overrides[get_generator] = lambda: no_checksum

    response = client.get(f"/ids/{0x7FFFFFF7}/verify")

    assert response.status_code == 400


def test_partition_for_key(client):
    response = client.get("/partitions/test")

    assert response.json() == {"key": "test", "partition": 0xBBD3}


def test_layout(client):
    body = client.get("/layout").json()

    assert body["time_bits"] == 47
    assert body["time_shift"] == 16
    assert body["sequence_shift"] == 10
    assert body["partition_shift"] == 4
    assert body["summary"].startswith("Ids have a time range of 4463 years")


def test_openapi_schema_carries_examples(client):
    schemas = client.get("/openapi.json").json()["components"]["schemas"]

    assert schemas["CreateId"]["properties"]["partition"]["examples"] == [42]
    assert schemas["CreateId"]["properties"]["key"]["examples"] == ["test"]
    assert schemas["CreateIdBatch"]["properties"]["count"]["examples"] == [10]
