import asyncio
import httpx
import pytest
from project_controls.services.store_client import (
    RequestSequencer, StaleResponseError, StoreAuthenticationError, StoreClient, StoreError,
    StoreUnavailableError, AUTH_MESSAGE
)
from project_controls.utils.cache import craft_type_cache

BASE_URL = "http://store.test/rest/v1"


@pytest.fixture(autouse=True)
def clear_craft_cache():
    craft_type_cache.clear()
    yield
    craft_type_cache.clear()


def _client(handler, api_key, sequencer=None):
    return StoreClient(
        BASE_URL,
        api_key,
        transport=httpx.MockTransport(handler),
        sequencer=sequencer,
        backoff_seconds=0
    )


def test_fetch_sends_key_and_unwraps_data(api_key):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"data": [{"id": "a1"}]})

    rows = asyncio.run(_client(handler, api_key).fetch_labor_actuals("p1"))

    assert rows == [{"id": "a1"}]
    assert seen[0].url.path == "/rest/v1/projects/p1/labor-actuals"
    assert seen[0].headers["key-authorization"] == api_key


def test_plain_list_and_null_payloads(api_key):
    def handler(request):
        if request.url.path.endswith("purchase-orders"):
            return httpx.Response(200, json=[{"po_number": "PO-1"}])
        return httpx.Response(200, json={"data": None})

    client = _client(handler, api_key)
    assert asyncio.run(client.fetch_purchase_orders("p1")) == [{"po_number": "PO-1"}]
    assert asyncio.run(client.fetch_headcount_forecasts("p1")) == []


def test_authentication_failure_is_not_retried(api_key):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401, json={"message": "expired"})

    with pytest.raises(StoreAuthenticationError) as excinfo:
        asyncio.run(_client(handler, api_key).fetch_labor_actuals("p1"))

    assert str(excinfo.value) == AUTH_MESSAGE
    assert len(calls) == 1


def test_transient_errors_are_retried(api_key):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json=[{"id": "a1"}])

    rows = asyncio.run(_client(handler, api_key).fetch_labor_actuals("p1"))

    assert rows == [{"id": "a1"}]
    assert len(calls) == 3


def test_exhausted_retries_surface_unavailable(api_key):
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(StoreUnavailableError):
        asyncio.run(_client(handler, api_key).fetch_labor_actuals("p1"))
    assert len(calls) == 3


def test_client_errors_fail_fast(api_key):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404, text="missing")

    with pytest.raises(StoreError):
        asyncio.run(_client(handler, api_key).fetch_labor_actuals("p1"))
    assert len(calls) == 1


def test_error_payload_raises(api_key):
    def handler(request):
        return httpx.Response(200, json={"errors": [{"message": "bad filter"}]})

    with pytest.raises(StoreError, match="bad filter"):
        asyncio.run(_client(handler, api_key).fetch_labor_actuals("p1"))


def test_craft_types_are_cached(api_key):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=[{"id": "pf", "category": "direct"}])

    async def fetch_twice():
        first = await _client(handler, api_key).fetch_craft_types()
        second = await _client(handler, api_key).fetch_craft_types()
        return first, second

    first, second = asyncio.run(fetch_twice())

    assert first == second == [{"id": "pf", "category": "direct"}]
    assert len(calls) == 1


def test_project_inputs_fetched_together(api_key):
    def handler(request):
        path = request.url.path
        if path.endswith("labor-actuals"):
            return httpx.Response(200, json=[{"actual_hours": 8}])
        if path.endswith("headcount-forecasts"):
            return httpx.Response(200, json=[{"headcount": 2}])
        return httpx.Response(200, json=[{"id": "pf"}])

    inputs = asyncio.run(_client(handler, api_key).fetch_project_inputs("p1"))

    assert inputs == {
        'actuals': [{"actual_hours": 8}],
        'forecasts': [{"headcount": 2}],
        'craft_types': [{"id": "pf"}],
    }


def test_superseded_fetch_is_discarded(api_key):
    sequencer = RequestSequencer()
    client = None

    def handler(request):
        if request.url.path.endswith("labor-actuals"):
            # The same caller starts a newer fetch while this one is in flight
            sequencer.issue(client.sequence_key("p1"))
        return httpx.Response(200, json=[])

    client = _client(handler, api_key, sequencer)
    with pytest.raises(StaleResponseError):
        asyncio.run(client.fetch_project_inputs("p1"))


def test_different_callers_do_not_supersede_each_other(api_key):
    sequencer = RequestSequencer()

    def handler(request):
        return httpx.Response(200, json=[])

    async def fetch_both():
        return await asyncio.gather(
            _client(handler, api_key, sequencer).fetch_project_inputs("p1"),
            _client(handler, "other-key-0123456789abcdef", sequencer).fetch_project_inputs("p1"),
        )

    results = asyncio.run(fetch_both())

    assert [sorted(result) for result in results] == [['actuals', 'craft_types', 'forecasts']] * 2
    assert len(sequencer) == 0


def test_failed_fetch_releases_its_token(api_key):
    sequencer = RequestSequencer()

    def handler(request):
        return httpx.Response(401)

    with pytest.raises(StoreAuthenticationError):
        asyncio.run(_client(handler, api_key, sequencer).fetch_project_inputs("p1"))
    assert len(sequencer) == 0


def test_request_sequencer():
    sequencer = RequestSequencer()
    first = sequencer.issue("p1")
    other = sequencer.issue("p2")
    second = sequencer.issue("p1")

    assert second > first
    assert not sequencer.accept("p1", first)
    assert sequencer.accept("p1", second)
    assert sequencer.accept("p2", other)
    with pytest.raises(StaleResponseError):
        sequencer.ensure_current("p1", first)


def test_release_keeps_newer_requests():
    sequencer = RequestSequencer()
    first = sequencer.issue("p1")
    second = sequencer.issue("p1")

    sequencer.release("p1", first)
    assert sequencer.accept("p1", second)

    sequencer.release("p1", second)
    assert len(sequencer) == 0
