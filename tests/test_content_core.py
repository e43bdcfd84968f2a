"""Tests for the HTTP content source against ``httpx.MockTransport``."""

from __future__ import annotations

import httpx
import pytest

from quiz_session.content import ContentIndex, HttpContentSource
from quiz_session.errors import ContentUnavailable, InvalidIndexBounds
from quiz_session.session_core import Phase, SessionController


class FixedDraw:
    def __init__(self, value: float) -> None:
        self._value = value

    def random(self) -> float:
        return self._value


def _source(routes: dict[str, httpx.Response], seen: list[httpx.Request]) -> HttpContentSource:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        response = routes.get(request.url.path)
        if response is None:
            return httpx.Response(404, json={"detail": "not found"})
        return response

    return HttpContentSource(base_url="http://content.test/", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_index_request_path_and_headers() -> None:
    seen: list[httpx.Request] = []
    source = _source({"/dict/en/index.json": httpx.Response(200, json={"instances": 3})}, seen)
    async with source:
        index = await source.fetch_index("en")

    assert index == ContentIndex(instance_count=3)
    assert len(seen) == 1
    assert seen[0].method == "GET"
    assert seen[0].headers["accept"] == "application/json"
    assert seen[0].headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_instance_payload_is_kept_opaque() -> None:
    seen: list[httpx.Request] = []
    body = {"letters": "tsae", "words": ["east", "eats", "seat", "teas"]}
    source = _source({"/dict/en/2.json": httpx.Response(200, json=body)}, seen)
    async with source:
        instance = await source.fetch_instance("en", 2)

    assert instance.key == ("en", 2)
    assert instance.payload == body


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, content=b"<html>not json</html>"),
        httpx.Response(200, json=["instances", 3]),
    ],
)
async def test_bad_index_responses_are_content_unavailable(response: httpx.Response) -> None:
    source = _source({"/dict/en/index.json": response}, [])
    async with source:
        with pytest.raises(ContentUnavailable) as info:
            await source.fetch_index("en")
    assert info.value.language == "en"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"instances": 0}, {"instances": -2}, {"instances": True}, {"instances": "3"}, {}])
async def test_index_without_selectable_instances_is_invalid_bounds(body: dict[str, object]) -> None:
    source = _source({"/dict/en/index.json": httpx.Response(200, json=body)}, [])
    async with source:
        with pytest.raises(InvalidIndexBounds):
            await source.fetch_index("en")


@pytest.mark.asyncio
async def test_missing_instance_is_content_unavailable() -> None:
    source = _source({}, [])
    async with source:
        with pytest.raises(ContentUnavailable) as info:
            await source.fetch_instance("da", 7)
    assert info.value.index == 7


@pytest.mark.asyncio
async def test_transport_error_is_content_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    source = HttpContentSource(base_url="http://content.test/", transport=httpx.MockTransport(handler))
    async with source:
        with pytest.raises(ContentUnavailable):
            await source.fetch_index("en")


@pytest.mark.asyncio
async def test_session_requests_drawn_instance_exactly_once() -> None:
    seen: list[httpx.Request] = []
    source = _source(
        {
            "/dict/en/index.json": httpx.Response(200, json={"instances": 3}),
            "/dict/en/1.json": httpx.Response(200, json={"letters": "odg"}),
        },
        seen,
    )
    async with source:
        controller = SessionController(source, language="en", rng=FixedDraw(0.5))
        await controller.begin()

    assert [r.url.path for r in seen] == ["/dict/en/index.json", "/dict/en/1.json"]
    assert controller.phase is Phase.READY
    instance = controller.state.active_instance
    assert instance is not None and instance.payload == {"letters": "odg"}


@pytest.mark.asyncio
async def test_session_with_empty_index_never_requests_instance() -> None:
    seen: list[httpx.Request] = []
    source = _source({"/dict/en/index.json": httpx.Response(200, json={"instances": 0})}, seen)
    async with source:
        controller = SessionController(source, language="en", rng=FixedDraw(0.5))
        await controller.begin()

    assert [r.url.path for r in seen] == ["/dict/en/index.json"]
    assert controller.phase is Phase.FAILED


def test_non_positive_timeout_rejected() -> None:
    with pytest.raises(ValueError):
        HttpContentSource(base_url="http://content.test/", timeout_s=0)
