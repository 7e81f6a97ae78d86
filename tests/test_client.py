"""Tests for build_api and the generated API."""

import asyncio
import json

import httpx
import pytest
import respx

from routefetch import (
    ApiConfig,
    ConfigurationError,
    GeneratedApi,
    HttpxTransport,
    MethodSpec,
    MissingParameterError,
    build_api,
)


class RecordingTransport:
    """Transport that records requests and echoes them back."""

    def __init__(self):
        self.requests = []
        self.closed = False

    async def send(self, request):
        self.requests.append(request)
        return {"method": request.method, "url": request.url}

    async def aclose(self):
        self.closed = True


class TestBuildApiShape:
    """Tests for the structure build_api produces."""

    def test_exact_keys_and_methods(self):
        """Should generate exactly the declared paths and methods."""
        api = build_api({"/": ["GET"], "/x/:id": ["GET", "POST"]})

        assert isinstance(api, GeneratedApi)
        assert set(api) == {"/", "/x/:id"}
        assert set(api["/"]) == {"GET"}
        assert set(api["/x/:id"]) == {"GET", "POST"}
        assert len(api) == 2

    def test_attribute_access(self):
        """Should expose fetchers as attributes of the method table."""
        api = build_api({"/x/:id": ["GET", "POST"]})

        assert api["/x/:id"].POST is api["/x/:id"]["POST"]
        with pytest.raises(AttributeError):
            api["/x/:id"].DELETE

    def test_unknown_path_raises_key_error(self):
        """Should not invent entries for undeclared paths."""
        api = build_api({"/": ["GET"]})
        with pytest.raises(KeyError):
            api["/missing"]

    def test_unrecognized_method_fails(self):
        """Should raise ConfigurationError and generate nothing."""
        effect_calls = []

        def effect(fetcher):
            effect_calls.append(fetcher)
            return fetcher

        with pytest.raises(ConfigurationError):
            build_api({"/": ["GET"], "/x": ["GTE"]}, ApiConfig(effect=effect))
        assert effect_calls == []

    def test_empty_method_list_generates_nothing(self):
        """Should leave out a path with no methods."""
        api = build_api({"/x": [], "/y": ["GET"]})
        assert list(api) == ["/y"]

    def test_config_from_mapping(self):
        """Should accept the configuration as a mapping."""
        transport = RecordingTransport()
        api = build_api({"/": ["GET"]}, {"base_url": "http://test", "transport": transport})
        assert api.transport is transport

    def test_invalid_config_mapping_raises(self):
        """Should report invalid configuration values as ConfigurationError."""
        with pytest.raises(ConfigurationError):
            build_api({"/": ["GET"]}, {"effect": 42})

    def test_invalid_transport_raises(self):
        """Should reject a transport without send()."""
        with pytest.raises(ConfigurationError):
            build_api({"/": ["GET"]}, ApiConfig(transport=object()))

    def test_default_transport(self):
        """Should create an HttpxTransport when none is configured."""
        api = build_api({"/": ["GET"]})
        assert isinstance(api.transport, HttpxTransport)

    def test_method_specs(self):
        """Should attach method descriptors to their fetchers."""
        spec = MethodSpec(description="List users")
        api = build_api({"/users": {"GET": spec}})
        assert api["/users"].GET.spec is spec


class TestEffect:
    """Tests for the effect hook."""

    @pytest.mark.asyncio
    async def test_effect_called_once_per_pair(self):
        """Should call the effect at build time only, once per pair."""
        seen = []

        def effect(fetcher):
            seen.append((fetcher.path, fetcher.method))
            return fetcher

        transport = RecordingTransport()
        api = build_api(
            {"/": ["GET"], "/x/:id": ["GET", "POST"]},
            ApiConfig(effect=effect, transport=transport),
        )
        assert sorted(seen) == [("/", "GET"), ("/x/:id", "GET"), ("/x/:id", "POST")]

        for _ in range(3):
            await api["/x/:id"].GET(params={"id": 1})
        await api["/"].GET()

        assert len(seen) == 3
        assert len(transport.requests) == 4

    @pytest.mark.asyncio
    async def test_effect_result_exposed(self):
        """Should expose what the effect returns instead of the raw fetcher."""
        calls = []

        def effect(fetcher):
            async def wrapped(*args, **kwargs):
                calls.append(fetcher.method)
                return {"wrapped": await fetcher(*args, **kwargs)}

            return wrapped

        api = build_api(
            {"/x/:id": ["DELETE"]}, ApiConfig(effect=effect, transport=RecordingTransport())
        )

        reply = await api["/x/:id"].DELETE(params={"id": "a"})

        assert reply == {"wrapped": {"method": "DELETE", "url": "/x/a"}}
        assert calls == ["DELETE"]


class TestGeneratedFetchers:
    """End-to-end tests through HttpxTransport."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_post_with_params_and_body(self):
        """Should send POST /x/abc with the JSON payload."""
        route = respx.post("http://test/api/x/abc").mock(
            return_value=httpx.Response(200, json={"id": "abc", "v": 1})
        )

        async with build_api({"/x/:id": ["GET", "POST"]}, ApiConfig(base_url="http://test/api")) as api:
            reply = await api["/x/:id"].POST({"Params": {"id": "abc"}, "Body": {"v": 1}})

        assert reply == {"id": "abc", "v": 1}
        request = route.calls.last.request
        assert request.method == "POST"
        assert request.url.path.endswith("/x/abc")
        assert json.loads(request.content) == {"v": 1}

    @pytest.mark.asyncio
    @respx.mock
    async def test_encoded_path_segment(self):
        """Should send the percent-encoded parameter value."""
        route = respx.get(url__regex=r"http://test/files/.*").mock(
            return_value=httpx.Response(200, json={})
        )

        async with build_api({"/files/:name": ["GET"]}, ApiConfig(base_url="http://test")) as api:
            await api["/files/:name"].GET(params={"name": "a b/c"})

        assert route.calls.last.request.url.raw_path == b"/files/a%20b%2Fc"

    @pytest.mark.asyncio
    @respx.mock
    async def test_default_and_call_headers(self):
        """Should send default headers with per-call overrides applied."""
        route = respx.get("http://test/me").mock(return_value=httpx.Response(200, json={}))
        config = ApiConfig(
            base_url="http://test",
            headers={"Authorization": "Bearer base", "X-Client": "tests"},
        )

        async with build_api({"/me": ["GET"]}, config) as api:
            await api["/me"].GET(headers={"Authorization": "Bearer call"})

        headers = route.calls.last.request.headers
        assert headers["Authorization"] == "Bearer call"
        assert headers["X-Client"] == "tests"

    @pytest.mark.asyncio
    @respx.mock
    async def test_header_removal_and_numeric_values(self):
        """Should omit a header cleared per call and send numbers as text."""
        route = respx.get("http://test/me").mock(return_value=httpx.Response(200, json={}))
        config = ApiConfig(base_url="http://test", headers={"Authorization": "Bearer base"})

        async with build_api({"/me": ["GET"]}, config) as api:
            await api["/me"].GET(headers={"Authorization": None, "X-Count": 3})

        headers = route.calls.last.request.headers
        assert "Authorization" not in headers
        assert headers["X-Count"] == "3"

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_parameter_no_network(self):
        """Should raise MissingParameterError without issuing a request."""
        route = respx.get(url__regex=r".*").mock(return_value=httpx.Response(200))

        async with build_api({"/x/:id": ["GET"]}, ApiConfig(base_url="http://test")) as api:
            with pytest.raises(MissingParameterError):
                await api["/x/:id"].GET()

        assert not route.called

    @pytest.mark.asyncio
    @respx.mock
    async def test_status_error_propagates(self):
        """Should surface the transport's HTTPStatusError unchanged."""
        respx.get("http://test/x/1").mock(return_value=httpx.Response(500))

        async with build_api({"/x/:id": ["GET"]}, ApiConfig(base_url="http://test")) as api:
            with pytest.raises(httpx.HTTPStatusError):
                await api["/x/:id"].GET(params={"id": 1})

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_shaped_reply_is_returned(self):
        """Should return an error-shaped payload sent with a success status."""
        respx.post("http://test/login").mock(
            return_value=httpx.Response(200, json={"code": 401, "error": "bad credentials"})
        )

        async with build_api({"/login": ["POST"]}, ApiConfig(base_url="http://test")) as api:
            reply = await api["/login"].POST(body={"user": "a", "password": "b"})

        assert reply == {"code": 401, "error": "bad credentials"}

    @pytest.mark.asyncio
    @respx.mock
    async def test_concurrent_calls_independent(self):
        """Should give each overlapping call its own reply."""

        async def user_reply(request, id):
            await asyncio.sleep(0.02 if id == "1" else 0)
            return httpx.Response(200, json={"user": id})

        async def post_reply(request, id):
            await asyncio.sleep(0.01)
            return httpx.Response(200, json={"post": id})

        respx.get(path__regex=r"^/users/(?P<id>\w+)$").mock(side_effect=user_reply)
        respx.get(path__regex=r"^/posts/(?P<id>\w+)$").mock(side_effect=post_reply)

        routes = {"/users/:id": ["GET"], "/posts/:id": ["GET"]}
        async with build_api(routes, ApiConfig(base_url="http://test")) as api:
            results = await asyncio.gather(
                api["/users/:id"].GET(params={"id": "1"}),
                api["/posts/:id"].GET(params={"id": "9"}),
                api["/users/:id"].GET(params={"id": "2"}),
            )

        assert results == [{"user": "1"}, {"post": "9"}, {"user": "2"}]

    @pytest.mark.asyncio
    async def test_aclose_closes_transport(self):
        """Should close the transport on exit."""
        transport = RecordingTransport()
        async with build_api({"/": ["GET"]}, ApiConfig(transport=transport)):
            pass
        assert transport.closed is True
