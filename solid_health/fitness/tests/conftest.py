"""Shared fixtures: an in-memory Solid pod, a scripted provider, and config."""

from __future__ import annotations

from typing import Callable

import httpx
import pytest
from rdflib import Graph

from solid_health.fitness.base import Category, DataPoint, ProviderClient, parse_instant
from solid_health.fitness.config_loader import SyncConfig, load_sync_config
from solid_health.fitness.pod.client import PodClient
from solid_health.fitness.pod.triple_store import RdflibTripleStore, lexical_literals

POD = "https://pod.example"
TEST_WEB_ID = f"{POD}/profile/card#me"
TEST_PROFILE_DOC = f"{POD}/profile/card"
TEST_TYPE_INDEX = f"{POD}/settings/privateTypeIndex.ttl"
TEST_DOCUMENT = f"{POD}/private/health/fitness.ttl"

PROFILE_TURTLE = f"""
@prefix foaf: <http://xmlns.com/foaf/0.1/> .
@prefix solid: <http://www.w3.org/ns/solid/terms#> .

<#me> a foaf:Person ;
    foaf:name "Alice Example" ;
    foaf:img <{POD}/profile/alice.png> ;
    foaf:knows <https://bob.example/profile/card#me>, <https://carol.example/profile/card#me> ;
    solid:privateTypeIndex <{TEST_TYPE_INDEX}> .
"""

EMPTY_TYPE_INDEX = """
@prefix solid: <http://www.w3.org/ns/solid/terms#> .

<> a solid:TypeIndex, solid:UnlistedDocument .
"""

INSTANCE_TYPE_INDEX = f"""
@prefix solid: <http://www.w3.org/ns/solid/terms#> .
@prefix fhir: <http://hl7.org/fhir/> .

<> a solid:TypeIndex .
<#obs> a solid:TypeRegistration ;
    solid:forClass fhir:Observation ;
    solid:instance <{TEST_DOCUMENT}> .
"""


# ---------------------------------------------------------------------------
# In-memory pod
# ---------------------------------------------------------------------------


class FakePod:
    """Solid pod served through httpx.MockTransport.

    GET serialises the stored graph as Turtle (404 when absent), PATCH runs
    the SPARQL Update against the graph (creating it when absent), POST
    creates a container from the Slug header (409 when it exists).
    Literals are stored as written, like a server storing the Turtle text.

    ``rejector`` may return a response to short-circuit any request.
    """

    def __init__(self) -> None:
        self.documents: dict[str, Graph] = {}
        self.containers: set[str] = set()
        self.requests: list[httpx.Request] = []
        self.rejector: Callable[[httpx.Request], httpx.Response | None] | None = None

    def put_turtle(self, uri: str, data: str) -> None:
        graph = Graph()
        with lexical_literals():
            graph.parse(data=data, format="turtle", publicID=uri)
        self.documents[uri] = graph

    def writes(self, method: str | None = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if r.method in ("PATCH", "POST") and (method is None or r.method == method)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.rejector is not None:
            rejected = self.rejector(request)
            if rejected is not None:
                return rejected

        uri = str(request.url).split("#")[0]
        if request.method == "GET":
            graph = self.documents.get(uri)
            if graph is None:
                return httpx.Response(404, text="Not found")
            return httpx.Response(
                200,
                text=graph.serialize(format="turtle"),
                headers={"Content-Type": "text/turtle"},
            )
        if request.method == "PATCH":
            graph = self.documents.setdefault(uri, Graph())
            with lexical_literals():
                graph.update(request.content.decode("utf-8"))
            return httpx.Response(200)
        if request.method == "POST":
            container = uri.rstrip("/") + "/" + request.headers["Slug"] + "/"
            if container in self.containers:
                return httpx.Response(409, text="Conflict")
            self.containers.add(container)
            return httpx.Response(201, headers={"Location": container})
        return httpx.Response(405)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


# ---------------------------------------------------------------------------
# Scripted provider
# ---------------------------------------------------------------------------


class FakeProvider(ProviderClient):
    """Provider returning canned samples filtered to the requested window."""

    SOURCE_ID = "fake"
    DISPLAY_NAME = "Fake Provider"

    def __init__(
        self,
        steps: list[DataPoint] | None = None,
        distance: list[DataPoint] | None = None,
        heart_rate: list[DataPoint] | None = None,
    ) -> None:
        self.samples: dict[Category, list[DataPoint]] = {
            Category.STEPS: steps or [],
            Category.DISTANCE: distance or [],
            Category.HEART_RATE: heart_rate or [],
        }
        self.calls: list[tuple[Category, str, str]] = []
        self.on_fetch: Callable[[], None] | None = None

    async def daily_steps(self, start_iso: str, end_iso: str) -> list[DataPoint]:
        return self._window(Category.STEPS, start_iso, end_iso)

    async def daily_distance(self, start_iso: str, end_iso: str) -> list[DataPoint]:
        return self._window(Category.DISTANCE, start_iso, end_iso)

    async def heart_rate(self, start_iso: str, end_iso: str) -> list[DataPoint]:
        return self._window(Category.HEART_RATE, start_iso, end_iso)

    def _window(self, category: Category, start_iso: str, end_iso: str) -> list[DataPoint]:
        self.calls.append((category, start_iso, end_iso))
        if self.on_fetch is not None:
            self.on_fetch()
        start, end = parse_instant(start_iso), parse_instant(end_iso)
        return [
            DataPoint(p.date, p.value)
            for p in self.samples[category]
            if start <= parse_instant(p.date) <= end
        ]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sync_config() -> SyncConfig:
    """Load the bundled sync config for tests."""
    return load_sync_config()


@pytest.fixture
def pod() -> FakePod:
    return FakePod()


@pytest.fixture
def pod_client(pod: FakePod) -> PodClient:
    return PodClient(access_token="test-token", http_client=pod.client())


@pytest.fixture
def store(pod_client: PodClient) -> RdflibTripleStore:
    return RdflibTripleStore(pod_client)
