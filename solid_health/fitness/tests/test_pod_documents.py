"""Tests for the pod client, triple store, profile loader and type index."""

from __future__ import annotations

import httpx
import pytest
from rdflib import URIRef

from solid_health.fitness.config_loader import SyncConfig
from solid_health.fitness.errors import BootstrapFailure, NetworkError, StaleSessionError
from solid_health.fitness.pod.client import PodClient, raise_for_rejection
from solid_health.fitness.pod.namespaces import FHIR, FOAF, SOLID
from solid_health.fitness.pod.profile import ProfileLoader
from solid_health.fitness.pod.triple_store import RdflibTripleStore
from solid_health.fitness.pod.type_index import TypeIndexResolver
from solid_health.fitness.tests.conftest import (
    EMPTY_TYPE_INDEX,
    INSTANCE_TYPE_INDEX,
    POD,
    PROFILE_TURTLE,
    TEST_DOCUMENT,
    TEST_PROFILE_DOC,
    TEST_TYPE_INDEX,
    TEST_WEB_ID,
    FakePod,
)


# ---------------------------------------------------------------------------
# PodClient
# ---------------------------------------------------------------------------


class TestPodClient:
    @pytest.mark.asyncio
    async def test_bearer_token_sent(self, pod: FakePod, pod_client: PodClient) -> None:
        await pod_client.get(TEST_PROFILE_DOC)
        assert pod.requests[0].headers["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    async def test_patch_uses_sparql_update(self, pod: FakePod, pod_client: PodClient) -> None:
        await pod_client.patch(TEST_DOCUMENT, "INSERT DATA { <a:s> <a:p> <a:o> . }")
        request = pod.requests[0]
        assert request.method == "PATCH"
        assert request.headers["Content-Type"] == "application/sparql-update"

    @pytest.mark.asyncio
    async def test_create_container_headers(self, pod: FakePod, pod_client: PodClient) -> None:
        response = await pod_client.create_container(f"{POD}/private/", "health", "")
        assert response.status_code == 201
        request = pod.requests[0]
        assert request.headers["Slug"] == "health"
        assert "ldp#BasicContainer" in request.headers["Link"]

    @pytest.mark.asyncio
    async def test_guard_vetoes_writes_only(self, pod: FakePod, pod_client: PodClient) -> None:
        def stale() -> None:
            raise StaleSessionError("superseded")

        guarded = pod_client.with_guard(stale)
        await guarded.get(TEST_PROFILE_DOC)
        with pytest.raises(StaleSessionError):
            await guarded.patch(TEST_DOCUMENT, "INSERT DATA { }")
        with pytest.raises(StaleSessionError):
            await guarded.create_container(f"{POD}/private/", "health", "")
        assert [r.method for r in pod.requests] == ["GET"]

    @pytest.mark.asyncio
    async def test_timeout_is_retryable_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("slow", request=request)

        client = PodClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(NetworkError) as exc_info:
            await client.get(TEST_PROFILE_DOC)
        assert exc_info.value.retryable

    def test_raise_for_rejection_carries_status_and_body(self) -> None:
        response = httpx.Response(403, text="forbidden")
        with pytest.raises(BootstrapFailure) as exc_info:
            raise_for_rejection(response, "Type registration insert unsuccessful", BootstrapFailure)
        assert exc_info.value.status == 403
        assert exc_info.value.body == "forbidden"
        assert "403 forbidden" in str(exc_info.value)


# ---------------------------------------------------------------------------
# Triple store
# ---------------------------------------------------------------------------


class TestRdflibTripleStore:
    @pytest.mark.asyncio
    async def test_load_strips_fragment(self, pod: FakePod, store: RdflibTripleStore) -> None:
        pod.put_turtle(TEST_PROFILE_DOC, PROFILE_TURTLE)
        await store.load(TEST_WEB_ID)
        assert str(pod.requests[0].url) == TEST_PROFILE_DOC
        assert store.is_loaded(TEST_PROFILE_DOC)

    @pytest.mark.asyncio
    async def test_missing_document_raises_with_status(self, store: RdflibTripleStore) -> None:
        with pytest.raises(NetworkError) as exc_info:
            await store.load(TEST_DOCUMENT)
        assert exc_info.value.status == 404

    @pytest.mark.asyncio
    async def test_unparseable_document_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<<< not turtle", headers={"Content-Type": "text/turtle"})

        client = PodClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
        with pytest.raises(NetworkError, match="Could not parse"):
            await RdflibTripleStore(client).load(TEST_DOCUMENT)

    @pytest.mark.asyncio
    async def test_query_by_subject_and_by_object(self, pod: FakePod, store: RdflibTripleStore) -> None:
        pod.put_turtle(TEST_TYPE_INDEX, INSTANCE_TYPE_INDEX)
        await store.load(TEST_TYPE_INDEX)

        registration = store.query_single(None, SOLID.forClass, FHIR.Observation)
        assert registration == URIRef(f"{TEST_TYPE_INDEX}#obs")
        assert store.query_single(registration, SOLID.instance) == URIRef(TEST_DOCUMENT)
        assert store.query_all(registration, SOLID.instanceContainer) == []

    def test_add_statement_is_local(self, pod: FakePod, store: RdflibTripleStore) -> None:
        me = URIRef(TEST_WEB_ID)
        store.add_statement(me, FOAF.knows, URIRef("https://bob.example/#me"))
        assert store.query_all(me, FOAF.knows) == [URIRef("https://bob.example/#me")]
        assert pod.requests == []


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class TestProfileLoader:
    @pytest.mark.asyncio
    async def test_profile_fields(self, pod: FakePod, store: RdflibTripleStore) -> None:
        pod.put_turtle(TEST_PROFILE_DOC, PROFILE_TURTLE)
        profile = await ProfileLoader(store).load(TEST_WEB_ID)

        assert profile.web_id == TEST_WEB_ID
        assert profile.name == "Alice Example"
        assert profile.image == f"{POD}/profile/alice.png"
        assert profile.friends == {
            "https://bob.example/profile/card#me",
            "https://carol.example/profile/card#me",
        }
        assert profile.private_type_index == TEST_TYPE_INDEX

    @pytest.mark.asyncio
    async def test_absent_fields_stay_empty(self, pod: FakePod, store: RdflibTripleStore) -> None:
        pod.put_turtle(TEST_PROFILE_DOC, "<#me> a <http://xmlns.com/foaf/0.1/Person> .")
        profile = await ProfileLoader(store).load(TEST_WEB_ID)
        assert profile.name is None
        assert profile.friends == set()
        assert profile.private_type_index is None

    @pytest.mark.asyncio
    async def test_unreachable_profile_raises(self, store: RdflibTripleStore) -> None:
        with pytest.raises(NetworkError):
            await ProfileLoader(store).load(TEST_WEB_ID)


# ---------------------------------------------------------------------------
# Type index
# ---------------------------------------------------------------------------


class TestTypeIndexResolver:
    @pytest.fixture
    def resolver(
        self, store: RdflibTripleStore, pod_client: PodClient, sync_config: SyncConfig
    ) -> TypeIndexResolver:
        return TypeIndexResolver(store, pod_client, sync_config.bootstrap)

    @pytest.mark.asyncio
    async def test_registered_instance(self, pod: FakePod, resolver: TypeIndexResolver) -> None:
        pod.put_turtle(TEST_TYPE_INDEX, INSTANCE_TYPE_INDEX)
        assert await resolver.resolve(TEST_TYPE_INDEX) == TEST_DOCUMENT
        assert pod.writes() == []

    @pytest.mark.asyncio
    async def test_registered_container(self, pod: FakePod, resolver: TypeIndexResolver) -> None:
        pod.put_turtle(TEST_TYPE_INDEX, f"""
            @prefix solid: <http://www.w3.org/ns/solid/terms#> .
            <#obs> solid:forClass <http://hl7.org/fhir/Observation> ;
                solid:instanceContainer <{POD}/health-data> .
        """)
        assert await resolver.resolve(TEST_TYPE_INDEX) == f"{POD}/health-data/fitness.ttl"
        assert pod.writes() == []

    @pytest.mark.asyncio
    async def test_bootstrap_registers_and_creates_container(
        self, pod: FakePod, resolver: TypeIndexResolver
    ) -> None:
        pod.put_turtle(TEST_TYPE_INDEX, EMPTY_TYPE_INDEX)

        location = await resolver.resolve(TEST_TYPE_INDEX)

        assert location == TEST_DOCUMENT
        patch, post = pod.writes()
        assert patch.method == "PATCH"
        assert str(patch.url) == TEST_TYPE_INDEX
        assert post.method == "POST"
        assert str(post.url) == f"{POD}/private/"
        assert post.headers["Slug"] == "health"
        assert b"FHIR Health Observations" in post.content

        index = pod.documents[TEST_TYPE_INDEX]
        registration = URIRef(f"{TEST_TYPE_INDEX}#FHIRObservation")
        assert (registration, SOLID.forClass, FHIR.Observation) in index
        assert (registration, SOLID.instanceContainer, URIRef(f"{POD}/private/health/")) in index

    @pytest.mark.asyncio
    async def test_bootstrap_is_idempotent(
        self,
        pod: FakePod,
        pod_client: PodClient,
        resolver: TypeIndexResolver,
        sync_config: SyncConfig,
    ) -> None:
        pod.put_turtle(TEST_TYPE_INDEX, EMPTY_TYPE_INDEX)
        first = await resolver.resolve(TEST_TYPE_INDEX)
        writes = len(pod.writes())

        fresh = TypeIndexResolver(RdflibTripleStore(pod_client), pod_client, sync_config.bootstrap)
        assert await fresh.resolve(TEST_TYPE_INDEX) == first
        assert len(pod.writes()) == writes

    @pytest.mark.asyncio
    async def test_registration_without_location_is_skipped(
        self,
        pod: FakePod,
        pod_client: PodClient,
        resolver: TypeIndexResolver,
        sync_config: SyncConfig,
    ) -> None:
        pod.put_turtle(TEST_TYPE_INDEX, """
            @prefix solid: <http://www.w3.org/ns/solid/terms#> .
            <> a solid:TypeIndex .
            <#other> solid:forClass <http://hl7.org/fhir/Observation> .
        """)
        assert await resolver.resolve(TEST_TYPE_INDEX) == TEST_DOCUMENT
        writes = len(pod.writes())

        fresh = TypeIndexResolver(RdflibTripleStore(pod_client), pod_client, sync_config.bootstrap)
        assert await fresh.resolve(TEST_TYPE_INDEX) == TEST_DOCUMENT
        assert len(pod.writes()) == writes

    @pytest.mark.asyncio
    async def test_existing_container_is_tolerated(
        self, pod: FakePod, resolver: TypeIndexResolver
    ) -> None:
        pod.put_turtle(TEST_TYPE_INDEX, EMPTY_TYPE_INDEX)
        pod.containers.add(f"{POD}/private/health/")
        assert await resolver.resolve(TEST_TYPE_INDEX) == TEST_DOCUMENT

    @pytest.mark.asyncio
    async def test_rejected_registration(self, pod: FakePod, resolver: TypeIndexResolver) -> None:
        pod.put_turtle(TEST_TYPE_INDEX, EMPTY_TYPE_INDEX)
        pod.rejector = lambda r: httpx.Response(403, text="no write access") if r.method == "PATCH" else None

        with pytest.raises(BootstrapFailure) as exc_info:
            await resolver.resolve(TEST_TYPE_INDEX)
        assert exc_info.value.status == 403
        assert exc_info.value.body == "no write access"
        assert pod.writes("POST") == []

    @pytest.mark.asyncio
    async def test_rejected_container_creation(self, pod: FakePod, resolver: TypeIndexResolver) -> None:
        pod.put_turtle(TEST_TYPE_INDEX, EMPTY_TYPE_INDEX)
        pod.rejector = lambda r: httpx.Response(500, text="disk full") if r.method == "POST" else None

        with pytest.raises(BootstrapFailure, match="Container creation unsuccessful"):
            await resolver.resolve(TEST_TYPE_INDEX)
