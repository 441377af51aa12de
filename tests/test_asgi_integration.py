"""
Test: end-to-end through the ASGI app (app.py, asgi.py)

Requests go through httpx's ASGI transport into a compiled ``App``.
"""

import json

import httpx
import pytest

from accipiter.app import App
from accipiter.asgi import ASGIAdapter
from accipiter.config import RoutingConfig
from accipiter.decorators import DELETE, GET, POST, body, controller, ctx, header, param, query
from accipiter.metadata import MetadataRegistry
from accipiter.response import Response
from accipiter.router import Router
from tests.conftest import ResponseCapture, make_receive, make_scope


class NoteStore:
    def __init__(self):
        self.notes = {}


def build_app(prefix="/api", debug=False):
    registry = MetadataRegistry()

    @controller("/notes", registry=registry)
    class Notes:
        def __init__(self, store: NoteStore):
            self.store = store

        @GET("/")
        @query(0, "limit")
        async def index(self, limit):
            items = list(self.store.notes.values())
            return items[: int(limit)] if limit else items

        @GET("/:id")
        @param(0, "id")
        async def show(self, note_id):
            return self.store.notes.get(note_id) or Response.json({"error": "missing"}, status=404)

        @POST("/")
        @body(0)
        @header(1, "x-author")
        async def create(self, payload, author):
            note_id = str(len(self.store.notes) + 1)
            self.store.notes[note_id] = {"id": note_id, "text": payload.get("text"), "author": author}
            return Response.json(self.store.notes[note_id], status=201)

        @DELETE("/:id")
        @param(0, "id")
        @ctx(1)
        async def delete(self, note_id, context):
            self.store.notes.pop(note_id, None)
            context.response = Response.empty(204)

        @GET("/count")
        async def count(self):
            return len(self.store.notes)

        @GET("/boom")
        async def boom(self):
            raise RuntimeError("exploded")

    app = App(RoutingConfig(prefix=prefix, debug=debug), registry=registry, access_log=False)
    app.container.bind(NoteStore, scope="singleton")
    app.register_controllers([Notes])
    return app


@pytest.fixture
def client():
    app = build_app()
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://testserver")


class TestEndToEnd:

    @pytest.mark.asyncio
    async def test_create_then_read(self, client):
        async with client:
            created = await client.post(
                "/api/notes",
                json={"text": "hello"},
                headers={"X-Author": "ada"},
            )
            assert created.status_code == 201
            assert created.json() == {"id": "1", "text": "hello", "author": "ada"}

            shown = await client.get("/api/notes/1")
            assert shown.status_code == 200
            assert shown.json()["text"] == "hello"

            listed = await client.get("/api/notes/", params={"limit": "1"})
            assert listed.json() == [created.json()]

    @pytest.mark.asyncio
    async def test_static_route_beats_param_route(self, client):
        async with client:
            response = await client.get("/api/notes/count")
        assert response.status_code == 200
        assert response.text == "0"
        assert response.headers["content-type"].startswith("text/plain")

    @pytest.mark.asyncio
    async def test_malformed_json_is_400(self, client):
        async with client:
            response = await client.post(
                "/api/notes",
                content=b"{not json",
                headers={"content-type": "application/json"},
            )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON body"}

    @pytest.mark.asyncio
    async def test_non_json_body_binds_empty(self, client):
        async with client:
            response = await client.post(
                "/api/notes",
                content=b"plain words",
                headers={"content-type": "text/plain"},
            )
        assert response.status_code == 201
        assert response.json()["text"] is None

    @pytest.mark.asyncio
    async def test_handler_stored_response(self, client):
        async with client:
            await client.post("/api/notes", json={"text": "x"})
            response = await client.delete("/api/notes/1")
            assert response.status_code == 204
            assert (await client.get("/api/notes/count")).text == "0"

    @pytest.mark.asyncio
    async def test_unknown_route_is_404(self, client):
        async with client:
            response = await client.get("/api/nowhere")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_wrong_verb_is_404(self, client):
        async with client:
            response = await client.put("/api/notes/1")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_handler_error_is_500(self, client):
        async with client:
            response = await client.get("/api/notes/boom")
        assert response.status_code == 500
        assert response.json()["error"]["message"] == "Internal server error"

    def test_dispatch_table_recorded(self):
        app = build_app(prefix="")
        paths = {(r.verb, r.full_path) for r in app.table}
        assert ("GET", "/notes/:id") in paths
        assert ("POST", "/notes") in paths


class TestASGIAdapter:

    @pytest.mark.asyncio
    async def test_no_response_falls_back_to_204(self):
        router = Router()

        async def handler(request, ctx):
            return None

        router.add("POST", "/fire", (), handler)
        send = ResponseCapture()
        await ASGIAdapter(router)(make_scope(method="POST", path="/fire"), make_receive(), send)

        assert send.status == 204
        assert send.body == b""

    @pytest.mark.asyncio
    async def test_pipeline_error_becomes_500(self):
        router = Router()
        send = ResponseCapture()
        await ASGIAdapter(router)(make_scope(path="/missing"), make_receive(), send)

        assert send.status == 500
        assert json.loads(send.body) == {"error": "Internal server error"}

    @pytest.mark.asyncio
    async def test_lifespan_hooks(self):
        calls = []

        async def startup():
            calls.append("startup")

        async def shutdown():
            calls.append("shutdown")

        messages = iter([{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}])

        async def receive():
            return next(messages)

        send = ResponseCapture()
        adapter = ASGIAdapter(Router(), on_startup=[startup], on_shutdown=[shutdown])
        await adapter({"type": "lifespan"}, receive, send)

        assert calls == ["startup", "shutdown"]
        assert [m["type"] for m in send.messages] == [
            "lifespan.startup.complete",
            "lifespan.shutdown.complete",
        ]
