"""API tests for the import routes: parse, import, streaming and instructions."""

import json

from tests.fixtures import (
    chatgpt_bytes,
    make_chatgpt_conversation,
    make_messenger_export,
    make_sms_backup,
    messenger_bytes,
)

THREAD = "inbox/alicesmith_abc123"


def _messenger_file():
    return {"file": ("message_1.json", messenger_bytes(make_messenger_export()), "application/json")}


def _sms_file():
    return {"file": ("sms-20240303.xml", make_sms_backup(), "text/xml")}


def _sse_events(body: str) -> list[tuple[str, dict]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


class TestParseEndpoint:
    async def test_parse_messenger(self, client):
        resp = await client.post("/api/import/messenger/parse", files=_messenger_file())
        assert resp.status_code == 200
        data = resp.json()
        assert data["format"] == "messenger"
        assert data["total_items"] == 1
        assert data["items"][0]["id"] == THREAD

    async def test_parse_chatgpt(self, client):
        files = {"file": ("conversations.json", chatgpt_bytes([make_chatgpt_conversation()]), "application/json")}
        resp = await client.post("/api/import/chatgpt/parse", files=files)
        assert resp.status_code == 200
        assert resp.json()["items"][0]["title"] == "Learning Python"

    async def test_unknown_format_is_404(self, client):
        resp = await client.post("/api/import/whatsapp/parse", files=_messenger_file())
        assert resp.status_code == 404

    async def test_wrong_file_type_is_415(self, client):
        resp = await client.post("/api/import/sms/parse", files=_messenger_file())
        assert resp.status_code == 415

    async def test_malformed_file_is_422(self, client):
        files = {"file": ("message_1.json", b"{oops", "application/json")}
        resp = await client.post("/api/import/messenger/parse", files=files)
        assert resp.status_code == 422
        assert "Invalid JSON" in resp.json()["detail"]

    async def test_missing_file_is_422(self, client):
        resp = await client.post("/api/import/messenger/parse")
        assert resp.status_code == 422


class TestImportEndpoint:
    async def test_import_with_camel_case_options(self, client):
        options = {"selection": [THREAD], "groupByDay": False, "createArtifact": False}
        resp = await client.post(
            "/api/import/messenger/import",
            files=_messenger_file(),
            data={"options": json.dumps(options)},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["state"] == "completed"
        assert data["people_created"] == 2
        assert data["artifacts_created"] == 0
        assert data["events_created"] == 1

    async def test_import_with_snake_case_options(self, client):
        options = {"selection": [THREAD], "create_people": False}
        resp = await client.post(
            "/api/import/messenger/import",
            files=_messenger_file(),
            data={"options": json.dumps(options)},
        )
        assert resp.status_code == 200
        assert resp.json()["people_created"] == 0

    async def test_create_events_off_via_camel_case(self, client):
        options = {"selection": [THREAD], "createEvents": False}
        resp = await client.post(
            "/api/import/messenger/import",
            files=_messenger_file(),
            data={"options": json.dumps(options)},
        )
        assert resp.status_code == 200
        assert resp.json()["artifacts_created"] == 1
        assert resp.json()["events_created"] == 0

    async def test_no_options_means_nothing_selected(self, client):
        resp = await client.post("/api/import/sms/import", files=_sms_file())
        assert resp.status_code == 200
        assert resp.json()["items_total"] == 0

    async def test_invalid_options_is_422(self, client):
        resp = await client.post(
            "/api/import/sms/import",
            files=_sms_file(),
            data={"options": "{not json"},
        )
        assert resp.status_code == 422

    async def test_every_item_failing_is_422(self, client):
        resp = await client.post(
            "/api/import/sms/import",
            files=_sms_file(),
            data={"options": json.dumps({"selection": ["nope"]})},
        )
        assert resp.status_code == 422
        detail = resp.json()["detail"]
        assert detail["failures"][0]["kind"] == "not_found"

    async def test_partial_success_is_200(self, client):
        resp = await client.post(
            "/api/import/sms/import",
            files=_sms_file(),
            data={"options": json.dumps({"selection": ["5551234567", "nope"]})},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["state"] == "partially_failed"
        assert data["items_succeeded"] == 1

    async def test_wrong_file_type_is_415(self, client):
        resp = await client.post(
            "/api/import/chatgpt/import",
            files=_sms_file(),
            data={"options": json.dumps({"selection": ["x"]})},
        )
        assert resp.status_code == 415


class TestStreamingImport:
    async def test_progress_then_result(self, client):
        resp = await client.post(
            "/api/import/sms/import?stream=true",
            files=_sms_file(),
            data={"options": json.dumps({"selection": ["5551234567", "5559876543"]})},
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        events = _sse_events(resp.text)
        assert [name for name, _ in events] == ["progress", "progress", "result"]
        assert events[0][1] == {"type": "progress", "processed": 1, "total": 2}
        assert events[-1][1]["events_created"] == 3

    async def test_item_failures_are_streamed(self, client):
        resp = await client.post(
            "/api/import/sms/import?stream=true",
            files=_sms_file(),
            data={"options": json.dumps({"selection": ["nope"]})},
        )
        events = _sse_events(resp.text)
        assert [name for name, _ in events] == ["item_failed", "progress", "result"]
        assert events[0][1]["item"] == "nope"

    async def test_format_error_is_streamed(self, client):
        resp = await client.post(
            "/api/import/sms/import?stream=true",
            files=_messenger_file(),
            data={"options": json.dumps({"selection": ["x"]})},
        )
        [(name, data)] = _sse_events(resp.text)
        assert name == "error"
        assert data["kind"] == "unsupported"


class TestInstructionsEndpoint:
    async def test_every_format_has_instructions(self, client):
        for fmt in ("messenger", "sms", "chatgpt"):
            resp = await client.get(f"/api/import/{fmt}/instructions")
            assert resp.status_code == 200
            data = resp.json()
            assert data["title"]
            assert [s["step"] for s in data["steps"]] == list(range(1, len(data["steps"]) + 1))

    async def test_unknown_format(self, client):
        resp = await client.get("/api/import/myspace/instructions")
        assert resp.status_code == 404


class TestHealth:
    async def test_health(self, client):
        resp = await client.get("/api/health")
        assert resp.json() == {"status": "ok", "version": "0.1.0"}
