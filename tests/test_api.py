"""
HTTP tests for the meeting tracker API.
"""
import copy
import os

import pytest
from fastapi.testclient import TestClient

from meetingtracker.config import DEFAULT_CONFIG
from meetingtracker.main import create_app

from .conftest import FakeLLMProvider, FakeTranscriber

WAIT = 5.0


def upload_and_wait(client, form, files) -> dict:
    response = client.post("/api/meetings", data=form, files=files)
    assert response.status_code == 201, response.text
    meeting = response.json()
    task = client.app.state.ingestion_queue.latest_for_meeting(meeting["id"])
    assert task.wait(WAIT)
    return meeting


# ============================================
# HEALTH
# ============================================

class TestHealth:

    def test_health(self, test_client):
        response = test_client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["ingestion_running"] is True

    def test_llm_health(self, test_client):
        assert test_client.get("/api/health/llm").json() == {"status": "ok", "connected": True}


# ============================================
# UPLOAD + INGESTION
# ============================================

class TestUpload:

    def test_upload_runs_pipeline(self, test_client, upload_form, audio_file, transcriber):
        response = test_client.post("/api/meetings", data=upload_form, files=audio_file)
        assert response.status_code == 201
        created = response.json()
        assert created["status"] == "uploaded"
        assert created["participants"] == ["Alice", "Bob"]
        assert created["date"] == "2024-01-10T09:00:00Z"

        task = test_client.app.state.ingestion_queue.latest_for_meeting(created["id"])
        assert task.wait(WAIT)

        meeting = test_client.get(f"/api/meetings/{created['id']}").json()
        assert meeting["status"] == "transcribed"
        assert meeting["transcription"] == transcriber.text
        assert meeting["duration"] == 10
        assert meeting["audio_reference"] is None

        items = test_client.get(f"/api/action-items/meeting/{created['id']}").json()
        assert [(i["title"], i["assignee"]) for i in items] == [("Send report", "Alice")]
        assert items[0]["due_date"] == "2024-01-19T00:00:00Z"

        status = test_client.get(f"/api/meetings/{created['id']}/ingestion").json()
        assert status["status"] == "transcribed"
        assert status["task"]["state"] == "succeeded"
        assert status["task"]["submitted_at"].endswith("Z")
        assert status["task"]["finished_at"].endswith("Z")

    def test_upload_after_restart(self, app, upload_form, audio_file):
        with TestClient(app):
            pass
        assert not app.state.ingestion_queue.running

        with TestClient(app) as client:
            assert client.get("/api/health").json()["ingestion_running"] is True
            meeting = upload_and_wait(client, upload_form, audio_file)
            status = client.get(f"/api/meetings/{meeting['id']}/ingestion").json()
        assert status["status"] == "transcribed"
        assert status["task"]["state"] == "succeeded"

    def test_upload_while_ingestion_stopped(self, test_client, upload_form, audio_file):
        test_client.app.state.ingestion_queue.stop()
        response = test_client.post("/api/meetings", data=upload_form, files=audio_file)
        assert response.status_code == 503
        assert response.json() == {"detail": "Ingestion is not running"}

        [meeting] = test_client.get("/api/meetings").json()
        assert meeting["status"] == "error"
        assert meeting["audio_reference"] is None
        assert os.listdir(test_client.app.state.ctx.uploads_dir) == []

    def test_upload_without_analysis(self, test_client, upload_form, audio_file, llm_provider):
        upload_form["auto_analysis"] = "false"
        meeting = upload_and_wait(test_client, upload_form, audio_file)
        assert test_client.get(f"/api/action-items/meeting/{meeting['id']}").json() == []
        assert llm_provider.calls == []

    @pytest.mark.parametrize("missing", ["title", "date"])
    def test_missing_metadata(self, test_client, upload_form, audio_file, missing):
        del upload_form[missing]
        response = test_client.post("/api/meetings", data=upload_form, files=audio_file)
        assert response.status_code == 400
        assert test_client.get("/api/meetings").json() == []

    def test_missing_audio(self, test_client, upload_form):
        response = test_client.post("/api/meetings", data=upload_form)
        assert response.status_code == 400

    def test_bad_date(self, test_client, upload_form, audio_file):
        upload_form["date"] = "yesterday-ish"
        response = test_client.post("/api/meetings", data=upload_form, files=audio_file)
        assert response.status_code == 400

    def test_bad_file_type(self, test_client, upload_form):
        files = {"audio": ("notes.txt", b"hello", "text/plain")}
        response = test_client.post("/api/meetings", data=upload_form, files=files)
        assert response.status_code == 400
        assert "Invalid file type" in response.json()["detail"]
        assert os.listdir(test_client.app.state.ctx.uploads_dir) == []

    def test_payload_too_large(self, tmp_path, monkeypatch, upload_form, audio_file):
        monkeypatch.delenv("MEETINGTRACKER_DATA_DIR", raising=False)
        config = copy.deepcopy(DEFAULT_CONFIG)
        config["uploads"]["max_bytes"] = 4
        app = create_app(
            cwd=str(tmp_path),
            config=config,
            transcriber=FakeTranscriber(),
            setup_logging=False,
        )
        with TestClient(app) as client:
            response = client.post("/api/meetings", data=upload_form, files=audio_file)
            assert response.status_code == 413
            assert client.get("/api/meetings").json() == []
            assert os.listdir(app.state.ctx.uploads_dir) == []

    def test_transcription_failure(
        self, test_client, upload_form, audio_file, transcriber, transcription_error
    ):
        transcriber.error = transcription_error
        meeting = upload_and_wait(test_client, upload_form, audio_file)
        fetched = test_client.get(f"/api/meetings/{meeting['id']}").json()
        assert fetched["status"] == "error"
        assert test_client.get(f"/api/action-items/meeting/{meeting['id']}").json() == []


# ============================================
# MEETINGS
# ============================================

class TestMeetings:

    @pytest.fixture
    def meeting(self, test_client, upload_form, audio_file):
        return upload_and_wait(test_client, upload_form, audio_file)

    def test_list_includes_counts(self, test_client, meeting):
        [entry] = test_client.get("/api/meetings").json()
        assert entry["id"] == meeting["id"]
        assert entry["action_items_count"] == 1
        assert entry["pending_action_items"] == 1

    def test_get_unknown(self, test_client):
        assert test_client.get("/api/meetings/999").status_code == 404

    def test_non_numeric_id(self, test_client):
        assert test_client.get("/api/meetings/abc").status_code == 422

    def test_patch(self, test_client, meeting):
        response = test_client.patch(
            f"/api/meetings/{meeting['id']}",
            json={"title": "Renamed", "meeting_type": None},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Renamed"
        assert body["meeting_type"] is None
        assert body["participants"] == ["Alice", "Bob"]
        assert body["status"] == "transcribed"

    def test_patch_blank_title(self, test_client, meeting):
        response = test_client.patch(f"/api/meetings/{meeting['id']}", json={"title": "  "})
        assert response.status_code == 400

    def test_patch_ignores_status(self, test_client, meeting):
        response = test_client.patch(f"/api/meetings/{meeting['id']}", json={"status": "uploaded"})
        assert response.status_code == 200
        assert response.json()["status"] == "transcribed"

    def test_patch_unknown(self, test_client):
        assert test_client.patch("/api/meetings/999", json={"title": "x"}).status_code == 404

    def test_delete_cascades(self, test_client, meeting):
        response = test_client.delete(f"/api/meetings/{meeting['id']}")
        assert response.status_code == 200
        assert test_client.get(f"/api/meetings/{meeting['id']}").status_code == 404
        assert test_client.get("/api/action-items").json() == []
        assert test_client.delete(f"/api/meetings/{meeting['id']}").status_code == 404

    def test_search(self, test_client, meeting):
        results = test_client.get("/api/meetings/search/STAND").json()
        assert [m["id"] for m in results] == [meeting["id"]]
        assert test_client.get("/api/meetings/search/report").json()[0]["id"] == meeting["id"]
        assert test_client.get("/api/meetings/search/budget").json() == []

    def test_search_too_short(self, test_client):
        assert test_client.get("/api/meetings/search/ab").status_code == 400

    def test_summary_and_topics(self, test_client, meeting):
        summary = test_client.get(f"/api/meetings/{meeting['id']}/summary").json()
        assert summary == {"meeting_id": meeting["id"], "summary": "Alice owns the report."}
        topics = test_client.get(f"/api/meetings/{meeting['id']}/topics").json()
        assert topics["topics"] == ["Reporting", "Deadlines"]

    def test_summary_llm_failure(self, test_client, meeting, llm_provider, llm_error):
        llm_provider.error = llm_error
        response = test_client.get(f"/api/meetings/{meeting['id']}/summary")
        assert response.status_code == 502

    def test_summary_without_transcript(self, test_client, upload_form, audio_file, transcriber, transcription_error):
        transcriber.error = transcription_error
        failed = upload_and_wait(test_client, upload_form, audio_file)
        assert test_client.get(f"/api/meetings/{failed['id']}/summary").status_code == 409
        assert test_client.get(f"/api/meetings/{failed['id']}/topics").status_code == 409


# ============================================
# ACTION ITEMS
# ============================================

class TestActionItems:

    @pytest.fixture
    def meeting_id(self, test_client, upload_form, audio_file):
        upload_form["auto_analysis"] = "false"
        return upload_and_wait(test_client, upload_form, audio_file)["id"]

    def test_crud(self, test_client, meeting_id):
        response = test_client.post(
            "/api/action-items",
            json={"meeting_id": meeting_id, "title": "Book room", "due_date": "2024-02-01"},
        )
        assert response.status_code == 201
        item = response.json()
        assert item["status"] == "pending"
        assert item["due_date"] == "2024-02-01T00:00:00Z"

        assert test_client.get(f"/api/action-items/{item['id']}").json()["title"] == "Book room"

        patched = test_client.patch(
            f"/api/action-items/{item['id']}", json={"status": "completed", "assignee": "Bob"}
        ).json()
        assert patched["status"] == "completed"
        assert patched["assignee"] == "Bob"
        assert patched["due_date"] == "2024-02-01T00:00:00Z"

        assert test_client.delete(f"/api/action-items/{item['id']}").status_code == 200
        assert test_client.get(f"/api/action-items/{item['id']}").status_code == 404

    def test_create_for_unknown_meeting(self, test_client):
        response = test_client.post("/api/action-items", json={"meeting_id": 999, "title": "x"})
        assert response.status_code == 404

    def test_create_invalid(self, test_client, meeting_id):
        assert test_client.post("/api/action-items", json={"meeting_id": meeting_id}).status_code == 422
        response = test_client.post(
            "/api/action-items", json={"meeting_id": meeting_id, "title": "x", "status": "done"}
        )
        assert response.status_code == 422

    def test_pending_list(self, test_client, meeting_id):
        for title, due in (("later", "2024-03-01"), ("undated", None), ("sooner", "2024-02-01")):
            test_client.post(
                "/api/action-items",
                json={"meeting_id": meeting_id, "title": title, "due_date": due},
            )
        done = test_client.post(
            "/api/action-items",
            json={"meeting_id": meeting_id, "title": "done", "status": "completed"},
        ).json()

        pending = test_client.get("/api/action-items/pending").json()
        assert [i["title"] for i in pending] == ["sooner", "later", "undated"]
        assert done["id"] not in [i["id"] for i in pending]

    def test_unknown_item(self, test_client):
        assert test_client.get("/api/action-items/999").status_code == 404
        assert test_client.patch("/api/action-items/999", json={"title": "x"}).status_code == 404
        assert test_client.delete("/api/action-items/999").status_code == 404


# ============================================
# ANALYTICS + EXPORT
# ============================================

class TestReports:

    def test_analytics(self, test_client, upload_form, audio_file):
        upload_and_wait(test_client, upload_form, audio_file)
        body = test_client.get("/api/analytics").json()
        assert body["total_meetings"] == 1
        assert body["avg_duration"] == 10
        assert body["completed_actions"] == 0
        assert body["productivity_score"] == 0
        assert body["action_item_completion"] == {"completed": 0, "pending": 1}
        assert len(body["meeting_frequency"]) == 30

    def test_export_action_items_csv(self, test_client, upload_form, audio_file):
        upload_and_wait(test_client, upload_form, audio_file)
        response = test_client.get("/api/export/action-items")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert lines[0].startswith('"id","meeting_id","title"')
        assert '"Send report"' in lines[1]

    def test_export_meetings_json(self, test_client, upload_form, audio_file):
        meeting = upload_and_wait(test_client, upload_form, audio_file)
        response = test_client.get("/api/export/meetings")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        [exported] = response.json()
        assert exported["id"] == meeting["id"]
        assert exported["action_items_count"] == 1

    def test_unhandled_error_is_generic_500(self, app, monkeypatch):
        def broken():
            raise RuntimeError("store exploded")

        monkeypatch.setattr(app.state.meeting_store, "list_meetings", broken)
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/api/meetings")
        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}
