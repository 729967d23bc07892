from src.surveychat.observability.metrics import sanitize_path

from .utils import auth_headers


def test_metrics_endpoint_exposes_histogram_and_counters(client):
    r = client.get("/health")
    assert r.status_code == 200

    m = client.get("/metrics")
    assert m.status_code == 200
    body = m.text

    assert "# HELP surveychat_request_latency_seconds" in body
    assert "# TYPE surveychat_request_latency_seconds histogram" in body
    assert "surveychat_artifact_save_failures_total" in body
    assert 'path="/health"' in body


def test_chat_route_is_recorded_with_coarse_path(client, container):
    session = container.chats.create_session("user-1")
    client.get(f"/chatbot/sessions/{session.session_id}", headers=auth_headers())
    body = client.get("/metrics").text
    assert 'path="/chatbot/sessions"' in body
    assert session.session_id not in body


def test_sanitize_path_drops_ids():
    assert sanitize_path("") == "/"
    assert sanitize_path("/") == "/"
    assert sanitize_path("/chatbot") == "/chatbot"
    assert sanitize_path("/chatbot/sessions/abc-123?x=1") == "/chatbot/sessions"
    assert sanitize_path("/artifacts/abc-123") == "/artifacts"
    assert sanitize_path("/question-rewriter") == "/question-rewriter"
