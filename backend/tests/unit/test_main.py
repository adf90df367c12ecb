"""
Tests for the application entry points.
"""

import json
from contextlib import contextmanager
from unittest.mock import patch

from fastapi import Request

from main import global_exception_handler
from models import AuditLog


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {
        "message": "Dental Practice Backend API",
        "version": "1.0.0",
        "status": "running",
    }


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def _request(path: str) -> Request:
    return Request({
        "type": "http",
        "method": "POST",
        "scheme": "http",
        "server": ("testserver", 80),
        "path": path,
        "root_path": "",
        "query_string": b"",
        "headers": [],
    })


async def test_unexpected_error_is_reported_with_code(db_session):
    @contextmanager
    def session_context():
        yield db_session

    with patch("main.get_db_context", session_context):
        response = await global_exception_handler(_request("/api/finance"), RuntimeError("disco pieno"))

    body = json.loads(response.body)
    assert response.status_code == 500
    assert body["detail"] == "Errore interno del server"
    assert response.headers["x-error-code"] == body["code"]

    entry = db_session.query(AuditLog).one()
    assert entry.entity_id == body["code"]
    assert entry.metadata_json["source"] == "server"
    assert entry.metadata_json["path"] == "/api/finance"
    assert entry.metadata_json["error"]["name"] == "RuntimeError"


async def test_unexpected_error_survives_failed_report():
    def broken_context():
        raise RuntimeError("database down")

    with patch("main.get_db_context", broken_context):
        response = await global_exception_handler(_request("/api/finance"), KeyError("x"))

    assert response.status_code == 500
    assert "code" not in json.loads(response.body)
