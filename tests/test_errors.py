# -*- coding: utf-8 -*-
import pytest

from trainerplus.services.errors import CoreError, ErrorKind, forbidden, not_found
from trainerplus.utils.ids import parse_uuid


@pytest.mark.parametrize("kind,status", [
    (ErrorKind.NOT_FOUND, 404),
    (ErrorKind.CONFLICT, 409),
    (ErrorKind.INVALID_TRANSITION, 409),
    (ErrorKind.FORBIDDEN, 403),
    (ErrorKind.UNPROCESSABLE_ENTITY, 422),
    (ErrorKind.UNVERIFIED, 400),
    (ErrorKind.BAD_REQUEST, 400),
    (ErrorKind.PROVIDER_ERROR, 502),
])
def test_http_status_mapping(kind, status):
    assert kind.http_status == status


def test_error_body():
    err = CoreError(ErrorKind.CONFLICT, "already marked", {"student_id": "s1"})
    assert err.to_dict() == {
        "error": "conflict",
        "message": "already marked",
        "details": {"student_id": "s1"},
    }
    assert not_found("group").message == "group not found"
    assert forbidden().kind == ErrorKind.FORBIDDEN


def test_parse_uuid():
    assert parse_uuid("2F1C6F0E-6A55-4C1E-9F4E-3C2B8A7D9E10") == "2f1c6f0e-6a55-4c1e-9f4e-3c2b8a7d9e10"
    with pytest.raises(CoreError) as exc:
        parse_uuid("nope", "student_id")
    assert exc.value.kind == ErrorKind.BAD_REQUEST
    assert exc.value.message == "invalid student_id"


def test_unknown_route_is_json(client):
    resp = client.get("/api/v1/nothing-here")
    assert resp.status_code == 404
    assert resp.get_json()["error"] == "not_found"
