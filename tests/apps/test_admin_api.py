from __future__ import annotations

import uuid
from typing import Any, List

import pytest
from fastapi.testclient import TestClient

from galadriel.apps.api.admin import create_admin_app
from galadriel.services.errors import NetworkError
from galadriel.services.hub import ConsentStatus, Relationship

_REL_ID = uuid.UUID("6c0b1b2e-7d1f-4a44-9c55-2b5b4f0c1a11")


def _relationship(**overrides: Any) -> Relationship:
    values = dict(
        id=_REL_ID,
        trust_domain_a_id=uuid.uuid4(),
        trust_domain_b_id=uuid.uuid4(),
        trust_domain_a_consent=ConsentStatus.PENDING,
        trust_domain_b_consent=ConsentStatus.APPROVED,
        trust_domain_a_name="example.org",
        trust_domain_b_name="example.com",
    )
    values.update(overrides)
    return Relationship(**values)


class _FakeHub:
    def __init__(self) -> None:
        self.calls: List[str] = []
        self.error: Exception | None = None

    def get_relationships(self, consent_status=None):
        self.calls.append(f"list:{consent_status.value if consent_status else None}")
        if self.error:
            raise self.error
        return [_relationship()]

    def update_relationship(self, relationship_id, consent_status):
        self.calls.append(f"update:{relationship_id}:{ConsentStatus(consent_status).value}")
        if self.error:
            raise self.error
        return _relationship(trust_domain_a_consent=ConsentStatus(consent_status))


@pytest.fixture()
def hub() -> _FakeHub:
    return _FakeHub()


@pytest.fixture()
def client(hub) -> TestClient:
    return TestClient(create_admin_app(hub))


def test_list_relationships(hub, client) -> None:
    response = client.get("/relationships")

    assert response.status_code == 200
    body = response.json()
    assert body[0]["id"] == str(_REL_ID)
    assert body[0]["trust_domain_b_consent"] == "approved"
    assert hub.calls == ["list:None"]


def test_list_relationships_by_status(hub, client) -> None:
    response = client.get("/relationships", params={"consentStatus": "pending"})

    assert response.status_code == 200
    assert hub.calls == ["list:pending"]


def test_list_rejects_unknown_status(hub, client) -> None:
    response = client.get("/relationships", params={"consentStatus": "maybe"})

    assert response.status_code == 422
    assert hub.calls == []


def test_patch_relationship(hub, client) -> None:
    response = client.patch(f"/relationships/{_REL_ID}", json={"consent_status": "denied"})

    assert response.status_code == 200
    assert response.json()["trust_domain_a_consent"] == "denied"
    assert hub.calls == [f"update:{_REL_ID}:denied"]


@pytest.mark.parametrize(
    ("path", "body"),
    [
        ("/relationships/not-a-uuid", {"consent_status": "approved"}),
        (f"/relationships/{_REL_ID}", {"consent_status": "maybe"}),
        (f"/relationships/{_REL_ID}", {}),
    ],
)
def test_patch_rejects_bad_input(hub, client, path, body) -> None:
    response = client.patch(path, json=body)

    assert response.status_code == 422
    assert hub.calls == []


def test_hub_failure_is_a_bad_gateway(hub, client) -> None:
    hub.error = NetworkError("hub unreachable")

    listed = client.get("/relationships")
    patched = client.patch(f"/relationships/{_REL_ID}", json={"consent_status": "approved"})

    assert listed.status_code == 502
    assert listed.json()["detail"] == "hub unreachable"
    assert patched.status_code == 502
