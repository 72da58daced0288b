import pytest

from rambley_api.app import models
from rambley_api.app.tenant_context import read_tenant_context

from conftest import bearer


def conversation_ids(client, headers):
    resp = client.get("/api/messages", headers=headers)
    assert resp.status_code == 200
    return [c["id"] for c in resp.json()["data"]]


def test_owner_sees_its_booking(client, tenants):
    assert "B1" in conversation_ids(client, bearer(account_id=1, user_id=1))


def test_other_account_sees_nothing(client, tenants):
    resp = client.get("/api/messages", headers=bearer(account_id=2, user_id=2))
    assert resp.json() == {"success": True, "data": [], "count": 0}


def test_no_identity_sees_nothing(client, tenants):
    headers = bearer()
    assert conversation_ids(client, headers) == []
    assert client.get("/api/properties", headers=headers).json() == []
    assert client.get("/api/faqs", headers=headers).json() == []
    assert client.get("/api/messages/B1", headers=headers).status_code == 404


def test_user_without_account_claim_uses_home_account(client, tenants):
    headers = bearer(user_id=7)
    assert conversation_ids(client, headers) == ["H9"]
    assert [p["id"] for p in client.get("/api/properties", headers=headers).json()] == [31]

    ctx = client.get("/api/tenant-context", headers=headers).json()
    assert ctx == {"account_id": "", "user_id": "7", "effective_account_id": 3}


def test_account_claim_overrides_user_account(client, tenants):
    headers = bearer(account_id=1, user_id=7)
    ids = conversation_ids(client, headers)
    assert "B1" in ids and "H9" not in ids
    assert client.get("/api/tenant-context", headers=headers).json()["effective_account_id"] == 1


def test_empty_account_claim_falls_back_to_user(client, tenants):
    headers = bearer(account_id="", user_id=7)
    assert conversation_ids(client, headers) == ["H9"]


@pytest.mark.parametrize("sub", ["abc", "0", "-1"])
def test_unusable_user_claim_sees_nothing(client, tenants, sub):
    headers = bearer(sub=sub)
    assert conversation_ids(client, headers) == []
    ctx = client.get("/api/tenant-context", headers=headers).json()
    assert ctx["effective_account_id"] is None


def test_unknown_user_sees_nothing(client, tenants):
    assert conversation_ids(client, bearer(user_id=999)) == []


def test_alternating_identities_never_leak(client, engine, tenants):
    sequence = [
        (bearer(account_id=1, user_id=1), {"1001", "B1", "no_booking_+1555003_+1555999"}),
        (bearer(account_id=2, user_id=2), set()),
        (bearer(user_id=7), {"H9"}),
        (bearer(), set()),
        (bearer(account_id=1), {"1001", "B1", "no_booking_+1555003_+1555999"}),
        (bearer(user_id=2), set()),
    ]
    for headers, expected in sequence * 2:
        assert set(conversation_ids(client, headers)) == expected

    with engine.connect() as conn:
        leftover = read_tenant_context(conn)
    assert leftover["account_id"] == ""
    assert leftover["user_id"] == ""
    assert leftover["effective_account_id"] is None


def test_detail_of_another_accounts_booking_is_not_found(client, tenants):
    assert client.get("/api/messages/B1", headers=bearer(account_id=1)).status_code == 200
    resp = client.get("/api/messages/B1", headers=bearer(account_id=2, user_id=2))
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Conversation not found"


def test_current_user_is_scoped(client, tenants):
    resp = client.get("/users/me", headers=bearer(account_id=1, user_id=1))
    assert resp.status_code == 200
    assert resp.json()["email"] == "host1@example.com"

    # user 7 lives in account 3, invisible under an account 1 override
    assert client.get("/users/me", headers=bearer(account_id=1, user_id=7)).status_code == 404
    assert client.get("/users/me", headers=bearer()).status_code == 404


def test_writes_are_stamped_with_effective_account(client, tenants):
    resp = client.post("/api/properties", json={"name": "Dune House"}, headers=bearer(user_id=7))
    assert resp.status_code == 201
    assert resp.json()["account_id"] == 3

    harbor = [p["name"] for p in client.get("/api/properties", headers=bearer(user_id=7)).json()]
    lakeside = [p["name"] for p in client.get("/api/properties", headers=bearer(account_id=1)).json()]
    assert "Dune House" in harbor
    assert "Dune House" not in lakeside


def test_write_without_account_is_forbidden(client, tenants):
    for headers in (bearer(), bearer(user_id=999)):
        resp = client.post("/api/properties", json={"name": "Nowhere"}, headers=headers)
        assert resp.status_code == 403
        assert resp.json()["detail"] == "No account context"


def test_contact_cannot_reference_other_accounts_property(client, tenants):
    payload = {
        "name": "Sparkle Cleaning",
        "service_type": "cleaning",
        "phone": "+1555123",
        "email": "clean@example.com",
        "property_ids": [11, 21],
    }
    resp = client.post("/api/contacts", json=payload, headers=bearer(account_id=1, user_id=1))
    assert resp.status_code == 400
    assert "21" in resp.json()["detail"]

    payload["property_ids"] = [11]
    resp = client.post("/api/contacts", json=payload, headers=bearer(account_id=1, user_id=1))
    assert resp.status_code == 201
    body = resp.json()
    assert body["account_id"] == 1
    assert body["property_ids"] == [11]

    assert client.get("/api/contacts", headers=bearer(account_id=2)).json() == []
    assert [c["name"] for c in client.get("/api/contacts", headers=bearer(account_id=1)).json()] == [
        "Sparkle Cleaning"
    ]


def test_faqs_are_scoped_and_stamped(client, tenants):
    assert [f["question"] for f in client.get("/api/faqs", headers=bearer(account_id=1)).json()] == [
        "Is there parking?"
    ]
    assert [f["question"] for f in client.get("/api/faqs", headers=bearer(account_id=2)).json()] == [
        "Pets allowed?"
    ]

    resp = client.post(
        "/api/faqs",
        json={"question": "Late checkout?", "property_id": 21},
        headers=bearer(user_id=2),
    )
    assert resp.status_code == 201
    assert resp.json()["account_id"] == 2
    assert resp.json()["answer_type"] == "unanswered"

    resp = client.post(
        "/api/faqs",
        json={"question": "Late checkout?", "property_id": 11},
        headers=bearer(user_id=2),
    )
    assert resp.status_code == 400


def test_property_by_id_is_scoped(client, tenants):
    assert client.get("/api/properties/11", headers=bearer(account_id=1)).json()["name"] == "Lake Cabin"
    resp = client.get("/api/properties/11", headers=bearer(account_id=2))
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Property not found"


def test_update_own_property(client, tenants):
    resp = client.put("/api/properties/11", json={"address": "1 Shore Rd"}, headers=bearer(user_id=1))
    assert resp.status_code == 200
    assert resp.json()["address"] == "1 Shore Rd"
    assert resp.json()["name"] == "Lake Cabin"


def test_cross_account_update_and_delete_leave_row_untouched(client, tenants, SessionTesting):
    for headers in (bearer(account_id=2, user_id=2), bearer(user_id=7), bearer()):
        resp = client.put("/api/properties/11", json={"name": "Hijacked"}, headers=headers)
        assert resp.status_code == 404
        assert client.delete("/api/properties/11", headers=headers).status_code == 404

    with SessionTesting() as db:
        prop = db.get(models.Property, 11)
        assert prop.name == "Lake Cabin"
        assert prop.is_active is True
        assert prop.account_id == 1


def test_delete_is_soft_and_blocked_by_active_contacts(client, tenants, SessionTesting):
    owner = bearer(account_id=1, user_id=1)
    client.post(
        "/api/contacts",
        json={
            "name": "Sparkle Cleaning",
            "service_type": "cleaning",
            "phone": "+1555123",
            "email": "clean@example.com",
            "property_ids": [11],
        },
        headers=owner,
    )
    resp = client.delete("/api/properties/11", headers=owner)
    assert resp.status_code == 400
    assert "1 active contact(s)" in resp.json()["detail"]

    created = client.post("/api/properties", json={"name": "Spare Shed"}, headers=owner).json()
    resp = client.delete(f"/api/properties/{created['id']}", headers=owner)
    assert resp.json() == {"message": "Property deleted successfully"}
    assert client.get(f"/api/properties/{created['id']}", headers=owner).status_code == 404
    with SessionTesting() as db:
        assert db.get(models.Property, created["id"]).is_active is False


def test_malformed_query_param_is_a_client_error(client, tenants):
    resp = client.get("/api/faqs", params={"property_id": "abc"}, headers=bearer(account_id=1))
    assert resp.status_code == 422
    resp = client.put("/api/properties/11", json={"name": ""}, headers=bearer(account_id=1))
    assert resp.status_code == 422
