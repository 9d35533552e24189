"""Finance questionnaire: context prefill and submissions."""
import pytest

from conftest import make_applicant, make_listing, make_token
from salesbooking.errors import BadRequest
from salesbooking.models import Applicant, ApplicantIdentityChange, AuditEvent, SalesInquiry
from salesbooking.schemas.finance import FinanceSubmission
from salesbooking.services.finance_intake import validate_submission
from salesbooking.services.finance_token import create_finance_token


def _payload(**overrides) -> dict:
    body = {
        "property_code": "077-NP1",
        "booking_token": "T1-booking-token",
        "full_name": "Jana Nováková",
        "email": "jana@example.com",
        "phone": "+420777111222",
        "gdpr_consent": True,
        "financing_method": "mortgage",
        "own_funds_pct": 20,
        "mortgage_pct": 80,
    }
    body.update(overrides)
    return body


def _validate(**overrides):
    return validate_submission(FinanceSubmission.model_validate(_payload(**overrides)))


# --- validation ---------------------------------------------------------------

@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"full_name": "   "}, "full_name_required"),
        ({"full_name": "x" * 201}, "full_name_too_long"),
        ({"phone": ""}, "email_and_phone_required"),
        ({"email": None}, "email_and_phone_required"),
        ({"email": "a" * 250 + "@x.cz"}, "invalid_email_or_phone"),
        ({"phone": "1" * 41}, "invalid_email_or_phone"),
        ({"gdpr_consent": False}, "gdpr_consent_required"),
        ({"gdpr_consent": "true"}, "gdpr_consent_required"),
        ({"own_funds_pct": 101, "mortgage_pct": None}, "own_funds_pct_out_of_range"),
        ({"own_funds_pct": None, "mortgage_pct": -5}, "mortgage_pct_out_of_range"),
        ({"own_funds_pct": 70, "mortgage_pct": 40}, "pct_sum_exceeds_100"),
        ({"buyer_notes": "n" * 5001}, "buyer_notes_too_long"),
    ],
)
def test_validation_rejects(overrides, reason):
    with pytest.raises(BadRequest) as exc:
        _validate(**overrides)
    assert exc.value.reason == reason


def test_validation_trims_identity():
    identity = _validate(full_name="  Jana  ", email=" jana@example.com ")
    assert identity.full_name == "Jana"
    assert identity.email == "jana@example.com"


def test_blank_or_garbage_percentages_count_as_unanswered():
    data = FinanceSubmission.model_validate(_payload(own_funds_pct="", mortgage_pct="lots"))
    assert data.own_funds_pct is None and data.mortgage_pct is None
    validate_submission(data)


# --- submissions --------------------------------------------------------------

def test_percentages_over_100_rejected_then_accepted(client, db, scenario):
    r = client.post("/finance/submissions", json=_payload(own_funds_pct=70, mortgage_pct=40))
    assert r.status_code == 400
    assert r.json() == {"ok": False, "error": "pct_sum_exceeds_100"}
    assert db.query(SalesInquiry).count() == 0

    r = client.post("/finance/submissions", json=_payload(own_funds_pct=60, mortgage_pct=40))
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["applicant_id"] == scenario.applicant.id
    assert body["property_id"] == scenario.listing.id
    inquiry = db.query(SalesInquiry).one()
    assert inquiry.id == body["sales_inquiry_id"]
    assert (inquiry.own_funds_pct, inquiry.mortgage_pct) == (60, 40)
    assert inquiry.source == "finance_form"
    assert inquiry.form_submitted_at is not None


def test_resubmission_is_idempotent(client, db, scenario):
    first = client.post("/finance/submissions", json=_payload(full_name="Jana Novák")).json()
    second = client.post("/finance/submissions", json=_payload(full_name="Jana Novák")).json()
    assert first["identity_changed"] is True
    assert second["identity_changed"] is False
    assert first["sales_inquiry_id"] == second["sales_inquiry_id"]
    assert db.query(SalesInquiry).count() == 1
    assert db.query(ApplicantIdentityChange).count() == 1


def test_identity_change_is_logged(client, db, scenario):
    r = client.post(
        "/finance/submissions",
        json=_payload(full_name="Jana Dvořáková", email="jana.d@example.com"),
    )
    assert r.json()["identity_changed"] is True

    change = db.query(ApplicantIdentityChange).one()
    assert change.changed_by == "buyer_form"
    assert change.property_id == scenario.listing.id
    assert (change.old_full_name, change.new_full_name) == ("Jana Nováková", "Jana Dvořáková")
    assert (change.old_email, change.new_email) == ("jana@example.com", "jana.d@example.com")
    assert change.old_phone == change.new_phone == "+420777111222"

    db.expire_all()
    applicant = db.get(Applicant, scenario.applicant.id)
    assert applicant.full_name == "Jana Dvořáková"
    assert applicant.agreed_to_gdpr is True


def test_email_case_change_counts_as_identity_change(client, db, scenario):
    r = client.post("/finance/submissions", json=_payload(email="Jana@Example.com"))
    assert r.json()["identity_changed"] is True


def test_payload_applicant_id_is_ignored(client, db, scenario):
    other = make_applicant(db, full_name="Someone Else", email="else@example.com")
    r = client.post("/finance/submissions", json=_payload(applicant_id=other.id))
    assert r.json()["applicant_id"] == scenario.applicant.id
    db.expire_all()
    assert db.get(Applicant, other.id).full_name == "Someone Else"
    assert db.query(SalesInquiry).one().applicant_id == scenario.applicant.id


def test_submission_keeps_booked_viewing_time(client, db, scenario, monkeypatch):
    from salesbooking.services import booking as booking_service

    monkeypatch.setattr(booking_service, "request_finance_link", lambda applicant_id, code: None)
    monkeypatch.setattr(booking_service, "send_viewing_confirmation", lambda *a: True)
    client.post("/booking/book-slot", json={"slotId": scenario.s1.id, "token": "T1-booking-token"})
    client.post("/finance/submissions", json=_payload())

    inquiry = db.query(SalesInquiry).one()
    assert inquiry.viewing_time is not None
    assert inquiry.source == "booking_token"
    assert inquiry.financing_method == "mortgage"


def test_finance_token_scheme(client, db, scenario):
    token = create_finance_token(scenario.applicant.id, scenario.listing.id, "077-NP1")
    r = client.post("/finance/submissions", json=_payload(booking_token=None, finance_token=token))
    assert r.status_code == 200
    event = db.query(AuditEvent).filter(AuditEvent.event_type == "finance_submitted").one()
    assert event.meta["scheme"] == "finance_token"
    assert event.meta["ok"] is True
    assert event.meta["sales_inquiry_id"] == r.json()["sales_inquiry_id"]
    assert event.viewing_token_id is None


def test_finance_token_wins_over_booking_token(client, db, scenario):
    token = create_finance_token(scenario.applicant.id, scenario.listing.id, "077-NP1", expires_in_days=-1)
    r = client.post("/finance/submissions", json=_payload(finance_token=token))
    assert r.status_code == 401
    assert r.json()["error"] == "invalid_or_expired_token"


def test_submission_without_token(client, scenario):
    r = client.post("/finance/submissions", json=_payload(booking_token=None))
    assert r.status_code == 401
    assert r.json()["error"] == "missing_token"


def test_submission_for_rental_listing(client, db):
    listing = make_listing(db, code="077-RENT", business_type="pronájem")
    applicant = make_applicant(db)
    make_token(db, applicant, listing, "rent-token")
    r = client.post("/finance/submissions", json=_payload(property_code="077-RENT", booking_token="rent-token"))
    assert r.status_code == 409
    assert r.json()["error"] == "not_a_sales_listing"
    assert db.query(SalesInquiry).count() == 0
    event = db.query(AuditEvent).one()
    assert event.meta["ok"] is False
    assert event.meta["reason"] == "not_a_sales_listing"


def test_submission_for_sold_listing(client, db, scenario):
    scenario.listing.status = "sold"
    db.commit()
    r = client.post("/finance/submissions", json=_payload(full_name="Jana Dvořáková", email="other@example.com"))
    assert r.status_code == 409
    assert r.json() == {"ok": False, "error": "not_available"}
    assert db.query(SalesInquiry).count() == 0
    assert db.query(ApplicantIdentityChange).count() == 0

    db.expire_all()
    applicant = db.get(Applicant, scenario.applicant.id)
    assert (applicant.full_name, applicant.email) == ("Jana Nováková", "jana@example.com")

    event = db.query(AuditEvent).one()
    assert event.event_type == "finance_submitted"
    assert event.meta["ok"] is False
    assert event.meta["reason"] == "not_available"


def test_submission_requires_gdpr(client, db, scenario):
    r = client.post("/finance/submissions", json=_payload(gdpr_consent=None))
    assert r.status_code == 400
    assert r.json()["error"] == "gdpr_consent_required"
    assert db.query(AuditEvent).count() == 0


def test_submission_body_too_large(client, scenario):
    r = client.post("/finance/submissions", json=_payload(buyer_notes="n" * 60_000))
    assert r.status_code == 413
    assert r.json()["error"] == "request_too_large"


def test_submission_invalid_json(client, scenario):
    r = client.post("/finance/submissions", content=b"{not json", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_json"


# --- context ------------------------------------------------------------------

def test_context_with_booking_token(client, scenario):
    r = client.get("/finance/context", params={"property_code": "077-NP1", "booking_token": "T1-booking-token"})
    assert r.status_code == 200
    assert r.headers["Cache-Control"] == "no-store"
    body = r.json()
    assert body["applicant"] == {
        "id": scenario.applicant.id,
        "full_name": "Jana Nováková",
        "email": "jana@example.com",
        "phone": "+420777111222",
    }
    assert body["property"]["property_code"] == "077-NP1"
    assert body["property"]["address"] == "Vinohradská 12, Praha 2"


def test_context_with_finance_token(client, db, scenario):
    token = create_finance_token(scenario.applicant.id, scenario.listing.id, "077-NP1")
    r = client.get("/finance/context", params={"property_code": "077-NP1", "token": token})
    assert r.json()["applicant"]["id"] == scenario.applicant.id
    event = db.query(AuditEvent).one()
    assert event.event_type == "finance_context_resolved"
    assert event.meta["scheme"] == "finance_token"


def test_context_code_mismatch(client, scenario):
    r = client.get("/finance/context", params={"property_code": "077-NP2", "booking_token": "T1-booking-token"})
    assert r.status_code == 401
    assert r.json()["error"] == "token_property_mismatch"


def test_context_on_sold_listing(client, db, scenario):
    scenario.listing.status = "sold"
    db.commit()
    r = client.get("/finance/context", params={"property_code": "077-NP1", "booking_token": "T1-booking-token"})
    assert r.status_code == 409
    assert r.json()["error"] == "not_available"
