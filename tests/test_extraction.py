"""Tests for the checkout extractor chain."""

import json
import logging

import pytest

from storefront.services.extraction import (
    DefaultExtractor,
    RawTextExtractor,
    StructuredExtractor,
    extract_checkout_details,
    extract_payment_intent_id,
    synthetic_session_id,
)


def _event(session, event_id="evt_1Extraction0000001"):
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {"object": session},
    }


class TestStructuredExtraction:

    def test_well_formed_session(self):
        event = _event({
            "id": "cs_test_abc",
            "object": "checkout.session",
            "amount_total": 2500,
            "currency": "eur",
            "customer_details": {"email": "a@example.com"},
            "payment_intent": {"id": "pi_expanded"},
            "payment_status": "paid",
        })
        details = extract_checkout_details(event, json.dumps(event))

        assert details.session_id == "cs_test_abc"
        assert details.amount_total == 2500
        assert str(details.total_amount) == "25"
        assert details.currency == "eur"
        assert details.customer_email == "a@example.com"
        assert details.payment_intent_id == "pi_expanded"
        assert details.payment_status == "paid"
        assert set(details.sources.values()) == {"structured"}
        assert details.defaulted == []
        assert not details.is_placeholder

    def test_customer_email_field_used_without_details(self):
        result = StructuredExtractor().extract(
            _event({"id": "cs_1", "customer_email": "legacy@example.com"}),
            "",
            ["customer_email"],
        )
        assert result.values == {"customer_email": "legacy@example.com"}

    @pytest.mark.parametrize("amount", ["1998", -5, True, None, 19.98])
    def test_rejects_non_integer_amounts(self, amount):
        result = StructuredExtractor().extract(
            _event({"id": "cs_1", "amount_total": amount}), "", ["amount_total"]
        )
        assert result.unresolved == ["amount_total"]

    def test_foreign_object_id_is_not_a_session_id(self):
        result = StructuredExtractor().extract(
            _event({"id": "pi_123", "object": "payment_intent"}), "", ["session_id"]
        )
        assert result.unresolved == ["session_id"]


class TestRawTextFallback:

    def test_fills_fields_structured_could_not_read(self):
        event = {
            "id": "evt_1RawText0000000001",
            "type": "checkout.session.completed",
            "data": {"object": None},
            "previous": {
                "id": "cs_from_text",
                "amount_total": 4200,
                "currency": "gbp",
                "customer_details": {"email": "text@example.com"},
            },
        }
        details = extract_checkout_details(event, json.dumps(event))

        assert details.session_id == "cs_from_text"
        assert details.amount_total == 4200
        assert details.currency == "gbp"
        assert details.customer_email == "text@example.com"
        assert details.sources["session_id"] == "raw_text"
        assert details.sources["payment_intent_id"] == "default"
        assert details.payment_intent_id is None

    def test_email_outside_customer_details_is_ignored(self):
        payload = json.dumps({"account": {"email": "owner@example.com"}})
        result = RawTextExtractor().extract({}, payload, ["customer_email"])
        assert result.unresolved == ["customer_email"]

    def test_values_before_data_are_ignored(self):
        payload = json.dumps({
            "id": "evt_1",
            "request": {"amount_total": 1, "currency": "eur"},
            "data": {"object": {"id": "cs_1", "amount_total": 700, "currency": "usd"}},
        })
        result = RawTextExtractor().extract({}, payload, ["amount_total", "currency"])
        assert result.values == {"amount_total": 700, "currency": "usd"}

    def test_only_requested_fields_are_returned(self):
        payload = '{"id": "cs_1", "amount_total": 10, "currency": "usd"}'
        result = RawTextExtractor().extract({}, payload, ["currency"])
        assert result.values == {"currency": "usd"}


class TestDefaults:

    def test_empty_event_is_fully_defaulted(self, caplog):
        event = {"id": "evt_1NothingUseful0000", "type": "checkout.session.completed"}
        with caplog.at_level(logging.WARNING):
            details = extract_checkout_details(event, json.dumps(event))

        assert details.session_id == "sess_Useful0000"
        assert details.amount_total == 0
        assert details.currency == "USD"
        assert details.customer_email == "webhook@example.com"
        assert details.is_placeholder
        assert "session_id" in details.defaulted
        assert any("using defaults" in r.getMessage() for r in caplog.records)

    def test_synthetic_session_id_is_deterministic(self):
        assert synthetic_session_id("evt_1234567890ABCDEF") == "sess_7890ABCDEF"
        assert synthetic_session_id(None, "body") == synthetic_session_id(None, "body")
        assert synthetic_session_id(None, "body") != synthetic_session_id(None, "other")
        assert synthetic_session_id(None, "body").startswith("sess_")

    def test_failing_extractor_is_skipped(self):
        class Broken:
            name = "broken"

            def extract(self, event, payload, fields):
                raise RuntimeError("boom")

        event = _event({"id": "cs_1", "amount_total": 100})
        details = extract_checkout_details(
            event, json.dumps(event), extractors=(Broken(), DefaultExtractor())
        )
        assert details.session_id == "sess_ion0000001"
        assert details.sources["amount_total"] == "default"

    def test_chain_without_default_can_leave_fields_unresolved(self):
        event = _event({})
        with pytest.raises(ValueError, match="Unresolved checkout fields"):
            extract_checkout_details(event, "{}", extractors=(StructuredExtractor(),))


class TestPaymentIntentId:

    def test_reads_payment_intent_object(self):
        event = {"data": {"object": {"id": "pi_1", "object": "payment_intent"}}}
        assert extract_payment_intent_id(event) == "pi_1"

    def test_other_objects_are_ignored(self):
        event = {"data": {"object": {"id": "ch_1", "object": "charge"}}}
        assert extract_payment_intent_id(event) is None

    def test_missing_object(self):
        assert extract_payment_intent_id({"data": {}}) is None
