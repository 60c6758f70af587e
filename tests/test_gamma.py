"""Tests for Gamma payload parsing."""

import json
from datetime import datetime, timezone

from hpbot.api.gamma import GammaClient, parse_end_date


def make_raw_market(**overrides):
    data = {
        "id": "123",
        "question": "Bitcoin Up or Down - January 6, 3:00PM-3:15PM ET",
        "slug": "btc-updown-15m-1767729600",
        "clobTokenIds": json.dumps(["111", "222"]),
        "outcomes": json.dumps(["Up", "Down"]),
        "outcomePrices": json.dumps(["0.965", "0.035"]),
        "endDate": "2026-01-06T20:15:00Z",
        "active": True,
        "closed": False,
    }
    data.update(overrides)
    return data


class TestParseMarket:
    def setup_method(self):
        self.client = GammaClient(base_url="https://gamma.test")

    def test_json_encoded_fields(self):
        market = self.client.parse_market(make_raw_market())

        assert market.id == "123"
        assert market.token_ids == ["111", "222"]
        assert [o.label for o in market.outcomes] == ["Up", "Down"]
        assert [o.probability for o in market.outcomes] == [0.965, 0.035]
        assert market.end_date == datetime(2026, 1, 6, 20, 15, tzinfo=timezone.utc)

    def test_plain_list_fields_and_many_outcomes(self):
        market = self.client.parse_market(
            make_raw_market(
                clobTokenIds=["a", "b", "c"],
                outcomes=["Red", "Green", "Blue"],
                outcomePrices=["0.5", "0.3", "0.2"],
            )
        )

        assert len(market.outcomes) == 3
        assert market.outcomes[2].label == "Blue"

    def test_tokens_fallback(self):
        raw = make_raw_market(clobTokenIds=None, outcomes=None, outcomePrices=None)
        raw["tokens"] = [
            {"token_id": "111", "outcome": "Yes", "price": 0.97},
            {"token_id": "222", "outcome": "No", "price": 0.03},
        ]

        market = self.client.parse_market(raw)

        assert market.token_ids == ["111", "222"]
        assert market.outcomes[0].label == "Yes"
        assert market.outcomes[0].probability == 0.97

    def test_missing_prices_default_to_zero(self):
        market = self.client.parse_market(make_raw_market(outcomePrices=None))

        assert [o.probability for o in market.outcomes] == [0.0, 0.0]

    def test_market_without_tokens_is_skipped(self):
        assert self.client.parse_market(make_raw_market(clobTokenIds="[]")) is None

    def test_event_fields_fill_gaps(self):
        raw = make_raw_market(question=None, endDate=None)
        event = {"id": "e1", "title": "Bitcoin Up or Down", "endDate": "2026-01-06T20:15:00Z"}

        market = self.client.parse_market(raw, parent=event)

        assert market.question == "Bitcoin Up or Down"
        assert market.end_date is not None


class TestParseEvent:
    def test_closed_and_inactive_markets_are_skipped(self):
        client = GammaClient(base_url="https://gamma.test")
        event = {
            "id": "e1",
            "markets": [
                make_raw_market(id="1"),
                make_raw_market(id="2", closed=True),
                make_raw_market(id="3", active=False),
            ],
        }

        assert [m.id for m in client.parse_event(event)] == ["1"]


class TestParseEndDate:
    def test_field_aliases(self):
        assert parse_end_date({"end_date_iso": "2026-01-06T20:15:00+00:00"}) is not None
        assert parse_end_date({"resolutionDate": "2026-01-06T20:15:00Z"}) is not None

    def test_invalid_or_missing(self):
        assert parse_end_date({}) is None
        assert parse_end_date({"endDate": "soon"}) is None
        assert parse_end_date({"endDate": 12345}) is None

    def test_end_date_without_offset_is_utc(self):
        assert parse_end_date({"endDate": "2026-01-06T20:15:00"}) == datetime(
            2026, 1, 6, 20, 15, tzinfo=timezone.utc
        )
        assert parse_end_date({"end_date": "2026-01-06"}) == datetime(
            2026, 1, 6, tzinfo=timezone.utc
        )
