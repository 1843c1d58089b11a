"""Tests for the HTTP request and response models."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from newsletter_agent.core.types import Article
from newsletter_agent.schemas import (
    GenerateStreamBody,
    PreviewArticle,
    PreviewResponse,
    validation_message,
)

VALID = {
    "feedIds": ["tech", "science"],
    "startDate": "2026-03-01T00:00:00Z",
    "endDate": "2026-03-08T00:00:00.000Z",
}


def _message(payload) -> str:
    with pytest.raises(ValidationError) as excinfo:
        GenerateStreamBody.model_validate(payload)
    return validation_message(excinfo.value.errors())


def test_valid_body_becomes_request():
    request = GenerateStreamBody.model_validate({**VALID, "userInput": "Keep it short"}).to_request()

    assert request.feed_ids == ("tech", "science")
    assert request.start_date == datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert request.end_date == datetime(2026, 3, 8, tzinfo=timezone.utc)
    assert request.user_input == "Keep it short"


def test_duplicate_feed_ids_are_kept_as_sent():
    request = GenerateStreamBody.model_validate({**VALID, "feedIds": ["b", "a", "b"]}).to_request()

    assert request.feed_ids == ("b", "a", "b")
    assert request.distinct_feed_ids == ["b", "a"]


def test_naive_dates_are_utc():
    request = GenerateStreamBody.model_validate(
        {**VALID, "startDate": "2026-03-01T10:00:00"}
    ).to_request()

    assert request.start_date == datetime(2026, 3, 1, 10, tzinfo=timezone.utc)


def test_blank_user_input_is_dropped():
    assert GenerateStreamBody.model_validate({**VALID, "userInput": ""}).to_request().user_input is None


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ([], "Request body must be a JSON object"),
        ({**VALID, "feedIds": []}, "feedIds is required and must be a non-empty array"),
        ({**VALID, "feedIds": "tech"}, "feedIds is required and must be a non-empty array"),
        (
            {k: v for k, v in VALID.items() if k != "feedIds"},
            "feedIds is required and must be a non-empty array",
        ),
        ({**VALID, "feedIds": ["tech", ""]}, "feedIds must contain only non-empty strings"),
        ({**VALID, "feedIds": [1]}, "feedIds must contain only non-empty strings"),
        ({k: v for k, v in VALID.items() if k != "endDate"}, "startDate and endDate are required"),
        ({**VALID, "startDate": ""}, "startDate and endDate are required"),
        ({**VALID, "endDate": None}, "startDate and endDate are required"),
        ({**VALID, "startDate": "last tuesday"}, "startDate is not a valid ISO-8601 timestamp"),
        ({**VALID, "userInput": 5}, "userInput must be a string"),
    ],
)
def test_invalid_bodies(payload, message):
    assert _message(payload) == message


def test_feed_ids_are_checked_before_dates():
    assert _message({"feedIds": []}) == "feedIds is required and must be a non-empty array"


def test_request_validation_locations_are_understood():
    errors = [{"type": "json_invalid", "loc": ("body", 1), "msg": "JSON decode error", "input": {}}]
    assert validation_message(errors) == "Request body must be valid JSON"

    errors = [{"type": "missing", "loc": ("body", "startDate"), "msg": "Field required", "input": {}}]
    assert validation_message(errors) == "startDate and endDate are required"


def test_preview_response_uses_camel_case():
    article = Article(
        id="a1",
        feed_id="tech",
        guid="g1",
        title="Story",
        link="https://tech.example/1",
        pub_date=datetime(2026, 3, 2, tzinfo=timezone.utc),
        source_feed_ids=["tech", "other"],
        feed_title="Tech",
    )
    response = PreviewResponse(article_count=1, articles=[PreviewArticle.from_article(article)])

    data = response.model_dump(mode="json", by_alias=True)

    assert data["articleCount"] == 1
    assert data["articles"][0] == {
        "title": "Story",
        "feedTitle": "Tech",
        "pubDate": "2026-03-02T00:00:00Z",
        "sourceCount": 2,
    }
