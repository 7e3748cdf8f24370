from __future__ import annotations

import json
import logging
from typing import List

import httpx
import pytest

from app.schemas import SensorValues
from models.records import AirQualityStatus
from services.analysis import (
    GEMINI_BASE_URL,
    AirQualityAnalyzer,
    GeminiClient,
    GenerationError,
    extract_json,
    fallback_analysis,
    is_retriable,
)

VALUES = SensorValues(co=10, vocs=1, ch4_lpg=100, pm1_0=5, pm2_5=40, pm10=60)
CLEAN = SensorValues(co=0.5, vocs=0.1, ch4_lpg=3, pm1_0=1, pm2_5=3, pm10=3)


class ScriptedGenerator:
    """Replays canned replies; exceptions in the script are raised."""

    def __init__(self, *replies) -> None:
        self.replies = list(replies)
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


def _overloaded() -> httpx.HTTPStatusError:
    request = httpx.Request("POST", f"{GEMINI_BASE_URL}/models/m:generateContent")
    response = httpx.Response(503, request=request, text="The model is overloaded.")
    return httpx.HTTPStatusError("Server error '503 Service Unavailable'", request=request, response=response)


def test_mock_mode_returns_threshold_fallback() -> None:
    analyzer = AirQualityAnalyzer()

    result = analyzer.analyze(VALUES)

    assert analyzer.mode == "mock"
    assert result.source == "fallback"
    assert result.overall_status is AirQualityStatus.unhealthy
    assert result.summary.startswith("Air quality analysis based on sensor readings.")
    assert "CO: 10.0ppm" in result.summary
    assert result.recommendations
    assert any(factor.startswith("Carbon Monoxide") for factor in result.risk_factors)


def test_fallback_for_clean_air_has_no_risk_factors() -> None:
    result = fallback_analysis(CLEAN)

    assert result.overall_status is AirQualityStatus.good
    assert result.risk_factors == []


def test_model_reply_with_surrounding_text_is_parsed() -> None:
    reply = (
        "Here you go:\n```json\n"
        + json.dumps(
            {
                "overallStatus": "moderate",
                "summary": "Mostly fine.",
                "healthImpact": "Low.",
                "recommendations": ["Ventilate"],
                "riskFactors": ["PM2.5"],
            }
        )
        + "\n```"
    )
    generator = ScriptedGenerator(reply)
    analyzer = AirQualityAnalyzer(generator=generator)

    result = analyzer.analyze(VALUES, language="fr")

    assert result.source == "model"
    assert result.overall_status is AirQualityStatus.moderate
    assert result.recommendations == ["Ventilate"]
    assert "fr" in generator.prompts[0]
    assert "CO (Carbon Monoxide): 10.0 ppm" in generator.prompts[0]


def test_unparseable_reply_falls_back() -> None:
    analyzer = AirQualityAnalyzer(generator=ScriptedGenerator("I cannot help with that."))

    result = analyzer.analyze(VALUES)

    assert result == fallback_analysis(VALUES)


def test_reply_with_wrong_shape_falls_back() -> None:
    analyzer = AirQualityAnalyzer(generator=ScriptedGenerator('{"overallStatus": "terrible"}'))

    assert analyzer.analyze(VALUES).source == "fallback"


def test_retriable_errors_are_retried_with_backoff() -> None:
    delays: List[float] = []
    generator = ScriptedGenerator(
        _overloaded(),
        GenerationError("model overloaded"),
        '{"localitySpecificAdvice": "Stay indoors."}',
    )
    analyzer = AirQualityAnalyzer(generator=generator, base_delay=0.5, sleep=delays.append)

    result = analyzer.locality_report(VALUES)

    assert result.locality_specific_advice == "Stay indoors."
    assert result.source == "model"
    assert delays == [0.5, 1.0]


def test_retries_stop_after_max_attempts() -> None:
    delays: List[float] = []
    generator = ScriptedGenerator(*[_overloaded() for _ in range(3)])
    analyzer = AirQualityAnalyzer(generator=generator, max_attempts=3, sleep=delays.append)

    result = analyzer.forecast(VALUES)

    assert result.source == "fallback"
    assert len(generator.prompts) == 3
    assert delays == [1.0, 2.0]


def test_non_retriable_error_falls_back_immediately() -> None:
    delays: List[float] = []
    request = httpx.Request("POST", GEMINI_BASE_URL)
    error = httpx.HTTPStatusError(
        "Client error '400 Bad Request'",
        request=request,
        response=httpx.Response(400, request=request),
    )
    generator = ScriptedGenerator(error)
    analyzer = AirQualityAnalyzer(generator=generator, sleep=delays.append)

    result = analyzer.recommend_actions(VALUES)

    assert result.source == "fallback"
    assert delays == []
    assert len(generator.prompts) == 1


def test_fallback_actions_target_elevated_channels() -> None:
    result = AirQualityAnalyzer().recommend_actions(VALUES)

    assert any("gas appliances" in action for action in result.actions)
    assert not any("gas lines" in action for action in result.actions)


def test_fallback_actions_for_clean_air_are_not_empty() -> None:
    assert AirQualityAnalyzer().recommend_actions(CLEAN).actions


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ('{"a": 1}', {"a": 1}),
        ('prefix {"a": {"b": 2}} suffix', {"a": {"b": 2}}),
        ("no json here", None),
        ("{not json}", None),
        ("", None),
    ],
)
def test_extract_json(text: str, expected) -> None:
    assert extract_json(text) == expected


def test_is_retriable() -> None:
    assert is_retriable(_overloaded())
    assert is_retriable(GenerationError("Service Unavailable"))
    assert not is_retriable(GenerationError("quota exceeded"))


def test_gemini_client_posts_prompt_and_joins_parts() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["api_key"] = request.headers.get("x-goog-api-key")
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": "Hello "}, {"text": "world"}]}}]},
        )

    http_client = httpx.Client(base_url=GEMINI_BASE_URL, transport=httpx.MockTransport(handler))
    client = GeminiClient(api_key="secret", model="gemini-test", http_client=http_client)

    assert client.generate("Say hello") == "Hello world"
    assert "/models/gemini-test:generateContent" in captured["url"]
    assert "secret" not in captured["url"]
    assert captured["api_key"] == "secret"
    assert captured["body"] == {"contents": [{"parts": [{"text": "Say hello"}]}]}


def test_gemini_client_raises_on_empty_candidates() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []}))
    client = GeminiClient(
        api_key="k",
        model="m",
        http_client=httpx.Client(base_url=GEMINI_BASE_URL, transport=transport),
    )

    with pytest.raises(GenerationError):
        client.generate("prompt")


def test_gemini_client_surfaces_http_errors() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="overloaded"))
    client = GeminiClient(
        api_key="k",
        model="m",
        http_client=httpx.Client(base_url=GEMINI_BASE_URL, transport=transport),
    )

    with pytest.raises(httpx.HTTPStatusError) as excinfo:
        client.generate("prompt")
    assert is_retriable(excinfo.value)


def test_api_key_never_reaches_logs(caplog) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="overloaded"))
    client = GeminiClient(
        api_key="SECRET-KEY-123",
        model="m",
        http_client=httpx.Client(base_url=GEMINI_BASE_URL, transport=transport),
    )
    analyzer = AirQualityAnalyzer(generator=client, max_attempts=2, sleep=lambda delay: None)

    with caplog.at_level(logging.DEBUG):
        result = analyzer.analyze(VALUES)

    assert result.source == "fallback"
    assert caplog.records
    for record in caplog.records:
        assert "SECRET-KEY-123" not in record.getMessage()
        assert "SECRET-KEY-123" not in str(getattr(record, "reason", ""))
