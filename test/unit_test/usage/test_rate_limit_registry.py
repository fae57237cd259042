"""Unit tests for the registry of effective rate limits."""

import pytest
from pydantic import ValidationError

from forgekit.usage.rate_limiter import DEFAULT_RATE_LIMITS, RateLimitRegistry, normalize_service


class TestDefaults:
    def test_default_limits(self):
        registry = RateLimitRegistry()

        openai = registry.limits_for("openai")
        assert openai.max_calls_per_hour == 100
        assert openai.max_calls_per_day == 1000
        assert openai.max_tokens_per_day == 1_000_000
        assert openai.max_cost_per_day == 10000

        meshy = registry.limits_for("meshy")
        assert meshy.max_calls_per_hour == 20
        assert meshy.max_tokens_per_day == 0
        assert meshy.max_cost_per_day == 5000

        elevenlabs = registry.limits_for("elevenlabs")
        assert elevenlabs.max_calls_per_day == 500

    def test_unknown_service_falls_back_to_openai(self):
        registry = RateLimitRegistry()

        assert registry.limits_for("midjourney") == DEFAULT_RATE_LIMITS["openai"]

    def test_lookup_is_case_insensitive(self):
        registry = RateLimitRegistry()

        assert registry.limits_for(" Anthropic ") == DEFAULT_RATE_LIMITS["anthropic"]

    def test_normalize_service(self):
        assert normalize_service("  ElevenLabs ") == "elevenlabs"


class TestCustomLimits:
    def test_partial_override_keeps_other_fields(self):
        registry = RateLimitRegistry()

        limits = registry.set_custom_limits("openai", max_calls_per_hour=5)

        assert limits.max_calls_per_hour == 5
        assert limits.max_calls_per_day == 1000
        assert registry.limits_for("openai").max_calls_per_hour == 5

    def test_overrides_accumulate(self):
        registry = RateLimitRegistry()

        registry.set_custom_limits("meshy", max_calls_per_hour=1)
        registry.set_custom_limits("meshy", max_cost_per_day=100)

        limits = registry.limits_for("meshy")
        assert limits.max_calls_per_hour == 1
        assert limits.max_cost_per_day == 100

    def test_defaults_are_not_mutated(self):
        registry = RateLimitRegistry()

        registry.set_custom_limits("openai", max_calls_per_hour=5)

        assert DEFAULT_RATE_LIMITS["openai"].max_calls_per_hour == 100
        assert RateLimitRegistry().limits_for("openai").max_calls_per_hour == 100

    def test_unknown_service_starts_from_fallback(self):
        registry = RateLimitRegistry()

        limits = registry.set_custom_limits("stability", max_calls_per_day=7)

        assert limits.max_calls_per_day == 7
        assert limits.max_calls_per_hour == 100
        assert registry.limits_for("openai").max_calls_per_day == 1000

    def test_negative_limit_is_rejected(self):
        registry = RateLimitRegistry()

        with pytest.raises(ValidationError):
            registry.set_custom_limits("openai", max_calls_per_hour=-1)

    def test_unknown_field_is_rejected(self):
        registry = RateLimitRegistry()

        with pytest.raises(ValidationError):
            registry.set_custom_limits("openai", max_requests=3)

    def test_reset_restores_defaults(self):
        registry = RateLimitRegistry()
        registry.set_custom_limits("openai", max_calls_per_hour=5)

        registry.reset()

        assert registry.limits_for("openai").max_calls_per_hour == 100

    def test_overrides_from_configuration(self):
        registry = RateLimitRegistry({"openai": {"max_calls_per_hour": 50}, "Meshy": {"max_cost_per_day": 0}})

        assert registry.limits_for("openai").max_calls_per_hour == 50
        assert registry.limits_for("meshy").max_cost_per_day == 0
