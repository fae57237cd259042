"""
Cost estimation for external AI services.

All public calculators return integer US cents rounded up, so any non-zero
fractional cent is billed as a whole cent. Arithmetic is done on ``Decimal``
prices to keep exact amounts from rounding up spuriously.
"""

from __future__ import annotations

from decimal import ROUND_CEILING, Decimal
from typing import Dict, Literal, Optional

from forgekit.core.logging_config import get_logger

logger = get_logger(__name__)

TokenType = Literal["input", "output", "combined"]

_PER_MILLION = Decimal(1_000_000)
_PER_THOUSAND = Decimal(1_000)

# Prices per 1M tokens, USD
OPENAI_PRICING: Dict[str, Dict[str, Decimal]] = {
    "gpt-4-turbo": {"input": Decimal("10.00"), "output": Decimal("30.00")},
    "gpt-4": {"input": Decimal("30.00"), "output": Decimal("60.00")},
    "gpt-4-32k": {"input": Decimal("60.00"), "output": Decimal("120.00")},
    "gpt-3.5-turbo": {"input": Decimal("0.50"), "output": Decimal("1.50")},
    "gpt-3.5-turbo-16k": {"input": Decimal("3.00"), "output": Decimal("4.00")},
    "text-embedding-3-small": {"input": Decimal("0.02"), "output": Decimal("0.02")},
    "text-embedding-3-large": {"input": Decimal("0.13"), "output": Decimal("0.13")},
    "text-embedding-ada-002": {"input": Decimal("0.10"), "output": Decimal("0.10")},
    # Per image rather than per token
    "dall-e-3": {"input": Decimal("0.04"), "output": Decimal("0.08")},
    "dall-e-2": {"input": Decimal("0.02"), "output": Decimal("0.02")},
}
OPENAI_FALLBACK_MODEL = "gpt-3.5-turbo"
IMAGE_MODELS = ("dall-e-3", "dall-e-2")
IMAGE_FALLBACK_MODEL = "dall-e-3"

# Prices per 1M tokens, USD
ANTHROPIC_PRICING: Dict[str, Dict[str, Decimal]] = {
    "claude-3-opus": {"input": Decimal("15.00"), "output": Decimal("75.00")},
    "claude-3-sonnet": {"input": Decimal("3.00"), "output": Decimal("15.00")},
    "claude-3-haiku": {"input": Decimal("0.25"), "output": Decimal("1.25")},
    "claude-2.1": {"input": Decimal("8.00"), "output": Decimal("24.00")},
    "claude-2.0": {"input": Decimal("8.00"), "output": Decimal("24.00")},
}
ANTHROPIC_FALLBACK_MODEL = "claude-3-haiku"

# Flat price per generation, USD
MESHY_PRICING: Dict[str, Decimal] = {
    "text-to-3d": Decimal("0.10"),
    "image-to-3d": Decimal("0.15"),
    "text-to-texture": Decimal("0.05"),
    "refine-model": Decimal("0.20"),
}
MESHY_FALLBACK_TYPE = "text-to-3d"

# Price per 1000 characters, USD
ELEVENLABS_PRICING: Dict[str, Decimal] = {
    "standard": Decimal("0.30"),
    "premium": Decimal("0.60"),
    "turbo": Decimal("0.15"),
}
ELEVENLABS_FALLBACK_TIER = "standard"


def _to_cents(usd: Decimal) -> int:
    return int((usd * 100).to_integral_value(rounding=ROUND_CEILING))


def _require_non_negative(value: int, name: str) -> Decimal:
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return Decimal(value)


def _token_cost(
    tokens: int,
    model: str,
    token_type: TokenType,
    pricing_table: Dict[str, Dict[str, Decimal]],
    fallback_model: str,
) -> int:
    tokens_d = _require_non_negative(tokens, "tokens")
    pricing = pricing_table.get(model)

    if pricing is None:
        # Unknown models are charged a single rate of the fallback model
        fallback = pricing_table[fallback_model]
        price = fallback["output"] if token_type == "output" else fallback["input"]
        return _to_cents(tokens_d * price / _PER_MILLION)

    if token_type == "combined":
        # Assume a 50/50 split between input and output tokens
        half = tokens_d / 2
        usd = half * pricing["input"] / _PER_MILLION + half * pricing["output"] / _PER_MILLION
    else:
        usd = tokens_d * pricing[token_type] / _PER_MILLION

    return _to_cents(usd)


def calculate_openai_cost(tokens: int, model: str, token_type: TokenType = "combined") -> int:
    """
    Calculate OpenAI API cost.

    Args:
        tokens: Number of tokens used
        model: Model identifier
        token_type: 'input', 'output' or 'combined' (50/50 split)

    Returns:
        Cost in US cents
    """
    return _token_cost(tokens, model, token_type, OPENAI_PRICING, OPENAI_FALLBACK_MODEL)


def calculate_anthropic_cost(tokens: int, model: str, token_type: TokenType = "combined") -> int:
    """
    Calculate Anthropic API cost.

    Args:
        tokens: Number of tokens used
        model: Model identifier
        token_type: 'input', 'output' or 'combined' (50/50 split)

    Returns:
        Cost in US cents
    """
    return _token_cost(tokens, model, token_type, ANTHROPIC_PRICING, ANTHROPIC_FALLBACK_MODEL)


def calculate_image_cost(model: str, count: int = 1, quality: str = "standard", size: str = "1024x1024") -> int:
    """
    Calculate OpenAI image generation cost.

    Image models are priced per image: the ``input`` rate covers standard
    square images and the ``output`` rate HD or non-square ones. Models
    without an image price fall back to ``dall-e-3``.

    Returns:
        Cost in US cents
    """
    images = _require_non_negative(count, "count")
    pricing = OPENAI_PRICING[model if model in IMAGE_MODELS else IMAGE_FALLBACK_MODEL]
    price = pricing["output"] if quality == "hd" or size != "1024x1024" else pricing["input"]
    return _to_cents(images * price)


def calculate_meshy_cost(generation_type: str) -> int:
    """Flat Meshy cost in US cents for one generation."""
    price = MESHY_PRICING.get(generation_type, MESHY_PRICING[MESHY_FALLBACK_TYPE])
    return _to_cents(price)


def calculate_elevenlabs_cost(characters: int, voice_type: str = "standard") -> int:
    """ElevenLabs cost in US cents for synthesizing ``characters`` characters."""
    price = ELEVENLABS_PRICING.get(voice_type, ELEVENLABS_PRICING[ELEVENLABS_FALLBACK_TIER])
    return _to_cents(_require_non_negative(characters, "characters") / _PER_THOUSAND * price)


def calculate_cost(
    service: str,
    model: Optional[str] = None,
    tokens: int = 0,
    characters: int = 0,
    token_type: TokenType = "combined",
) -> int:
    """Dispatch to the calculator of ``service``.

    For Meshy ``model`` is the generation type and for ElevenLabs it is the
    voice tier. Services without a pricing table cost nothing.
    """
    name = service.lower()
    if name == "openai":
        return calculate_openai_cost(tokens, model or OPENAI_FALLBACK_MODEL, token_type)
    if name == "anthropic":
        return calculate_anthropic_cost(tokens, model or ANTHROPIC_FALLBACK_MODEL, token_type)
    if name == "meshy":
        return calculate_meshy_cost(model or MESHY_FALLBACK_TYPE)
    if name == "elevenlabs":
        return calculate_elevenlabs_cost(characters, model or ELEVENLABS_FALLBACK_TIER)

    logger.debug(f"No pricing table for service '{service}', recording zero cost")
    return 0


def format_cost(cents: int) -> str:
    """Format a cost in cents as a USD string, e.g. ``$1.23``."""
    dollars = Decimal(cents) / 100
    return f"${dollars:.2f}"


def get_pricing_info(service: str, model: str) -> Optional[Dict[str, float]]:
    """
    Get pricing information for a specific service and model.

    Returns:
        ``{"input", "output"}`` prices per 1M tokens for token-priced services,
        ``{"flat"}`` for per-generation / per-1000-character services, or
        ``None`` when the service or model is unknown.
    """
    name = service.lower()
    if name in ("openai", "anthropic"):
        table = OPENAI_PRICING if name == "openai" else ANTHROPIC_PRICING
        pricing = table.get(model)
        if pricing is None:
            return None
        return {"input": float(pricing["input"]), "output": float(pricing["output"])}
    if name in ("meshy", "elevenlabs"):
        flat_table = MESHY_PRICING if name == "meshy" else ELEVENLABS_PRICING
        price = flat_table.get(model)
        return {"flat": float(price)} if price is not None else None
    return None
