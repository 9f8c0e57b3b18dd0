"""Runtime configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


@dataclass(frozen=True)
class LayoutThresholds:
    """Upper item counts (inclusive) of the three fixed layout profiles."""

    large_max: int = 15
    condensed_max: int = 30
    two_column_max: int = 50

    def __post_init__(self) -> None:
        if self.large_max < 0:
            raise ValueError("large_max must be non-negative")
        if not self.large_max < self.condensed_max < self.two_column_max:
            raise ValueError(
                "Layout thresholds must be strictly increasing: "
                f"{self.large_max}, {self.condensed_max}, {self.two_column_max}"
            )


@dataclass(frozen=True)
class AdaptivePolicy:
    """Breakpoints of the adaptive profile.

    The two thresholds are driven by the same item count but are tuned
    independently; neither is derived from page capacity.
    """

    font_breakpoint: int = 20
    two_column_threshold: int = 20


@dataclass(frozen=True)
class BusinessIdentity:
    name: str = "EVER GREEN PRODUCE L.L.C"
    phone: str = "646-667-9749"
    order_phone: str = "646-667-9749"
    tagline: str = "PRODUCE DISTRIBUTION HUB"
    conditions: str = (
        "Deliveries must be verified on-site. No adjustments after departure. "
        "EVER GREEN PRODUCE L.L.C is not liable for indirect damages post-acceptance."
    )
    invoice_terms: str = "Terms: Due on Delivery"
    proposal_terms: str = "Terms: Prices valid for 7 days"

    def terms_for(self, kind: str) -> str:
        if kind == "proposal":
            return self.proposal_terms
        return self.invoice_terms


@dataclass(frozen=True)
class RenderConfig:
    identity: BusinessIdentity = field(default_factory=BusinessIdentity)
    thresholds: LayoutThresholds = field(default_factory=LayoutThresholds)
    adaptive: AdaptivePolicy = field(default_factory=AdaptivePolicy)
    currency: str = "USD"


def load_render_config() -> RenderConfig:
    defaults = BusinessIdentity()
    identity = BusinessIdentity(
        name=env_str("INVOICE_BUSINESS_NAME", defaults.name),
        phone=env_str("INVOICE_BUSINESS_PHONE", defaults.phone),
        order_phone=env_str("INVOICE_ORDER_PHONE", defaults.order_phone),
        tagline=env_str("INVOICE_TAGLINE", defaults.tagline),
        conditions=env_str("INVOICE_CONDITIONS", defaults.conditions),
        invoice_terms=env_str("INVOICE_TERMS", defaults.invoice_terms),
        proposal_terms=env_str("INVOICE_PROPOSAL_TERMS", defaults.proposal_terms),
    )
    base = LayoutThresholds()
    try:
        thresholds = LayoutThresholds(
            large_max=env_int("INVOICE_LARGE_MAX_ITEMS", base.large_max, minimum=0),
            condensed_max=env_int("INVOICE_CONDENSED_MAX_ITEMS", base.condensed_max),
            two_column_max=env_int("INVOICE_TWO_COLUMN_MAX_ITEMS", base.two_column_max),
        )
    except ValueError:
        # Unordered overrides fall back to the defaults, like malformed values.
        thresholds = base
    policy = AdaptivePolicy()
    adaptive = AdaptivePolicy(
        font_breakpoint=env_int("INVOICE_ADAPTIVE_FONT_BREAKPOINT", policy.font_breakpoint, minimum=0),
        two_column_threshold=env_int(
            "INVOICE_ADAPTIVE_TWO_COLUMN_THRESHOLD",
            policy.two_column_threshold,
            minimum=0,
        ),
    )
    return RenderConfig(
        identity=identity,
        thresholds=thresholds,
        adaptive=adaptive,
        currency=env_str("INVOICE_CURRENCY", "USD").upper(),
    )


DEFAULT_RENDER_CONFIG = load_render_config()

DEFAULT_MAX_CONCURRENT_EXPORTS = max(4, min(32, os.cpu_count() or 4))
MAX_CONCURRENT_EXPORTS = env_int(
    "INVOICE_MAX_CONCURRENT_EXPORTS",
    DEFAULT_MAX_CONCURRENT_EXPORTS,
    minimum=1,
)
MAX_INFLIGHT_EXPORTS = env_int(
    "INVOICE_MAX_INFLIGHT_EXPORTS",
    max(100, MAX_CONCURRENT_EXPORTS * 4),
    minimum=1,
)
EXPORT_QUEUE_TIMEOUT_MS = env_int("INVOICE_EXPORT_QUEUE_TIMEOUT_MS", 120000, minimum=0)
EXPORT_TIMEOUT_MS = env_int("INVOICE_EXPORT_TIMEOUT_MS", 300000, minimum=1000)

MAX_BODY_BYTES = env_int("INVOICE_MAX_BODY_BYTES", 16 * 1024 * 1024, minimum=1024)
MAX_ITEMS = env_int("INVOICE_MAX_ITEMS", 120, minimum=1)
LISTEN_BACKLOG = env_int("INVOICE_LISTEN_BACKLOG", 512, minimum=1)
