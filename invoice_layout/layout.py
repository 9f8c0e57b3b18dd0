"""Layout profile selection, density resolution and column partitioning.

Everything here is pure: the same counts and items always give the same
profile, sizing and columns.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Generic, Optional, Sequence, Tuple, TypeVar

from .config import AdaptivePolicy, LayoutThresholds

T = TypeVar("T")

DEFAULT_THRESHOLDS = LayoutThresholds()
DEFAULT_ADAPTIVE_POLICY = AdaptivePolicy()

SPARSE_PAGE_MAX_ITEMS = 8
SPARSE_PAGE_SPACING_PX = 32
LIGHT_PAGE_MAX_ITEMS = 15
LIGHT_PAGE_SPACING_PX = 16

# Floor for fitting rows onto a single page.
MIN_ROW_HEIGHT_PX = 11
MIN_FONT_SIZE_PT = 5.5


class LayoutProfile(Enum):
    LARGE_SINGLE = "large"
    CONDENSED_SINGLE = "condensed"
    TWO_COLUMN = "two-column"
    ADAPTIVE = "adaptive"

    @property
    def tier(self) -> int:
        return _TIERS[self]

    @property
    def two_columns(self) -> bool:
        """Fixed column choice; the adaptive profile decides per count."""
        return self is LayoutProfile.TWO_COLUMN


_TIERS = {
    LayoutProfile.LARGE_SINGLE: 0,
    LayoutProfile.CONDENSED_SINGLE: 1,
    LayoutProfile.TWO_COLUMN: 2,
    LayoutProfile.ADAPTIVE: 3,
}


@dataclass(frozen=True)
class DensityBucket:
    """Sizing used up to ``max_count`` items; ``None`` means no upper bound."""

    max_count: Optional[int]
    font_size_pt: float
    row_height_px: int
    row_padding_px: int

    def accepts(self, count: int) -> bool:
        return self.max_count is None or count <= self.max_count


@dataclass(frozen=True)
class DensityParameters:
    font_size_pt: float
    row_height_px: int
    row_padding_px: int
    bill_to_spacing_px: int
    two_columns: bool


DENSITY_TABLES: Dict[LayoutProfile, Tuple[DensityBucket, ...]] = {
    LayoutProfile.LARGE_SINGLE: (
        DensityBucket(None, 9.5, 28, 2),
    ),
    LayoutProfile.CONDENSED_SINGLE: (
        DensityBucket(22, 8.5, 24, 2),
        DensityBucket(None, 8.0, 21, 1),
    ),
    LayoutProfile.TWO_COLUMN: (
        DensityBucket(40, 8.0, 21, 1),
        DensityBucket(None, 7.5, 19, 0),
    ),
}

ADAPTIVE_ROOMY = DensityBucket(None, 9.0, 26, 2)
ADAPTIVE_COMPACT = DensityBucket(None, 7.0, 17, 0)


def _check_count(count: int) -> None:
    if count < 0:
        raise ValueError(f"Item count cannot be negative: {count}")


def select_layout(
    count: int,
    thresholds: LayoutThresholds = DEFAULT_THRESHOLDS,
    override: Optional[LayoutProfile] = None,
) -> LayoutProfile:
    """Pick the layout profile for ``count`` active items.

    An explicit ``override`` always wins.
    """
    _check_count(count)
    if override is not None:
        return override
    if count <= thresholds.large_max:
        return LayoutProfile.LARGE_SINGLE
    if count <= thresholds.condensed_max:
        return LayoutProfile.CONDENSED_SINGLE
    if count <= thresholds.two_column_max:
        return LayoutProfile.TWO_COLUMN
    return LayoutProfile.ADAPTIVE


def adaptive_font_bucket(count: int, policy: AdaptivePolicy = DEFAULT_ADAPTIVE_POLICY) -> DensityBucket:
    _check_count(count)
    return ADAPTIVE_ROOMY if count <= policy.font_breakpoint else ADAPTIVE_COMPACT


def adaptive_uses_two_columns(count: int, policy: AdaptivePolicy = DEFAULT_ADAPTIVE_POLICY) -> bool:
    _check_count(count)
    return count > policy.two_column_threshold


def lookup_bucket(profile: LayoutProfile, count: int) -> DensityBucket:
    for bucket in DENSITY_TABLES[profile]:
        if bucket.accepts(count):
            return bucket
    raise LookupError(f"No density bucket for {profile.value} at {count} items")


def bill_to_spacing(count: int, two_columns: bool) -> int:
    if two_columns:
        return 0
    if count <= SPARSE_PAGE_MAX_ITEMS:
        return SPARSE_PAGE_SPACING_PX
    if count <= LIGHT_PAGE_MAX_ITEMS:
        return LIGHT_PAGE_SPACING_PX
    return 0


def resolve_density(
    profile: LayoutProfile,
    count: int,
    policy: AdaptivePolicy = DEFAULT_ADAPTIVE_POLICY,
) -> DensityParameters:
    _check_count(count)
    if profile is LayoutProfile.ADAPTIVE:
        bucket = adaptive_font_bucket(count, policy)
        two_columns = adaptive_uses_two_columns(count, policy)
    else:
        bucket = lookup_bucket(profile, count)
        two_columns = profile.two_columns

    return DensityParameters(
        font_size_pt=bucket.font_size_pt,
        row_height_px=bucket.row_height_px,
        row_padding_px=bucket.row_padding_px,
        bill_to_spacing_px=bill_to_spacing(count, two_columns),
        two_columns=two_columns,
    )


def fit_density(
    density: DensityParameters,
    rows_per_column: int,
    available_px: float,
) -> Optional[DensityParameters]:
    """Shrink rows, and the font with them, until they fit ``available_px``.

    Returns ``density`` unchanged when it already fits and ``None`` when even
    ``MIN_ROW_HEIGHT_PX`` rows overflow.
    """
    if rows_per_column <= 0 or rows_per_column * density.row_height_px <= available_px:
        return density
    row_height = int(available_px // rows_per_column)
    if row_height < MIN_ROW_HEIGHT_PX:
        return None
    font_size = density.font_size_pt * row_height / density.row_height_px
    return replace(
        density,
        font_size_pt=max(MIN_FONT_SIZE_PT, round(font_size * 2) / 2),
        row_height_px=row_height,
        row_padding_px=0,
    )


@dataclass(frozen=True)
class Column(Generic[T]):
    start_number: int
    items: Tuple[T, ...]

    def numbered(self) -> Tuple[Tuple[int, T], ...]:
        return tuple(enumerate(self.items, start=self.start_number))

    def __len__(self) -> int:
        return len(self.items)


def partition_columns(items: Sequence[T], two_columns: bool) -> Tuple[Column, ...]:
    """Split ``items`` into presentation columns keeping global numbering.

    With two columns the first receives ``ceil(n / 2)`` items, so an odd
    count puts the extra item on the left.
    """
    ordered = tuple(items)
    if not two_columns:
        return (Column(1, ordered),)
    split = (len(ordered) + 1) // 2
    return (
        Column(1, ordered[:split]),
        Column(split + 1, ordered[split:]),
    )
