"""
Configuration settings loaded from environment variables.

Every threshold and tolerance used by the matching pipeline lives here so it can be
re-tuned per deployment (scanned DPI, distributor document layouts) without code changes.
"""
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator
from typing import Any, Optional
from dotenv import load_dotenv
from pathlib import Path

# Determine .env file path (backend/.env)
_env_path = Path(__file__).parent.parent / ".env"

load_dotenv(dotenv_path=_env_path)


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables."""

    # Row reconstruction
    row_y_tolerance: float = Field(
        default=1.8,
        alias="ROW_Y_TOLERANCE",
        description="Max vertical distance between consecutive tokens of the same row"
    )
    row_column_gap: float = Field(
        default=50.0,
        alias="ROW_COLUMN_GAP",
        description="Horizontal gap above which an extra wide separator is inserted"
    )
    row_min_length: int = Field(
        default=2,
        alias="ROW_MIN_LENGTH",
        description="Rows shorter than this (after trimming) are dropped as noise"
    )

    # Quantity extraction
    qty_min: int = Field(default=1, alias="QTY_MIN", description="Smallest accepted quantity")
    qty_max: int = Field(
        default=9999,
        alias="QTY_MAX",
        description="Upper sanity bound for label and smart-scan quantities"
    )
    qty_max_amount_mode: int = Field(
        default=99999,
        alias="QTY_MAX_AMOUNT_MODE",
        description="Upper bound when searching backward from a monetary amount"
    )

    # Customer resolution
    customer_auto_accept: float = Field(
        default=0.70,
        alias="CUSTOMER_AUTO_ACCEPT",
        description="Minimum fuzzy score to auto-accept a customer (earlier revisions used 0.75)"
    )
    customer_margin: float = Field(
        default=0.10,
        alias="CUSTOMER_MARGIN",
        description="Required gap between best and second-best customer scores"
    )
    customer_first_word_bonus: float = Field(
        default=0.35,
        alias="CUSTOMER_FIRST_WORD_BONUS",
        description="Bonus when the first significant word matches exactly"
    )
    customer_max_score: float = Field(
        default=0.98,
        alias="CUSTOMER_MAX_SCORE",
        description="Fuzzy scores are capped here unless the names are identical"
    )
    candidate_limit: int = Field(
        default=5,
        alias="CANDIDATE_LIMIT",
        description="Number of candidates attached to a MatchResult"
    )

    # Product resolution
    product_low_confidence_floor: float = Field(
        default=0.20,
        alias="PRODUCT_LOW_CONFIDENCE_FLOOR",
        description="Minimum fuzzy score for a low-confidence best guess (earlier revisions used 0.30)"
    )
    product_low_confidence_enabled: bool = Field(
        default=True,
        alias="PRODUCT_LOW_CONFIDENCE_ENABLED",
        description="Auto-select a tagged best guess instead of returning no match"
    )
    product_candidate_search_score: float = Field(
        default=0.70,
        alias="PRODUCT_CANDIDATE_SEARCH_SCORE",
        description="Confidence reported for a unique base-name candidate search survivor"
    )
    noise_brands: str = Field(
        default="MICRO,MICR,RAJ,DIST",
        alias="NOISE_BRANDS",
        description="Comma-separated distributor prefixes that trigger the brand block"
    )

    # Scheme upsell
    upsell_max_ratio: float = Field(
        default=0.5,
        alias="UPSELL_MAX_RATIO",
        description="Suggest next slab when extra qty is at most this fraction of the order"
    )
    upsell_max_units: int = Field(
        default=50,
        alias="UPSELL_MAX_UNITS",
        description="Suggest next slab when extra qty is at most this many units"
    )

    # Application settings
    log_level: str = Field(default="info", alias="LOG_LEVEL")
    max_workers: int = Field(
        default=4,
        alias="MAX_WORKERS",
        description="Thread pool size for multi-document batches"
    )

    @field_validator('product_low_confidence_enabled', mode='before')
    @classmethod
    def parse_bool_from_string(cls, v: Any) -> bool:
        """Parse boolean from string environment variable."""
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower() in ('true', '1', 'yes', 'on', 'y', 't')
        return bool(v)

    @field_validator(
        'customer_auto_accept', 'customer_margin', 'customer_max_score',
        'product_low_confidence_floor', 'product_candidate_search_score', 'upsell_max_ratio',
    )
    @classmethod
    def check_unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {v}")
        return v

    @field_validator('row_y_tolerance')
    @classmethod
    def check_positive_tolerance(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"ROW_Y_TOLERANCE must be positive, got {v}")
        return v

    @model_validator(mode='after')
    def check_quantity_bounds(self) -> "Settings":
        if self.qty_min > self.qty_max:
            raise ValueError(f"QTY_MIN ({self.qty_min}) exceeds QTY_MAX ({self.qty_max})")
        return self

    @property
    def noise_brand_set(self) -> frozenset:
        return frozenset(b.strip().upper() for b in self.noise_brands.split(",") if b.strip())

    model_config = {
        "env_file": str(_env_path),
        "case_sensitive": False,
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
        "extra": "ignore",
    }


# Create a singleton settings instance
settings = Settings()


def get_settings(override: Optional[Settings] = None) -> Settings:
    """Return the explicit settings snapshot if given, else the module singleton."""
    return override if override is not None else settings
