"""
Order Processing Data Structures.

This module defines the data structures passed between pipeline stages:
tokens → logical rows → extracted line items → match results → resolved lines.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any, Tuple, Union
from enum import Enum
import math

from ...models import MasterCustomer, MasterProduct, SchemeSlab

MasterRecord = Union[MasterCustomer, MasterProduct]


class MatchSource(Enum):
    """How a resolution was reached."""
    EXACT = "EXACT"
    FUZZY_AUTO = "FUZZY_AUTO"
    MANUAL_REQUIRED = "MANUAL_REQUIRED"
    NONE = "NONE"
    REVERSE_LOOKUP = "REVERSE_LOOKUP"


@dataclass(frozen=True)
class PositionedToken:
    """A fragment of recognized text with its page coordinates."""
    text: str
    x: float
    y: float

    @classmethod
    def from_dict(cls, token_dict: Dict[str, Any]) -> "PositionedToken":
        return cls(
            text=str(token_dict.get("text", "")),
            x=float(token_dict.get("x", 0.0)),
            y=float(token_dict.get("y", 0.0)),
        )


@dataclass(frozen=True)
class LogicalRow:
    """One reconstructed table line."""
    raw_text: str
    y: float = 0.0


@dataclass
class ExtractedLineItem:
    """Quantity and product-name guesses for one row."""
    raw_text: str
    quantity: Optional[int]
    product_name_guess: str
    item_code: Optional[str] = None


@dataclass(frozen=True)
class ScoredCandidate:
    """A master record with the score a strategy gave it."""
    record: MasterRecord
    score: float
    match_type: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.record.code,
            "name": self.record.name,
            "score": round(self.score, 4),
            "match_type": self.match_type,
        }


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of one resolution call. A value: never mutated after creation.

    Invariants: confidence in [0, 1]; EXACT implies confidence 1; MANUAL_REQUIRED implies
    no matched record; candidates sorted by descending score.
    """
    source: MatchSource
    confidence: float = 0.0
    candidates: Tuple[ScoredCandidate, ...] = ()
    matched: Optional[MasterRecord] = None
    match_type: Optional[str] = None
    low_confidence: bool = False

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence out of range: {self.confidence}")
        if self.source is MatchSource.EXACT and self.confidence != 1.0:
            raise ValueError("EXACT match must carry confidence 1")
        if self.source is MatchSource.MANUAL_REQUIRED and self.matched is not None:
            raise ValueError("MANUAL_REQUIRED match must not carry a matched record")
        scores = [c.score for c in self.candidates]
        if scores != sorted(scores, reverse=True):
            raise ValueError("candidates must be sorted by descending score")

    @classmethod
    def none(cls, candidates: Tuple[ScoredCandidate, ...] = ()) -> "MatchResult":
        return cls(source=MatchSource.NONE, candidates=candidates)

    @property
    def is_auto(self) -> bool:
        return self.matched is not None

    @property
    def needs_review(self) -> bool:
        return self.source in (MatchSource.MANUAL_REQUIRED, MatchSource.NONE) or self.low_confidence

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source.value,
            "confidence": round(self.confidence, 4),
            "match_type": self.match_type,
            "low_confidence": self.low_confidence,
            "matched": self.matched.model_dump() if self.matched is not None else None,
            "candidates": [c.to_dict() for c in self.candidates],
        }


@dataclass(frozen=True)
class SchemeResult:
    """Scheme outcome for one order line."""
    scheme_applied: bool
    free_qty: int = 0
    scheme_percent: float = 0.0
    applied_slab: Optional[SchemeSlab] = None
    available_slabs: Tuple[SchemeSlab, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scheme_applied": self.scheme_applied,
            "free_qty": self.free_qty,
            "scheme_percent": self.scheme_percent,
            "applied_slab": self.applied_slab.model_dump() if self.applied_slab else None,
        }


@dataclass(frozen=True)
class UpsellSuggestion:
    """Next slab worth suggesting to the customer."""
    target_qty: int
    additional_qty: int
    free_qty: int
    current_free_qty: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_qty": self.target_qty,
            "additional_qty": self.additional_qty,
            "free_qty": self.free_qty,
            "current_free_qty": self.current_free_qty,
        }


@dataclass
class RowFailure:
    """A row whose extraction or resolution raised; siblings kept going."""
    row_index: int
    raw_text: str
    reason: str


@dataclass
class ResolvedLine:
    """Fully processed order line."""
    row_index: int
    raw_text: str
    quantity: Optional[int]
    product_name_guess: str
    product: MatchResult
    scheme: Optional[SchemeResult] = None
    upsell: Optional[UpsellSuggestion] = None
    item_code: Optional[str] = None

    @property
    def box_pack(self) -> int:
        if isinstance(self.product.matched, MasterProduct):
            return self.product.matched.box_pack or 0
        return 0

    @property
    def packs(self) -> int:
        if not self.quantity or self.box_pack <= 0:
            return 0
        return math.ceil(self.quantity / self.box_pack)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row_index": self.row_index,
            "raw_text": self.raw_text,
            "quantity": self.quantity,
            "product_name_guess": self.product_name_guess,
            "item_code": self.item_code,
            "product": self.product.to_dict(),
            "scheme": self.scheme.to_dict() if self.scheme else None,
            "upsell": self.upsell.to_dict() if self.upsell else None,
            "box_pack": self.box_pack,
            "packs": self.packs,
        }


@dataclass
class DocumentResult:
    """Everything produced for one document."""
    customer_name_guess: Optional[str]
    customer: MatchResult
    lines: List[ResolvedLine] = field(default_factory=list)
    failures: List[RowFailure] = field(default_factory=list)
    skipped: int = 0
    error: Optional[str] = None

    def stats(self) -> Dict[str, int]:
        return {
            "extracted": len(self.lines),
            "matched": sum(1 for line in self.lines if line.product.is_auto),
            "needs_review": sum(1 for line in self.lines if line.product.needs_review),
            "failed": len(self.failures),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "customer_name_guess": self.customer_name_guess,
            "customer": self.customer.to_dict(),
            "lines": [line.to_dict() for line in self.lines],
            "failures": [vars(f) for f in self.failures],
            "skipped": self.skipped,
            "error": self.error,
            "stats": self.stats(),
        }
