"""
Product Resolver: map a free-text order line to a master product.

Every candidate first has to pass the compatibility gates (brand block, strength,
strict variants). Survivors are scored by an ordered strategy chain; the first strategy
returning a non-zero score decides that candidate's score:

    EXACT          1.00  normalized names equal, or same word set in another order
    NEAR_EXACT     1.00 / 0.95  compact containment within / beyond a small length delta
    CLEANED        0.90  equal after pack/noise/form canonicalization
    BASE_STRENGTH  0.80 / 0.75  base name exact / contained, same explicit strength
    FORM_AWARE     0.88  same dosage form and contained base name
    CONTAINS       0.55  cleaned-name containment, both at least 6 chars

With no chain hit, a candidate search over products sharing the base name runs, and
finally an optional low-confidence fuzzy floor. reverse_lookup() is a separate strategy
that searches the untruncated raw line for product names.
"""
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import logging
import re

from rapidfuzz import fuzz

from ...config import Settings, get_settings
from ...errors import MasterDataError
from ...models import MasterProduct
from ..core.structures import MatchResult, MatchSource, ScoredCandidate
from ..text.normalizer import (
    FORM_WORDS, STRICT_VARIANTS, SOFT_VARIANTS, clean_invoice_desc, normalize_text,
)
from .gates import ProductView, filter_candidates, passes_gates

logger = logging.getLogger(__name__)

NEAR_EXACT_DELTA = 3
NEAR_EXACT_MIN_LENGTH = 5
CONTAINS_MIN_LENGTH = 6
BASE_CONTAIN_MIN_LENGTH = 4
REVERSE_FULL_SCORE = 0.85
REVERSE_REDUCED_SCORE = 0.75
REVERSE_WINDOW_EXTRA_TOKENS = 2
BARE_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")

FUZZY_STOP_WORDS = frozenset({"THE", "AND", "FOR", "WITH", "TAB", "CAP", "OF"})
FUZZY_WEIGHTS = {
    "jaccard": 0.25,
    "overlap": 0.30,
    "partial": 0.30,
    "ratio": 0.15,
}


# ==================== Strategy chain ====================

def _compact(text: str) -> str:
    return text.replace(" ", "")


def exact_strategy(inp: ProductView, cand: ProductView) -> float:
    if not inp.text:
        return 0.0
    if inp.text == cand.text:
        return 1.0
    if set(inp.text.split()) == set(cand.text.split()):
        return 1.0
    return 0.0


def near_exact_strategy(inp: ProductView, cand: ProductView) -> float:
    a, b = _compact(inp.text), _compact(cand.text)
    if min(len(a), len(b)) < NEAR_EXACT_MIN_LENGTH:
        return 0.0
    if a in b or b in a:
        return 1.0 if abs(len(a) - len(b)) <= NEAR_EXACT_DELTA else 0.95
    return 0.0


def cleaned_strategy(inp: ProductView, cand: ProductView) -> float:
    if inp.cleaned and (inp.cleaned == cand.cleaned or _compact(inp.cleaned) == _compact(cand.cleaned)):
        return 0.90
    return 0.0


def _base_contained(a: str, b: str) -> bool:
    if min(len(a), len(b)) < BASE_CONTAIN_MIN_LENGTH:
        return False
    return a in b or b in a


def base_strength_strategy(inp: ProductView, cand: ProductView) -> float:
    if not inp.strength or inp.strength != cand.strength or not inp.base or not cand.base:
        return 0.0
    if inp.base == cand.base:
        return 0.80
    if _base_contained(inp.base, cand.base):
        return 0.75
    return 0.0


def form_aware_strategy(inp: ProductView, cand: ProductView) -> float:
    if inp.form and inp.form == cand.form and _base_contained(inp.base, cand.base):
        return 0.88
    return 0.0


def contains_strategy(inp: ProductView, cand: ProductView) -> float:
    a, b = inp.cleaned, cand.cleaned
    if min(len(a), len(b)) < CONTAINS_MIN_LENGTH:
        return 0.0
    return 0.55 if (a in b or b in a) else 0.0


Strategy = Callable[[ProductView, ProductView], float]

STRATEGY_CHAIN: List[Tuple[str, Strategy]] = [
    ("EXACT", exact_strategy),
    ("NEAR_EXACT", near_exact_strategy),
    ("CLEANED", cleaned_strategy),
    ("BASE_STRENGTH", base_strength_strategy),
    ("FORM_AWARE", form_aware_strategy),
    ("CONTAINS", contains_strategy),
]


def score_with_chain(inp: ProductView, cand: ProductView) -> Tuple[float, str]:
    """First non-zero strategy wins."""
    for name, strategy in STRATEGY_CHAIN:
        score = strategy(inp, cand)
        if score > 0:
            return score, name
    return 0.0, ""


# ==================== Fuzzy floor ====================

def _fuzzy_words(text: str) -> set:
    return {w for w in text.split() if w not in FUZZY_STOP_WORDS}


def fuzzy_similarity(a: str, b: str) -> float:
    """
    Weighted word/character similarity of two cleaned names.

    jaccard and overlap are computed on word sets without stop words; partial and ratio
    are rapidfuzz character scores.
    """
    if not a or not b:
        return 0.0
    wa, wb = _fuzzy_words(a), _fuzzy_words(b)
    jaccard = len(wa & wb) / len(wa | wb) if (wa or wb) else 0.0
    overlap = len(wa & wb) / min(len(wa), len(wb)) if (wa and wb) else 0.0
    partial = fuzz.partial_ratio(a, b) / 100.0
    ratio = fuzz.ratio(a, b) / 100.0
    score = (
        FUZZY_WEIGHTS["jaccard"] * jaccard +
        FUZZY_WEIGHTS["overlap"] * overlap +
        FUZZY_WEIGHTS["partial"] * partial +
        FUZZY_WEIGHTS["ratio"] * ratio
    )
    return max(0.0, min(1.0, score))


# ==================== Resolver ====================

@dataclass(frozen=True)
class ProductIndex:
    """Master product snapshot with pre-computed views. Read-only, shareable across threads."""
    entries: Tuple[Tuple[MasterProduct, ProductView], ...]

    @classmethod
    def build(cls, products: Sequence[MasterProduct]) -> "ProductIndex":
        if products is None:
            raise MasterDataError("products")
        return cls(tuple((p, ProductView.of_product(p)) for p in products))


def _as_index(products) -> ProductIndex:
    if isinstance(products, ProductIndex):
        return products
    return ProductIndex.build(products)


def _rank(scored: List[ScoredCandidate]) -> List[ScoredCandidate]:
    return sorted(scored, key=lambda c: c.score, reverse=True)


def _candidate_search(
    inp: ProductView,
    gated: List[Tuple[MasterProduct, ProductView]],
    cfg: Settings,
) -> Optional[MatchResult]:
    """Group by base name; a unique gated survivor is auto-selected."""
    if not inp.base:
        return None
    group = [p for p, v in gated if v.base == inp.base]
    if not group:
        first = next((w for w in inp.base.split() if len(w) >= 3), "")
        if first:
            group = [p for p, v in gated if v.base.startswith(first)]
    if not group:
        return None

    score = cfg.product_candidate_search_score
    candidates = tuple(ScoredCandidate(p, score, "CANDIDATE_SEARCH") for p in group[:cfg.candidate_limit])
    if len(group) == 1:
        logger.info(f"Candidate search: unique survivor {group[0].product_code} for {inp.raw!r}")
        return MatchResult(
            source=MatchSource.FUZZY_AUTO,
            confidence=score,
            candidates=candidates,
            matched=group[0],
            match_type="CANDIDATE_SEARCH",
        )
    logger.info(f"Candidate search: {len(group)} survivors for {inp.raw!r}, manual selection required")
    return MatchResult(
        source=MatchSource.MANUAL_REQUIRED,
        confidence=score,
        candidates=candidates,
        match_type="CANDIDATE_SEARCH",
    )


def _low_confidence(
    inp: ProductView,
    gated: List[Tuple[MasterProduct, ProductView]],
    cfg: Settings,
) -> MatchResult:
    scored = _rank([
        ScoredCandidate(p, fuzzy_similarity(inp.cleaned, v.cleaned), "LOW_CONFIDENCE")
        for p, v in gated
    ])
    scored = [c for c in scored if c.score > 0]
    top = tuple(scored[:cfg.candidate_limit])
    if not cfg.product_low_confidence_enabled or not scored:
        return MatchResult.none(top)
    best = scored[0]
    if best.score < cfg.product_low_confidence_floor:
        logger.info(f"No product for {inp.raw!r} (best fuzzy {best.score:.3f} below floor)")
        return MatchResult.none(top)
    logger.warning(
        f"Low-confidence product guess for {inp.raw!r}: "
        f"{best.record.product_code} (score={best.score:.3f})"
    )
    return MatchResult(
        source=MatchSource.FUZZY_AUTO,
        confidence=best.score,
        candidates=top,
        matched=best.record,
        match_type="LOW_CONFIDENCE",
        low_confidence=True,
    )


def resolve_product(
    line_text: str,
    products,
    settings: Optional[Settings] = None,
) -> MatchResult:
    """
    Resolve a product-name guess (or full line) against the product master.

    Args:
        line_text: Product description from the order
        products: Sequence of MasterProduct, or a prebuilt ProductIndex (must not be None)
        settings: Optional settings snapshot

    Returns:
        MatchResult. MANUAL_REQUIRED carries the competing candidates; a low-confidence
        best guess is FUZZY_AUTO with low_confidence=True.
    """
    index = _as_index(products)
    cfg = get_settings(settings)

    text = clean_invoice_desc(line_text or "")
    if not text or not index.entries:
        return MatchResult.none()

    # Brand gate reads the uncleaned first token
    raw_tokens = normalize_text(line_text).split()
    inp = replace(ProductView.of(text), raw=line_text, first_token=raw_tokens[0] if raw_tokens else "")

    gated = filter_candidates(inp, list(index.entries), cfg.noise_brand_set)
    logger.debug(f"[PRODUCT] {len(gated)}/{len(index.entries)} candidates pass gates for {text!r}")
    if not gated:
        return MatchResult.none()

    scored: List[ScoredCandidate] = []
    for product, view in gated:
        score, name = score_with_chain(inp, view)
        if score > 0:
            scored.append(ScoredCandidate(product, score, name))

    if scored:
        return _decide(inp, scored, dict((id(p), v) for p, v in gated), cfg)

    found = _candidate_search(inp, gated, cfg)
    if found is not None:
        return found
    return _low_confidence(inp, gated, cfg)


def _decide(
    inp: ProductView,
    scored: List[ScoredCandidate],
    views: Dict[int, ProductView],
    cfg: Settings,
) -> MatchResult:
    ranked = _rank(scored)
    top = tuple(ranked[:cfg.candidate_limit])
    best_score = ranked[0].score
    leaders = [c for c in ranked if c.score == best_score]

    winner = leaders[0]
    if len({c.record.product_code for c in leaders}) > 1:
        # Tie on chain score: break by character similarity of the cleaned names
        sims = [(fuzz.token_sort_ratio(inp.cleaned, views[id(c.record)].cleaned), c) for c in leaders]
        best_sim = max(s for s, _ in sims)
        tied = [c for s, c in sims if s == best_sim]
        if len({c.record.product_code for c in tied}) > 1:
            logger.info(
                f"Product tie for {inp.raw!r} at {best_score:.2f}: "
                + ", ".join(c.record.product_code for c in tied)
            )
            return MatchResult(
                source=MatchSource.MANUAL_REQUIRED,
                confidence=best_score,
                candidates=top,
                match_type=winner.match_type,
            )
        winner = tied[0]

    source = MatchSource.EXACT if winner.match_type == "EXACT" else MatchSource.FUZZY_AUTO
    logger.info(
        f"Product match ({winner.match_type}): {inp.raw!r} → "
        f"{winner.record.product_code} {winner.record.product_name!r} ({best_score:.2f})"
    )
    return MatchResult(
        source=source,
        confidence=best_score,
        candidates=top,
        matched=winner.record,
        match_type=winner.match_type,
    )


def resolve_products_batch(
    lines: Sequence[str],
    products,
    settings: Optional[Settings] = None,
) -> List[MatchResult]:
    """Resolve lines independently against one shared index."""
    index = _as_index(products)
    return [resolve_product(line, index, settings) for line in lines]


def resolve_by_code(code: Optional[str], products) -> MatchResult:
    """Exact lookup of an item code printed on the order; NONE when it is absent or unknown."""
    key = (code or "").strip().upper()
    if not key:
        return MatchResult.none()
    index = _as_index(products)
    for product, _ in index.entries:
        if product.product_code.strip().upper() == key:
            logger.info(f"Item code {key} → {product.product_code}")
            return MatchResult(
                source=MatchSource.EXACT,
                confidence=1.0,
                candidates=(ScoredCandidate(product, 1.0, "ITEM_CODE"),),
                matched=product,
                match_type="ITEM_CODE",
            )
    logger.debug(f"Item code {key} not in master list")
    return MatchResult.none()


# ==================== Reverse lookup ====================

def _reduced_key(view: ProductView) -> str:
    """Cleaned name without form words and variant tokens ("ARBITEL 40MG MT TAB" → "ARBITEL 40MG")."""
    kept = []
    for i, tok in enumerate(view.cleaned.split()):
        if tok in FORM_WORDS:
            continue
        if i > 0 and (tok in STRICT_VARIANTS or tok in SOFT_VARIANTS):
            continue
        kept.append(tok)
    return " ".join(kept)


def _find_word_bounded(haystack: str, needle: str) -> int:
    """Token index where needle starts in haystack (both space-joined), or -1."""
    padded = f" {haystack} "
    pos = padded.find(f" {needle} ")
    if pos < 0:
        return -1
    return len(padded[:pos].split())


def _gate_window(tokens: List[str], start: int, key_len: int) -> str:
    """
    Line text compared against the gates: the hit plus up to two trailing tokens.

    The window ends at the first bare number that is not followed by a word, so a
    quantity or price column ("ECOSPRIN TAB 20 0") is never read as a strength.
    """
    end = min(len(tokens), start + key_len + REVERSE_WINDOW_EXTRA_TOKENS)
    for j in range(start + key_len, end):
        nxt = tokens[j + 1] if j + 1 < len(tokens) else ""
        if BARE_NUMBER_RE.match(tokens[j]) and not re.search(r"[A-Z]", nxt):
            end = j
            break
    return " ".join(tokens[start:end])


def reverse_lookup(
    raw_line: str,
    products,
    settings: Optional[Settings] = None,
) -> MatchResult:
    """
    Search the full raw line for any product's normalized name.

    A hit is kept only if the line window starting at the hit passes the gates and every
    distinguishing token of the product (strength, strict variants) appears in the line.
    The longest hit wins; equally long hits on different products need manual selection.

    Args:
        raw_line: Untruncated logical row text
        products: Sequence of MasterProduct or a ProductIndex
        settings: Optional settings snapshot

    Returns:
        MatchResult with source REVERSE_LOOKUP, MANUAL_REQUIRED or NONE
    """
    index = _as_index(products)
    cfg = get_settings(settings)
    line = ProductView.of(raw_line or "").cleaned
    if not line or not index.entries:
        return MatchResult.none()
    line_tokens = line.split()
    line_set = set(line_tokens)

    hits: List[Tuple[int, float, MasterProduct]] = []
    for product, view in index.entries:
        for key, score in ((view.cleaned, REVERSE_FULL_SCORE), (_reduced_key(view), REVERSE_REDUCED_SCORE)):
            if len(key) < BASE_CONTAIN_MIN_LENGTH:
                continue
            start = _find_word_bounded(line, key)
            if start < 0:
                continue
            window = ProductView.of(_gate_window(line_tokens, start, len(key.split())))
            ok, gate = passes_gates(window, view, cfg.noise_brand_set)
            if not ok:
                logger.debug(f"[REVERSE] {gate} veto: {product.product_name!r} in {line!r}")
                break
            distinguishing = [t for t in view.cleaned.split()[1:] if t in STRICT_VARIANTS or any(ch.isdigit() for ch in t)]
            if not all(t in line_set for t in distinguishing):
                logger.debug(f"[REVERSE] missing distinguishing token: {product.product_name!r}")
                break
            hits.append((len(key), score, product))
            break

    if not hits:
        return MatchResult.none()

    hits.sort(key=lambda h: (h[0], h[1]), reverse=True)
    longest, best_score, winner = hits[0]
    rivals = {p.product_code for length, s, p in hits if length == longest}
    candidates = tuple(
        ScoredCandidate(p, s, "REVERSE_LOOKUP")
        for _, s, p in sorted(hits, key=lambda h: h[1], reverse=True)[:cfg.candidate_limit]
    )
    if len(rivals) > 1:
        logger.info(f"Reverse lookup ambiguous for {raw_line!r}: {sorted(rivals)}")
        return MatchResult(
            source=MatchSource.MANUAL_REQUIRED,
            confidence=best_score,
            candidates=candidates,
            match_type="REVERSE_LOOKUP",
        )
    logger.info(f"Reverse lookup: {raw_line!r} → {winner.product_code} {winner.product_name!r}")
    return MatchResult(
        source=MatchSource.REVERSE_LOOKUP,
        confidence=best_score,
        candidates=candidates,
        matched=winner,
        match_type="REVERSE_LOOKUP",
    )
