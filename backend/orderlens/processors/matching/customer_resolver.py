"""
Customer Resolver: map a free-text customer name to a master customer.

Stages:
1. Exact match on normalized names (prefix, location and legal suffixes removed)
2. Fuzzy score = max(word overlap, compact-string containment) + first-word bonus
3. Auto-accept only when the best score clears the threshold AND leads the runner-up
   by the configured margin; otherwise the top candidates go to manual review
"""
from typing import List, Optional, Sequence
import logging

from ...config import Settings, get_settings
from ...errors import MasterDataError
from ...models import MasterCustomer
from ..core.structures import MatchResult, MatchSource, ScoredCandidate
from ..text.normalizer import normalize_customer_name, significant_words

logger = logging.getLogger(__name__)

CONTAINMENT_SCORE = 0.85


def word_overlap_score(a: str, b: str) -> float:
    """Shared words over the larger word set."""
    words_a, words_b = set(a.split()), set(b.split())
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / max(len(words_a), len(words_b))


def containment_score(a: str, b: str) -> float:
    """1.0 when the space-free strings are equal, 0.85 when one contains the other."""
    ca, cb = a.replace(" ", ""), b.replace(" ", "")
    if not ca or not cb:
        return 0.0
    if ca == cb:
        return 1.0
    if ca in cb or cb in ca:
        return CONTAINMENT_SCORE
    return 0.0


def score_customer_names(a: str, b: str, settings: Optional[Settings] = None) -> float:
    """
    Fuzzy similarity of two normalized customer names.

    Args:
        a: Normalized input name
        b: Normalized candidate name
        settings: Optional settings snapshot

    Returns:
        Score in [0, 1]; below settings.customer_max_score unless the names are identical
    """
    cfg = get_settings(settings)
    if a == b:
        return 1.0
    score = max(word_overlap_score(a, b), containment_score(a, b))
    first_a, first_b = significant_words(a), significant_words(b)
    if first_a and first_b and first_a[0] == first_b[0]:
        score += cfg.customer_first_word_bonus
    score = min(score, cfg.customer_max_score)
    return max(0.0, min(1.0, score))


def resolve_customer(
    free_text: str,
    customers: Optional[Sequence[MasterCustomer]],
    settings: Optional[Settings] = None,
) -> MatchResult:
    """
    Resolve a free-text customer name against the customer master.

    Args:
        free_text: Customer name as printed on the order
        customers: Master customer snapshot (must not be None)
        settings: Optional settings snapshot

    Returns:
        MatchResult: EXACT, FUZZY_AUTO, MANUAL_REQUIRED (top candidates attached) or NONE
    """
    if customers is None:
        raise MasterDataError("customers")
    cfg = get_settings(settings)

    target = normalize_customer_name(free_text or "")
    if not target or not customers:
        return MatchResult.none()

    normalized = [(c, normalize_customer_name(c.customer_name)) for c in customers]

    exact = [c for c, name in normalized if name == target]
    if exact:
        if len(exact) > 1:
            logger.warning(
                f"{len(exact)} customers share the normalized name {target!r}; "
                f"using {exact[0].customer_code}"
            )
        logger.info(f"Exact customer match: {target!r} → {exact[0].customer_code}")
        return MatchResult(
            source=MatchSource.EXACT,
            confidence=1.0,
            candidates=tuple(ScoredCandidate(c, 1.0, "EXACT") for c in exact[:cfg.candidate_limit]),
            matched=exact[0],
            match_type="EXACT",
        )

    scored: List[ScoredCandidate] = []
    for customer, name in normalized:
        score = score_customer_names(target, name, cfg)
        if score > 0:
            scored.append(ScoredCandidate(customer, score, "FUZZY"))
    # Stable sort: equal scores keep master order
    scored.sort(key=lambda c: c.score, reverse=True)

    if not scored:
        logger.info(f"No customer candidates for {target!r}")
        return MatchResult.none()

    top = tuple(scored[:cfg.candidate_limit])
    best = scored[0]
    margin = best.score - scored[1].score if len(scored) > 1 else 1.0
    logger.debug(
        f"Customer scores for {target!r}: "
        + ", ".join(f"{c.record.customer_code}={c.score:.3f}" for c in top)
    )

    if best.score >= cfg.customer_auto_accept and round(margin, 6) >= cfg.customer_margin:
        logger.info(
            f"Fuzzy customer match: {target!r} → {best.record.customer_code} "
            f"(score={best.score:.3f}, margin={margin:.3f})"
        )
        return MatchResult(
            source=MatchSource.FUZZY_AUTO,
            confidence=best.score,
            candidates=top,
            matched=best.record,
            match_type="FUZZY",
        )

    logger.info(
        f"Customer {target!r} needs manual review "
        f"(best={best.score:.3f}, margin={margin:.3f})"
    )
    return MatchResult(
        source=MatchSource.MANUAL_REQUIRED,
        confidence=best.score,
        candidates=top,
        match_type="FUZZY",
    )
