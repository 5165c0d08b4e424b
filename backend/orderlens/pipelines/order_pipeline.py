"""
Order Processing Pipeline: tokens of one purchase-order document → resolved order lines.

Steps:
1. Build logical rows from positioned tokens and merge order lines split over several rows
2. Resolve the customer once per document (its code restricts schemes)
3. Per row: skip junk, extract quantity + product-name guess, resolve the product
   (item code first, reverse lookup on the raw line as fallback), apply scheme slab and upsell

Spreadsheets with a recognizable header row skip step 1 and read quantity, name and item
code from their columns (process_sheet).

Rows are independent: a row that raises is recorded as a RowFailure and the rest continue.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Sequence
import logging

from ..config import Settings, get_settings
from ..errors import MasterDataError
from ..models import MasterCustomer, MasterProduct, Scheme
from ..processors.core.structures import (
    DocumentResult, ExtractedLineItem, MatchResult, MatchSource, PositionedToken, ResolvedLine,
    RowFailure,
)
from ..processors.extraction import (
    build_logical_rows, merge_split_rows, extract_line_item, is_hard_junk, is_summary_line,
    looks_like_product, detect_customer_name, detect_sheet_columns, extract_sheet_items,
    sheet_row_text, tokens_from_sheet_rows,
)
from ..processors.matching import (
    ProductIndex, resolve_customer, resolve_product, resolve_by_code, reverse_lookup,
    apply_scheme, find_upsell_opportunity,
)

logger = logging.getLogger(__name__)


def _load(model, records: Optional[Iterable[Any]], name: str) -> List[Any]:
    if records is None:
        raise MasterDataError(name)
    return [r if isinstance(r, model) else model.model_validate(r) for r in records]


def _load_tokens(tokens: Iterable[Any]) -> List[PositionedToken]:
    return [t if isinstance(t, PositionedToken) else PositionedToken.from_dict(t) for t in tokens]


def _resolve_line_product(
    guess: str,
    raw_text: str,
    index: ProductIndex,
    cfg: Settings,
    item_code: Optional[str] = None,
) -> MatchResult:
    by_code = resolve_by_code(item_code, index)
    if by_code.matched is not None:
        return by_code
    primary = resolve_product(guess, index, cfg) if guess else MatchResult.none()
    if primary.source is not MatchSource.NONE and not primary.low_confidence:
        return primary
    fallback = reverse_lookup(raw_text, index, cfg)
    if fallback.source is MatchSource.NONE:
        return primary
    logger.info(f"Reverse lookup replaced {primary.source.value} result for {raw_text!r}")
    return fallback


def _resolve_line(
    row_index: int,
    item: ExtractedLineItem,
    index: ProductIndex,
    schemes: List[Scheme],
    customer_code: Optional[str],
    division: Optional[str],
    cfg: Settings,
) -> ResolvedLine:
    match = _resolve_line_product(item.product_name_guess, item.raw_text, index, cfg, item.item_code)
    scheme = upsell = None
    if match.matched is not None and item.quantity:
        code = match.matched.product_code
        scheme = apply_scheme(code, item.quantity, schemes, item.product_name_guess, division, customer_code)
        upsell = find_upsell_opportunity(
            code, item.quantity, schemes, item.product_name_guess, division, customer_code, cfg,
        )
    return ResolvedLine(
        row_index=row_index,
        raw_text=item.raw_text,
        quantity=item.quantity,
        product_name_guess=item.product_name_guess,
        product=match,
        scheme=scheme,
        upsell=upsell,
        item_code=item.item_code,
    )


def _log_summary(result: DocumentResult) -> None:
    stats = result.stats()
    logger.info(
        f"Step 3: {stats['extracted']} lines, {stats['matched']} matched, "
        f"{stats['needs_review']} need review, {stats['failed']} failed, {result.skipped} skipped"
    )


def process_document(
    tokens: Iterable[Any],
    customers: Optional[Sequence[Any]],
    products: Optional[Sequence[Any]],
    schemes: Optional[Sequence[Any]] = (),
    customer_text: Optional[str] = None,
    division: Optional[str] = None,
    settings: Optional[Settings] = None,
    product_index: Optional[ProductIndex] = None,
) -> DocumentResult:
    """
    Run the full pipeline over one document.

    Args:
        tokens: PositionedToken objects or {text, x, y} dicts
        customers: Master customers (models or dicts)
        products: Master products (models or dicts); ignored when product_index is given
        schemes: Schemes (models or dicts)
        customer_text: Customer name supplied by the caller; detected from header rows if absent
        division: Division filter for schemes
        settings: Optional settings snapshot
        product_index: Prebuilt index shared across documents of one batch

    Returns:
        DocumentResult with one ResolvedLine per order row
    """
    cfg = get_settings(settings)
    customer_list = _load(MasterCustomer, customers, "customers")
    scheme_list = _load(Scheme, schemes, "schemes")
    index = product_index if product_index is not None else ProductIndex.build(_load(MasterProduct, products, "products"))

    rows = build_logical_rows(_load_tokens(tokens), cfg)
    rows = merge_split_rows(rows, cfg)
    logger.info(f"Step 1: {len(rows)} logical rows after merging")

    name_guess = customer_text or detect_customer_name(rows)
    customer = resolve_customer(name_guess or "", customer_list, cfg)
    customer_code = customer.matched.customer_code if customer.matched is not None else None
    logger.info(f"Step 2: customer {name_guess!r} → {customer.source.value}")

    result = DocumentResult(customer_name_guess=name_guess, customer=customer)
    for row_index, row in enumerate(rows):
        text = row.raw_text
        if (is_hard_junk(text) or is_summary_line(text) or not looks_like_product(text, strict=False)
                or (name_guess and text.strip().upper() == name_guess.upper())):
            result.skipped += 1
            continue
        try:
            item = extract_line_item(row, cfg)
            if not item.product_name_guess and item.quantity is None:
                result.skipped += 1
                continue
            result.lines.append(_resolve_line(row_index, item, index, scheme_list, customer_code, division, cfg))
        except Exception as e:
            logger.warning(f"Row {row_index} failed: {e}", exc_info=True)
            result.failures.append(RowFailure(row_index=row_index, raw_text=text, reason=str(e)))

    _log_summary(result)
    return result


def process_sheet(
    rows: Sequence[Sequence[Any]],
    customers: Optional[Sequence[Any]],
    products: Optional[Sequence[Any]],
    schemes: Optional[Sequence[Any]] = (),
    customer_text: Optional[str] = None,
    division: Optional[str] = None,
    settings: Optional[Settings] = None,
    product_index: Optional[ProductIndex] = None,
) -> DocumentResult:
    """
    Run the pipeline over spreadsheet rows.

    With a header row naming the product and quantity columns, each data row is read
    from those cells and an item-code column, when present, is tried before the name.
    Without one the rows are treated as positioned tokens (process_document).

    Args:
        rows: Sheet rows as cell lists, top to bottom
        customers, products, schemes, customer_text, division, settings, product_index:
            As for process_document

    Returns:
        DocumentResult with one ResolvedLine per data row that carries a quantity
    """
    cfg = get_settings(settings)
    columns = detect_sheet_columns(rows)
    if columns is None:
        logger.info("No sheet header found; falling back to row reconstruction")
        return process_document(
            tokens_from_sheet_rows(rows, cfg), customers, products, schemes,
            customer_text=customer_text, division=division, settings=cfg, product_index=product_index,
        )

    customer_list = _load(MasterCustomer, customers, "customers")
    scheme_list = _load(Scheme, schemes, "schemes")
    index = product_index if product_index is not None else ProductIndex.build(_load(MasterProduct, products, "products"))

    name_guess = customer_text or detect_customer_name(sheet_row_text(r) for r in rows[:columns.header_row])
    customer = resolve_customer(name_guess or "", customer_list, cfg)
    customer_code = customer.matched.customer_code if customer.matched is not None else None
    logger.info(f"Step 2: customer {name_guess!r} → {customer.source.value}")

    items = extract_sheet_items(rows, columns, cfg)
    data_rows = sum(1 for r in rows[columns.header_row + 1:] if sheet_row_text(r))
    result = DocumentResult(customer_name_guess=name_guess, customer=customer, skipped=data_rows - len(items))
    for row_index, item in items:
        try:
            result.lines.append(_resolve_line(row_index, item, index, scheme_list, customer_code, division, cfg))
        except Exception as e:
            logger.warning(f"Row {row_index} failed: {e}", exc_info=True)
            result.failures.append(RowFailure(row_index=row_index, raw_text=item.raw_text, reason=str(e)))

    _log_summary(result)
    return result


def process_documents(
    documents: Sequence[Dict[str, Any]],
    customers: Optional[Sequence[Any]],
    products: Optional[Sequence[Any]],
    schemes: Optional[Sequence[Any]] = (),
    settings: Optional[Settings] = None,
    max_workers: Optional[int] = None,
) -> List[DocumentResult]:
    """
    Process several documents concurrently against one master-data snapshot.

    Each document is a dict with "tokens" (or sheet "rows") and optional "customer" / "division". A document
    that raises yields a DocumentResult with error set; the batch keeps going.
    Results come back in input order.
    """
    cfg = get_settings(settings)
    customer_list = _load(MasterCustomer, customers, "customers")
    scheme_list = _load(Scheme, schemes, "schemes")
    index = ProductIndex.build(_load(MasterProduct, products, "products"))

    def run(doc: Dict[str, Any]) -> DocumentResult:
        try:
            if doc.get("tokens") is None and doc.get("rows") is not None:
                return process_sheet(
                    doc["rows"], customer_list, None, scheme_list,
                    customer_text=doc.get("customer"), division=doc.get("division"),
                    settings=cfg, product_index=index,
                )
            return process_document(
                doc.get("tokens", []), customer_list, None, scheme_list,
                customer_text=doc.get("customer"), division=doc.get("division"),
                settings=cfg, product_index=index,
            )
        except Exception as e:
            logger.error(f"Document failed: {e}", exc_info=True)
            return DocumentResult(customer_name_guess=doc.get("customer"), customer=MatchResult.none(), error=str(e))

    workers = max_workers or cfg.max_workers
    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(run, documents))
    logger.info(f"Processed {len(results)} documents with {workers} workers")
    return results
