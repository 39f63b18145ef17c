"""
Financial Statement Parser - RawExtraction to versioned structured record.

Steps:
1. Detect unit scale
2. Map reference-coded rows from tables (text lines as fallback)
3. Build entity profile and size class
4. Compute deterministic metrics
5. Evaluate pre-analysis gates
"""

from __future__ import annotations

import logging
import re
from datetime import date

from filinggate.config.errors import ParseError
from filinggate.domains.extraction.models import RawExtraction, TableRow

from .gates import GateInputs, evaluate_gates
from .metrics import compute_metrics
from .models import (
    AccountType,
    CompanySize,
    EntityProfile,
    ICTransaction,
    LineItem,
    ParseOutcome,
    RecordMetadata,
    RelatedPartyTransaction,
    StructuredRecord,
    UnitScale,
)
from .numbers import parse_amount
from .unit_scale import apply_scale, detect_unit_scale

logger = logging.getLogger(__name__)

__all__ = ["FinancialStatementParser"]

CODE_CELL = re.compile(r"^(\d{3,4}[A-Z]?)$")
_AMOUNT = r"\(?-?\d+(?:[ .,']\d{3})*(?:[.,]\d+)?\)?"
CODE_LINE = re.compile(
    rf"^[ \t]*(\d{{4}})[ \t]+([^\d\n]{{3,}}?)[ \t]+({_AMOUNT})(?:[ \t]+({_AMOUNT}))?[ \t]*$",
    re.MULTILINE,
)

EMPLOYEE_PATTERNS = (
    re.compile(r"(?:average\s+)?(?:number\s+of\s+)?employees?\s*[:\s]\s*(\d+)", re.IGNORECASE),
    re.compile(r"(?:effectif\s+moyen|personnel)\s*[:\s]\s*(\d+)", re.IGNORECASE),
    re.compile(r"(?:mitarbeiter|beschäftigte)\s*[:\s]\s*(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)\s*(?:employees?|salariés?|mitarbeiter)", re.IGNORECASE),
)

LEGAL_FORMS = (
    (re.compile(r"société\s+à\s+responsabilité\s+limitée", re.IGNORECASE), "SARL"),
    (re.compile(r"société\s+anonyme", re.IGNORECASE), "SA"),
    (re.compile(r"\bS\.?\s?à\s?r\.?\s?l\.?", re.IGNORECASE), "SARL"),
    (re.compile(r"\bS\.?C\.?A\.?\b"), "SCA"),
    (re.compile(r"\bS\.?C\.?S\.?\b"), "SCS"),
    (re.compile(r"\bS\.A\.|\bSA\b"), "SA"),
    (re.compile(r"\bGmbH\b"), "GmbH"),
)

HOLDING_KEYWORDS = (
    "soparfi", "holding", "participations", "société de participations financières",
    "beteiligungsgesellschaft", "gestion de participations",
)
RELATED_PARTY_KEYWORDS = ("related part", "parties liées", "nahestehende")
LANGUAGE_WORDS = {
    "fr": ("entreprise", "société", "exercice", "bilan", "compte", "résultat", "annexe"),
    "de": ("unternehmen", "gesellschaft", "geschäftsjahr", "bilanz", "gewinn", "verlust"),
    "en": ("company", "financial", "year", "balance", "sheet", "profit", "loss", "notes"),
}

# Two of three criteria must be exceeded to leave a size class
SIZE_LIMITS = {
    CompanySize.SMALL: (4_400_000, 8_800_000, 50),
    CompanySize.MEDIUM: (20_000_000, 40_000_000, 250),
}

IC_CODES = {
    "1171": "ic_loan_receivable",
    "4111": "ic_receivable",
    "1379": "ic_loan_payable",
    "4279": "ic_payable",
    "7610": "ic_interest_income",
    "7710": "ic_interest_expense",
}


class FinancialStatementParser:
    """
    Deterministic parser for reference-coded financial statements.

    Example:
        >>> parser = FinancialStatementParser()
        >>> outcome = parser.parse(raw, "ent-1", "Acme S.à r.l.", date(2024, 12, 31))
        >>> outcome.record.pre_analysis_gate.readiness_level
        <ReadinessLevel.READY: 'READY'>
    """

    def parse(
        self,
        raw: RawExtraction,
        entity_id: str,
        entity_name: str,
        period_end: date | None,
    ) -> ParseOutcome:
        """Parse provider output into a StructuredRecord."""
        if raw.page_count == 0:
            raise ParseError("0 pages detected; nothing to parse", {"provider": raw.provider})

        warnings: list[str] = []
        text = raw.text
        lowered = text.lower()

        detection = detect_unit_scale(text)
        items = self._items_from_tables(raw, detection.scale)
        if not items:
            warnings.append("No reference code column detected - using text line matching")
        seen = {item.code for item in items}
        items.extend(
            item for item in self._items_from_text(text, detection.scale) if item.code not in seen
        )

        values = {item.code: item.current_year for item in items}
        metrics, not_calculable = compute_metrics(values)

        total_assets = values.get("109")
        total_liabilities = values.get("309")
        delta = (
            total_assets - total_liabilities
            if total_assets is not None and total_liabilities is not None
            else 0.0
        )
        has_balance_sheet = any(i.code.startswith("1") or i.code in {"109", "309"} for i in items)
        has_profit_loss = any(i.code[:1] in {"6", "7"} or i.code == "9910" for i in items)
        has_notes = "note" in lowered or "annexe" in lowered
        has_management_report = "management report" in lowered or "rapport de gestion" in lowered

        profile = self._profile(text, entity_name)
        size = _company_size(total_assets, values.get("7010"), profile.average_employees)
        gate = evaluate_gates(
            GateInputs(
                unit_scale=detection,
                line_items=items,
                profile=profile,
                company_size=size,
                balance_sheet_delta=delta,
                has_balance_sheet=has_balance_sheet,
                has_profit_loss=has_profit_loss,
                has_notes=has_notes,
                has_management_report=has_management_report,
            )
        )
        warnings.extend(gate.warning_issues)

        metadata = RecordMetadata(
            entity_id=entity_id,
            entity_name=entity_name,
            period_end=period_end,
            company_size=size,
            account_type=_account_type(lowered, has_balance_sheet, has_profit_loss),
            reporting_standard="IFRS" if "ifrs" in lowered else "LUX_GAAP",
            overall_confidence=(
                sum(item.confidence for item in items) / len(items) if items else 0.0
            ),
            unit_scale=detection.scale,
            unit_scale_validated=not detection.uncertain,
            document_language=_language(lowered),
            page_count=raw.page_count,
            provider=raw.provider,
        )
        record = StructuredRecord(
            metadata=metadata,
            profile=profile,
            line_items=items,
            deterministic_metrics=metrics,
            metrics_not_calculable=not_calculable,
            pre_analysis_gate=gate,
            ic_transactions=_ic_transactions(items),
            related_party_transactions=self._related_parties(raw, detection.scale),
            extraction_warnings=list(warnings),
        )
        logger.info(
            "Parsed %s: %d line items, readiness=%s",
            entity_id,
            len(items),
            gate.readiness_level.value,
        )
        return ParseOutcome(record=record, warnings=warnings)

    def _items_from_tables(self, raw: RawExtraction, scale: UnitScale) -> list[LineItem]:
        items: dict[str, LineItem] = {}
        for page in raw.pages:
            for table in page.tables:
                for row in table.body_rows:
                    item = _row_item(row, page.page_number, scale)
                    if item is not None and item.code not in items:
                        items[item.code] = item
        return list(items.values())

    def _items_from_text(self, text: str, scale: UnitScale) -> list[LineItem]:
        items: dict[str, LineItem] = {}
        for match in CODE_LINE.finditer(text):
            code, caption, current, prior = match.groups()
            if code in items:
                continue
            items[code] = LineItem(
                code=code,
                caption=caption.strip(),
                current_year=apply_scale(parse_amount(current), scale),
                prior_year=apply_scale(parse_amount(prior), scale),
                confidence=0.6,
                section=_section(code),
            )
        return list(items.values())

    def _profile(self, text: str, entity_name: str) -> EntityProfile:
        lowered = text.lower()
        legal_form = next(
            (form for pattern, form in LEGAL_FORMS if pattern.search(entity_name) or pattern.search(text)),
            None,
        )
        consolidated_source = None
        for phrase in ("consolidated financial statements", "comptes consolidés", "konzernabschluss"):
            if phrase in lowered:
                consolidated_source = phrase
                break
        return EntityProfile(
            name=entity_name,
            legal_form=legal_form,
            average_employees=_employee_count(text),
            is_consolidated=consolidated_source is not None,
            consolidation_source=consolidated_source,
            likely_holding=any(keyword in lowered for keyword in HOLDING_KEYWORDS),
        )

    def _related_parties(self, raw: RawExtraction, scale: UnitScale) -> list[RelatedPartyTransaction]:
        found: list[RelatedPartyTransaction] = []
        for page in raw.pages:
            for paragraph in page.paragraphs or page.blocks:
                content = paragraph.text.strip()
                lowered = content.lower()
                if not any(keyword in lowered for keyword in RELATED_PARTY_KEYWORDS):
                    continue
                amount = next(
                    (
                        value
                        for value in (parse_amount(token) for token in re.findall(r"\d[\d.,' ]{2,}\d", content))
                        if value is not None
                    ),
                    None,
                )
                arms_length: bool | None = None
                if "not at arm" in lowered or "non conclues aux conditions normales" in lowered:
                    arms_length = False
                elif "arm's length" in lowered or "conditions normales" in lowered:
                    arms_length = True
                found.append(
                    RelatedPartyTransaction(
                        nature=content[:200],
                        amount=apply_scale(amount, scale),
                        is_arms_length=arms_length,
                        source_page=page.page_number,
                    )
                )
        return found


def _row_item(row: TableRow, page_number: int, scale: UnitScale) -> LineItem | None:
    """Map one table row with a reference-code cell to a LineItem."""
    texts = row.texts
    code_index = next((i for i, t in enumerate(texts) if CODE_CELL.match(t)), None)
    if code_index is None:
        return None

    caption = ""
    amounts: list[float] = []
    for index, cell_text in enumerate(texts):
        if index == code_index or not cell_text:
            continue
        value = parse_amount(cell_text)
        if value is not None:
            amounts.append(value)
        elif not caption:
            caption = cell_text

    confidences = [cell.confidence for cell in row.cells if cell.text.strip() and cell.confidence > 0]
    confidence = min(confidences) if confidences else 0.85
    if not caption:
        confidence = min(confidence, 0.6)
    if not amounts:
        confidence = min(confidence, 0.4)

    code = texts[code_index]
    return LineItem(
        code=code,
        caption=caption,
        current_year=apply_scale(amounts[0], scale) if amounts else None,
        prior_year=apply_scale(amounts[1], scale) if len(amounts) > 1 else None,
        confidence=confidence,
        source_page=page_number,
        section=_section(code),
    )


def _section(code: str) -> str:
    if code[:1] in {"1", "2", "3", "4", "5"}:
        return "balance_sheet"
    if code[:1] in {"6", "7", "8", "9"}:
        return "profit_loss"
    return "other"


def _ic_transactions(items: list[LineItem]) -> list[ICTransaction]:
    return [
        ICTransaction(
            transaction_type=IC_CODES[item.code],
            amount=item.current_year,
            code=item.code,
            source_page=item.source_page,
            confidence=item.confidence,
        )
        for item in items
        if item.code in IC_CODES and item.current_year
    ]


def _employee_count(text: str) -> int | None:
    for pattern in EMPLOYEE_PATTERNS:
        match = pattern.search(text)
        if match:
            count = int(match.group(1))
            if count < 100_000:
                return count
    return None


def _company_size(
    total_assets: float | None,
    turnover: float | None,
    employees: int | None,
) -> CompanySize:
    if total_assets is None and turnover is None and employees is None:
        return CompanySize.UNKNOWN

    def exceeds(limits: tuple[int, int, int]) -> bool:
        checks = [
            total_assets is not None and total_assets > limits[0],
            turnover is not None and turnover > limits[1],
            employees is not None and employees > limits[2],
        ]
        return sum(checks) >= 2

    if not exceeds(SIZE_LIMITS[CompanySize.SMALL]):
        return CompanySize.SMALL
    if not exceeds(SIZE_LIMITS[CompanySize.MEDIUM]):
        return CompanySize.MEDIUM
    return CompanySize.LARGE


def _account_type(lowered: str, has_balance_sheet: bool, has_profit_loss: bool) -> AccountType:
    if any(word in lowered for word in ("abridged", "abrégé", "verkürzt")):
        return AccountType.ABRIDGED
    if has_balance_sheet and has_profit_loss:
        return AccountType.FULL
    return AccountType.UNKNOWN


def _language(lowered: str) -> str:
    counts = {
        language: sum(1 for word in words if word in lowered)
        for language, words in LANGUAGE_WORDS.items()
    }
    if counts["fr"] > counts["de"] and counts["fr"] > counts["en"]:
        return "fr"
    if counts["de"] > counts["fr"] and counts["de"] > counts["en"]:
        return "de"
    if counts["en"] > 0:
        return "en"
    return "unknown"
