"""
Analysis Engine - Gated model analysis of a structured record.

Pipeline:
1. Build prompts from the structured record
2. Call the language model (never retried here)
3. Parse the response into typed models
4. Filter opportunities and constrain flags by readiness
5. Score risk deterministically
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from filinggate.config.errors import AnalysisError, LLMError
from filinggate.domains.parsing.models import AccountType, ReadinessLevel, StructuredRecord

from .models import AnalysisResult, Opportunity, RiskFlags, Severity
from .opportunity_gate import constrain_flags, filter_opportunities
from .prompts import build_system_prompt, build_user_prompt
from .response_parser import parse_analysis_response

if TYPE_CHECKING:
    from .contracts import TextGenerator

logger = logging.getLogger(__name__)

__all__ = ["AnalysisEngine", "compute_risk_score", "BLOCKED_NOTE"]

SEVERITY_WEIGHTS = {Severity.HIGH: 25, Severity.MEDIUM: 15, Severity.LOW: 5}
FLAG_WEIGHT = 5
BLOCKED_NOTE = "Analysis blocked due to pre-analysis gate failures"


def compute_risk_score(opportunities: list[Opportunity], flags: RiskFlags) -> int:
    """Aggregate 0-100 score from surviving opportunities and raised flags."""
    score = sum(SEVERITY_WEIGHTS[o.severity] for o in opportunities) + FLAG_WEIGHT * flags.raised
    return min(score, 100)


class AnalysisEngine:
    """
    Runs the analysis collaborator and mechanically gates its output.

    Example:
        >>> engine = AnalysisEngine(GeminiClient())
        >>> result = await engine.analyze(record)
        >>> result.risk_score
        40
    """

    def __init__(
        self,
        llm: TextGenerator,
        max_tokens: int = 8192,
        temperature: float = 0.2,
    ) -> None:
        self._llm = llm
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def analyze(self, record: StructuredRecord) -> AnalysisResult:
        """
        Analyze a structured record.

        BLOCKED records never reach the model and get the blocked result.

        Raises:
            AnalysisError: Model failure or unparseable response. details
                carries raw_response when the model answered.
        """
        gate = record.pre_analysis_gate
        if gate.readiness_level == ReadinessLevel.BLOCKED:
            return self.blocked_result(record)

        start = time.time()
        try:
            response = await self._llm.generate(
                build_user_prompt(record),
                system_instruction=build_system_prompt(),
                temperature=self._temperature,
                max_output_tokens=self._max_tokens,
            )
        except LLMError as e:
            logger.error("Analysis model call failed: %s", e.message)
            raise AnalysisError(
                f"Analysis model call failed: {e.message}",
                {"cause": e.code.value},
            ) from e

        logger.info(
            "Model response: %d completion tokens in %.0fms",
            response.completion_tokens,
            (time.time() - start) * 1000,
        )

        metadata = record.metadata
        try:
            parsed = parse_analysis_response(
                response.text,
                account_type=metadata.account_type.value,
                company_size=metadata.company_size.value,
            )
        except AnalysisError as e:
            e.details["raw_response"] = response.text
            raise

        model = parsed.analysis
        filtered = filter_opportunities(
            model.opportunities,
            gate,
            record.deterministic_metrics,
            metadata.account_type == AccountType.ABRIDGED,
        )
        flags = constrain_flags(model.flags, filtered.kept, gate.readiness_level)

        return AnalysisResult(
            readiness_level=gate.readiness_level,
            opportunities=filtered.kept,
            flags=flags,
            risk_score=compute_risk_score(filtered.kept, flags),
            model_risk_score=model.risk_score,
            priority_ranking=model.priority_ranking,
            company_classification=model.company_classification,
            executive_summary=model.executive_summary,
            recommended_actions=model.recommended_actions,
            limitations=[*gate.warning_issues, *model.analysis_limitations, *filtered.limitations],
            validation_warnings=parsed.warnings,
            raw_response=response.text,
            prompt_tokens=response.prompt_tokens,
            completion_tokens=response.completion_tokens,
        )

    def blocked_result(self, record: StructuredRecord) -> AnalysisResult:
        """Zero opportunities, all flags false, score 0."""
        issues = record.pre_analysis_gate.blocking_issues
        return AnalysisResult(
            readiness_level=ReadinessLevel.BLOCKED,
            limitations=[BLOCKED_NOTE, *issues],
            executive_summary=f"Analysis blocked. Issues: {'; '.join(issues)}",
            recommended_actions=["Resolve blocking issues before analysis can proceed"],
            company_classification="mixed",
            blocked=True,
        )
