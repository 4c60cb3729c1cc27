"""Composite match scoring.

One weighted-factor model is used for every composite score:

- composite = clamp(sum(weight_i * factor_i), 0..1), rounded to 4 places
- primary reason = highest factor value among the reason rules it crosses
- strengths = factor names scoring above 0.6

Default weight table:
    product 0.40, price 0.30, location 0.15, reputation 0.15
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from models.demand_match import MatchReason
from .factors import PRODUCT, PRICE, LOCATION, REPUTATION

DEFAULT_WEIGHTS: Dict[str, float] = {
    PRODUCT: 0.40,
    PRICE: 0.30,
    LOCATION: 0.15,
    REPUTATION: 0.15,
}

STRENGTH_THRESHOLD = 0.6
SCORE_PRECISION = 4


@dataclass(frozen=True)
class ReasonRule:
    """Factor value above ``threshold`` makes ``reason`` a candidate."""
    factor: str
    threshold: float
    reason: MatchReason


# Priority order; a factor contributes at most its first crossed rule
REASON_RULES: Sequence[ReasonRule] = (
    ReasonRule(PRODUCT, 0.7, MatchReason.EXACT_MATCH),
    ReasonRule(PRODUCT, 0.4, MatchReason.SIMILAR_PRODUCT),
    ReasonRule(PRICE, 0.8, MatchReason.PRICE_ADVANTAGE),
    ReasonRule(LOCATION, 0.7, MatchReason.LOCATION_PROXIMITY),
    ReasonRule(REPUTATION, 0.6, MatchReason.HISTORICAL_COOPERATION),
)

# TODO: confirm with product owners; ExactMatch is an arbitrary fallback
FALLBACK_REASON = MatchReason.EXACT_MATCH


class WeightedScoreModel:
    """Weighted sum over a fixed factor list.

    Weights are validated with decimal arithmetic so that a table like
    0.4/0.3/0.15/0.15 is accepted as summing to exactly 1.0.
    """

    def __init__(self, weights: Mapping[str, float]):
        if not weights:
            raise ValueError("At least one factor weight is required")
        for name, weight in weights.items():
            if weight < 0 or weight > 1:
                raise ValueError(f"Weight for factor '{name}' must be within [0, 1], got {weight}")

        total = sum((Decimal(str(w)) for w in weights.values()), Decimal("0"))
        if total != Decimal("1"):
            raise ValueError(f"Factor weights must sum to 1.0, got {total}")

        self.weights: Dict[str, float] = dict(weights)

    @property
    def factor_names(self) -> List[str]:
        return list(self.weights)

    def composite(self, values: Mapping[str, float]) -> float:
        """Weighted sum of factor values, clamped to [0, 1].

        Raises:
            ValueError: If a weighted factor has no value
        """
        missing = [name for name in self.weights if name not in values]
        if missing:
            raise ValueError(f"Missing factor values: {', '.join(missing)}")

        raw = sum(self.weights[name] * float(values[name]) for name in self.weights)
        return max(0.0, min(1.0, raw))


@dataclass
class ScoreBreakdown:
    """Aggregated score of one candidate."""
    score: float
    primary_reason: MatchReason
    strengths: List[str] = field(default_factory=list)
    factors: Dict[str, float] = field(default_factory=dict)


class MatchScorer:
    """Aggregate factor scores into a composite score, reason and strengths."""

    def __init__(
        self,
        model: Optional[WeightedScoreModel] = None,
        reason_rules: Sequence[ReasonRule] = REASON_RULES,
        strength_threshold: float = STRENGTH_THRESHOLD,
    ):
        self.model = model or WeightedScoreModel(DEFAULT_WEIGHTS)
        self.reason_rules = reason_rules
        self.strength_threshold = strength_threshold

    def score(self, factor_values: Mapping[str, float]) -> ScoreBreakdown:
        """Aggregate one candidate's factor values.

        Args:
            factor_values: Factor name -> value in [0, 1]

        Returns:
            ScoreBreakdown with composite score, primary reason and strengths
        """
        composite = round(self.model.composite(factor_values), SCORE_PRECISION)
        return ScoreBreakdown(
            score=composite,
            primary_reason=self.primary_reason(factor_values),
            strengths=self.strengths(factor_values),
            factors={name: float(factor_values[name]) for name in self.model.factor_names},
        )

    def primary_reason(self, factor_values: Mapping[str, float]) -> MatchReason:
        best_reason = None
        best_value = None
        decided = set()

        for rule in self.reason_rules:
            if rule.factor in decided or rule.factor not in factor_values:
                continue
            value = factor_values[rule.factor]
            if value > rule.threshold:
                decided.add(rule.factor)
                # Strictly greater: earlier rules win ties
                if best_value is None or value > best_value:
                    best_reason = rule.reason
                    best_value = value

        return best_reason or FALLBACK_REASON

    def strengths(self, factor_values: Mapping[str, float]) -> List[str]:
        return [
            name for name in self.model.factor_names
            if factor_values.get(name, 0.0) > self.strength_threshold
        ]
