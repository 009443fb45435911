"""
Enumerations shared across the engine.

Confidence is ordered (LOW < MODERATE < HIGH) so the confidence of a
combination is simply ``min()`` of its inputs.
"""

from enum import Enum, IntEnum, StrEnum

from risktree.constants import MAX_FREQUENCY, MAX_MONEY, MAX_PERCENTAGE


class Confidence(IntEnum):
    """Peakedness of a three-point estimate."""
    LOW = 0
    MODERATE = 1
    HIGH = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def from_label(cls, label: str) -> "Confidence":
        try:
            return cls[label.upper()]
        except KeyError:
            raise ValueError(f"Unknown confidence: {label!r}") from None


class RangeType(StrEnum):
    """Value domain of a node's range."""
    MONEY = "Money"
    FREQUENCY = "Frequency"
    PERCENTAGE = "Percentage"

    @property
    def bounds(self) -> tuple[float, float]:
        return _RANGE_BOUNDS[self]

    def contains(self, value: float) -> bool:
        low, high = self.bounds
        return low <= value <= high


_RANGE_BOUNDS: dict[RangeType, tuple[float, float]] = {
    RangeType.MONEY: (0.0, MAX_MONEY),
    RangeType.FREQUENCY: (0.0, MAX_FREQUENCY),
    RangeType.PERCENTAGE: (0.0, MAX_PERCENTAGE),
}


class RangeState(StrEnum):
    """Who populated a range: nobody, the user, or the engine."""
    UNSET = "unset"
    USER_SUPPLIED = "user"
    COMPUTED = "computed"

    @property
    def calculated(self) -> bool | None:
        """Tri-state view: None = never populated, False = user, True = engine."""
        if self is RangeState.UNSET:
            return None
        return self is RangeState.COMPUTED

    @classmethod
    def from_calculated(cls, calculated: bool | None) -> "RangeState":
        if calculated is None:
            return cls.UNSET
        return cls.COMPUTED if calculated else cls.USER_SUPPLIED


class NodeKind(StrEnum):
    """Closed set of node kinds; the values double as persisted discriminators."""
    RISK = "Risk"
    MITIGATED_RISK = "MitigatedRisk"
    LOSS_EVENT_FREQUENCY = "LossEventFrequency"
    THREAT_EVENT_FREQUENCY = "ThreatEventFrequency"
    CONTACT_FREQUENCY = "ContactFrequency"
    PROBABILITY_OF_ACTION = "ProbabilityOfAction"
    VULNERABILITY = "Vulnerability"
    THREAT_CAPABILITY = "ThreatCapability"
    RESISTANCE_STRENGTH = "ResistanceStrength"
    LOSS_MAGNITUDE = "LossMagnitude"
    PRIMARY_LOSS = "PrimaryLoss"
    SECONDARY_RISK = "SecondaryRisk"
    SECONDARY_LOSS_EVENT_FREQUENCY = "SecondaryLossEventFrequency"
    SECONDARY_LOSS_MAGNITUDE = "SecondaryLossMagnitude"
    MITIGATION_COST = "MitigationCost"
    APPLIED_MITIGATION = "AppliedMitigation"


class LossForm(StrEnum):
    """FAIR forms of loss for primary and secondary losses."""
    PRODUCTIVITY = "Productivity"
    RESPONSE = "Response"
    REPLACEMENT = "Replacement"
    FINES_AND_JUDGEMENTS = "FinesAndJudgements"
    COMPETITIVE_ADVANTAGE = "CompetitiveAdvantage"
    REPUTATION = "Reputation"
    UNDETERMINED = "Undetermined"


class ContactType(StrEnum):
    RANDOM = "Random"
    REGULAR = "Regular"
    INTENTIONAL = "Intentional"


class ControlType(Enum):
    """Control category of a mitigation."""
    UNKNOWN = 0
    PREVENTIVE = 1
    DETECTIVE = 2
    CORRECTIVE = 3
    RECOVERY = 4
    OTHER = 100


class OptimizationParameter(StrEnum):
    """Statistic of the cost range the optimizer minimizes."""
    MIN = "min"
    MODE = "mode"
    MAX = "max"
