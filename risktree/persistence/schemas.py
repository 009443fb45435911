"""
Persisted document schemas.

Node ``type`` values form a closed allowlist (the NodeKind values); any
other discriminator fails validation. Unknown fields are rejected.
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from risktree.constants import SCHEMA_VERSION
from risktree.engine.enums import ContactType, LossForm, NodeKind
from risktree.facts.fact import AnyFact

ConfidenceLabel = Literal["Low", "Moderate", "High"]

ALLOWED_NODE_TYPES: frozenset[str] = frozenset(kind.value for kind in NodeKind)
ALLOWED_FACT_TYPES: frozenset[str] = frozenset({"Fact", "FactHardNumber", "FactRange"})


class _Document(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RangeDocument(_Document):
    min: float = 0.0
    mode: float = 0.0
    max: float = 0.0
    confidence: ConfidenceLabel = "Moderate"


class NodeDocument(_Document):
    """One node and its subtree."""
    type: NodeKind
    id: uuid.UUID
    name: Optional[str] = None
    description: Optional[str] = None
    min: float = 0.0
    mode: float = 0.0
    max: float = 0.0
    confidence: ConfidenceLabel = "Moderate"
    calculated: Optional[bool] = None
    children: list["NodeDocument"] = Field(default_factory=list)
    facts: list[uuid.UUID] = Field(default_factory=list)

    created_by: Optional[str] = None
    created_on: Optional[datetime] = None
    modified_by: Optional[str] = None
    modified_on: Optional[datetime] = None

    # Kind-specific attributes
    form: Optional[LossForm] = None                  # PrimaryLoss, SecondaryRisk
    contact_type: Optional[ContactType] = None       # ContactFrequency
    enabled: Optional[bool] = None                   # MitigatedRisk, MitigationCost
    control_type: Optional[int] = None               # MitigationCost
    operation_costs: Optional[RangeDocument] = None  # MitigationCost
    mitigation_cost_id: Optional[uuid.UUID] = None   # AppliedMitigation
    auxiliary: Optional[bool] = None                 # AppliedMitigation


class ModelDocument(_Document):
    """Root of a persisted model."""
    schema_version: Literal[SCHEMA_VERSION] = SCHEMA_VERSION
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    min_percentile: float = Field(ge=0, le=100)
    max_percentile: float = Field(ge=0, le=100)
    risks: list[NodeDocument] = Field(default_factory=list)
    mitigations: list[NodeDocument] = Field(default_factory=list)
    facts: list[AnyFact] = Field(default_factory=list)

    created_by: Optional[str] = None
    created_on: Optional[datetime] = None
    modified_by: Optional[str] = None
    modified_on: Optional[datetime] = None
