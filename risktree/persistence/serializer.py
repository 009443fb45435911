"""
Model serializer.

Saves a RiskModel as a UTF-8 JSON document and loads it back. Loading is
fail-closed: an unknown node or fact type, an unsupported schema version,
a taxonomy violation or a dangling reference raises DeserializationError
and no model is returned.
"""

import json
import uuid
from pathlib import Path
from typing import Any, Optional, Union

import structlog
from pydantic import ValidationError

from risktree.constants import SCHEMA_VERSION
from risktree.engine.enums import Confidence, ControlType, NodeKind, RangeState
from risktree.engine.node import Node, node_class_for
from risktree.engine.range import Range
from risktree.exceptions import (
    DeserializationError,
    DomainValidationError,
    ErrorCode,
    StructuralError,
)
from risktree.model.mitigations import AppliedMitigation, MitigationCost
from risktree.model.risk_model import RiskModel
from risktree.model.risks import MitigatedRisk
from risktree.persistence.schemas import (
    ALLOWED_FACT_TYPES,
    ALLOWED_NODE_TYPES,
    ModelDocument,
    NodeDocument,
    RangeDocument,
)

logger = structlog.get_logger(__name__)

PathLike = Union[str, Path]


# ── Save ─────────────────────────────────────────────────────────────────

def _dump_node(node: Node) -> NodeDocument:
    doc = NodeDocument(
        type=node.kind,
        id=node.id,
        name=node.name,
        description=node.description,
        min=node.min,
        mode=node.mode,
        max=node.max,
        confidence=node.confidence.label,
        calculated=node.calculated,
        children=[_dump_node(child) for child in node.children],
        facts=list(node.facts),
        created_by=node.created_by,
        created_on=node.created_on,
        modified_by=node.modified_by,
        modified_on=node.modified_on,
    )
    if node.kind in (NodeKind.PRIMARY_LOSS, NodeKind.SECONDARY_RISK):
        doc.form = node.form
    elif node.kind is NodeKind.CONTACT_FREQUENCY:
        doc.contact_type = node.contact_type
    elif isinstance(node, MitigatedRisk):
        doc.enabled = node.enabled
    elif isinstance(node, MitigationCost):
        doc.enabled = node.enabled
        doc.control_type = node.control_type.value
        costs = node.operation_costs
        if costs is not None:
            doc.operation_costs = RangeDocument(
                min=costs.min, mode=costs.mode, max=costs.max, confidence=costs.confidence.label,
            )
    elif isinstance(node, AppliedMitigation):
        doc.mitigation_cost_id = node.mitigation_cost_id
        doc.auxiliary = node.auxiliary
    return doc


def dump_model(model: RiskModel) -> ModelDocument:
    return ModelDocument(
        schema_version=SCHEMA_VERSION,
        id=model.id,
        name=model.name,
        description=model.description,
        min_percentile=model.min_percentile,
        max_percentile=model.max_percentile,
        risks=[_dump_node(risk) for risk in model.risks],
        mitigations=[_dump_node(m) for m in model.mitigations],
        facts=list(model.facts),
        created_by=model.created_by,
        created_on=model.created_on,
        modified_by=model.modified_by,
        modified_on=model.modified_on,
    )


def dumps(model: RiskModel, indent: Optional[int] = 2) -> str:
    return dump_model(model).model_dump_json(indent=indent, exclude_none=True)


def save(model: RiskModel, path: PathLike) -> Path:
    path = Path(path)
    path.write_text(dumps(model), encoding="utf-8")
    logger.info("model_saved", model_id=str(model.id), path=str(path))
    return path


# ── Load ─────────────────────────────────────────────────────────────────

def _array(container: dict[str, Any], key: str, owner: str) -> list[Any]:
    value = container.get(key, [])
    if not isinstance(value, list):
        raise DeserializationError(f"{owner} field {key!r} must be an array, got {type(value).__name__}")
    return value


def _discriminator(entry: Any, default: Optional[str], allowed: frozenset, what: str) -> None:
    if not isinstance(entry, dict):
        raise DeserializationError(f"{what} entries must be objects")
    value = entry.get("type", default)
    if not isinstance(value, str) or value not in allowed:
        raise DeserializationError(
            f"{what} type {value!r} is not allowed",
            error_code=ErrorCode.UNTRUSTED_TYPE,
        )


def _check_allowlist(raw: Any) -> None:
    """Reject unknown discriminators and malformed arrays before any object is built."""
    if not isinstance(raw, dict):
        raise DeserializationError("Model document must be a JSON object")
    version = raw.get("schema_version")
    if version != SCHEMA_VERSION:
        raise DeserializationError(
            f"Unsupported schema version {version!r}",
            error_code=ErrorCode.UNSUPPORTED_SCHEMA,
        )

    pending = [*_array(raw, "risks", "Model"), *_array(raw, "mitigations", "Model")]
    while pending:
        node = pending.pop()
        _discriminator(node, None, ALLOWED_NODE_TYPES, "Node")
        pending.extend(_array(node, "children", "Node"))

    for fact in _array(raw, "facts", "Model"):
        _discriminator(fact, "Fact", ALLOWED_FACT_TYPES, "Fact")


def _restore_tracking(target, doc: Union[NodeDocument, ModelDocument]) -> None:
    target._init_tracking(
        created_by=doc.created_by,
        created_on=doc.created_on,
        modified_by=doc.modified_by,
        modified_on=doc.modified_on,
    )


def _build_node(doc: NodeDocument, mitigations: dict[uuid.UUID, MitigationCost]) -> Node:
    kind = doc.type
    common = dict(name=doc.name, description=doc.description, node_id=doc.id)

    if kind is NodeKind.APPLIED_MITIGATION:
        mitigation = mitigations.get(doc.mitigation_cost_id) if doc.mitigation_cost_id else None
        if mitigation is None:
            raise DeserializationError(
                f"Applied mitigation {doc.id} references unknown mitigation {doc.mitigation_cost_id}",
            )
        node: Node = AppliedMitigation(mitigation, auxiliary=bool(doc.auxiliary), **common)
    elif kind is NodeKind.MITIGATION_COST:
        node = MitigationCost(
            control_type=ControlType(doc.control_type or 0),
            enabled=True if doc.enabled is None else doc.enabled,
            **common,
        )
        if doc.operation_costs is not None:
            costs = doc.operation_costs
            node.set_operation_costs(
                costs.min, costs.mode, costs.max, Confidence.from_label(costs.confidence),
            )
    elif kind is NodeKind.MITIGATED_RISK:
        node = MitigatedRisk(enabled=True if doc.enabled is None else doc.enabled, **common)
    else:
        extra = {}
        if doc.form is not None and kind in (NodeKind.PRIMARY_LOSS, NodeKind.SECONDARY_RISK):
            extra["form"] = doc.form
        if doc.contact_type is not None and kind is NodeKind.CONTACT_FREQUENCY:
            extra["contact_type"] = doc.contact_type
        node = node_class_for(kind)(**common, **extra)

    for child_doc in doc.children:
        node.attach(_build_node(child_doc, mitigations))

    snapshot = Range(node.range_type)
    snapshot.restore(
        doc.min,
        doc.mode,
        doc.max,
        Confidence.from_label(doc.confidence),
        RangeState.from_calculated(doc.calculated),
    )
    node.restore_range(snapshot)
    for fact_id in doc.facts:
        node.add_fact(fact_id)
    _restore_tracking(node, doc)
    return node


def load_model(
    document: Union[ModelDocument, dict[str, Any]],
    preserve_id: bool = False,
) -> RiskModel:
    """
    Build a RiskModel from a document.

    With ``preserve_id=False`` the model gets a fresh identifier, so a
    loaded copy never collides with the model it was saved from.
    """
    try:
        if not isinstance(document, ModelDocument):
            _check_allowlist(document)
            document = ModelDocument.model_validate(document)

        model = RiskModel(
            name=document.name,
            description=document.description,
            model_id=document.id if preserve_id else uuid.uuid4(),
            min_percentile=document.min_percentile,
            max_percentile=document.max_percentile,
        )
        for fact in document.facts:
            model.facts.add(fact)

        by_id: dict[uuid.UUID, MitigationCost] = {}
        for mitigation_doc in document.mitigations:
            if mitigation_doc.type is not NodeKind.MITIGATION_COST:
                raise DeserializationError(
                    f"Expected MitigationCost in mitigations, got {mitigation_doc.type.value}",
                )
            mitigation = _build_node(mitigation_doc, by_id)
            by_id[mitigation.id] = mitigation
            model.attach_mitigation(mitigation)

        for risk_doc in document.risks:
            if risk_doc.type is not NodeKind.MITIGATED_RISK:
                raise DeserializationError(
                    f"Expected MitigatedRisk in risks, got {risk_doc.type.value}",
                )
            model.attach_risk(_build_node(risk_doc, by_id))

        for node in model.nodes():
            dangling = [fact_id for fact_id in node.facts if fact_id not in model.facts]
            if dangling:
                raise DeserializationError(
                    f"Node {node.id} references unknown facts {[str(f) for f in dangling]}",
                )
    except DeserializationError:
        raise
    except ValidationError as e:
        raise DeserializationError(f"Invalid model document: {e.error_count()} errors", cause=e) from e
    except (DomainValidationError, StructuralError, ValueError) as e:
        raise DeserializationError(f"Invalid model document: {e}", cause=e) from e

    _restore_tracking(model, document)
    logger.info(
        "model_loaded",
        model_id=str(model.id),
        source_id=str(document.id),
        risks=len(model.risks),
        mitigations=len(model.mitigations),
    )
    return model


def loads(text: Union[str, bytes], preserve_id: bool = False) -> RiskModel:
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DeserializationError(f"Malformed JSON: {e}", cause=e) from e
    if not isinstance(raw, dict):
        raise DeserializationError("Model document must be a JSON object")
    return load_model(raw, preserve_id=preserve_id)


def load(path: PathLike, preserve_id: bool = False) -> RiskModel:
    return loads(Path(path).read_text(encoding="utf-8"), preserve_id=preserve_id)
