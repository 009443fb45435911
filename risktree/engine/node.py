"""
Computation tree node.

A node owns an ordered list of children, a Range and a set of fact ids.
Its kind (see taxonomy) fixes the range type, the allowed children and
the combination rule used during simulation.

Simulation protocol:
- calculated is False: the user's range is authoritative, samples are
  drawn from it and children are ignored.
- calculated is None or True: children are simulated, combined by the
  kind's rule, and the node's range is replaced by the summary.
Either way the samples are reported to the optional container.
"""

import uuid
from collections import defaultdict
from typing import Iterator, Optional, Protocol, Union

import numpy as np
import structlog

from risktree.config import settings
from risktree.engine import statistics
from risktree.engine.enums import Confidence, NodeKind, RangeState, RangeType
from risktree.engine.range import Range
from risktree.engine.taxonomy import KindSpec, Sampled, required_children, spec_for
from risktree.engine.tracking import ChangesTracker
from risktree.exceptions import ErrorCode, ErrorContext, StructuralError

logger = structlog.get_logger(__name__)


class SimulationContainer(Protocol):
    """Receives the samples of every node touched by a simulation."""

    def add_simulation(self, node: "Node", samples: np.ndarray) -> None:
        ...


_NODE_CLASSES: dict[NodeKind, type["Node"]] = {}


def register_node_class(cls: type["Node"]) -> type["Node"]:
    """Class decorator binding a Node subclass to its kind."""
    _NODE_CLASSES[cls.kind] = cls
    return cls


def node_class_for(kind: NodeKind) -> type["Node"]:
    kind = NodeKind(kind)
    try:
        return _NODE_CLASSES[kind]
    except KeyError:
        raise StructuralError(f"No node class registered for {kind.value}") from None


class Node(ChangesTracker):
    """Base class of every node in a risk tree."""

    kind: NodeKind

    def __init__(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        node_id: Optional[uuid.UUID] = None,
    ):
        if not hasattr(type(self), "kind"):
            raise TypeError("Node subclasses must declare a kind")
        self.id: uuid.UUID = node_id or uuid.uuid4()
        self._name = name
        self._description = description
        self._range = Range(self.spec.range_type)
        self._parent: Optional[Node] = None
        self._children: list[Node] = []
        self._facts: list[uuid.UUID] = []
        self._stale = False
        self._init_tracking()

    # ── Identity ─────────────────────────────────────────────────────────

    @property
    def spec(self) -> KindSpec:
        return spec_for(self.kind)

    @property
    def range_type(self) -> RangeType:
        return self.spec.range_type

    @property
    def name(self) -> Optional[str]:
        return self._name

    @name.setter
    def name(self, value: Optional[str]) -> None:
        self._name = value
        self.touch()

    @property
    def description(self) -> Optional[str]:
        return self._description

    @description.setter
    def description(self, value: Optional[str]) -> None:
        self._description = value
        self.touch()

    @property
    def parent(self) -> Optional["Node"]:
        return self._parent

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id}, name={self._name!r})"

    # ── Range ────────────────────────────────────────────────────────────

    @property
    def range(self) -> Range:
        """Copy of the node's current range."""
        return self._range.copy()

    @property
    def min(self) -> float:
        return self._range.min

    @min.setter
    def min(self, value: float) -> None:
        self._range.min = value
        self._range_changed()

    @property
    def mode(self) -> float:
        return self._range.mode

    @mode.setter
    def mode(self, value: float) -> None:
        self._range.mode = value
        self._range_changed()

    @property
    def max(self) -> float:
        return self._range.max

    @max.setter
    def max(self, value: float) -> None:
        self._range.max = value
        self._range_changed()

    @property
    def confidence(self) -> Confidence:
        return self._range.confidence

    @confidence.setter
    def confidence(self, value: Confidence) -> None:
        self._range.confidence = value
        self._range_changed()

    @property
    def calculated(self) -> Optional[bool]:
        return self._range.calculated

    @property
    def range_state(self) -> RangeState:
        return self._range.state

    @property
    def is_stale(self) -> bool:
        """A computed range whose inputs changed since it was produced."""
        return self._stale

    def set_range(
        self,
        min: float,
        mode: float,
        max: float,
        confidence: Confidence = Confidence.MODERATE,
    ) -> None:
        """Set a user estimate; it becomes authoritative over the children."""
        self._range.set(min, mode, max, confidence)
        self._range_changed()

    def reset_range(self) -> None:
        """Forget the estimate so the node is computed from its children again."""
        self._range.reset()
        self._range_changed()

    def restore_range(self, snapshot: Range) -> None:
        """Reinstate a range captured earlier, including its calculated state."""
        self._range.restore(*snapshot.as_tuple(), state=snapshot.state)
        self._stale = False

    def _range_changed(self) -> None:
        self._stale = False
        self.touch()
        self._invalidate_ancestors()

    def _invalidate_ancestors(self) -> None:
        ancestor = self._parent
        while ancestor is not None:
            if ancestor.calculated:
                ancestor._stale = True
            ancestor = ancestor._parent

    # ── Children ─────────────────────────────────────────────────────────

    @property
    def children(self) -> tuple["Node", ...]:
        return tuple(self._children)

    def children_of(self, kind: NodeKind) -> list["Node"]:
        kind = NodeKind(kind)
        return [child for child in self._children if child.kind is kind]

    def first_child(self, kind: NodeKind) -> Optional["Node"]:
        found = self.children_of(kind)
        return found[0] if found else None

    def get_child(self, child_id: uuid.UUID) -> Optional["Node"]:
        return next((child for child in self._children if child.id == child_id), None)

    def can_add(self, kind: NodeKind) -> bool:
        kind = NodeKind(kind)
        if not self.spec.accepts(kind):
            return False
        limit = self.spec.max_children(kind)
        return limit is None or len(self.children_of(kind)) < limit

    def add_child(
        self,
        kind: NodeKind,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> "Node":
        """Create a child of the given kind; raises StructuralError if not allowed."""
        kind = NodeKind(kind)
        self._check_can_add(kind)
        child = node_class_for(kind)(name=name, description=description)
        self._attach(child)
        return child

    def attach(self, child: "Node") -> "Node":
        """Adopt a detached node built elsewhere (e.g. by the deserializer)."""
        if child._parent is not None:
            raise StructuralError(
                f"{child!r} already belongs to {child._parent!r}",
                context=ErrorContext(node_id=str(child.id)),
            )
        self._check_can_add(child.kind)
        self._attach(child)
        return child

    def remove_child(self, child: Union["Node", uuid.UUID]) -> bool:
        """Detach a child and its whole subtree. Returns False if not found."""
        child_id = child.id if isinstance(child, Node) else child
        found = self.get_child(child_id)
        if found is None:
            return False
        self._children.remove(found)
        found._parent = None
        self._structure_changed()
        logger.debug("node_child_removed", parent=str(self.id), child=str(child_id), kind=found.kind.value)
        return True

    def walk(self) -> Iterator["Node"]:
        """This node and every descendant, depth first."""
        yield self
        for child in self._children:
            yield from child.walk()

    def _check_can_add(self, kind: NodeKind) -> None:
        if not self.spec.accepts(kind):
            raise StructuralError(
                f"{self.kind.value} does not accept {kind.value} children",
                error_code=ErrorCode.CHILD_NOT_ALLOWED,
                context=ErrorContext(node_id=str(self.id)),
            )
        if not self.can_add(kind):
            raise StructuralError(
                f"{self.kind.value} already has the maximum number of {kind.value} children",
                error_code=ErrorCode.CHILD_LIMIT_REACHED,
                context=ErrorContext(node_id=str(self.id)),
            )

    def _attach(self, child: "Node") -> None:
        child._parent = self
        self._children.append(child)
        self._structure_changed()

    def _structure_changed(self) -> None:
        self.touch()
        if self.calculated:
            self._stale = True
        self._invalidate_ancestors()

    # ── Facts ────────────────────────────────────────────────────────────

    @property
    def facts(self) -> tuple[uuid.UUID, ...]:
        return tuple(self._facts)

    def has_fact(self, fact_id: uuid.UUID) -> bool:
        return fact_id in self._facts

    def add_fact(self, fact_id: uuid.UUID) -> bool:
        if fact_id in self._facts:
            return False
        self._facts.append(fact_id)
        self.touch()
        return True

    def remove_fact(self, fact_id: uuid.UUID) -> bool:
        if fact_id not in self._facts:
            return False
        self._facts.remove(fact_id)
        self.touch()
        return True

    # ── Simulation ───────────────────────────────────────────────────────

    def has_required_children(self) -> bool:
        if not self.spec.computable:
            return False
        if self.kind is NodeKind.LOSS_MAGNITUDE:
            return bool(self._children)
        return all(self.children_of(kind) for kind in required_children(self.kind))

    @property
    def can_be_simulated(self) -> bool:
        """Structural check only; a fit can still fail at sampling time."""
        if self.calculated is False:
            return True
        if not self.spec.computable:
            return False
        return self.has_required_children() and all(
            child.can_be_simulated for child in self._simulation_inputs()
        )

    def simulate_and_get_samples(
        self,
        iterations: Optional[int] = None,
        min_percentile: Optional[float] = None,
        max_percentile: Optional[float] = None,
        container: Optional[SimulationContainer] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> Optional[np.ndarray]:
        """
        Simulate this subtree and return ``iterations`` samples, or None.

        Raises DomainValidationError for out-of-range iterations or
        percentiles; every other failure yields None.
        """
        iterations = statistics.validate_iterations(
            settings.default_iterations if iterations is None else iterations
        )
        min_percentile = settings.default_min_percentile if min_percentile is None else min_percentile
        max_percentile = settings.default_max_percentile if max_percentile is None else max_percentile
        statistics.validate_percentiles(min_percentile, max_percentile)
        return self._simulate(iterations, min_percentile, max_percentile, container, rng)

    def _simulate(
        self,
        iterations: int,
        min_percentile: float,
        max_percentile: float,
        container: Optional[SimulationContainer],
        rng: Optional[np.random.Generator],
    ) -> Optional[np.ndarray]:
        if self.calculated is False or not self.spec.computable:
            samples = self._range.generate_samples(iterations, rng=rng)
        else:
            samples = self._compute(iterations, min_percentile, max_percentile, container, rng)

        if samples is None:
            logger.debug("node_simulation_failed", node=str(self.id), kind=self.kind.value)
            return None
        if container is not None:
            container.add_simulation(self, samples)
        return samples

    def _compute(
        self,
        iterations: int,
        min_percentile: float,
        max_percentile: float,
        container: Optional[SimulationContainer],
        rng: Optional[np.random.Generator],
    ) -> Optional[np.ndarray]:
        inputs: dict[NodeKind, list[Sampled]] = defaultdict(list)
        for child in self._simulation_inputs():
            samples = child._simulate(iterations, min_percentile, max_percentile, container, rng)
            if samples is None:
                return None
            inputs[child.kind].append(Sampled(samples, child.confidence))

        result = self.spec.rule(inputs)
        if result is None:
            return None

        summary = statistics.summarize(
            result.samples, min_percentile, max_percentile, result.confidence,
        )
        self._range.set_computed(summary)
        self._stale = False
        return result.samples

    def _simulation_inputs(self) -> list["Node"]:
        """Children taking part in the combination rule."""
        return list(self._children)
