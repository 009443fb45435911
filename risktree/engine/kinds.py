"""
Concrete node kinds of the FAIR decomposition.

Mitigation-related kinds (MitigatedRisk, MitigationCost, AppliedMitigation)
live in ``risktree.model`` because they reference the model aggregate.
"""

import uuid
from typing import Optional

from risktree.engine.enums import ContactType, LossForm, NodeKind
from risktree.engine.node import Node, register_node_class


@register_node_class
class Risk(Node):
    kind = NodeKind.RISK


@register_node_class
class LossEventFrequency(Node):
    kind = NodeKind.LOSS_EVENT_FREQUENCY


@register_node_class
class ThreatEventFrequency(Node):
    kind = NodeKind.THREAT_EVENT_FREQUENCY


@register_node_class
class ContactFrequency(Node):
    """How often the threat agent comes into contact with the asset."""

    kind = NodeKind.CONTACT_FREQUENCY

    def __init__(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        node_id: Optional[uuid.UUID] = None,
        contact_type: ContactType = ContactType.RANDOM,
    ):
        super().__init__(name=name, description=description, node_id=node_id)
        self._contact_type = ContactType(contact_type)

    @property
    def contact_type(self) -> ContactType:
        return self._contact_type

    @contact_type.setter
    def contact_type(self, value: ContactType) -> None:
        self._contact_type = ContactType(value)
        self.touch()


@register_node_class
class ProbabilityOfAction(Node):
    kind = NodeKind.PROBABILITY_OF_ACTION


@register_node_class
class Vulnerability(Node):
    kind = NodeKind.VULNERABILITY


@register_node_class
class ThreatCapability(Node):
    kind = NodeKind.THREAT_CAPABILITY


@register_node_class
class ResistanceStrength(Node):
    kind = NodeKind.RESISTANCE_STRENGTH


@register_node_class
class LossMagnitude(Node):
    kind = NodeKind.LOSS_MAGNITUDE


class _FormedLoss(Node):
    """Loss node classified by a FAIR form of loss."""

    def __init__(
        self,
        name: Optional[str] = None,
        description: Optional[str] = None,
        node_id: Optional[uuid.UUID] = None,
        form: LossForm = LossForm.UNDETERMINED,
    ):
        super().__init__(name=name, description=description, node_id=node_id)
        self._form = LossForm(form)

    @property
    def form(self) -> LossForm:
        return self._form

    @form.setter
    def form(self, value: LossForm) -> None:
        self._form = LossForm(value)
        self.touch()


@register_node_class
class PrimaryLoss(_FormedLoss):
    kind = NodeKind.PRIMARY_LOSS


@register_node_class
class SecondaryRisk(_FormedLoss):
    kind = NodeKind.SECONDARY_RISK


@register_node_class
class SecondaryLossEventFrequency(Node):
    kind = NodeKind.SECONDARY_LOSS_EVENT_FREQUENCY


@register_node_class
class SecondaryLossMagnitude(Node):
    kind = NodeKind.SECONDARY_LOSS_MAGNITUDE
