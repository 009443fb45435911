"""Evidence attached to model nodes."""

from risktree.facts.fact import AnyFact, Fact, FactHardNumber, FactRange, FactsCollection

__all__ = ["AnyFact", "Fact", "FactHardNumber", "FactRange", "FactsCollection"]
