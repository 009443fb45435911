"""JSON persistence of risk models."""

from risktree.persistence.serializer import dump_model, dumps, load, load_model, loads, save

__all__ = ["dump_model", "dumps", "load", "load_model", "loads", "save"]
