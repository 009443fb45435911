"""
Model Registry — explicit, thread-safe ownership of live models.

Replaces a process-wide singleton: create one registry where the
application starts and pass it to whatever needs to look models up.

Usage:
    registry = ModelRegistry()
    model = registry.create("Payments platform")
    ...
    registry.dispose(model.id)
"""

import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Union

import structlog

from risktree.exceptions import ErrorCode, ErrorContext, ModelNotFoundError, StructuralError
from risktree.model.risk_model import DEFAULT_MODEL_NAME, RiskModel
from risktree.persistence import serializer

logger = structlog.get_logger(__name__)


@dataclass
class ModelRegistry:
    """
    Live models keyed by id.

    The registry is safe to share between threads; the models it holds
    are not, so each model should be driven by one thread at a time.
    """

    _models: dict[uuid.UUID, RiskModel] = field(default_factory=dict, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def create(
        self,
        name: str = DEFAULT_MODEL_NAME,
        description: Optional[str] = None,
        **kwargs,
    ) -> RiskModel:
        return self.register(RiskModel(name=name, description=description, **kwargs))

    def register(self, model: RiskModel) -> RiskModel:
        with self._lock:
            existing = self._models.get(model.id)
            if existing is not None and existing is not model:
                raise StructuralError(
                    f"A different model with id {model.id} is already registered",
                    error_code=ErrorCode.DUPLICATE_MODEL,
                    context=ErrorContext(model_id=str(model.id)),
                )
            self._models[model.id] = model
        logger.info("model_registered", model_id=str(model.id), name=model.name)
        return model

    def load(self, path: Union[str, Path], preserve_id: bool = False) -> RiskModel:
        """Load from disk and register; nothing is registered if loading fails."""
        return self.register(serializer.load(path, preserve_id=preserve_id))

    def get(self, model_id: uuid.UUID) -> RiskModel:
        with self._lock:
            model = self._models.get(model_id)
        if model is None:
            raise ModelNotFoundError(str(model_id))
        return model

    def find(self, model_id: uuid.UUID) -> Optional[RiskModel]:
        with self._lock:
            return self._models.get(model_id)

    def dispose(self, model_id: uuid.UUID) -> bool:
        with self._lock:
            model = self._models.pop(model_id, None)
        if model is None:
            return False
        logger.info("model_disposed", model_id=str(model_id))
        return True

    def clear(self) -> None:
        with self._lock:
            self._models.clear()

    @property
    def ids(self) -> list[uuid.UUID]:
        with self._lock:
            return list(self._models)

    def __contains__(self, model_id: object) -> bool:
        with self._lock:
            return model_id in self._models

    def __len__(self) -> int:
        with self._lock:
            return len(self._models)

    def __iter__(self) -> Iterator[RiskModel]:
        with self._lock:
            return iter(list(self._models.values()))
