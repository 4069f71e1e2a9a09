# MIT License (see LICENSE)
"""Deferred deletion of entities."""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import ClassVar

from .ecs.dispatcher import System, SystemContext
from .ecs.world import DenseComponent

logger = logging.getLogger(__name__)


@dataclass
class ToBeDestroyed(DenseComponent):
    """Marker: the entity is deleted at the end of the current tick."""
    width: ClassVar[int] = 0


class DeleteToBeDestroyedEntitiesSystem(System):
    """Queue deletion of every entity carrying ToBeDestroyed."""
    reads = (ToBeDestroyed,)

    def run(self, ctx: SystemContext) -> None:
        doomed = ctx.entities_with(ToBeDestroyed)
        for entity in doomed:
            ctx.lazy.delete(int(entity))
        if doomed.size:
            logger.debug("Deleting %d entities", doomed.size)
