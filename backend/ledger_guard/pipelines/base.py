"""
Pipeline plumbing shared by every collection.

A pipeline decodes the proposed record (and the stored one, on update) and
runs its checks in a fixed order, stopping at the first failure:

    primitive -> reconciliation -> state machine -> store queries -> policy

Pipelines register themselves with @register_pipeline.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type
import logging

from pydantic import BaseModel

from ledger_guard.codec import Payload, decode_record
from ledger_guard.duplicate_protection import DuplicateProtection
from ledger_guard.policy_service import PolicyService
from ledger_guard.state_machine import StateMachineRegistry

logger = logging.getLogger(__name__)


@dataclass
class WriteContext:
    """Everything a pipeline needs to judge one write attempt."""
    collection: str
    key: Optional[str]
    now_ns: int
    duplicates: DuplicateProtection
    policy: PolicyService
    machines: StateMachineRegistry

    def rule_context(self) -> Dict[str, Any]:
        return {"now_ns": self.now_ns, "collection": self.collection, "key": self.key}


class CollectionPipeline:
    """
    Base class. Subclasses set `collection`, `entity` and `model`, and
    implement check().
    """

    collection: str = ""
    entity: str = ""
    model: Type[BaseModel] = BaseModel

    async def run(
        self,
        ctx: WriteContext,
        proposed: Payload,
        previous: Optional[Payload] = None
    ) -> None:
        record = decode_record(proposed, self.model, self.entity)
        stored = None
        if previous is not None:
            stored = decode_record(previous, self.model, self.entity, previous=True)
        await self.check(ctx, record, stored)

    async def check(self, ctx: WriteContext, record: Any, previous: Optional[Any]) -> None:
        raise NotImplementedError


# =============================================================================
# REGISTRY
# =============================================================================

class PipelineRegistry:
    """
    Collection name -> pipeline instance.

    Usage:
        registry = PipelineRegistry()
        registry.register(ExpensePipeline)
        pipeline = registry.get("expenses")
    """

    def __init__(self):
        self._pipelines: Dict[str, CollectionPipeline] = {}

    def register(self, pipeline_cls: Type[CollectionPipeline]) -> Type[CollectionPipeline]:
        name = pipeline_cls.collection
        if not name:
            raise ValueError(f"{pipeline_cls.__name__} does not declare a collection")
        if name in self._pipelines:
            logger.warning(f"[REGISTRY] Overwriting pipeline for collection: {name}")
        self._pipelines[name] = pipeline_cls()
        return pipeline_cls

    def get(self, collection: str) -> Optional[CollectionPipeline]:
        return self._pipelines.get(collection)

    def has(self, collection: str) -> bool:
        return collection in self._pipelines

    def collections(self) -> List[str]:
        return list(self._pipelines.keys())


# Global registry instance
pipeline_registry = PipelineRegistry()


def register_pipeline(pipeline_cls: Type[CollectionPipeline]) -> Type[CollectionPipeline]:
    """Class decorator adding a pipeline to the global registry."""
    return pipeline_registry.register(pipeline_cls)
