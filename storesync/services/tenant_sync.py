"""Per-tenant sync orchestration.

WHAT:
    TenantSyncOrchestrator composes the entity synchronizers for one tenant:
    - quick_sync(): customers and orders concurrently
    - full_sync(): customers -> orders -> products, strictly in order
    - sync_entity(): a single entity type, for on-demand triggers

WHY:
    - Full sync ordering is a correctness requirement: orders resolve their
      customer link against customers stored by the preceding stage
    - Quick sync trades that guarantee for latency. An order may race its
      customer's first insert and be stored unlinked; the next run links it.

REFERENCES:
    - storesync/services/entity_sync.py
    - storesync/services/sync_scheduler.py (caller on both cadences)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict

from sqlalchemy.orm import Session

from storesync.database import SessionLocal
from storesync.models import SyncEntityEnum
from storesync.services.entity_sync import SYNCHRONIZERS, SyncResult
from storesync.services.store_client import StoreClient

logger = logging.getLogger(__name__)

FULL_SYNC_ORDER = (
    SyncEntityEnum.customers,
    SyncEntityEnum.orders,
    SyncEntityEnum.products,
)


class TenantSyncOrchestrator:
    """Runs entity synchronizers for a tenant.

    Args:
        session_factory: Creates one Session per synchronizer run
        client_factory: Builds a StoreClient for a tenant
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        client_factory: Callable[..., StoreClient] = StoreClient.for_tenant,
    ):
        self.session_factory = session_factory
        self.client_factory = client_factory

    def _synchronizer(self, tenant, entity_type: SyncEntityEnum):
        synchronizer_cls = SYNCHRONIZERS[entity_type]
        return synchronizer_cls(tenant, self.client_factory(tenant), session_factory=self.session_factory)

    async def sync_entity(self, tenant, entity_type: SyncEntityEnum) -> SyncResult:
        """Run one entity synchronizer; fetch errors propagate."""
        return await self._synchronizer(tenant, entity_type).sync()

    async def quick_sync(self, tenant) -> Dict[SyncEntityEnum, SyncResult]:
        """Sync customers and orders concurrently.

        Both runs always settle and write their SyncLog rows before this
        returns; if either failed, the first failure is then re-raised.
        """
        logger.info(f"[TENANT_SYNC] Quick sync started for tenant {tenant.id}")

        entity_types = (SyncEntityEnum.customers, SyncEntityEnum.orders)
        outcomes = await asyncio.gather(
            *(self.sync_entity(tenant, entity_type) for entity_type in entity_types),
            return_exceptions=True,
        )

        results: Dict[SyncEntityEnum, SyncResult] = {}
        first_error = None
        for entity_type, outcome in zip(entity_types, outcomes):
            if isinstance(outcome, BaseException):
                first_error = first_error or outcome
                continue
            results[entity_type] = outcome

        if first_error is not None:
            logger.error(f"[TENANT_SYNC] Quick sync failed for tenant {tenant.id}: {first_error}")
            raise first_error

        logger.info(f"[TENANT_SYNC] Quick sync completed for tenant {tenant.id}")
        return results

    async def full_sync(self, tenant) -> Dict[SyncEntityEnum, SyncResult]:
        """Sync customers, then orders, then products.

        A failing stage stops the run: later stages are not started and the
        error propagates to the caller.
        """
        logger.info(f"[TENANT_SYNC] Full sync started for tenant {tenant.id}")

        results: Dict[SyncEntityEnum, SyncResult] = {}
        for entity_type in FULL_SYNC_ORDER:
            try:
                results[entity_type] = await self.sync_entity(tenant, entity_type)
            except Exception as e:
                logger.error(
                    f"[TENANT_SYNC] Full sync for tenant {tenant.id} stopped at {entity_type.value}: {e}"
                )
                raise

        logger.info(f"[TENANT_SYNC] Full sync completed for tenant {tenant.id}")
        return results
