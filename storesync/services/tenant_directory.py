"""Read-only access to tenants for the sync engine.

Tenant onboarding and credential storage live outside this service; the
engine only lists active tenants and looks tenants up by id.
"""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from storesync.models import Tenant


def list_active_tenants(db: Session) -> List[Tenant]:
    return db.query(Tenant).filter(Tenant.is_active.is_(True)).order_by(Tenant.created_at).all()


def get_tenant(db: Session, tenant_id: UUID) -> Optional[Tenant]:
    return db.query(Tenant).filter(Tenant.id == tenant_id).first()
