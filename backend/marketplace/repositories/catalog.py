"""Service catalog repository"""

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.models import Service


class ServiceRepository:
    """Repository for vendor service database operations"""

    @staticmethod
    def get_service(db: Session, service_id: UUID) -> Optional[Service]:
        return db.get(Service, service_id)

    @staticmethod
    def get_vendor_service(db: Session, vendor_id: UUID, service_id: UUID) -> Optional[Service]:
        """Get a service only if it belongs to the vendor"""
        return db.execute(
            select(Service).where(Service.id == service_id, Service.vendor_id == vendor_id)
        ).scalar_one_or_none()

    @staticmethod
    def list_vendor_services(db: Session, vendor_id: UUID, active_only: bool = False) -> List[Service]:
        stmt = select(Service).where(Service.vendor_id == vendor_id)
        if active_only:
            stmt = stmt.where(Service.is_active.is_(True))
        return list(db.execute(stmt.order_by(Service.created_at, Service.id)).scalars())

    @staticmethod
    def count_vendor_services(db: Session, vendor_id: UUID, service_ids: Sequence[UUID]) -> int:
        if not service_ids:
            return 0
        rows = db.execute(
            select(Service.id).where(Service.vendor_id == vendor_id, Service.id.in_(list(service_ids)))
        ).scalars()
        return len(list(rows))
