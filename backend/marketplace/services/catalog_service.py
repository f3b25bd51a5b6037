"""
Service catalog management for vendors.
"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from marketplace.lib.errors import BadRequestException, NotFoundException
from marketplace.lib.identity import Identity
from marketplace.lib.logging import get_logger
from marketplace.models import Service
from marketplace.repositories.catalog import ServiceRepository
from marketplace.services.vendor_context import require_vendor_for_identity


logger = get_logger(__name__)

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 80
MIN_PRICE_MINOR = 500
MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 8 * 60
MAX_BUFFER_MINUTES = 180


def validate_duration(duration_minutes: int) -> None:
    if duration_minutes < MIN_DURATION_MINUTES or duration_minutes > MAX_DURATION_MINUTES:
        raise BadRequestException(
            f"Duration must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes"
        )


def validate_buffer(buffer_minutes: int) -> None:
    if buffer_minutes < 0 or buffer_minutes > MAX_BUFFER_MINUTES:
        raise BadRequestException(f"Buffer must be between 0 and {MAX_BUFFER_MINUTES} minutes")


def validate_price(price_minor: int) -> None:
    if price_minor < MIN_PRICE_MINOR:
        raise BadRequestException(f"Price must be at least {MIN_PRICE_MINOR} minor units")


def validate_deposit_percent(deposit_percent: Optional[int]) -> None:
    if deposit_percent is not None and not 0 <= deposit_percent <= 100:
        raise BadRequestException("Deposit percent must be between 0 and 100")


def validate_name(name: str) -> str:
    trimmed = name.strip()
    if not MIN_NAME_LENGTH <= len(trimmed) <= MAX_NAME_LENGTH:
        raise BadRequestException(
            f"Service name must be between {MIN_NAME_LENGTH} and {MAX_NAME_LENGTH} characters"
        )
    return trimmed


class CatalogService:
    """Create, update and list a vendor's services."""

    def __init__(self, session: Session):
        self.session = session

    def list_services(self, identity: Identity) -> List[Service]:
        vendor = require_vendor_for_identity(self.session, identity)
        return ServiceRepository.list_vendor_services(self.session, vendor.id)

    def get_service(self, identity: Identity, service_id: UUID) -> Service:
        vendor = require_vendor_for_identity(self.session, identity)
        service = ServiceRepository.get_vendor_service(self.session, vendor.id, service_id)
        if service is None:
            raise NotFoundException("Service", str(service_id))
        return service

    def create_service(
        self,
        identity: Identity,
        name: str,
        price_minor: int,
        duration_minutes: int,
        buffer_minutes: int = 0,
        deposit_percent: Optional[int] = None,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> Service:
        vendor = require_vendor_for_identity(self.session, identity)

        trimmed = validate_name(name)
        validate_price(price_minor)
        validate_duration(duration_minutes)
        validate_buffer(buffer_minutes)
        validate_deposit_percent(deposit_percent)

        service = Service(
            vendor_id=vendor.id,
            name=trimmed,
            description=description.strip() if description else None,
            price_minor=price_minor,
            duration_minutes=duration_minutes,
            buffer_minutes=buffer_minutes,
            deposit_percent=deposit_percent,
            is_active=is_active,
        )
        self.session.add(service)
        self.session.commit()

        logger.info(f"Service {service.id} created for vendor {vendor.id}")
        return service

    def update_service(self, identity: Identity, service_id: UUID, **changes) -> Service:
        """
        Apply a partial update. Keys with value None are left unchanged,
        except ``deposit_percent`` which may be cleared explicitly.

        Existing bookings keep the price and times they were created with.
        """
        service = self.get_service(identity, service_id)

        if changes.get("name") is not None:
            service.name = validate_name(changes["name"])
        if changes.get("description") is not None:
            service.description = changes["description"].strip() or None
        if changes.get("price_minor") is not None:
            validate_price(changes["price_minor"])
            service.price_minor = changes["price_minor"]
        if changes.get("duration_minutes") is not None:
            validate_duration(changes["duration_minutes"])
            service.duration_minutes = changes["duration_minutes"]
        if changes.get("buffer_minutes") is not None:
            validate_buffer(changes["buffer_minutes"])
            service.buffer_minutes = changes["buffer_minutes"]
        if "deposit_percent" in changes:
            validate_deposit_percent(changes["deposit_percent"])
            service.deposit_percent = changes["deposit_percent"]
        if changes.get("is_active") is not None:
            service.is_active = changes["is_active"]

        self.session.commit()
        logger.info(f"Service {service.id} updated")
        return service
