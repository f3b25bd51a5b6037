"""
Helpers that resolve the vendor a request acts for.
"""
from uuid import UUID

from sqlalchemy.orm import Session

from marketplace.lib.errors import BadRequestException, ForbiddenException, NotFoundException
from marketplace.lib.identity import Identity
from marketplace.models import Vendor, VendorStatus, UserRole
from marketplace.repositories.vendors import VendorRepository


def require_vendor_for_identity(session: Session, identity: Identity) -> Vendor:
    """
    Vendor owned by the caller.

    Raises:
        ForbiddenException: Caller is not a vendor user
        BadRequestException: Vendor onboarding has not been completed
    """
    if identity.role != UserRole.VENDOR:
        raise ForbiddenException("Only vendors can manage this resource")
    vendor = VendorRepository.get_vendor_for_user(session, identity.user_id)
    if vendor is None:
        raise BadRequestException("Complete vendor onboarding before managing services")
    return vendor


def require_bookable_vendor(session: Session, vendor_id: UUID) -> Vendor:
    """Vendor that may currently accept bookings."""
    vendor = VendorRepository.get_vendor(session, vendor_id)
    if vendor is None:
        raise NotFoundException("Vendor", str(vendor_id))
    if vendor.status != VendorStatus.VERIFIED:
        raise ForbiddenException("Vendor must be verified before accepting bookings")
    if vendor.user_id is None:
        raise BadRequestException("Vendor account is not linked to an active user")
    return vendor
