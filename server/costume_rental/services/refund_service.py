"""Security deposit refund workflow."""

import logging
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..core.config import BookingPolicyConfig
from ..core.exceptions import InvalidStateError, ValidationError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus
from .booking_service import BookingService
from .pricing import PricingEngine, quantize

logger = logging.getLogger(__name__)


class RefundService:
    """Service refunding the security deposit once a costume is back."""

    def __init__(self, db: AsyncSession, clock: Clock, policy: BookingPolicyConfig):
        self.db = db
        self.clock = clock
        self.pricing = PricingEngine(policy)
        self.bookings = BookingService(db, clock, policy)

    async def process_refund(
        self,
        booking_id: UUID,
        amount_override: Optional[Decimal] = None,
        notes: Optional[str] = None,
    ) -> tuple[Booking, Decimal, Decimal]:
        """
        Refund the deposit of a returned booking, exactly once.

        Args:
            booking_id: Booking to refund
            amount_override: Amount to refund instead of deposit minus late
                fee; an explicit zero is honoured
            notes: Free-form notes stored with the refund

        Returns:
            ``(booking, refund_amount, amount_due)`` where amount_due is the
            part of the late fee the deposit did not cover

        Raises:
            NotFoundError: If booking not found
            InvalidStateError: If the costume has not been returned or the
                deposit was already refunded
            ValidationError: If the override exceeds the deposit
        """
        booking = await self.bookings.get_booking_or_raise(booking_id)

        if booking.actual_return_date is None:
            raise InvalidStateError(
                detail="Cannot refund security deposit before costume is returned",
                current_status=booking.status,
                booking_id=str(booking_id),
            )
        if booking.security_deposit_refunded:
            raise InvalidStateError(
                detail="Security deposit has already been refunded",
                current_status=booking.status,
                booking_id=str(booking_id),
            )

        estimate = self.pricing.estimated_refund(booking.security_deposit, booking.late_fee_amount)
        if amount_override is not None:
            refund_amount = quantize(amount_override)
            if refund_amount > booking.security_deposit:
                raise ValidationError(
                    "Refund amount cannot exceed the security deposit",
                    violations=[{"path": "refund_amount", "message": f"must be at most {booking.security_deposit}"}],
                )
        else:
            refund_amount = estimate.refund

        refunded = await self.bookings.compare_and_set(
            booking_id,
            [BookingStatus.COMPLETED],
            {
                "security_deposit_refunded": True,
                "refund_amount": refund_amount,
                "refund_notes": notes or None,
                "refund_processed_at": self.clock.now(),
            },
            "refund",
            extra_criteria=(
                Booking.actual_return_date.is_not(None),
                Booking.security_deposit_refunded.is_(False),
            ),
        )

        metrics_collector.record_refund_processed()
        logger.info(
            "Security deposit refund processed",
            extra={
                "booking_id": str(booking_id),
                "refund_amount": str(refund_amount),
                "amount_due": str(estimate.amount_due),
                "overridden": amount_override is not None,
            }
        )
        return refunded, refund_amount, estimate.amount_due

    async def refund_status(self, booking_id: UUID) -> dict[str, Any]:
        """
        Deposit, late fee and what would be refunded now.

        Raises:
            NotFoundError: If booking not found
        """
        booking = await self.bookings.get_booking_or_raise(booking_id)
        estimate = self.pricing.estimated_refund(booking.security_deposit, booking.late_fee_amount)

        return {
            "booking": booking,
            "is_eligible_for_refund": (
                booking.actual_return_date is not None and not booking.security_deposit_refunded
            ),
            "has_been_refunded": booking.security_deposit_refunded,
            "security_deposit": booking.security_deposit,
            "late_fee_amount": booking.late_fee_amount,
            "estimated_refund": estimate.refund,
            "amount_due": estimate.amount_due,
        }
