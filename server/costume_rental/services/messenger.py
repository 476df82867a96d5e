"""Messenger handoff: the prefilled booking summary a customer sends to the shop."""

from datetime import datetime
from decimal import Decimal
from urllib.parse import quote

from ..core.date_ranges import calendar_days
from ..models.booking import Booking, DurationCode
from ..models.costume import Costume

DURATION_LABELS = {
    DurationCode.TWELVE_HOURS: "12 Hours",
    DurationCode.ONE_DAY: "1 Day",
    DurationCode.THREE_DAYS: "3 Days",
    DurationCode.ONE_WEEK: "1 Week",
}


def range_duration_label(start: datetime, end: datetime) -> str:
    """Describe a date range the way the rate card does: days up to three, then weeks."""
    days = calendar_days(start, end)
    if days <= 1:
        return "1 Day"
    if days <= 3:
        return f"{days} Days"
    if days <= 7:
        return "1 Week"
    weeks = -(-days // 7)
    return f"{weeks} Weeks"


def duration_label(booking: Booking) -> str:
    if booking.duration_code:
        return DURATION_LABELS[DurationCode(booking.duration_code)]
    return range_duration_label(booking.start_date, booking.end_date)


def format_display_date(value: datetime) -> str:
    return value.strftime("%b %d, %Y")


def format_amount(amount: Decimal) -> str:
    return f"₱{Decimal(amount):,.2f}"


def build_booking_message(booking: Booking, costume: Costume) -> str:
    """Plain-text booking summary for the customer to send over Messenger."""
    lines = [
        "🎭 COSTUME RENTAL BOOKING REQUEST",
        "",
        "📋 BOOKING DETAILS:",
        f"• Costume: {costume.name}",
        f"• Duration: {duration_label(booking)}",
        f"• Start Date: {format_display_date(booking.start_date)}",
        f"• End Date: {format_display_date(booking.end_date)}",
        f"• Total Price: {format_amount(booking.total_price)}",
        f"• Security Deposit: {format_amount(booking.security_deposit)}",
        "",
        "👤 CUSTOMER INFORMATION:",
        f"• Name: {booking.customer_name}",
        f"• Email: {booking.customer_email}",
        f"• Phone: {booking.customer_phone}",
        "",
    ]

    if booking.special_requests:
        lines += ["📝 SPECIAL REQUESTS:", booking.special_requests, ""]

    lines += [
        "💰 COSTUME DETAILS:",
        f"• Size: {costume.size or 'N/A'}",
        f"• Difficulty: {costume.difficulty or 'N/A'}",
    ]
    if costume.setup_time_minutes is not None:
        lines.append(f"• Setup Time: {costume.setup_time_minutes} minutes")

    lines += [
        "",
        f"📅 BOOKING ID: {booking.booking_reference}",
        "",
        "Please confirm availability and provide payment instructions. Thank you!",
    ]
    return "\n".join(lines)


def build_messenger_url(message: str, page_url: str) -> str:
    """Deep link opening ``page_url`` in Messenger with ``message`` prefilled."""
    return f"{page_url}?text={quote(message, safe='')}"
