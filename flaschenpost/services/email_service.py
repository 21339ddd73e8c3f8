"""Transactional email delivery over SMTP."""

import asyncio
import logging
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from typing import Any

import aiosmtplib
from jinja2 import Environment, FileSystemLoader, select_autoescape

from flaschenpost.core.config import Settings, settings
from flaschenpost.core.security import cancellation_url
from flaschenpost.models.magazine import Magazine
from flaschenpost.models.reservation import DeliveryMethod, Reservation
from flaschenpost.models.user import User

logger = logging.getLogger(__name__)

# Jinja2 template environment
TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"
_jinja_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
    trim_blocks=True,
    lstrip_blocks=True,
)


class EmailError(Exception):
    """Base class for email failures."""


class EmailNotConfiguredError(EmailError):
    """SMTP credentials are missing."""


class EmailDeliveryError(EmailError):
    """The SMTP server could not be reached or rejected the message."""


def format_currency(amount: float) -> str:
    """German currency format, e.g. ``4,30 €``."""
    formatted = f"{amount:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"{formatted} €"


def payment_reference(reservation_id: Any, prefix: str = "FP-") -> str:
    return f"{prefix}{str(reservation_id).upper()[:8]}"


def reservation_number(reservation_id: Any) -> str:
    return str(reservation_id)[:8].upper()


@dataclass
class OrderTotals:
    magazine_cost: float
    shipping_cost: float

    @property
    def total(self) -> float:
        return round(self.magazine_cost + self.shipping_cost, 2)


def calculate_totals(reservation: Reservation, config: Settings) -> OrderTotals:
    """Price times quantity, plus the flat shipping fee for shipped orders."""
    shipping = config.shipping_cost if reservation.delivery_method == DeliveryMethod.SHIPPING else 0.0
    return OrderTotals(
        magazine_cost=round(config.magazine_price * reservation.quantity, 2),
        shipping_cost=shipping,
    )


def _close(smtp: aiosmtplib.SMTP) -> None:
    # quit() already closes on success; this covers the failure paths
    if smtp.is_connected:
        smtp.close()


class EmailService:
    """Renders and sends reservation emails via SMTP."""

    def __init__(self, config: Settings | None = None) -> None:
        self.config = config or settings

    @property
    def is_configured(self) -> bool:
        return bool(self.config.smtp_user and self.config.smtp_pass)

    # --- public API ---

    async def send_reservation_confirmation(
        self,
        reservation: Reservation,
        user: User,
        magazine: Magazine,
    ) -> None:
        """Send the confirmation with pricing, payment and cancellation details.

        Bounded by ``email_send_timeout_seconds``.
        """
        message = self.build_reservation_confirmation(reservation, user, magazine)
        message["X-Priority"] = "1"
        try:
            await asyncio.wait_for(
                self._send(message),
                timeout=self.config.email_send_timeout_seconds,
            )
        except TimeoutError as e:
            logger.error(
                "Email send timeout: to=%s reservation=%s", user.email, reservation.id
            )
            raise EmailDeliveryError(
                f"Email send timeout after {self.config.email_send_timeout_seconds:g} seconds"
            ) from e
        logger.info("Confirmation email sent: reservation=%s", reservation.id)

    async def send_cancellation_confirmation(
        self,
        reservation: Reservation,
        user: User,
        magazine: Magazine,
    ) -> None:
        message = self._build(
            "cancellation",
            subject=f"Reservierung storniert - {magazine.title}",
            reservation=reservation,
            user=user,
            magazine=magazine,
        )
        await self._send(message)
        logger.info("Cancellation email sent: reservation=%s", reservation.id)

    async def send_pickup_reminder(
        self,
        reservation: Reservation,
        user: User,
        magazine: Magazine,
    ) -> None:
        message = self._build(
            "pickup_reminder",
            subject=f"Erinnerung: Abholung {magazine.title}",
            reservation=reservation,
            user=user,
            magazine=magazine,
        )
        await self._send(message)
        logger.info("Pickup reminder sent: reservation=%s", reservation.id)

    async def verify_connection(self) -> None:
        """Connect and authenticate without sending anything.

        Raises:
            EmailNotConfiguredError: SMTP credentials are missing
            EmailDeliveryError: connection or login failed
        """
        self._require_configured()
        smtp = self._client()
        try:
            await smtp.connect()
            if self._needs_starttls():
                await smtp.starttls()
            await smtp.login(self.config.smtp_user, self.config.smtp_pass)
            await smtp.quit()
        except aiosmtplib.SMTPException as e:
            raise EmailDeliveryError(f"Email service verification failed: {e}") from e
        finally:
            _close(smtp)

    # --- message construction ---

    def build_reservation_confirmation(
        self,
        reservation: Reservation,
        user: User,
        magazine: Magazine,
    ) -> EmailMessage:
        totals = calculate_totals(reservation, self.config)
        return self._build(
            "reservation_confirmation",
            subject=f"Reservierungsbestätigung - {magazine.title}",
            reservation=reservation,
            user=user,
            magazine=magazine,
            totals=totals,
            payment_reference=payment_reference(
                reservation.id, self.config.payment_reference_prefix
            ),
            paypal_link=self._paypal_link(totals.total),
            cancellation_url=cancellation_url(reservation.id, user.id),
        )

    def _build(
        self,
        template: str,
        *,
        subject: str,
        reservation: Reservation,
        user: User,
        magazine: Magazine,
        **context: Any,
    ) -> EmailMessage:
        context.update(
            reservation=reservation,
            user=user,
            magazine=magazine,
            reservation_number=reservation_number(reservation.id),
            pickup_location=reservation.pickup_location or self.config.default_pickup_location,
            is_shipping=reservation.delivery_method == DeliveryMethod.SHIPPING,
            copies_label="Exemplar" if reservation.quantity == 1 else "Exemplare",
            kindergarten_name=self.config.kindergarten_name,
            contact_email=self.config.kindergarten_contact_email,
            magazine_price=self.config.magazine_price,
            format_currency=format_currency,
        )
        text_body = _jinja_env.get_template(f"{template}.txt").render(**context)
        html_body = _jinja_env.get_template(f"{template}.html").render(**context)

        message = EmailMessage()
        message["From"] = formataddr((self.config.kindergarten_name, self.config.smtp_from))
        message["To"] = user.email
        message["Subject"] = subject
        message["X-Reservation-ID"] = str(reservation.id)
        message.set_content(text_body)
        message.add_alternative(html_body, subtype="html")
        return message

    def _paypal_link(self, total: float) -> str | None:
        if not self.config.paypal_me_link:
            return None
        amount = f"{total:.2f}".replace(".", ",")
        return f"{self.config.paypal_me_link.rstrip('/')}/{amount}EUR"

    # --- transport ---

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise EmailNotConfiguredError(
                "SMTP credentials not configured. Please set SMTP_USER and SMTP_PASS."
            )

    def _needs_starttls(self) -> bool:
        return not self.config.smtp_secure and self.config.smtp_port == 587

    def _client(self) -> aiosmtplib.SMTP:
        return aiosmtplib.SMTP(
            hostname=self.config.smtp_host,
            port=self.config.smtp_port,
            timeout=self.config.email_send_timeout_seconds,
            use_tls=self.config.smtp_secure or self.config.smtp_port == 465,
            start_tls=False,
        )

    async def _send(self, message: EmailMessage) -> None:
        self._require_configured()
        smtp = self._client()
        try:
            await smtp.connect()
            if self._needs_starttls():
                await smtp.starttls()
            await smtp.login(self.config.smtp_user, self.config.smtp_pass)
            await smtp.send_message(message)
            await smtp.quit()
        except aiosmtplib.SMTPException as e:
            logger.error("Email send failed: to=%s error=%s", message["To"], e)
            raise EmailDeliveryError(f"Failed to send email: {e}") from e
        finally:
            _close(smtp)
