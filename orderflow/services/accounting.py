"""
Accounting side effects of payment events: income entries, invoices and
refund entries.

Each operation opens its own session and transaction and checks for an
existing record before creating one, so operators can replay them for an
order without double-booking. The ``run_after_*`` entry points isolate every
step so one failing step never blocks another and nothing propagates back
into the payment event that triggered them.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from orderflow.core.config import settings
from orderflow.core.database import SessionFactory
from orderflow.core.exceptions import NotFoundError
from orderflow.core.logging import get_logger
from orderflow.core.utils import Number, to_money, utcnow
from orderflow.models.accounting import (
    Income,
    IncomeEntryType,
    IncomeStatus,
    Invoice,
    InvoiceStatus,
)
from orderflow.models.order import Order
from orderflow.services.notification_service import NotificationService, notification_service

logger = get_logger(__name__)


def tax_year_for(day: date) -> str:
    """UK tax year label, e.g. ``2024-2025`` (years start on 6 April)."""
    if (day.month, day.day) < (4, 6):
        return f"{day.year - 1}-{day.year}"
    return f"{day.year}-{day.year + 1}"


def vat_included(gross: Number, rate: Optional[Decimal] = None) -> Decimal:
    """VAT portion of a VAT-inclusive amount (gross / 6 at 20%)."""
    rate = settings.vat_rate if rate is None else rate
    gross = Decimal(str(gross))
    return to_money(gross * rate / (Decimal("100") + rate))


async def _next_number(session: AsyncSession, column, prefix: str, when: datetime) -> str:
    """Next ``PREFIX-YYYYMM-NNNN`` number for the month of ``when``."""
    month_prefix = f"{prefix}-{when:%Y%m}-"
    stmt = select(func.max(column)).where(column.like(f"{month_prefix}%"))
    latest = (await session.execute(stmt)).scalar()
    sequence = int(latest.rsplit("-", 1)[1]) + 1 if latest else 1
    return f"{month_prefix}{sequence:04d}"


@dataclass
class AccountingReport:
    """Which accounting steps succeeded for one trigger."""

    order_id: UUID
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class AccountingService:
    def __init__(
        self,
        session_factory: SessionFactory,
        notifier: Optional[NotificationService] = None,
    ) -> None:
        self.session_factory = session_factory
        self.notifier = notifier or notification_service

    @staticmethod
    async def _load_order(session: AsyncSession, order_id: UUID) -> Order:
        order = await session.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found", order_id=str(order_id))
        return order

    @staticmethod
    async def _get_income(session: AsyncSession, order_id: UUID, entry_type: IncomeEntryType) -> Optional[Income]:
        stmt = select(Income).where(Income.order_id == order_id, Income.entry_type == entry_type.value)
        return (await session.execute(stmt)).scalar_one_or_none()

    async def create_income_for_order(self, order_id: UUID) -> Income:
        """Record the sale as a PENDING, VAT-inclusive income entry."""
        async with self.session_factory() as session:
            async with session.begin():
                existing = await self._get_income(session, order_id, IncomeEntryType.SALE)
                if existing:
                    logger.info("Income entry already exists", order_id=str(order_id), income=existing.income_number)
                    return existing

                order = await self._load_order(session, order_id)
                now = utcnow()
                total = to_money(order.total_price)
                vat = vat_included(total)

                income = Income(
                    income_number=await _next_number(session, Income.income_number, "INC", now),
                    order_id=order.id,
                    entry_type=IncomeEntryType.SALE.value,
                    description=f"Order #{order.reference} - Online Sale",
                    amount=total,
                    currency=order.currency,
                    source=settings.income_source,
                    customer_name=order.customer.name or order.customer.email,
                    income_date=now,
                    tax_year=tax_year_for(now.date()),
                    vat_amount=vat,
                    vat_rate=settings.vat_rate,
                    is_vat_included=True,
                    status=IncomeStatus.PENDING.value,
                    notes=f"Auto-generated from order payment. Net: £{total - vat:.2f}, VAT: £{vat:.2f}",
                )
                session.add(income)

            logger.info("Income entry created", order_id=str(order_id), income=income.income_number)
            return income

    async def create_invoice_for_order(self, order_id: UUID) -> Invoice:
        """
        Issue the order's invoice, then attempt delivery by email.

        A delivery failure keeps the invoice with ``sent_at`` unset.
        """
        async with self.session_factory() as session:
            async with session.begin():
                stmt = select(Invoice).where(Invoice.order_id == order_id)
                existing = (await session.execute(stmt)).scalar_one_or_none()
                if existing:
                    logger.info("Invoice already exists", order_id=str(order_id), invoice=existing.invoice_number)
                    return existing

                order = await self._load_order(session, order_id)
                now = utcnow()
                total = to_money(order.total_price)
                vat = vat_included(total)

                invoice = Invoice(
                    invoice_number=await _next_number(session, Invoice.invoice_number, "INV", now),
                    order_id=order.id,
                    customer_email=order.customer.email,
                    customer_name=order.customer.name,
                    subtotal=total - vat,
                    vat_rate=settings.vat_rate,
                    vat_amount=vat,
                    total=total,
                    currency=order.currency,
                    issue_date=now.date(),
                    due_date=now.date() + timedelta(days=settings.invoice_due_days),
                    status=InvoiceStatus.ISSUED.value,
                )
                session.add(invoice)

            logger.info("Invoice created", order_id=str(order_id), invoice=invoice.invoice_number)

            try:
                delivered = await self.notifier.send_invoice(invoice, order)
            except Exception:
                logger.exception("Invoice delivery raised", invoice=invoice.invoice_number)
                delivered = False

            if delivered:
                async with session.begin():
                    invoice.sent_at = utcnow()
            else:
                logger.warning("Invoice not delivered", invoice=invoice.invoice_number)

            return invoice

    async def create_refund_entry(
        self,
        order_id: UUID,
        amount: Optional[Number] = None,
        reason: str = "Refund",
    ) -> Income:
        """
        Record a refund as a negative CONFIRMED income and mark the original
        sale entry REVERSED. ``amount`` defaults to the order total.
        """
        async with self.session_factory() as session:
            async with session.begin():
                existing = await self._get_income(session, order_id, IncomeEntryType.REFUND)
                if existing:
                    logger.info("Refund entry already exists", order_id=str(order_id), income=existing.income_number)
                    return existing

                order = await self._load_order(session, order_id)
                now = utcnow()
                refund = to_money(order.total_price if amount is None else amount)
                vat = vat_included(refund)

                income = Income(
                    income_number=await _next_number(session, Income.income_number, "INC", now),
                    order_id=order.id,
                    entry_type=IncomeEntryType.REFUND.value,
                    description=f"REFUND - Order #{order.reference} - {reason}",
                    amount=-refund,
                    currency=order.currency,
                    source=settings.income_source,
                    customer_name=order.customer.name or order.customer.email,
                    income_date=now,
                    tax_year=tax_year_for(now.date()),
                    vat_amount=-vat,
                    vat_rate=settings.vat_rate,
                    is_vat_included=True,
                    status=IncomeStatus.CONFIRMED.value,
                    notes=f"Auto-generated refund entry. Reason: {reason}",
                )
                session.add(income)

                original = await self._get_income(session, order_id, IncomeEntryType.SALE)
                if original:
                    original.status = IncomeStatus.REVERSED.value

            logger.info("Refund entry created", order_id=str(order_id), income=income.income_number, amount=str(refund))
            return income

    async def confirm_income(self, order_id: UUID) -> bool:
        """Promote the order's PENDING sale entry to CONFIRMED."""
        async with self.session_factory() as session:
            async with session.begin():
                income = await self._get_income(session, order_id, IncomeEntryType.SALE)
                if income is None:
                    logger.warning("No income entry found for order", order_id=str(order_id))
                    return False
                if income.status != IncomeStatus.PENDING.value:
                    return False
                income.status = IncomeStatus.CONFIRMED.value

        logger.info("Income confirmed", order_id=str(order_id), income=income.income_number)
        return True

    async def run_after_payment_confirmed(self, order_id: UUID) -> AccountingReport:
        """Income then invoice, each isolated. Never raises."""
        report = AccountingReport(order_id=order_id)

        try:
            await self.create_income_for_order(order_id)
            report.succeeded.append("income")
        except Exception:
            logger.exception("Income entry creation failed", order_id=str(order_id))
            report.failed.append("income")

        try:
            await self.create_invoice_for_order(order_id)
            report.succeeded.append("invoice")
        except Exception:
            logger.exception("Invoice generation failed", order_id=str(order_id))
            report.failed.append("invoice")

        return report

    async def run_after_refund(
        self,
        order_id: UUID,
        amount: Optional[Number] = None,
        reason: str = "Refund",
    ) -> AccountingReport:
        """Refund entry, isolated. Never raises."""
        report = AccountingReport(order_id=order_id)

        try:
            await self.create_refund_entry(order_id, amount=amount, reason=reason)
            report.succeeded.append("refund")
        except Exception:
            logger.exception("Refund entry creation failed", order_id=str(order_id))
            report.failed.append("refund")

        return report

    async def run_after_delivered(self, order_id: UUID) -> AccountingReport:
        """Income confirmation on delivery, isolated. Never raises."""
        report = AccountingReport(order_id=order_id)

        try:
            await self.confirm_income(order_id)
            report.succeeded.append("confirm_income")
        except Exception:
            logger.exception("Income confirmation failed", order_id=str(order_id))
            report.failed.append("confirm_income")

        return report
