from typing import Any, Dict, List, Optional, Sequence, Tuple
from datetime import date
import calendar
import logging

from ..bindings.live_collection import LiveCollection
from ..bindings.mutations import CreateDocument
from ..bindings.query import FieldEqualsQuery
from ..core.config import settings
from ..core.errors import retry_operation
from ..database.collections import COLLECTIONS
from ..database.store import DocumentStore
from ..database.store_factory import get_store
from ..models.database_models import Payment
from ..models.user import UserProfile, UserRole
from ..auth.role_resolver import normalize_role

logger = logging.getLogger(__name__)

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def parse_month_label(label: Optional[str]) -> Optional[Tuple[int, int]]:
    """"Jun 2025" / "June 2025" -> (2025, 5); None when unparseable."""
    parts = (label or "").split()
    if len(parts) != 2 or not parts[1].isdigit():
        return None
    token = parts[0][:3].lower()
    for index, month in enumerate(MONTHS):
        if month.lower() == token:
            return int(parts[1]), index
    return None


def next_month_label_and_due_date(latest_label: Optional[str], today: Optional[date] = None) -> Tuple[str, date]:
    """
    Label and due date of the bill after ``latest_label``. An unparseable
    label falls back to the current month. Due day is ``BILL_DUE_DAY``,
    clamped to the month length.
    """
    today = today or date.today()
    parsed = parse_month_label(latest_label)
    year, month_index = parsed if parsed else (today.year, today.month - 1)

    month_index += 1
    if month_index == 12:
        year, month_index = year + 1, 0

    last_day = calendar.monthrange(year, month_index + 1)[1]
    due = date(year, month_index + 1, min(settings.BILL_DUE_DAY, last_day))
    return f"{MONTHS[month_index]} {year}", due


def payment_totals(payments: Sequence[Payment]) -> Dict[str, Any]:
    total = sum(float(p.amount or 0) for p in payments)
    collected = sum(float(p.amount or 0) for p in payments if p.status == "Paid")
    pending = total - collected
    rate = round(collected / total * 100) if total else 0
    return {
        "total_revenue": total,
        "collected": collected,
        "pending": pending,
        "collection_rate": rate,
    }


def latest_payment(payments: Sequence[Payment]) -> Optional[Payment]:
    dated = [p for p in payments if parse_month_label(p.month)]
    if dated:
        return max(dated, key=lambda p: parse_month_label(p.month))
    return payments[-1] if payments else None


def build_next_bill(payments: Sequence[Payment], user_id: str, today: Optional[date] = None) -> Payment:
    latest = latest_payment(payments)
    label, due = next_month_label_and_due_date(latest.month if latest else None, today)
    totals = payment_totals(payments)
    average = round(totals["total_revenue"] / max(len(payments), 1))
    return Payment(
        id=f"{label.replace(' ', '')}_{user_id}",
        month=label,
        amount=average or settings.BILL_DEFAULT_AMOUNT,
        status="Unpaid",
        due=due.isoformat(),
        userId=user_id,
    )


class MaintenanceBillingService:
    """Monthly maintenance bills: totals and next-bill generation."""

    def __init__(self, store: Optional[DocumentStore] = None):
        self._store = store

    @property
    def store(self) -> DocumentStore:
        return self._store or get_store()

    async def get_payments(self, user_id: str) -> List[Payment]:
        """All bills of one resident; transient store errors are retried."""
        return await retry_operation(lambda: self._fetch_payments(user_id))

    async def _fetch_payments(self, user_id: str) -> List[Payment]:
        async with LiveCollection(
            self.store,
            COLLECTIONS['payments'],
            query_builder=FieldEqualsQuery("userId", user_id),
            listen=False,
            model=Payment,
        ) as binder:
            if binder.error:
                raise binder.failure
            return list(binder.data)

    async def generate_next_bill(self, user_id: str, today: Optional[date] = None) -> Tuple[bool, Optional[Payment], Optional[str]]:
        """
        Create next month's bill for a resident.

        Returns:
            (success, bill, error_message)
        """
        try:
            payments = await self.get_payments(user_id)
            bill = build_next_bill(payments, user_id, today)

            # the bill id is deterministic, so an existing one means already generated
            if any(p.id == bill.id for p in payments):
                return False, None, "Next bill already exists."

            await CreateDocument(self.store, COLLECTIONS['payments'])(bill, document_id=bill.id)
            logger.info(f"Next bill generated: {bill.month} for {user_id}")
            return True, bill, None

        except Exception as e:
            logger.error(f"Error generating next bill for {user_id}: {str(e)}")
            return False, None, str(e)

    async def auto_generate_next_bill(self, user_id: str, today: Optional[date] = None) -> Optional[Payment]:
        """Generate the next bill only when the resident has bills and all are paid."""
        payments = await self.get_payments(user_id)
        if not payments or any(p.status != "Paid" for p in payments):
            return None

        success, bill, error = await self.generate_next_bill(user_id, today)
        if not success:
            logger.info(f"Auto-generate skipped for {user_id}: {error}")
            return None
        return bill

    async def auto_generate_for_all_residents(self, today: Optional[date] = None) -> Dict[str, Any]:
        async with LiveCollection(self.store, COLLECTIONS['users'], listen=False, model=UserProfile) as users:
            if users.error:
                logger.error(f"Cannot list residents for billing: {users.error}")
                return {"checked": 0, "generated": []}
            residents = [u.id for u in users.data if normalize_role(u.role) == UserRole.RESIDENT]

        generated = []
        for user_id in residents:
            bill = await self.auto_generate_next_bill(user_id, today)
            if bill:
                generated.append(bill.id)
        return {"checked": len(residents), "generated": generated}


maintenance_billing_service = MaintenanceBillingService()
