"""
Aging Bucketer — partition open payables or receivables by days overdue.

Buckets: current (not yet due, or due today), 1-30, 31-60, 61-90 and over 90
days past due. Each open item lands in exactly one bucket, and the bucket
totals add up to the total outstanding balance.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal

from kitchenbooks.exceptions import InvalidRecord
from kitchenbooks.models.ledger import RecordKind, TransactionRecord, Vendor
from kitchenbooks.models.money import ZERO, money, total
from kitchenbooks.models.reports import AgingBucket, AgingBucketName, AgingReport, VendorAging

logger = logging.getLogger("kitchenbooks.analyzers.aging")

PAID_STATUS = "paid"

# (upper bound in days overdue, bucket); checked in order
_BUCKET_BOUNDS = (
    (0, AgingBucketName.CURRENT),
    (30, AgingBucketName.DAYS_1_30),
    (60, AgingBucketName.DAYS_31_60),
    (90, AgingBucketName.DAYS_61_90),
)


def bucket_for(days_overdue: int) -> AgingBucketName:
    """Bucket for a number of days past due. Zero or negative is current."""
    for upper, name in _BUCKET_BOUNDS:
        if days_overdue <= upper:
            return name
    return AgingBucketName.OVER_90


class AgingBucketer:
    """Build aging reports from open payable or receivable rows."""

    @classmethod
    def bucket(
        cls,
        items: Iterable[TransactionRecord],
        today: date,
        *,
        kind: RecordKind = RecordKind.PAYABLE,
        vendors: Mapping[str, Vendor] | None = None,
    ) -> AgingReport:
        """Partition open items into aging buckets as of ``today``.

        Args:
            items: Payable or receivable rows; rows of other kinds are ignored.
            today: The "as of" date.
            kind: Which side of the ledger is being aged.
            vendors: Vendor master data for the per-vendor breakdown names.

        Raises:
            InvalidRecord: An item has ``amount_paid`` greater than ``amount``.
                Nothing is bucketed in that case.
        """
        rows = [r for r in items if r.kind == kind]
        for row in rows:
            if row.amount_paid > row.amount:
                raise InvalidRecord(
                    f"{kind.value} {row.id or '<unknown>'}: amount_paid {row.amount_paid} "
                    f"exceeds amount {row.amount}",
                    record_id=row.id,
                )

        open_rows = [r for r in rows if r.status != PAID_STATUS and r.outstanding > 0]

        sums: dict[AgingBucketName, Decimal] = defaultdict(lambda: Decimal("0"))
        counts: dict[AgingBucketName, int] = defaultdict(int)
        per_vendor: dict[str, VendorAging] = {}
        vendors = vendors or {}

        for row in open_rows:
            due = row.due_date or row.date
            name = bucket_for((today - due).days)
            balance = row.outstanding
            sums[name] += balance
            counts[name] += 1

            vendor_id = row.vendor_id or "unassigned"
            if vendor_id not in per_vendor:
                vendor = vendors.get(vendor_id)
                per_vendor[vendor_id] = VendorAging(
                    vendor_id=vendor_id, vendor_name=vendor.name if vendor else vendor_id
                )
            entry = per_vendor[vendor_id]
            entry.buckets[name] = entry.buckets[name] + balance
            entry.total_due = entry.total_due + balance

        buckets = [
            AgingBucket(name=name, total=money(sums[name]), count=counts[name])
            for name in AgingBucketName
        ]
        by_vendor = sorted(per_vendor.values(), key=lambda v: (-v.total_due, v.vendor_id))

        report = AgingReport(
            as_of=today,
            kind=kind,
            buckets=buckets,
            total=total(r.outstanding for r in open_rows) if open_rows else ZERO,
            open_items=len(open_rows),
            by_vendor=by_vendor,
        )
        logger.info(
            "%s aging as of %s: %d open items, %s outstanding",
            kind.value.capitalize(),
            today,
            report.open_items,
            report.total,
        )
        return report
