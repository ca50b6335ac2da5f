import os
import tempfile
import time
import unittest
from datetime import datetime

from temple_donations.models.catalog import DonationCategory, Event
from temple_donations.models.donation import DonationStatus
from temple_donations.services.ledger import DonationLedger
from temple_donations.services.receipt_service import (
    ReceiptData,
    ReceiptFileStore,
    ReceiptService,
    format_amount,
    resolve_purpose,
)
from tests.support import make_session_factory, make_settings


def _receipt(**overrides) -> ReceiptData:
    values = dict(
        txnid="ISKCON_abc123XYZ0",
        invoice_number="INV-2601-0042",
        amount=150000,
        name="Asha Rao",
        email="asha@example.com",
        phone="9876543210",
        purpose="Annadana Seva",
        date=datetime(2026, 1, 14, 9, 30),
        payment_method="Online Payment",
    )
    values.update(overrides)
    return ReceiptData(**values)


class TestFormatAmount(unittest.TestCase):
    def test_indian_grouping(self):
        self.assertEqual(format_amount(501), "Rs. 501")
        self.assertEqual(format_amount(1000), "Rs. 1,000")
        self.assertEqual(format_amount(150000), "Rs. 1,50,000")
        self.assertEqual(format_amount(12345678), "Rs. 1,23,45,678")


class TestReceiptContent(unittest.TestCase):
    def setUp(self):
        self.service = ReceiptService(make_settings())

    def test_lines_carry_donation_facts(self):
        lines = dict(self.service.receipt_lines(_receipt()))
        self.assertEqual(lines["Receipt No"], "INV-2601-0042")
        self.assertEqual(lines["Transaction ID"], "ISKCON_abc123XYZ0")
        self.assertEqual(lines["Date"], "14/01/2026")
        self.assertEqual(lines["Donor Name"], "Asha Rao")
        self.assertEqual(lines["Donation Purpose"], "Annadana Seva")
        self.assertEqual(lines["Amount"], "Rs. 1,50,000")
        self.assertEqual(lines["Payment Method"], "Online Payment")
        self.assertNotIn("PAN Card", lines)

    def test_pan_is_listed_when_present(self):
        lines = dict(self.service.receipt_lines(_receipt(pan_card="ABCPK1234F")))
        self.assertEqual(lines["PAN Card"], "ABCPK1234F")

    def test_render_produces_stable_pdf(self):
        data = _receipt()
        first = self.service.render(data)
        second = self.service.render(data)
        self.assertTrue(first.startswith(b"%PDF"))
        self.assertEqual(first, second)

    def test_render_differs_per_donation(self):
        self.assertNotEqual(
            self.service.render(_receipt()),
            self.service.render(_receipt(invoice_number="INV-2601-0043")),
        )

    def test_filename(self):
        self.assertEqual(ReceiptService.filename(_receipt()), "Receipt_INV-2601-0042.pdf")


class TestReceiptData(unittest.TestCase):
    def setUp(self):
        self.db = make_session_factory()()
        self.settings = make_settings()

    def tearDown(self):
        self.db.close()

    def _donation(self, **fields):
        values = dict(
            payment_id="ISKCON_abc123XYZ0",
            amount=501,
            name="Asha Rao",
            email="asha@example.com",
            phone="9876543210",
            status=DonationStatus.COMPLETED_UPI,
            invoice_number="INV-2601-0001",
            payment_method="upi",
        )
        values.update(fields)
        return DonationLedger.create(self.db, **values)

    def test_from_donation(self):
        donation = self._donation()
        data = ReceiptData.from_donation(donation, "General")
        self.assertEqual(data.txnid, "ISKCON_abc123XYZ0")
        self.assertEqual(data.invoice_number, "INV-2601-0001")
        self.assertEqual(data.payment_method, "UPI")
        self.assertEqual(data.date, donation.created_at)
        self.assertIsNone(data.pan_card)

    def test_purpose_from_category(self):
        category = DonationCategory(name="Gau Seva")
        self.db.add(category)
        self.db.commit()
        donation = self._donation(category_id=category.id)
        self.assertEqual(resolve_purpose(self.db, donation, self.settings), "Gau Seva")

    def test_purpose_from_event(self):
        event = Event(title="Janmashtami Festival")
        self.db.add(event)
        self.db.commit()
        donation = self._donation(event_id=event.id)
        self.assertEqual(resolve_purpose(self.db, donation, self.settings), "Janmashtami Festival")

    def test_purpose_fallback(self):
        donation = self._donation()
        self.assertEqual(resolve_purpose(self.db, donation, self.settings), "ISKCON Juhu Donation")

    def test_purpose_fallback_for_missing_category(self):
        donation = self._donation()
        donation.category_id = 99
        self.assertEqual(resolve_purpose(self.db, donation, self.settings), "ISKCON Juhu Donation")


class TestReceiptFileStore(unittest.TestCase):
    def setUp(self):
        self.directory = tempfile.mkdtemp(prefix="receipts-")
        self.store = ReceiptFileStore(self.directory, public_base_url="https://donate.example.org/", ttl_minutes=5)

    def test_publish_requires_public_url(self):
        store = ReceiptFileStore(self.directory)
        self.assertIsNone(store.publish(b"%PDF-1.4"))
        self.assertEqual(os.listdir(self.directory), [])

    def test_publish_and_resolve(self):
        url = self.store.publish(b"%PDF-1.4")
        self.assertTrue(url.startswith("https://donate.example.org/api/receipts/files/donation_receipt_"))

        filename = url.rsplit("/", 1)[1]
        path = self.store.path_for(filename)
        with open(path, "rb") as f:
            self.assertEqual(f.read(), b"%PDF-1.4")

    def test_path_for_rejects_traversal(self):
        self.assertIsNone(self.store.path_for("../secrets.pdf"))
        self.assertIsNone(self.store.path_for("receipt.txt"))
        self.assertIsNone(self.store.path_for("missing.pdf"))

    def test_purge_removes_only_expired(self):
        fresh = os.path.join(self.directory, "donation_receipt_fresh.pdf")
        stale = os.path.join(self.directory, "donation_receipt_stale.pdf")
        for path in (fresh, stale):
            with open(path, "wb") as f:
                f.write(b"%PDF")
        old = time.time() - 10 * 60
        os.utime(stale, (old, old))

        self.assertEqual(self.store.purge_expired(), 1)
        self.assertTrue(os.path.exists(fresh))
        self.assertFalse(os.path.exists(stale))


if __name__ == "__main__":
    unittest.main()
