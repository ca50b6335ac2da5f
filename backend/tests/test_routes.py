import unittest
from unittest import mock
from urllib.parse import parse_qs, urlsplit

import httpx
from fastapi.testclient import TestClient

from temple_donations.database import get_db
from temple_donations.main import app
from temple_donations.models.catalog import DonationCategory, Event
from temple_donations.models.donation import DonationStatus
from temple_donations.services.gateway_service import PayUGateway
from temple_donations.services.ledger import DonationLedger
from temple_donations.services.receipt_service import ReceiptFileStore
from tests.support import (
    MERCHANT_KEY,
    MERCHANT_SALT,
    FakeEmailChannel,
    FakeWhatsAppChannel,
    make_services,
    make_session_factory,
    make_settings,
    signed_callback,
)


def _redirect_query(response) -> tuple[str, dict]:
    location = urlsplit(response.headers["location"])
    return location.path, {k: v[0] for k, v in parse_qs(location.query).items()}


class RouteTestCase(unittest.TestCase):
    def setUp(self):
        self._saved_services = getattr(app.state, "services", None)
        self.session_factory = make_session_factory()
        self.db = self.session_factory()
        self.email = FakeEmailChannel()
        self.whatsapp = FakeWhatsAppChannel()
        self.install_services(make_services(email=self.email, whatsapp=self.whatsapp))

        def override_get_db():
            db = self.session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        app.state.services = self._saved_services
        self.db.close()

    def install_services(self, services):
        self.services = services
        app.state.services = services

    def create_donation(self, **fields):
        values = dict(
            payment_id="ISKCON_abc123XYZ0",
            amount=501,
            name="Asha Rao",
            email="asha@example.com",
            phone="9876543210",
            payment_method="netbanking",
            status=DonationStatus.PENDING,
        )
        values.update(fields)
        return DonationLedger.create(self.db, **values)

    def stored(self, donation):
        self.db.expire_all()
        return DonationLedger.get(self.db, donation.id)


class TestInitiateRoute(RouteTestCase):
    def test_initiate_returns_signed_form(self):
        response = self.client.post("/api/payments/initiate", json={
            "amount": 1001,
            "name": "Asha Rao",
            "email": "asha@example.com",
            "phone": "9876543210",
            "panCard": "ABCPK1234F",
        })

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["payuUrl"], "https://secure.payu.in/_payment")
        self.assertEqual(body["paymentData"]["txnid"], body["txnid"])
        self.assertEqual(body["paymentData"]["surl"], "http://testserver/api/payments/success")
        self.assertEqual(body["paymentData"]["furl"], "http://testserver/api/payments/failure")
        self.assertNotIn("upiData", body)

        donation = DonationLedger.get_by_payment_id(self.db, body["txnid"])
        self.assertEqual(donation.status, DonationStatus.PENDING)
        self.assertEqual(donation.pan_card, "ABCPK1234F")

    def test_upi_initiation_includes_payee(self):
        response = self.client.post("/api/payments/initiate", json={
            "amount": 251, "name": "Asha", "email": "asha@example.com", "phone": "9876543210",
            "paymentMethod": "upi",
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["upiData"]["payeeVpa"], "iskconjuhu@sbi")

    def test_invalid_intent_is_bad_request(self):
        response = self.client.post("/api/payments/initiate", json={
            "amount": 501, "name": "Asha", "email": "not-an-email", "phone": "9876543210",
        })
        self.assertEqual(response.status_code, 400)

    def test_non_positive_amount_fails_validation(self):
        response = self.client.post("/api/payments/initiate", json={
            "amount": 0, "name": "Asha", "email": "asha@example.com", "phone": "9876543210",
        })
        self.assertEqual(response.status_code, 422)

    def test_unconfigured_gateway_is_unavailable(self):
        settings = make_settings(PAYU_MERCHANT_KEY="")
        self.install_services(make_services(settings=settings, gateway=PayUGateway.from_settings(settings)))

        response = self.client.post("/api/payments/initiate", json={
            "amount": 501, "name": "Asha", "email": "asha@example.com", "phone": "9876543210",
        })

        self.assertEqual(response.status_code, 503)
        self.assertEqual(DonationLedger.list_donations(self.db)[0], 0)


class TestCallbackRoutes(RouteTestCase):
    def test_success_redirects_to_thank_you(self):
        donation = self.create_donation()
        response = self.client.post(
            "/api/payments/success", data=signed_callback(donation), follow_redirects=False,
        )

        self.assertEqual(response.status_code, 302)
        path, query = _redirect_query(response)
        self.assertEqual(path, "/donate/thank-you")
        self.assertEqual(query["txnid"], donation.payment_id)
        self.assertEqual(query["amount"], "501.00")
        self.assertEqual(query["status"], "success")
        self.assertEqual(query["purpose"], "ISKCON Juhu Donation")

        stored = self.stored(donation)
        self.assertEqual(stored.status, DonationStatus.COMPLETED)
        self.assertTrue(stored.receipt_sent)
        self.assertEqual(len(self.email.sent), 1)

    def test_replayed_success_redirects_without_resending(self):
        donation = self.create_donation()
        body = signed_callback(donation)
        self.client.post("/api/payments/success", data=body, follow_redirects=False)
        response = self.client.post("/api/payments/success", data=body, follow_redirects=False)

        self.assertEqual(_redirect_query(response)[0], "/donate/thank-you")
        self.assertEqual(len(self.email.sent), 1)

    def test_invalid_hash_redirects_to_invalid(self):
        donation = self.create_donation()
        body = signed_callback(donation)
        body["hash"] = "0" * 128

        response = self.client.post("/api/payments/success", data=body, follow_redirects=False)

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["location"], "/donate?status=invalid")
        self.assertEqual(self.stored(donation).status, DonationStatus.PENDING)

    def test_non_ascii_hash_redirects_to_invalid(self):
        donation = self.create_donation()
        body = signed_callback(donation)
        body["hash"] = "\u00e9" * 128

        response = self.client.post("/api/payments/success", data=body, follow_redirects=False)

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.headers["location"], "/donate?status=invalid")
        self.assertEqual(self.stored(donation).status, DonationStatus.PENDING)

    def test_malformed_success_redirects_to_invalid(self):
        response = self.client.post("/api/payments/success", data={"foo": "bar"}, follow_redirects=False)
        self.assertEqual(response.headers["location"], "/donate?status=invalid")

    def test_failure_redirect_carries_error(self):
        donation = self.create_donation()
        response = self.client.post("/api/payments/failure", data={
            "txnid": donation.payment_id,
            "amount": "501.00",
            "status": "failure",
            "error_Message": "Bank declined & closed",
        }, follow_redirects=False)

        self.assertEqual(response.status_code, 302)
        path, query = _redirect_query(response)
        self.assertEqual(path, "/donate/payment-failed")
        self.assertEqual(query["status"], "failure")
        self.assertEqual(query["error"], "Bank declined & closed")
        self.assertEqual(self.stored(donation).status, DonationStatus.FAILED)
        self.assertEqual(len(self.whatsapp.failure_notices), 1)

    def test_signed_failure_status_on_success_url(self):
        donation = self.create_donation()
        response = self.client.post(
            "/api/payments/success",
            data=signed_callback(donation, status="failure", error_Message="User cancelled"),
            follow_redirects=False,
        )
        path, query = _redirect_query(response)
        self.assertEqual(path, "/donate/payment-failed")
        self.assertEqual(query["error"], "User cancelled")


class TestUpiRoutes(RouteTestCase):
    def use_verify_status(self, status):
        txnid = "ISKCON_abc123XYZ0"

        def handler(request):
            return httpx.Response(200, json={"transaction_details": {txnid: {"status": status}}})

        gateway = PayUGateway(
            MERCHANT_KEY, MERCHANT_SALT,
            payment_url="https://secure.payu.test/_payment",
            verify_url="https://info.payu.test/verify",
            transport=httpx.MockTransport(handler),
        )
        self.install_services(make_services(gateway=gateway, email=self.email, whatsapp=self.whatsapp))

    def test_upi_intent(self):
        donation = self.create_donation()
        response = self.client.post("/api/payments/upi-intent", json={"txnid": donation.payment_id, "amount": 501})

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["upiIntent"].startswith("upi://pay?"))
        self.assertTrue(response.json()["qrCodeData"].startswith("data:image/svg+xml;base64,"))
        self.assertEqual(self.stored(donation).status, DonationStatus.PENDING_UPI)

    def test_upi_intent_errors(self):
        donation = self.create_donation()
        missing = self.client.post("/api/payments/upi-intent", json={"txnid": "ISKCON_none", "amount": 501})
        mismatch = self.client.post("/api/payments/upi-intent", json={"txnid": donation.payment_id, "amount": 5})
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(mismatch.status_code, 400)

    def test_verify_success(self):
        self.use_verify_status("success")
        donation = self.create_donation(status=DonationStatus.PENDING_UPI, payment_method="upi")

        response = self.client.post("/api/payments/verify-upi", json={"txnid": donation.payment_id})

        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["status"], "success")
        self.assertEqual(body["donation"]["id"], donation.id)
        self.assertEqual(self.stored(donation).status, DonationStatus.COMPLETED_UPI)

    def test_verify_pending(self):
        self.use_verify_status("pending")
        donation = self.create_donation(status=DonationStatus.PENDING_UPI)

        body = self.client.post("/api/payments/verify-upi", json={"txnid": donation.payment_id}).json()

        self.assertFalse(body["success"])
        self.assertEqual(body["status"], "pending")

    def test_verify_failed(self):
        self.use_verify_status("failure")
        donation = self.create_donation(status=DonationStatus.PENDING_UPI)

        body = self.client.post("/api/payments/verify-upi", json={"txnid": donation.payment_id}).json()

        self.assertFalse(body["success"])
        self.assertEqual(body["status"], "failed")

    def test_verify_unknown(self):
        self.use_verify_status("success")
        response = self.client.post("/api/payments/verify-upi", json={"txnid": "ISKCON_none"})
        self.assertEqual(response.status_code, 404)


class TestReceiptRoutes(RouteTestCase):
    def test_download_completed_receipt(self):
        donation = self.create_donation(status=DonationStatus.COMPLETED, invoice_number="INV-2601-0001")

        response = self.client.get(f"/api/payments/receipt/{donation.payment_id}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["content-type"], "application/pdf")
        self.assertEqual(
            response.headers["content-disposition"], 'attachment; filename="Receipt_INV-2601-0001.pdf"',
        )
        self.assertTrue(response.content.startswith(b"%PDF"))

        by_id = self.client.get(f"/api/receipts/download/{donation.id}")
        self.assertEqual(by_id.status_code, 200)

    def test_pending_receipt_is_conflict(self):
        donation = self.create_donation()
        self.assertEqual(self.client.get(f"/api/payments/receipt/{donation.payment_id}").status_code, 409)
        self.assertEqual(self.client.get(f"/api/receipts/download/{donation.id}").status_code, 409)
        self.assertIsNone(self.stored(donation).invoice_number)

    def test_unknown_receipt(self):
        self.assertEqual(self.client.get("/api/payments/receipt/ISKCON_none").status_code, 404)

    def test_resend_email(self):
        donation = self.create_donation(status=DonationStatus.COMPLETED, invoice_number="INV-2601-0001")
        response = self.client.post("/api/payments/send-receipt", json={"txnid": donation.payment_id})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(self.email.sent), 1)
        self.assertTrue(self.stored(donation).receipt_sent)

    def test_resend_email_failure(self):
        self.install_services(make_services(email=FakeEmailChannel(succeed=False), whatsapp=self.whatsapp))
        donation = self.create_donation(status=DonationStatus.COMPLETED, invoice_number="INV-2601-0001")
        response = self.client.post("/api/payments/send-receipt", json={"txnid": donation.payment_id})
        self.assertEqual(response.status_code, 502)

    def test_resend_email_render_error(self):
        donation = self.create_donation(status=DonationStatus.COMPLETED, invoice_number="INV-2601-0001")
        with mock.patch.object(self.services.receipts, "render", side_effect=RuntimeError("font missing")):
            response = self.client.post("/api/payments/send-receipt", json={"txnid": donation.payment_id})
        self.assertEqual(response.status_code, 502)
        self.assertEqual(self.email.sent, [])

    def test_resend_whatsapp(self):
        donation = self.create_donation(status=DonationStatus.COMPLETED_UPI, invoice_number="INV-2601-0001")
        response = self.client.post("/api/receipts/send-whatsapp", json={"donationId": donation.id})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(self.whatsapp.receipts), 1)

    def test_published_file_is_served(self):
        store = ReceiptFileStore(self.services.file_store.directory, public_base_url="http://testserver")
        url = store.publish(b"%PDF-1.4 test")
        filename = url.rsplit("/", 1)[1]

        response = self.client.get(f"/api/receipts/files/{filename}")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"%PDF-1.4 test")
        self.assertEqual(self.client.get("/api/receipts/files/other.pdf").status_code, 404)


class TestDonationLookupRoutes(RouteTestCase):
    def test_lookup_by_payment_id(self):
        donation = self.create_donation(status=DonationStatus.COMPLETED, invoice_number="INV-2601-0001")

        response = self.client.get(f"/api/donations/by-payment-id/{donation.payment_id}")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["id"], donation.id)
        self.assertEqual(body["status"], "completed")
        self.assertEqual(body["invoice_number"], "INV-2601-0001")
        self.assertNotIn("gateway_response", body)
        self.assertEqual(self.client.get("/api/donations/by-payment-id/ISKCON_none").status_code, 404)

    def test_details_for_category_donation(self):
        category = DonationCategory(name="Gau Seva", description="Cow protection")
        self.db.add(category)
        self.db.commit()
        donation = self.create_donation(category_id=category.id)

        body = self.client.get(f"/api/donation/{donation.payment_id}").json()

        self.assertEqual(body["type"], "category")
        self.assertEqual(body["purpose"], "Gau Seva")
        self.assertEqual(body["category"]["name"], "Gau Seva")
        self.assertNotIn("event", body)
        self.assertEqual(body["donation"]["payment_id"], donation.payment_id)

    def test_details_for_event_donation(self):
        event = Event(title="Janmashtami Festival")
        self.db.add(event)
        self.db.commit()
        donation = self.create_donation(event_id=event.id)

        body = self.client.get(f"/api/donation/{donation.payment_id}").json()

        self.assertEqual(body["type"], "event")
        self.assertEqual(body["purpose"], "Janmashtami Festival")
        self.assertEqual(body["event"]["title"], "Janmashtami Festival")

    def test_details_for_general_donation(self):
        donation = self.create_donation()
        body = self.client.get(f"/api/donation/{donation.payment_id}").json()
        self.assertEqual(body["type"], "general")
        self.assertEqual(body["purpose"], "ISKCON Juhu Donation")
        self.assertEqual(self.client.get("/api/donation/ISKCON_none").status_code, 404)


class TestAdminRoutes(RouteTestCase):
    def test_list_and_filter(self):
        self.create_donation(payment_id="ISKCON_a000000001")
        self.create_donation(payment_id="ISKCON_a000000002", status=DonationStatus.FAILED)

        everything = self.client.get("/api/admin/donations").json()
        failed = self.client.get("/api/admin/donations", params={"status": "failed"}).json()

        self.assertEqual(everything["total"], 2)
        self.assertEqual(failed["total"], 1)
        self.assertEqual(failed["donations"][0]["payment_id"], "ISKCON_a000000002")
        self.assertEqual(self.client.get("/api/admin/donations", params={"status": "bogus"}).status_code, 400)

    def test_get_donation(self):
        donation = self.create_donation()
        self.assertEqual(self.client.get(f"/api/admin/donations/{donation.id}").json()["status"], "pending")
        self.assertEqual(self.client.get("/api/admin/donations/999").status_code, 404)

    def test_override_to_completed_assigns_invoice(self):
        donation = self.create_donation()

        response = self.client.patch(
            f"/api/admin/donations/{donation.id}/status",
            json={"status": "completed", "reason": "bank statement reconciled"},
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "completed")
        self.assertRegex(body["invoice_number"], r"^INV-\d{4}-0001$")


if __name__ == "__main__":
    unittest.main()
