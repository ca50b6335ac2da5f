import unittest
from unittest import mock

import run
from temple_donations.config import validate_payment_config
from temple_donations.utils.validators import sanitize_name, validate_email, validate_pan, validate_upi_vpa
from tests.support import make_settings


class TestPaymentConfig(unittest.TestCase):
    def test_missing_credentials_are_reported(self):
        settings = make_settings(PAYU_MERCHANT_SALT="")
        problems = validate_payment_config(settings)
        self.assertIn("PAYU_MERCHANT_SALT is required for live payments", problems)
        self.assertNotIn("PAYU_MERCHANT_KEY is required for live payments", problems)
        self.assertFalse(settings.payments_enabled)
        self.assertFalse(settings.whatsapp_enabled)

    def test_fully_configured(self):
        settings = make_settings(
            SMTP_HOST="smtp.example.org",
            TWILIO_ACCOUNT_SID="AC123",
            TWILIO_AUTH_TOKEN="secret",
            TWILIO_PHONE_NUMBER="+14155238886",
        )
        self.assertEqual(validate_payment_config(settings), [])
        self.assertTrue(settings.payments_enabled)
        self.assertTrue(settings.email_enabled)

    def test_invalid_upi_address_is_reported(self):
        problems = validate_payment_config(make_settings(UPI_VPA="not-a-vpa"))
        self.assertTrue(any(p.startswith("UPI_VPA") for p in problems))


class TestValidators(unittest.TestCase):
    def test_pan(self):
        self.assertTrue(validate_pan("ABCPK1234F"))
        self.assertTrue(validate_pan("abcpk1234f"))
        self.assertFalse(validate_pan("ABCPK12345"))
        self.assertFalse(validate_pan(None))

    def test_email(self):
        self.assertTrue(validate_email("asha@example.com"))
        self.assertFalse(validate_email("asha@example"))
        self.assertFalse(validate_email("asha example.com"))

    def test_upi_vpa(self):
        self.assertTrue(validate_upi_vpa("iskconjuhu@sbi"))
        self.assertFalse(validate_upi_vpa("iskconjuhu"))

    def test_sanitize_name(self):
        self.assertEqual(sanitize_name("  Asha   Rao "), "Asha Rao")
        self.assertEqual(sanitize_name(None), "")


class TestLauncher(unittest.TestCase):
    def test_runs_app_with_cli_options(self):
        with mock.patch.object(run.uvicorn, "run") as uvicorn_run, \
                mock.patch("sys.argv", ["run.py", "--port", "5000", "--reload"]):
            run.main()

        args, kwargs = uvicorn_run.call_args
        self.assertEqual(args, ("temple_donations.main:app",))
        self.assertEqual(kwargs["port"], 5000)
        self.assertTrue(kwargs["reload"])
        self.assertTrue(kwargs["proxy_headers"])


if __name__ == "__main__":
    unittest.main()
