import asyncio

from fastapi import BackgroundTasks

from phoneauth.core.errors import (
    InvalidOtpError,
    InvalidRefreshTokenError,
    OtpAttemptsExceededError,
    OtpExpiredError,
    RateLimitedError,
    UserInactiveError,
    UserNotFoundError,
)
from phoneauth.models.otp_request import OtpRequest
from phoneauth.models.refresh_token import RefreshToken
from phoneauth.models.user import User
from phoneauth.models.user_session import UserSession
from phoneauth.services.auth_service import AuthService

from support import DatabaseTestCase, RecordingSms, PHONE, OTHER_PHONE, wrong_code

DEVICE = {"device_id": "pixel-8-abc", "device_name": "Pixel 8", "device_os": "android", "app_version": "2.1.0"}
BOOTSTRAP_CODE = "Qm7vXw2LpR9tKc4ZsN8yHb3FjD6gUe1A"


class AuthServiceTestCase(DatabaseTestCase):
    def setUp(self):
        super().setUp()
        self.sms = RecordingSms()
        self.auth = AuthService(self.db, self.settings, self.sms)

    def send(self, phone: str = PHONE, purpose: str = "login") -> dict:
        tasks = BackgroundTasks()
        result = self.auth.send_otp(phone, purpose, tasks)
        asyncio.run(tasks())
        return result

    def login(self, phone: str = PHONE, device_info=None, ip_address="10.0.0.1"):
        sent = self.send(phone)
        return self.auth.verify_otp(phone, self.sms.last_code(phone), sent["otp_id"], device_info, ip_address)


class SendOtpTest(AuthServiceTestCase):
    def test_send_otp_creates_request_and_sends_code(self):
        result = self.send()

        self.assertEqual(result["expires_in"], 300)
        self.assertEqual(result["message"], "OTP sent successfully")
        self.assertEqual(len(self.sms.sent), 1)
        stored = self.db.get(OtpRequest, result["otp_id"])
        self.assertEqual(stored.phone, PHONE)
        self.assertEqual(stored.purpose, "login")
        self.assertNotEqual(stored.otp_hash, self.sms.last_code())

    def test_fourth_request_within_the_hour_is_rate_limited(self):
        for _ in range(3):
            self.send()

        with self.assertRaises(RateLimitedError):
            self.send()

        self.assertEqual(self.db.query(OtpRequest).count(), 3)
        self.assertEqual(len(self.sms.sent), 3)

    def test_rate_limit_is_per_purpose(self):
        for _ in range(3):
            self.send()
        self.send(purpose="registration")
        self.assertEqual(self.db.query(OtpRequest).count(), 4)

    def test_unknown_purpose_is_rejected(self):
        with self.assertRaises(ValueError):
            self.send(purpose="password_reset")

    def test_failed_sms_keeps_the_request(self):
        self.auth.sms = RecordingSms(delivered=False)

        result = self.send()

        self.assertIsNotNone(self.db.get(OtpRequest, result["otp_id"]))

    def test_background_tasks_defer_delivery(self):
        tasks = BackgroundTasks()

        result = self.auth.send_otp(PHONE, "login", tasks)

        self.assertEqual(len(tasks.tasks), 1)
        self.assertEqual(self.sms.sent, [])
        self.assertIsNotNone(self.db.get(OtpRequest, result["otp_id"]))

        asyncio.run(tasks())
        self.assertEqual(len(self.sms.sent), 1)


class RegisteredPhoneLoginTest(AuthServiceTestCase):
    settings_overrides = {"REQUIRE_REGISTERED_PHONE_FOR_LOGIN": True}

    def test_login_otp_requires_existing_user(self):
        with self.assertRaises(UserNotFoundError):
            self.send()
        self.assertEqual(self.sms.sent, [])

        self.make_user()
        self.assertIn("otp_id", self.send())

    def test_registration_otp_is_not_restricted(self):
        self.assertIn("otp_id", self.send(purpose="registration"))


class VerifyOtpTest(AuthServiceTestCase):
    def test_first_login_creates_user(self):
        result = self.login()

        self.assertTrue(result.is_new_user)
        self.assertEqual(result.user.phone, PHONE)
        self.assertTrue(result.user.phone_verified)
        self.assertEqual(result.user.user_type, "business_owner")
        self.assertFalse(result.user.is_superadmin)
        self.assertIsNotNone(result.user.last_login_at)
        self.assertEqual(self.db.query(RefreshToken).count(), 1)
        self.assertIsNotNone(self.auth.tokens.decode_access(result.tokens.access_token))

    def test_second_login_reuses_user(self):
        first = self.login()
        second = self.login()

        self.assertFalse(second.is_new_user)
        self.assertEqual(first.user.id, second.user.id)
        self.assertEqual(self.db.query(User).count(), 1)

    def test_wrong_then_correct_code(self):
        sent = self.send()
        code = self.sms.last_code()

        with self.assertRaises(InvalidOtpError):
            self.auth.verify_otp(PHONE, wrong_code(code), sent["otp_id"])
        result = self.auth.verify_otp(PHONE, code, sent["otp_id"])

        self.assertTrue(result.is_new_user)

    def test_code_cannot_be_used_twice(self):
        sent = self.send()
        code = self.sms.last_code()
        self.auth.verify_otp(PHONE, code, sent["otp_id"])

        with self.assertRaises(InvalidOtpError):
            self.auth.verify_otp(PHONE, code, sent["otp_id"])

    def test_exhausted_request_reports_attempts_exceeded(self):
        sent = self.send()
        code = self.sms.last_code()
        for _ in range(5):
            with self.assertRaises(InvalidOtpError):
                self.auth.verify_otp(PHONE, wrong_code(code), sent["otp_id"])

        with self.assertRaises(OtpAttemptsExceededError):
            self.auth.verify_otp(PHONE, code, sent["otp_id"])
        self.assertEqual(self.db.query(User).count(), 0)

    def test_expired_request_reports_expired(self):
        sent = self.send()
        otp_request = self.db.get(OtpRequest, sent["otp_id"])
        otp_request.expires_at = otp_request.created_at
        self.db.commit()

        with self.assertRaises(OtpExpiredError):
            self.auth.verify_otp(PHONE, self.sms.last_code(), sent["otp_id"])

    def test_code_sent_to_another_phone_is_invalid(self):
        sent = self.send(OTHER_PHONE)

        with self.assertRaises(InvalidOtpError):
            self.auth.verify_otp(PHONE, self.sms.last_code(OTHER_PHONE), sent["otp_id"])
        self.assertEqual(self.db.query(User).count(), 0)

    def test_device_info_opens_a_session(self):
        result = self.login(device_info=DEVICE)

        self.assertIsNotNone(result.session)
        self.assertEqual(result.session.device_id, "pixel-8-abc")
        self.assertEqual(result.session.device_name, "Pixel 8")
        self.assertEqual(result.session.ip_address, "10.0.0.1")

        self.login(device_info=DEVICE)
        self.assertEqual(self.db.query(UserSession).count(), 1)

    def test_device_info_without_device_id_opens_no_session(self):
        result = self.login(device_info={"device_name": "Unknown"})

        self.assertIsNone(result.session)
        self.assertEqual(self.db.query(UserSession).count(), 0)
        self.assertEqual(self.db.query(RefreshToken).one().device_info, {"device_name": "Unknown"})

    def test_inactive_user_is_refused_without_duplicate(self):
        self.make_user(status="suspended")
        sent = self.send()

        with self.assertRaises(UserInactiveError):
            self.auth.verify_otp(PHONE, self.sms.last_code(), sent["otp_id"])
        self.assertEqual(self.db.query(User).count(), 1)
        self.assertEqual(self.db.query(RefreshToken).count(), 0)


class FourDigitOtpTest(AuthServiceTestCase):
    settings_overrides = {"OTP_LENGTH": 4}

    def test_login_with_four_digit_code(self):
        sent = self.send()
        code = self.sms.last_code()
        self.assertEqual(len(code), 4)

        result = self.auth.verify_otp(PHONE, code, sent["otp_id"])

        self.assertTrue(result.is_new_user)

    def test_code_of_wrong_length_counts_an_attempt(self):
        sent = self.send()

        with self.assertRaises(InvalidOtpError):
            self.auth.verify_otp(PHONE, self.sms.last_code() + "0", sent["otp_id"])
        self.assertEqual(self.db.get(OtpRequest, sent["otp_id"]).attempts, 1)


class RefreshTokenTest(AuthServiceTestCase):
    def test_rotation_is_single_use(self):
        token_a = self.login().tokens.refresh_token

        pair_b = self.auth.refresh_token(token_a)

        with self.assertRaises(InvalidRefreshTokenError):
            self.auth.refresh_token(token_a)
        pair_c = self.auth.refresh_token(pair_b.refresh_token)
        self.assertNotEqual(pair_c.refresh_token, pair_b.refresh_token)
        self.assertEqual(self.db.query(RefreshToken).filter(RefreshToken.revoked_at.is_(None)).count(), 1)

    def test_rotation_keeps_device_and_session(self):
        login = self.login(device_info=DEVICE)

        pair = self.auth.refresh_token(login.tokens.refresh_token, ip_address="10.0.0.2")

        record = self.auth.tokens.find_refresh(pair.refresh_token)
        self.assertEqual(record.device_info, DEVICE)
        self.assertEqual(record.ip_address, "10.0.0.2")
        self.assertEqual(self.db.query(UserSession).count(), 1)
        self.db.refresh(login.session)
        self.assertEqual(login.session.ip_address, "10.0.0.2")

    def test_rotation_without_ip_keeps_previous_ip(self):
        login = self.login(ip_address="10.0.0.9")

        pair = self.auth.refresh_token(login.tokens.refresh_token)

        self.assertEqual(self.auth.tokens.find_refresh(pair.refresh_token).ip_address, "10.0.0.9")

    def test_access_token_is_not_a_refresh_token(self):
        login = self.login()

        with self.assertRaises(InvalidRefreshTokenError):
            self.auth.refresh_token(login.tokens.access_token)

    def test_logout_everywhere_kills_all_refresh_tokens(self):
        phone = self.login(device_info=DEVICE)
        tablet = self.login(device_info={"device_id": "tablet-1"})
        self.assertEqual(len(self.auth.sessions.get_user_sessions(phone.user.id)), 2)

        self.auth.sessions.logout_all_sessions(phone.user.id)

        self.assertEqual(self.auth.sessions.get_user_sessions(phone.user.id), [])
        for token in (phone.tokens.refresh_token, tablet.tokens.refresh_token):
            with self.assertRaises(InvalidRefreshTokenError):
                self.auth.refresh_token(token)


class BootstrapSuperadminTest(AuthServiceTestCase):
    settings_overrides = {
        "BOOTSTRAP_SUPERADMIN_PHONE": PHONE,
        "BOOTSTRAP_SUPERADMIN_CODE": BOOTSTRAP_CODE,
    }

    def test_bootstrap_creates_superadmin_without_otp_request(self):
        result = self.auth.verify_otp(PHONE, BOOTSTRAP_CODE, "unused")

        self.assertTrue(result.is_new_user)
        self.assertTrue(result.user.is_superadmin)
        self.assertEqual(result.user.user_type, "superadmin")
        self.assertTrue(self.auth.tokens.decode_access(result.tokens.access_token)["is_superadmin"])

    def test_bootstrap_only_works_until_a_superadmin_exists(self):
        self.auth.verify_otp(PHONE, BOOTSTRAP_CODE, "unused")

        with self.assertRaises(InvalidOtpError):
            self.auth.verify_otp(PHONE, BOOTSTRAP_CODE, "unused")

    def test_bootstrap_upgrades_existing_user(self):
        user = self.make_user()

        result = self.auth.verify_otp(PHONE, BOOTSTRAP_CODE, "unused")

        self.assertFalse(result.is_new_user)
        self.assertEqual(result.user.id, user.id)
        self.assertTrue(result.user.is_superadmin)

    def test_wrong_bootstrap_code_falls_back_to_otp(self):
        with self.assertRaises(InvalidOtpError):
            self.auth.verify_otp(PHONE, BOOTSTRAP_CODE[:-1] + "x", "unused")
        self.assertEqual(self.db.query(User).count(), 0)

    def test_superadmin_claim_survives_refresh(self):
        result = self.auth.verify_otp(PHONE, BOOTSTRAP_CODE, "unused")

        pair = self.auth.refresh_token(result.tokens.refresh_token)

        self.assertTrue(self.auth.tokens.decode_access(pair.access_token)["is_superadmin"])

    def test_other_phone_cannot_use_bootstrap_code(self):
        with self.assertRaises(InvalidOtpError):
            self.auth.verify_otp(OTHER_PHONE, BOOTSTRAP_CODE, "unused")
