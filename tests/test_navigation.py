import unittest

from fakes import FakeDriver, FakePage

from sadkitty.adapters.onlyfans import OnlyFansAdapter
from sadkitty.config import Credentials, Settings
from sadkitty.errors import LoginError
from sadkitty.nodes.navigation import load_with_retry, login

A = OnlyFansAdapter()
CREDS = Credentials(username="me@x.com", password="hunter2")


class LoadWithRetryTests(unittest.IsolatedAsyncioTestCase):
    async def test_gives_up_after_the_attempt_bound(self):
        driver = FakeDriver(pages={"https://x/p": FakePage(present={"#ready"}, broken_loads=99)})
        ok = await load_with_retry(driver, "https://x/p", "#ready", attempts=3)
        self.assertFalse(ok)
        kinds = [c[0] for c in driver.calls if c[0] in ("navigate", "reload")]
        self.assertEqual(kinds, ["navigate", "reload", "reload"])

    async def test_navigation_errors_do_not_raise(self):
        driver = FakeDriver(pages={"https://x/p": FakePage(present={"#ready"}, failed_navigations=5)})
        self.assertFalse(await load_with_retry(driver, "https://x/p", "#ready", attempts=3))
        self.assertEqual(driver.navigations(), ["https://x/p"] * 3)


class LoginTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.settings = Settings()

    async def test_types_credentials_and_waits_for_the_feed(self):
        page = FakePage(present={A.LOGIN_FORM, A.LOGGED_IN}, appear_after={A.LOGGED_IN: 1})
        driver = FakeDriver(pages={A.base_url: page})

        await login(driver, A, CREDS, self.settings)

        self.assertIn(("type", A.LOGIN_USERNAME, "me@x.com"), driver.calls)
        self.assertIn(("type", A.LOGIN_PASSWORD, "hunter2"), driver.calls)
        self.assertIn(("click", A.LOGIN_SUBMIT), driver.calls)

    async def test_restored_session_skips_the_form(self):
        driver = FakeDriver(pages={A.base_url: FakePage(present={A.LOGGED_IN})})
        await login(driver, A, None, self.settings)
        self.assertFalse([c for c in driver.calls if c[0] in ("type", "click")])

    async def test_captcha_never_solved_is_fatal(self):
        driver = FakeDriver(pages={A.base_url: FakePage(present={A.LOGIN_FORM})})
        with self.assertRaises(LoginError):
            await login(driver, A, CREDS, self.settings)

    async def test_no_form_and_no_session_is_fatal(self):
        driver = FakeDriver(pages={A.base_url: FakePage()})
        with self.assertRaises(LoginError):
            await login(driver, A, CREDS, self.settings)

    async def test_needs_credentials_without_a_session(self):
        driver = FakeDriver(pages={A.base_url: FakePage(present={A.LOGIN_FORM})})
        with self.assertRaises(LoginError):
            await login(driver, A, None, self.settings)
