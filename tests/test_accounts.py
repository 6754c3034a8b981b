import re
import unittest

from core.accounts import ACCOUNTS, AccountRegistry
from core.credentials import CredentialGenerator
from core.errors import AuthError, ConflictError, NotFoundError, ValidationError
from core.notifier import (
    CREDENTIALS_SUBJECT,
    MemoryEmailSender,
    Notifier,
    QueueNotifier,
)
from core.sessions import MemorySessionStore
from db.models import Role
from db.store import MemoryStore


class ScriptedGenerator(CredentialGenerator):
    """Hands out the given user IDs in order, with a fixed PIN."""

    def __init__(self, user_ids, pin="4321"):
        self.user_ids = iter(user_ids)
        self.pin = pin

    def generate_user_id(self) -> str:
        return next(self.user_ids)

    def generate_pin(self) -> str:
        return self.pin


class ExplodingNotifier(Notifier):
    def notify(self, message):
        raise RuntimeError("queue unavailable")


class CredentialGeneratorTestCase(unittest.TestCase):
    def test_formats(self):
        gen = CredentialGenerator()
        for _ in range(200):
            self.assertRegex(gen.generate_user_id(), r"^ID[0-9A-F]{6}$")
            pin = gen.generate_pin()
            self.assertRegex(pin, r"^\d{4}$")
            self.assertTrue(1000 <= int(pin) <= 9999)


class AccountRegistryTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = MemoryStore()
        self.sessions = MemorySessionStore()
        self.sender = MemoryEmailSender()
        self.notifier = QueueNotifier(self.sender)
        self.registry = AccountRegistry(self.store, self.sessions, self.notifier)

    async def asyncTearDown(self):
        await self.notifier.close()

    # ---------- Registration ----------

    async def test_register_returns_credentials_and_emails_them(self):
        reg = await self.registry.register("Alice", "a@x.com", "buyer")
        self.assertTrue(re.fullmatch(r"ID[0-9A-F]{6}", reg.user_id))
        self.assertTrue(re.fullmatch(r"\d{4}", reg.pin))

        account = await self.registry.get_account(reg.user_id)
        self.assertEqual(account.full_name, "Alice")
        self.assertEqual(account.role, Role.BUYER)
        self.assertEqual(account.cart, [])
        self.assertNotIn("pin", account.to_public())

        await self.notifier.join()
        self.assertEqual(len(self.sender.sent), 1)
        msg = self.sender.sent[0]
        self.assertEqual(msg.to, "a@x.com")
        self.assertEqual(msg.subject, CREDENTIALS_SUBJECT)
        self.assertEqual(msg.body, f"Hello Alice,\nUser ID: {reg.user_id}\nPIN: {reg.pin}")

    async def test_registered_ids_are_unique(self):
        ids = set()
        for i in range(30):
            reg = await self.registry.register(f"User {i}", f"u{i}@x.com", "admin")
            ids.add(reg.user_id)
        self.assertEqual(len(ids), 30)
        self.assertEqual(len(await self.store.find_all(ACCOUNTS)), 30)

    async def test_register_requires_every_field(self):
        cases = [
            (None, "a@x.com", "buyer"),
            ("A", "", "buyer"),
            ("A", "a@x.com", "   "),
            ("A", None, None),
        ]
        for full_name, email, role in cases:
            with self.assertRaises(ValidationError):
                await self.registry.register(full_name, email, role)
        with self.assertRaises(ValidationError):
            await self.registry.register("A", "a@x.com", "seller")
        self.assertEqual(await self.store.find_all(ACCOUNTS), [])

    async def test_register_retries_on_user_id_collision(self):
        self.registry.generator = ScriptedGenerator(["IDAAAAAA"])
        first = await self.registry.register("A", "a@x.com", "buyer")

        self.registry.generator = ScriptedGenerator(["IDAAAAAA", "IDAAAAAA", "IDBBBBBB"])
        second = await self.registry.register("B", "b@x.com", "buyer")

        self.assertEqual(first.user_id, "IDAAAAAA")
        self.assertEqual(second.user_id, "IDBBBBBB")
        # the first account was not overwritten
        self.assertEqual((await self.registry.get_account("IDAAAAAA")).full_name, "A")

    async def test_register_gives_up_after_bounded_attempts(self):
        registry = AccountRegistry(
            self.store,
            self.sessions,
            self.notifier,
            generator=ScriptedGenerator(["IDAAAAAA"] * 10),
            max_attempts=3,
        )
        await registry.register("A", "a@x.com", "buyer")
        with self.assertRaises(ConflictError):
            await registry.register("B", "b@x.com", "buyer")
        self.assertEqual(len(await self.store.find_all(ACCOUNTS)), 1)

    async def test_failed_delivery_does_not_fail_registration(self):
        self.sender.should_fail = True
        reg = await self.registry.register("A", "a@x.com", "buyer")
        await self.notifier.join()
        self.assertEqual(self.sender.sent, [])
        self.assertEqual((await self.registry.get_account(reg.user_id)).email, "a@x.com")

        # the worker survives a failure and keeps delivering
        self.sender.should_fail = False
        await self.registry.register("B", "b@x.com", "buyer")
        await self.notifier.join()
        self.assertEqual([m.to for m in self.sender.sent], ["b@x.com"])

    async def test_broken_notifier_does_not_fail_registration(self):
        registry = AccountRegistry(self.store, self.sessions, ExplodingNotifier())
        reg = await registry.register("A", "a@x.com", "buyer")
        self.assertIsNotNone(await self.store.find_one(ACCOUNTS, {"userID": reg.user_id}))

    # ---------- Login ----------

    async def test_login_matches_exact_pair_and_opens_session(self):
        self.registry.generator = ScriptedGenerator(["IDC0FFEE"], pin="1234")
        await self.registry.register("A", "a@x.com", "admin")

        result = await self.registry.login("IDC0FFEE", "1234")
        self.assertEqual(result.role, Role.ADMIN)
        self.assertEqual(result.user_id, "IDC0FFEE")
        session = self.sessions.resolve(result.token)
        self.assertEqual(session.account_ref, "IDC0FFEE")
        self.assertEqual(session.role, Role.ADMIN)

        # numeric PIN input is compared as text
        self.assertEqual((await self.registry.login("IDC0FFEE", 1234)).user_id, "IDC0FFEE")

    async def test_login_failures_are_uniform(self):
        self.registry.generator = ScriptedGenerator(["IDC0FFEE"], pin="1234")
        await self.registry.register("A", "a@x.com", "buyer")

        messages = set()
        for user_id, pin in [
            ("IDC0FFEE", "9999"),
            ("IDFFFFFF", "1234"),
            ("", "1234"),
            ("IDC0FFEE", None),
            ("idc0ffee", "1234"),
            (" IDC0FFEE", "1234"),
            ("IDC0FFEE ", "1234"),
            ("IDC0FFEE", "1234 "),
            ("IDC0FFEE", "1234\n"),
        ]:
            with self.assertRaises(AuthError) as ctx:
                await self.registry.login(user_id, pin)
            messages.add(ctx.exception.message)
        self.assertEqual(messages, {"Invalid ID or PIN"})

    async def test_get_account_unknown(self):
        with self.assertRaises(NotFoundError):
            await self.registry.get_account("IDNOPE00")
        with self.assertRaises(ValidationError):
            await self.registry.get_account("")


class SessionStoreTestCase(unittest.TestCase):
    def test_resolve_unknown_token(self):
        sessions = MemorySessionStore()
        self.assertIsNone(sessions.resolve("nope"))
        self.assertIsNone(sessions.resolve(""))

    def test_tokens_are_distinct(self):
        sessions = MemorySessionStore()
        a = sessions.create("IDAAAAAA", Role.BUYER)
        b = sessions.create("IDAAAAAA", Role.BUYER)
        self.assertNotEqual(a, b)
        self.assertEqual(sessions.resolve(a).account_ref, "IDAAAAAA")

    def test_sessions_expire_after_ttl(self):
        now = [100.0]
        sessions = MemorySessionStore(ttl=60, clock=lambda: now[0])
        token = sessions.create("IDAAAAAA", "buyer")
        now[0] = 159.0
        self.assertEqual(sessions.resolve(token).role, Role.BUYER)
        now[0] = 160.0
        self.assertIsNone(sessions.resolve(token))
        now[0] = 100.0
        self.assertIsNone(sessions.resolve(token))

    def test_zero_ttl_never_expires(self):
        now = [0.0]
        sessions = MemorySessionStore(ttl=0, clock=lambda: now[0])
        token = sessions.create("IDAAAAAA", Role.ADMIN)
        now[0] = 10**9
        self.assertIsNotNone(sessions.resolve(token))

    def test_create_drops_expired_sessions(self):
        now = [0.0]
        sessions = MemorySessionStore(ttl=10, clock=lambda: now[0])
        stale = sessions.create("IDAAAAAA", Role.BUYER)
        now[0] = 11.0
        fresh = sessions.create("IDBBBBBB", Role.ADMIN)
        self.assertNotIn(stale, sessions._sessions)
        self.assertEqual(list(sessions._sessions), [fresh])
