"""Tests for gRPC servicers and interceptors, called without a server."""

import time
import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import grpc

from adapter.fake.user_repository import FakeUserRepository
from domain.model.errors import DomainError, NotFoundError
from domain.model.user import NewUser, User
from rpc import messages
from rpc.context import current_claims
from rpc.handlers import (
    HealthServicer,
    UserServicer,
    from_timestamp,
    patch_from_message,
    to_timestamp,
    user_to_message,
)
from rpc.interceptors import JWTInterceptor, LoggerInterceptor, MethodPolicy, RecoverInterceptor
from services.token_service import TokenService
from services.user_service import UserService
from utils.config import FILTERED, Settings

SECRET = 'test-secret'
SETTINGS = Settings(dsn='postgresql://localhost/users', jwt_secret=SECRET, database='postgres', environment='production')
DELETE = '/users.v1.UserService/Delete'


class FakeContext:
    """Minimal stand-in for grpc.aio.ServicerContext."""

    def __init__(self, time_remaining=None):
        self._code = None
        self.details = None
        self._time_remaining = time_remaining

    async def abort(self, code, details=''):
        self._code = code
        self.details = details
        raise grpc.aio.AbortError()

    def code(self):
        return self._code

    def time_remaining(self):
        return self._time_remaining


def _details(method, metadata=()):
    return SimpleNamespace(method=method, invocation_metadata=metadata)


async def _collect(stream):
    return [item async for item in stream]


class TestConversions(unittest.TestCase):

    def test_timestamp_round_trip(self):
        instant = datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)
        self.assertEqual(from_timestamp(to_timestamp(instant)), instant)
        self.assertIsNone(to_timestamp(None))

    def test_user_to_message(self):
        instant = datetime(2024, 5, 6, tzinfo=timezone.utc)
        user = User(name='Ada', surnames='L', email='a@b', password_hash='hash', claim_ids=[0],
                    created_at=instant, updated_at=instant, id='abc')

        message = user_to_message(user)

        self.assertEqual(message.id, 'abc')
        self.assertEqual(list(message.claims), [0])
        self.assertEqual(from_timestamp(message.created_at), instant)
        self.assertNotIn('password', str(message))

    def test_patch_presence(self):
        request = messages.UpdateUserRequest(id='abc', name=messages.StringValue(value=''))
        patch = patch_from_message(request)
        self.assertEqual(patch.name, '')
        self.assertIsNone(patch.email)
        self.assertIsNone(patch.claim_ids)

        request.claims.SetInParent()
        self.assertEqual(patch_from_message(request).claim_ids, ())


class TestUserServicer(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.repo = FakeUserRepository()
        self.service = UserService(self.repo, TokenService(SECRET))
        self.servicer = UserServicer(self.service, timeout=5.0)

    async def test_create_and_get(self):
        context = FakeContext()
        created = await self.servicer.Create(messages.CreateUserRequest(email='a@b', password='p', claims=[0]), context)

        user = await self.servicer.GetById(messages.UserIdRequest(id=created.inserted_id), context)

        self.assertEqual(user.email, 'a@b')
        self.assertEqual(list(user.claims), [0])
        self.assertTrue(user.HasField('created_at'))

    async def test_domain_errors_abort_with_mapped_status(self):
        context = FakeContext()
        with self.assertRaises(grpc.aio.AbortError):
            await self.servicer.Create(messages.CreateUserRequest(email='a@b', password='p', claims=[999]), context)
        self.assertEqual(context.code(), grpc.StatusCode.INVALID_ARGUMENT)
        self.assertEqual(context.details, 'not valid claim detected: 999')

        context = FakeContext()
        with self.assertRaises(grpc.aio.AbortError):
            await self.servicer.GetById(messages.UserIdRequest(id='missing'), context)
        self.assertEqual(context.code(), grpc.StatusCode.NOT_FOUND)

    async def test_login(self):
        self.service.create(NewUser(email='a@b', password='p'))
        response = await self.servicer.Login(messages.LoginRequest(email='a@b', password='p'), FakeContext())
        self.assertEqual(response.user.email, 'a@b')
        self.assertTrue(response.token)

        context = FakeContext()
        with self.assertRaises(grpc.aio.AbortError):
            await self.servicer.Login(messages.LoginRequest(email='a@b', password='wrong'), context)
        self.assertEqual(context.details, 'incorrect password')

    async def test_get_all_streams_users(self):
        self.assertEqual(await _collect(self.servicer.GetAll(messages.Empty(), FakeContext())), [])

        self.service.create_many([NewUser(email='one@b', password='p'), NewUser(email='two@b', password='p')])
        users = await _collect(self.servicer.GetAll(messages.Empty(), FakeContext()))
        self.assertEqual([user.email for user in users], ['one@b', 'two@b'])

    async def test_update_and_delete(self):
        user_id = self.service.create(NewUser(email='a@b', password='p'))
        request = messages.UpdateUserRequest(id=user_id, surnames=messages.StringValue(value='L'))
        request.claims.ids.append(0)

        await self.servicer.Update(request, FakeContext())
        user = self.service.get_by_id(user_id)
        self.assertEqual(user.surnames, 'L')
        self.assertEqual(user.claim_ids, [0])

        await self.servicer.Delete(messages.UserIdRequest(id=user_id), FakeContext())
        with self.assertRaises(NotFoundError):
            self.service.get_by_id(user_id)

    async def test_get_claims(self):
        response = await self.servicer.GetClaims(messages.Empty(), FakeContext())
        self.assertEqual(dict(response.claims), {0: 'admin'})

    async def test_client_deadline_bounds_timeout(self):
        service = MagicMock()
        service.get_by_id.side_effect = lambda user_id: time.sleep(0.5)
        servicer = UserServicer(service, timeout=30.0)
        context = FakeContext(time_remaining=0.05)

        with self.assertRaises(grpc.aio.AbortError):
            await servicer.GetById(messages.UserIdRequest(id='x'), context)
        self.assertEqual(context.code(), grpc.StatusCode.INTERNAL)
        self.assertIn('timed out', context.details)

    def test_method_policies(self):
        policies = {policy.method: policy.required_claims for policy in self.servicer.method_policies()}
        self.assertEqual(policies[DELETE], ('admin',))
        self.assertEqual(policies['/users.v1.UserService/GetAll'], ())
        self.assertNotIn('/users.v1.UserService/Login', policies)
        self.assertNotIn('/users.v1.UserService/Create', policies)


class TestHealthServicer(unittest.IsolatedAsyncioTestCase):

    async def test_health_check(self):
        service = UserService(FakeUserRepository(), TokenService(SECRET))
        response = await HealthServicer(service, SETTINGS).HealthCheck(messages.Empty(), FakeContext())

        self.assertEqual(response.status, 'healthy')
        self.assertEqual(response.database, 'postgres')
        self.assertEqual(response.grpc_port, 50051)
        self.assertEqual(response.dsn, FILTERED)


class TestInterceptors(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.tokens = TokenService(SECRET)
        self.seen_claims = []

        async def behavior(request, context):
            self.seen_claims.append(current_claims.get())
            return 'ok'

        async def stream_behavior(request, context):
            self.seen_claims.append(current_claims.get())
            yield 'a'
            yield 'b'

        self.unary = grpc.unary_unary_rpc_method_handler(behavior)
        self.stream = grpc.unary_stream_rpc_method_handler(stream_behavior)

    async def intercept(self, interceptor, handler, details):
        async def continuation(call_details):
            return handler
        return await interceptor.intercept_service(continuation, details)

    def jwt(self):
        return JWTInterceptor(self.tokens, [MethodPolicy(DELETE, ('admin',))])

    async def test_unprotected_method_passes_through(self):
        details = _details('/users.v1.UserService/Login')
        handler = await self.intercept(self.jwt(), self.unary, details)
        self.assertIs(handler, self.unary)

    async def test_missing_token(self):
        handler = await self.intercept(self.jwt(), self.unary, _details(DELETE))
        context = FakeContext()
        with self.assertRaises(grpc.aio.AbortError):
            await handler.unary_unary(None, context)
        self.assertEqual(context.code(), grpc.StatusCode.UNAUTHENTICATED)
        self.assertEqual(context.details, 'authorization token is not provided')

    async def test_missing_claim(self):
        token = self.tokens.mint('caller', [])
        handler = await self.intercept(self.jwt(), self.unary, _details(DELETE, (('authorization', f'Bearer {token}'),)))
        context = FakeContext()
        with self.assertRaises(grpc.aio.AbortError):
            await handler.unary_unary(None, context)
        self.assertEqual(context.code(), grpc.StatusCode.PERMISSION_DENIED)
        self.assertEqual(self.seen_claims, [])

    async def test_claims_are_bound(self):
        token = self.tokens.mint('caller', [0])
        handler = await self.intercept(self.jwt(), self.unary, _details(DELETE, (('authorization', f'Bearer {token}'),)))

        self.assertEqual(await handler.unary_unary(None, FakeContext()), 'ok')
        self.assertEqual(self.seen_claims[0]['user_id'], 'caller')
        self.assertTrue(self.seen_claims[0]['admin'])

    async def test_denied_stream(self):
        handler = await self.intercept(self.jwt(), self.stream, _details(DELETE))
        context = FakeContext()
        with self.assertRaises(grpc.aio.AbortError):
            await _collect(handler.unary_stream(None, context))
        self.assertEqual(context.code(), grpc.StatusCode.UNAUTHENTICATED)

    async def test_recover_unary(self):
        async def boom(request, context):
            raise RuntimeError('kaboom')

        logger = MagicMock()
        handler = await self.intercept(
            RecoverInterceptor(logger), grpc.unary_unary_rpc_method_handler(boom), _details(DELETE),
        )
        context = FakeContext()
        with self.assertRaises(grpc.aio.AbortError):
            await handler.unary_unary(None, context)
        self.assertEqual(context.code(), grpc.StatusCode.INTERNAL)
        self.assertEqual(context.details, f'recovered from panic in {DELETE}: kaboom')
        logger.error.assert_called_once()

    async def test_recover_lets_aborts_through(self):
        async def aborts(request, context):
            await context.abort(grpc.StatusCode.NOT_FOUND, 'ID x not found')

        logger = MagicMock()
        handler = await self.intercept(
            RecoverInterceptor(logger), grpc.unary_unary_rpc_method_handler(aborts), _details(DELETE),
        )
        context = FakeContext()
        with self.assertRaises(grpc.aio.AbortError):
            await handler.unary_unary(None, context)
        self.assertEqual(context.code(), grpc.StatusCode.NOT_FOUND)
        logger.error.assert_not_called()

    async def test_recover_stream(self):
        async def boom(request, context):
            yield 'first'
            raise DomainError('late failure')

        handler = await self.intercept(
            RecoverInterceptor(MagicMock()), grpc.unary_stream_rpc_method_handler(boom), _details(DELETE),
        )
        context = FakeContext()
        received = []
        with self.assertRaises(grpc.aio.AbortError):
            async for item in handler.unary_stream(None, context):
                received.append(item)
        self.assertEqual(received, ['first'])
        self.assertEqual(context.code(), grpc.StatusCode.INTERNAL)

    async def test_logger(self):
        logger = MagicMock()
        interceptor = LoggerInterceptor(logger)
        request = messages.LoginRequest(email='a@b', password='secret')

        handler = await self.intercept(interceptor, self.unary, _details('/users.v1.UserService/Login'))
        self.assertEqual(await handler.unary_unary(request, FakeContext()), 'ok')

        extra = logger.info.call_args.kwargs['extra']
        self.assertEqual(extra['method'], '/users.v1.UserService/Login')
        self.assertEqual(extra['status'], 'OK')
        self.assertIn('a@b', extra['request_body'])
        self.assertNotIn('secret', extra['request_body'])

    async def test_logger_stream_and_skip(self):
        logger = MagicMock()
        handler = await self.intercept(LoggerInterceptor(logger), self.stream, _details('/users.v1.UserService/GetAll'))
        self.assertEqual(await _collect(handler.unary_stream(None, FakeContext())), ['a', 'b'])
        self.assertEqual(logger.info.call_args.kwargs['extra']['messages_sent'], 2)

        skipping = LoggerInterceptor(logger, skip_prefixes=('/users.v1.HealthService/',))
        details = _details('/users.v1.HealthService/HealthCheck')
        self.assertIs(await self.intercept(skipping, self.unary, details), self.unary)


if __name__ == '__main__':
    unittest.main()
