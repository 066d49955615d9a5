"""
One-time password gateway for payment confirmation.

Codes are keyed by (resource type, resource id), expire after a fixed TTL
and are consumed by the first successful verification. Storage is Redis in
deployment and an in-process dict for tests and single-node development.
"""

import abc
import enum
import hmac
import json
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask, current_app

from petverse.exceptions import OtpStillValidError, OtpStoreUnavailableError, ValidationError

logger = logging.getLogger(__name__)

RESOURCE_TYPES = ('order', 'advertisement', 'appointment')


class OtpResult(str, enum.Enum):
    OK = 'ok'
    EXPIRED = 'expired'
    INVALID = 'invalid'
    NOT_FOUND = 'not_found'

    @property
    def message(self) -> str:
        return {
            OtpResult.OK: 'OTP verified successfully',
            OtpResult.EXPIRED: 'OTP expired',
            OtpResult.INVALID: 'Invalid OTP',
            OtpResult.NOT_FOUND: 'OTP not found or expired',
        }[self]


@dataclass(frozen=True)
class OtpRecord:
    code: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def dumps(self) -> str:
        return json.dumps({'code': self.code, 'expires_at': self.expires_at}, sort_keys=True)

    @classmethod
    def loads(cls, raw: str) -> 'OtpRecord':
        data = json.loads(raw)
        return cls(code=data['code'], expires_at=float(data['expires_at']))


def generate_code() -> str:
    """Six decimal digits, never starting with zero."""
    return str(100000 + secrets.randbelow(900000))


class OtpStore(abc.ABC):
    """Storage contract. `delete_if_matches` must be atomic."""

    @abc.abstractmethod
    def put(self, key: str, record: OtpRecord, ttl_seconds: int) -> None:
        """Store `record`, replacing any previous one for `key`."""

    @abc.abstractmethod
    def get(self, key: str) -> Optional[OtpRecord]:
        """Return the record, expired or not, or None."""

    @abc.abstractmethod
    def delete_if_matches(self, key: str, record: OtpRecord) -> bool:
        """Delete `key` only if it still holds `record`. True when deleted."""


class MemoryOtpStore(OtpStore):
    """Process-local store. Expired records stay until read so they can be reported as expired."""

    def __init__(self):
        self._records: Dict[str, OtpRecord] = {}
        self._lock = threading.Lock()

    def put(self, key, record, ttl_seconds):
        with self._lock:
            self._records[key] = record

    def get(self, key):
        with self._lock:
            return self._records.get(key)

    def delete_if_matches(self, key, record):
        with self._lock:
            if self._records.get(key) == record:
                del self._records[key]
                return True
            return False


class RedisOtpStore(OtpStore):
    """
    Redis-backed store.

    Keys live for ttl + grace seconds so a verify shortly after expiry can
    still tell an expired code from a missing one.
    """

    _DELETE_IF_EQUAL = (
        "if redis.call('GET', KEYS[1]) == ARGV[1] then "
        "return redis.call('DEL', KEYS[1]) else return 0 end"
    )

    def __init__(self, client: redis.Redis, prefix: str = 'petverse:otp', grace_seconds: int = 600):
        self.client = client
        self._prefix = prefix
        self._grace = grace_seconds

    def _build_key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def put(self, key, record, ttl_seconds):
        try:
            self.client.set(self._build_key(key), record.dumps(), ex=ttl_seconds + self._grace)
        except RedisError as e:
            logger.error(f"[OTP] ✗ Redis SET failed for {key}: {e}")
            raise OtpStoreUnavailableError() from e

    def get(self, key):
        try:
            raw = self.client.get(self._build_key(key))
        except RedisError as e:
            logger.error(f"[OTP] ✗ Redis GET failed for {key}: {e}")
            raise OtpStoreUnavailableError() from e
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode('utf-8')
        return OtpRecord.loads(raw)

    def delete_if_matches(self, key, record):
        try:
            deleted = self.client.eval(self._DELETE_IF_EQUAL, 1, self._build_key(key), record.dumps())
        except RedisError as e:
            logger.error(f"[OTP] ✗ Redis consume failed for {key}: {e}")
            raise OtpStoreUnavailableError() from e
        return int(deleted or 0) == 1


class OtpGateway:
    """Issue, verify and resend codes against an OtpStore."""

    def __init__(
        self,
        store: OtpStore,
        notifier: Optional[Callable[[str, str, int], object]] = None,
        ttl_seconds: int = 300,
        clock: Callable[[], float] = time.time,
        code_factory: Callable[[], str] = generate_code,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self._notifier = notifier
        self._clock = clock
        self._code_factory = code_factory

    @staticmethod
    def build_key(resource_type: str, resource_id) -> str:
        if resource_type not in RESOURCE_TYPES:
            raise ValidationError(f'Unsupported resourceType: {resource_type}')
        return f"{resource_type}:{resource_id}"

    def issue(self, resource_type: str, resource_id, destination: Optional[str] = None) -> str:
        """Store a fresh code for the resource, replacing any previous one, and notify."""
        key = self.build_key(resource_type, resource_id)
        code = self._code_factory()
        self.store.put(key, OtpRecord(code, self._clock() + self.ttl_seconds), self.ttl_seconds)
        logger.info(f"[OTP] Issued code for {key}")
        self._notify(destination, code)
        return code

    def verify(self, resource_type: str, resource_id, code) -> OtpResult:
        key = self.build_key(resource_type, resource_id)
        record = self.store.get(key)

        if record is None:
            result = OtpResult.NOT_FOUND
        elif record.is_expired(self._clock()):
            self.store.delete_if_matches(key, record)
            result = OtpResult.EXPIRED
        elif not hmac.compare_digest(record.code, str(code).strip()):
            result = OtpResult.INVALID
        elif self.store.delete_if_matches(key, record):
            result = OtpResult.OK
        else:
            # consumed by a concurrent verify
            result = OtpResult.NOT_FOUND

        logger.info(f"[OTP] Verify {key}: {result.value}")
        return result

    def resend(self, resource_type: str, resource_id, destination: Optional[str] = None) -> str:
        key = self.build_key(resource_type, resource_id)
        record = self.store.get(key)
        if record is not None and not record.is_expired(self._clock()):
            raise OtpStillValidError()
        return self.issue(resource_type, resource_id, destination)

    def _notify(self, destination: Optional[str], code: str) -> None:
        if not destination or self._notifier is None:
            logger.warning("[OTP] No destination for code, notification skipped")
            return
        try:
            self._notifier(destination, code, max(1, self.ttl_seconds // 60))
        except Exception as e:
            logger.warning(f"[OTP] ✗ Notification to {destination} failed: {e}")


def _build_store(app: Flask) -> OtpStore:
    backend = app.config.get('OTP_STORE_BACKEND', 'redis')
    if backend == 'memory':
        logger.info("[OTP] Using in-memory store")
        return MemoryOtpStore()

    redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')
    try:
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=3,
            socket_timeout=3,
            retry_on_timeout=True,
            health_check_interval=30
        )
        client.ping()
        logger.info(f"[OTP] ✓ Redis connected: {redis_url}")
    except (ConnectionError, TimeoutError, RedisError) as e:
        logger.warning(f"[OTP] ⚠ Redis connection failed: {e}. Falling back to in-memory store.")
        return MemoryOtpStore()

    return RedisOtpStore(
        client,
        prefix=app.config.get('OTP_KEY_PREFIX', 'petverse:otp'),
        grace_seconds=app.config.get('OTP_EXPIRED_GRACE_SECONDS', 600),
    )


_otp_gateway: Optional[OtpGateway] = None


def init_otp(app: Flask, notifier: Optional[Callable] = None) -> OtpGateway:
    """Initialize the OTP gateway singleton."""
    global _otp_gateway
    if notifier is None:
        from petverse.services.email_service import send_otp_email
        notifier = send_otp_email

    _otp_gateway = OtpGateway(
        _build_store(app),
        notifier=notifier,
        ttl_seconds=app.config.get('OTP_TTL_SECONDS', 300),
    )
    app.extensions['otp_gateway'] = _otp_gateway
    return _otp_gateway


def get_otp_gateway() -> OtpGateway:
    """Get the gateway bound to the current app."""
    gateway = current_app.extensions.get('otp_gateway') or _otp_gateway
    if gateway is None:
        raise RuntimeError("OTP gateway not initialized.")
    return gateway
