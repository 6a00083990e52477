"""
Shared fixtures for gateway-core tests.
"""

import pytest

ACCESS_SECRET = "access-secret-for-tests-0123456789abcdef"
REFRESH_SECRET = "refresh-secret-for-tests-0123456789abcdef"
PRESHARED_KEY = "settlement-preshared-key"
PARTNER_API_KEY = "pk_test_partner_key_0123456789"
INACTIVE_API_KEY = "pk_test_inactive_key_0123456789"


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Sleep replacement that records delays instead of waiting."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    from gateway_core.config import GatewaySettings

    return GatewaySettings(
        jwt_secret=ACCESS_SECRET,
        jwt_refresh_secret=REFRESH_SECRET,
        settlement_preshared_key=PRESHARED_KEY,
    )


@pytest.fixture
def codec(settings, clock):
    from gateway_core.credentials import CredentialCodec

    return CredentialCodec.from_settings(settings, clock=clock)


@pytest.fixture
def principal():
    from gateway_core.credentials import AuthMethod, Principal

    return Principal(
        partner_id="42",
        partner_code="FCB",
        name="FCB Bank",
        integration_type="bank",
        roles=frozenset({"partner"}),
        auth_method=AuthMethod.TOKEN,
    )


@pytest.fixture
def principal_store():
    from gateway_core.auth import InMemoryPrincipalStore

    store = InMemoryPrincipalStore()
    store.register(
        "FCB",
        PARTNER_API_KEY,
        name="FCB Bank",
        partner_id="42",
        integration_type="bank",
        signing_secret=PRESHARED_KEY,
    )
    store.register("OLD", INACTIVE_API_KEY, name="Old Partner", active=False)
    return store


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
