"""
Pytest configuration and fixtures.

This file ensures proper path setup for imports and provides shared
fixtures built on the toy engine.
"""

import sys
from pathlib import Path

import pytest

# Add src directory to Python path
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from fhevm_sdk.config import FhevmConfig, get_settings  # noqa: E402
from fhevm_sdk.instance import create_instance  # noqa: E402
from fhevm_sdk.toy_engine import ToyFhevmEngine  # noqa: E402


class StaticSigner:
    """Signer returning a fixed address."""

    def __init__(self, address: str):
        self.address = address

    async def get_address(self) -> str:
        return self.address


def _toy_factory(binding):
    return ToyFhevmEngine(binding, _force_enable=True)


@pytest.fixture
def toy_factory():
    """Engine factory for the toy engine, bypassing the env opt-in."""
    return _toy_factory


@pytest.fixture
def settings():
    """Settings independent of the developer's environment."""
    return get_settings(engine="toy", verify_chain_id=False, decryption_timeout=5.0, poll_interval=0.01)


@pytest.fixture
def user_address():
    return "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"


@pytest.fixture
def signer(user_address):
    return StaticSigner(user_address)


@pytest.fixture
async def instance(settings, signer):
    """A ready instance on localhost backed by the toy engine."""
    return await create_instance(
        FhevmConfig(network="localhost", signer=signer),
        engine_factory=_toy_factory,
        settings=settings,
    )


@pytest.fixture
def engine(instance):
    return instance.engine
