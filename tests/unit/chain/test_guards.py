"""
Submission Guard Tests
======================

[CHAIN] chain/wallet.py network guard and chain/nullifier.py reuse guard.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest


class TestIsTargetChainId:
    """Test chain id encodings."""

    @pytest.mark.parametrize("value", ["0x534e5f5345504f4c4941", "0x534E5F5345504F4C4941", "SN_SEPOLIA", " SN_SEPOLIA "])
    def test_accepted_encodings(self, sepolia, value):
        """Hex id and alias both identify the target."""
        from chain.wallet import is_target_chain_id

        assert is_target_chain_id(value, sepolia) is True

    @pytest.mark.parametrize("value", ["SN_MAIN", "0x534e5f4d41494e", "", None, 393402133025997798000961])
    def test_rejected(self, sepolia, value):
        """Other networks and non-strings are rejected."""
        from chain.wallet import is_target_chain_id

        assert is_target_chain_id(value, sepolia) is False


class TestWalletNetworkGuard:
    """Test WalletNetworkGuard.assert_correct_network."""

    @pytest.mark.asyncio
    async def test_matching_wallet_passes(self, sepolia, make_wallet):
        """Both checks pass for the target network."""
        from chain.wallet import WalletNetworkGuard

        wallet = make_wallet(extension_chain="SN_SEPOLIA", account_chain="0x534e5f5345504f4c4941")

        await WalletNetworkGuard(sepolia).assert_correct_network(wallet)

        assert wallet.calls == ["request_chain_id", "get_chain_id"]

    @pytest.mark.asyncio
    async def test_extension_mismatch_stops_before_rpc(self, sepolia, make_wallet):
        """A foreign extension network fails before any account RPC."""
        from core.errors import NetworkMismatchError
        from chain.wallet import WalletNetworkGuard

        wallet = make_wallet(extension_chain="0xdeadbeef")

        with pytest.raises(NetworkMismatchError) as exc_info:
            await WalletNetworkGuard(sepolia).assert_correct_network(wallet)

        assert exc_info.value.observed == "0xdeadbeef"
        assert "SN_SEPOLIA" in exc_info.value.expected
        assert wallet.calls == ["request_chain_id"]

    @pytest.mark.asyncio
    async def test_account_mismatch(self, sepolia, make_wallet):
        """Extension and session can diverge; the session is checked too."""
        from core.errors import NetworkMismatchError
        from chain.wallet import WalletNetworkGuard

        wallet = make_wallet(extension_chain="SN_SEPOLIA", account_chain="0x534e5f4d41494e")

        with pytest.raises(NetworkMismatchError, match="Wrong account network: connected to 0x534e5f4d41494e"):
            await WalletNetworkGuard(sepolia).assert_correct_network(wallet)

    @pytest.mark.asyncio
    async def test_unreadable_extension_skipped(self, sepolia, make_wallet):
        """No extension chain id: only the account check applies."""
        from chain.wallet import WalletNetworkGuard

        wallet = make_wallet(extension_chain=None)

        await WalletNetworkGuard(sepolia).assert_correct_network(wallet)

        assert wallet.calls == ["request_chain_id", "get_chain_id"]

    @pytest.mark.asyncio
    async def test_extension_request_failure_skipped(self, sepolia, make_wallet):
        """A failing extension request behaves like an unreadable one."""
        from core.errors import ChainQueryError
        from chain.wallet import WalletNetworkGuard

        wallet = make_wallet()
        wallet.request_chain_id = AsyncMock(side_effect=ChainQueryError("method not supported"))

        await WalletNetworkGuard(sepolia).assert_correct_network(wallet)

        assert wallet.calls == ["get_chain_id"]


class TestNullifierGuard:
    """Test NullifierGuard.check_reuse."""

    @pytest.mark.asyncio
    async def test_unused(self, fake_registry):
        """Unregistered nullifier may be submitted."""
        from core.types import ReuseStatus
        from chain.nullifier import NullifierGuard
        from chain.reader import ChainReader

        check = await NullifierGuard(ChainReader(lambda: fake_registry)).check_reuse("0x1")

        assert check.status is ReuseStatus.UNUSED
        assert check.may_submit is True
        assert check.record is None

    @pytest.mark.asyncio
    async def test_used_surfaces_record(self, fake_registry):
        """Registered nullifier returns the conflicting record."""
        from core.types import ReuseStatus
        from chain.nullifier import NullifierGuard
        from chain.reader import ChainReader

        fake_registry.register(0x1, timestamp=99)
        check = await NullifierGuard(ChainReader(lambda: fake_registry)).check_reuse("0x1")

        assert check.status is ReuseStatus.USED
        assert check.may_submit is False
        assert check.record.timestamp == 99

    @pytest.mark.asyncio
    async def test_fails_closed(self):
        """A failing existence check is ERROR, never UNUSED."""
        from core.types import ReuseStatus
        from chain.nullifier import NullifierGuard
        from chain.reader import ChainReader

        client = MagicMock()
        client.is_nullifier_used = AsyncMock(side_effect=OSError("connection reset"))

        check = await NullifierGuard(ChainReader(lambda: client)).check_reuse("0x1")

        assert check.status is ReuseStatus.ERROR
        assert check.may_submit is False
        assert "connection reset" in check.error

    @pytest.mark.asyncio
    async def test_undecodable_response_fails_closed(self):
        """Decoding errors also fail closed."""
        from core.types import ReuseStatus
        from chain.nullifier import NullifierGuard
        from chain.reader import ChainReader

        client = MagicMock()
        client.is_nullifier_used = AsyncMock(return_value={"unexpected": True})

        check = await NullifierGuard(ChainReader(lambda: client)).check_reuse("0x1")

        assert check.status is ReuseStatus.ERROR
