"""Tests for the Aptos client, accounts and backend services."""

import json

import httpx
import pytest
from nacl.signing import VerifyKey

from aptoswap.chain.account import Account, derive_address
from aptoswap.chain.client import AptosApiError, AptosClient
from aptoswap.chain.transactions import ZERO_SIGNATURE, RawTransaction, transfer_apt_payload
from aptoswap.config import Settings
from aptoswap.errors import ExecutionError, TransactionFailedError, WalletNotFoundError
from aptoswap.services.backend import DexCatalog, TokenCatalog, WalletService

from conftest import RECIPIENT, TEST_ACCOUNT, TEST_PRIVATE_KEY

NODE = "http://node.test/v1"
INDEXER = "http://indexer.test/v1/graphql"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        aptos_node_url=NODE,
        aptos_indexer_url=INDEXER,
        backend_base_url="http://backend.test/api",
        backend_api_key="secret",
    )


def client_for(settings, handler) -> AptosClient:
    return AptosClient(settings=settings, transport=httpx.MockTransport(handler), poll_interval=0)


class TestAccount:
    """Tests for key loading and signing."""

    def test_address_derivation(self):
        account = Account.from_private_key(TEST_PRIVATE_KEY)

        assert account.address == derive_address(account.public_key)
        assert account.address.startswith("0x")
        assert len(account.address) == 66

    def test_prefixed_keys_load_the_same_account(self):
        bare = TEST_PRIVATE_KEY[2:]

        assert Account.from_private_key(bare).address == TEST_ACCOUNT.address
        assert Account.from_private_key("ed25519-priv-" + TEST_PRIVATE_KEY).address == TEST_ACCOUNT.address
        # seed followed by the public key
        extended = TEST_PRIVATE_KEY + TEST_ACCOUNT.public_key.hex()
        assert Account.from_private_key(extended).address == TEST_ACCOUNT.address

    @pytest.mark.parametrize("key", ["0xzz", "0x1234", ""])
    def test_invalid_keys(self, key):
        with pytest.raises(ValueError):
            Account.from_private_key(key)

    def test_signature_verifies(self):
        signature = TEST_ACCOUNT.sign(b"message")

        VerifyKey(TEST_ACCOUNT.public_key).verify(b"message", bytes.fromhex(signature[2:]))


class TestAptosClient:
    """Tests for REST and indexer calls against a mock transport."""

    @pytest.mark.asyncio
    async def test_missing_resource_is_none(self, settings):
        def handler(request):
            return httpx.Response(404, json={"error_code": "resource_not_found"})

        client = client_for(settings, handler)

        assert await client.get_account_resource("0x1", "0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>") is None

    @pytest.mark.asyncio
    async def test_view(self, settings):
        def handler(request):
            assert request.url.path == "/v1/view"
            body = json.loads(request.content)
            assert body == {"function": "0x1::m::f", "type_arguments": [], "arguments": ["7"]}
            return httpx.Response(200, json=["42"])

        assert await client_for(settings, handler).view("0x1::m::f", [], ["7"]) == ["42"]

    @pytest.mark.asyncio
    async def test_asset_balances(self, settings):
        def handler(request):
            assert str(request.url) == INDEXER
            where = json.loads(request.content)["variables"]["where_condition"]
            assert where == {"owner_address": {"_eq": "0xowner"}, "asset_type": {"_eq": "0xusdc"}}
            return httpx.Response(
                200, json={"data": {"current_fungible_asset_balances": [{"amount": "5", "asset_type": "0xusdc"}]}}
            )

        rows = await client_for(settings, handler).get_asset_balances("0xowner", "0xusdc")

        assert rows == [{"amount": "5", "asset_type": "0xusdc"}]

    @pytest.mark.asyncio
    async def test_indexer_errors_raise(self, settings):
        def handler(request):
            return httpx.Response(200, json={"errors": [{"message": "bad query"}]})

        with pytest.raises(AptosApiError, match="Indexer query failed"):
            await client_for(settings, handler).get_asset_balances("0xowner")

    @pytest.mark.asyncio
    async def test_build_and_simulate(self, settings):
        def handler(request):
            if request.url.path == f"/v1/accounts/{TEST_ACCOUNT.address}":
                return httpx.Response(200, json={"sequence_number": "7"})
            assert request.url.path == "/v1/transactions/simulate"
            body = json.loads(request.content)
            assert body["signature"]["signature"] == ZERO_SIGNATURE
            assert body["sequence_number"] == "7"
            return httpx.Response(200, json=[{"success": True, "gas_used": "12"}])

        client = client_for(settings, handler)
        transaction = await client.build_transaction(TEST_ACCOUNT.address, transfer_apt_payload(RECIPIENT, 1))
        simulation = await client.simulate(transaction, TEST_ACCOUNT.public_key_hex)

        assert transaction.sequence_number == 7
        assert transaction.max_gas_amount == settings.aptos_max_gas_amount
        assert simulation == {"success": True, "gas_used": "12"}

    @pytest.mark.asyncio
    async def test_submit_signs_encoded_message(self, settings):
        signing_message = b"\x01\x02\x03"
        submitted = {}

        def handler(request):
            if request.url.path == "/v1/transactions/encode_submission":
                return httpx.Response(200, json="0x" + signing_message.hex())
            submitted.update(json.loads(request.content))
            return httpx.Response(202, json={"hash": "0xabc"})

        client = client_for(settings, handler)
        transaction = RawTransaction(
            sender=TEST_ACCOUNT.address,
            sequence_number=0,
            max_gas_amount=1000,
            gas_unit_price=100,
            expiration_timestamp_secs=1,
            payload=transfer_apt_payload(RECIPIENT, 1),
        )

        tx_hash = await client.submit(transaction, TEST_ACCOUNT)

        assert tx_hash == "0xabc"
        signature = bytes.fromhex(submitted["signature"]["signature"][2:])
        VerifyKey(TEST_ACCOUNT.public_key).verify(signing_message, signature)

    @pytest.mark.asyncio
    async def test_rejected_submission_is_execution_error(self, settings):
        def handler(request):
            return httpx.Response(400, json={"message": "Invalid transaction"})

        transaction = RawTransaction(
            sender=TEST_ACCOUNT.address,
            sequence_number=0,
            max_gas_amount=1000,
            gas_unit_price=100,
            expiration_timestamp_secs=1,
            payload=transfer_apt_payload(RECIPIENT, 1),
        )

        with pytest.raises(AptosApiError, match="Submission of aptos_account::transfer") as exc_info:
            await client_for(settings, handler).submit(transaction, TEST_ACCOUNT)

        assert isinstance(exc_info.value, ExecutionError)
        assert "HTTP 400" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_failed_poll_is_execution_error(self, settings):
        def handler(request):
            return httpx.Response(503, json={})

        with pytest.raises(ExecutionError, match="Polling transaction 0xabc failed: HTTP 503"):
            await client_for(settings, handler).wait_for_transaction("0xabc", timeout=5)

    @pytest.mark.asyncio
    async def test_wait_returns_committed_transaction(self, settings):
        responses = iter(
            [
                httpx.Response(404, json={}),
                httpx.Response(200, json={"type": "pending_transaction"}),
                httpx.Response(200, json={"type": "user_transaction", "success": True, "hash": "0xabc"}),
            ]
        )

        transaction = await client_for(settings, lambda request: next(responses)).wait_for_transaction(
            "0xabc", timeout=5
        )

        assert transaction["success"] is True

    @pytest.mark.asyncio
    async def test_wait_raises_on_vm_failure(self, settings):
        def handler(request):
            return httpx.Response(
                200, json={"type": "user_transaction", "success": False, "vm_status": "Move abort"}
            )

        with pytest.raises(TransactionFailedError) as exc_info:
            await client_for(settings, handler).wait_for_transaction("0xabc", timeout=5)

        assert exc_info.value.vm_status == "Move abort"
        assert exc_info.value.tx_hash == "0xabc"

    @pytest.mark.asyncio
    async def test_wait_times_out(self, settings):
        def handler(request):
            return httpx.Response(200, json={"type": "pending_transaction"})

        with pytest.raises(ExecutionError, match="not confirmed"):
            await client_for(settings, handler).wait_for_transaction("0xabc", timeout=0)


class TestBackendServices:
    """Tests for wallet and catalog lookups."""

    @pytest.mark.asyncio
    async def test_wallet_lookup(self, settings):
        def handler(request):
            assert request.url.path == "/api/wallet/42"
            assert request.headers["X-API-KEY"] == "secret"
            return httpx.Response(
                200, json={"data": {"address": TEST_ACCOUNT.address, "privateKey": TEST_PRIVATE_KEY}}
            )

        wallet = await WalletService(settings, httpx.MockTransport(handler)).get_wallet("42")

        assert wallet.address == TEST_ACCOUNT.address
        assert wallet.private_key == TEST_PRIVATE_KEY

    @pytest.mark.asyncio
    async def test_missing_wallet(self, settings):
        service = WalletService(settings, httpx.MockTransport(lambda request: httpx.Response(404, json={})))

        with pytest.raises(WalletNotFoundError):
            await service.get_wallet("42")

    @pytest.mark.asyncio
    async def test_wallet_without_key(self, settings):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"address": "0x1"}))

        with pytest.raises(WalletNotFoundError, match="missing private key"):
            await WalletService(settings, transport).get_wallet("42")

    @pytest.mark.asyncio
    async def test_wallet_service_error(self, settings):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, json={}))

        with pytest.raises(ExecutionError, match="HTTP 500"):
            await WalletService(settings, transport).get_wallet("42")

    @pytest.mark.asyncio
    async def test_dex_catalog(self, settings):
        def handler(request):
            return httpx.Response(
                200,
                json=[
                    {
                        "name": "hyperion",
                        "displayName": "Hyperion",
                        "methodAddress": "0xhyp",
                        "functions": [
                            {"functionType": "find_pools", "functionName": "pool_v3::all_pools", "isActive": False},
                            {"functionType": "FIND_POOLS", "functionName": "pool_v3::pools"},
                        ],
                    }
                ],
            )

        dexes = await DexCatalog(settings, httpx.MockTransport(handler)).get_dexes()

        assert dexes[0].label == "Hyperion"
        assert dexes[0].get_function("find_pools").function_name == "pool_v3::pools"
        assert dexes[0].get_function("swap") is None

    @pytest.mark.asyncio
    async def test_token_list_filters(self, settings):
        def handler(request):
            assert request.url.params["symbol"] == "USDC"
            assert request.url.params["tags"] == "stable,bridged"
            assert "name" not in request.url.params
            return httpx.Response(200, json={"data": [{"symbol": "USDC", "decimals": 6, "faAddress": "0xusdc"}]})

        tokens = await TokenCatalog(settings, httpx.MockTransport(handler)).get_token_list(
            symbol="USDC", tags=["stable", "bridged"]
        )

        assert tokens[0].fa_address == "0xusdc"
        assert tokens[0].decimals == 6
