"""Transaction payloads in the fullnode's JSON submission format."""

from dataclasses import dataclass, field
from typing import Any

ZERO_SIGNATURE = "0x" + "00" * 64


@dataclass
class EntryFunctionPayload:
    """Call to a public entry (or view) function.

    u64/u128 arguments are passed as decimal strings, vectors as lists.
    """

    function: str
    type_arguments: list[str] = field(default_factory=list)
    arguments: list[Any] = field(default_factory=list)

    @property
    def module_function(self) -> str:
        """The module::function part, without the account address."""
        return self.function.split("::", 1)[-1]

    def to_dict(self) -> dict:
        return {
            "type": "entry_function_payload",
            "function": self.function,
            "type_arguments": list(self.type_arguments),
            "arguments": list(self.arguments),
        }

    def to_view_request(self) -> dict:
        return {
            "function": self.function,
            "type_arguments": list(self.type_arguments),
            "arguments": list(self.arguments),
        }


@dataclass
class RawTransaction:
    """Unsigned user transaction."""

    sender: str
    sequence_number: int
    max_gas_amount: int
    gas_unit_price: int
    expiration_timestamp_secs: int
    payload: EntryFunctionPayload

    def to_dict(self) -> dict:
        return {
            "sender": self.sender,
            "sequence_number": str(self.sequence_number),
            "max_gas_amount": str(self.max_gas_amount),
            "gas_unit_price": str(self.gas_unit_price),
            "expiration_timestamp_secs": str(self.expiration_timestamp_secs),
            "payload": self.payload.to_dict(),
        }

    def with_signature(self, public_key_hex: str, signature_hex: str) -> dict:
        """Submission body with an Ed25519 authenticator attached."""
        body = self.to_dict()
        body["signature"] = {
            "type": "ed25519_signature",
            "public_key": public_key_hex,
            "signature": signature_hex,
        }
        return body


def transfer_apt_payload(to_address: str, amount: int) -> EntryFunctionPayload:
    """APT transfer that also creates the recipient account if needed."""
    return EntryFunctionPayload(
        function="0x1::aptos_account::transfer",
        arguments=[to_address, str(amount)],
    )


def transfer_coin_payload(coin_type: str, to_address: str, amount: int) -> EntryFunctionPayload:
    """Legacy coin transfer."""
    return EntryFunctionPayload(
        function="0x1::aptos_account::transfer_coins",
        type_arguments=[coin_type],
        arguments=[to_address, str(amount)],
    )


def transfer_fungible_asset_payload(
    metadata_address: str, to_address: str, amount: int
) -> EntryFunctionPayload:
    """Fungible asset (token standard v2) transfer between primary stores."""
    return EntryFunctionPayload(
        function="0x1::aptos_account::transfer_fungible_assets",
        arguments=[metadata_address, to_address, str(amount)],
    )
