"""Ed25519 Aptos account backed by PyNaCl."""

from hashlib import sha3_256

from nacl.signing import SigningKey

# Authentication key scheme byte for single Ed25519 keys
ED25519_SCHEME = b"\x00"
AIP80_PREFIX = "ed25519-priv-"


def derive_address(public_key: bytes) -> str:
    """Account address = sha3_256(public_key || scheme)."""
    return "0x" + sha3_256(public_key + ED25519_SCHEME).hexdigest()


class Account:
    """Signing account for transactions submitted by the workflows."""

    def __init__(self, signing_key: SigningKey):
        self._signing_key = signing_key
        self._public_key = signing_key.verify_key.encode()
        self.address = derive_address(self._public_key)

    @classmethod
    def from_private_key(cls, private_key: str) -> "Account":
        """Load from a hex key, with or without 0x and AIP-80 prefixes.

        Raises:
            ValueError: If the key is not 32 (or 64, seed + public) bytes of hex
        """
        key = private_key.strip()
        if key.startswith(AIP80_PREFIX):
            key = key[len(AIP80_PREFIX):]
        if key.startswith("0x"):
            key = key[2:]

        try:
            raw = bytes.fromhex(key)
        except ValueError:
            raise ValueError("Private key is not valid hex")

        if len(raw) not in (32, 64):
            raise ValueError(f"Private key must be 32 bytes, got {len(raw)}")
        return cls(SigningKey(raw[:32]))

    @property
    def public_key(self) -> bytes:
        return self._public_key

    @property
    def public_key_hex(self) -> str:
        return "0x" + self._public_key.hex()

    def sign(self, message: bytes) -> str:
        """Sign raw bytes, returning the 64-byte signature as 0x-hex."""
        return "0x" + self._signing_key.sign(message).signature.hex()

    def __repr__(self) -> str:
        return f"Account({self.address})"
