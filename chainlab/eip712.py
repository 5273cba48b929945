"""EIP-712 hashing, signing and signer recovery for typed authorizations.

The hashing functions reproduce the on-chain encoding byte for byte:

    domainSeparator = keccak(abi.encode(EIP712_DOMAIN_TYPEHASH, keccak(name), keccak(version), chainId, verifyingContract))
    structHash      = keccak(abi.encode(TYPEHASH, field1, field2, ...))
    digest          = keccak(0x1901 || domainSeparator || structHash)

Signing goes through ``eth_account`` so the digest signed off-chain and the
digest recomputed here can be checked against each other.
"""

import logging
from dataclasses import dataclass
from functools import cached_property

from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_keys import keys
from eth_keys.constants import SECPK1_N
from eth_keys.exceptions import BadSignature, ValidationError
from web3 import Web3

from .errors import SignatureFormatError, WrongSignerError
from .types import EIP712_DOMAIN_TYPE

logger = logging.getLogger(__name__)

SECP256K1_HALF_N = SECPK1_N // 2
EIP712_PREFIX = b"\x19\x01"
SIGNATURE_LENGTH = 65


def encode_type(primary_type: str, fields: list[dict]) -> str:
    """Canonical type signature, e.g. ``PayStub(address employee,uint256 period,uint256 usdAmount)``."""
    members = ",".join(f"{f['type']} {f['name']}" for f in fields)
    return f"{primary_type}({members})"


def compute_type_hash(primary_type: str, fields: list[dict]) -> bytes:
    return Web3.keccak(text=encode_type(primary_type, fields))


EIP712_DOMAIN_TYPEHASH = compute_type_hash("EIP712Domain", EIP712_DOMAIN_TYPE)


def _encode_member(abi_type: str, value):
    """Map one struct member to its ``encodeData`` ABI type and value."""
    if abi_type == "string":
        return "bytes32", Web3.keccak(text=value)
    if abi_type == "bytes":
        return "bytes32", Web3.keccak(value)
    if abi_type == "address":
        return "address", Web3.to_checksum_address(value)
    if abi_type.startswith("uint"):
        bits = int(abi_type[4:] or 256)
        if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value < 2**bits:
            raise ValueError(f"{abi_type} value out of range: {value!r}")
    elif abi_type == "bytes32" and len(value) != 32:
        # eth_abi right-pads short values, which would alias distinct nonces
        raise ValueError(f"bytes32 value must be 32 bytes, got {len(value)}")
    return abi_type, value


def compute_struct_hash(type_hash: bytes, fields: list[dict], values: list) -> bytes:
    """Hash the fixed-layout encoding of ``values`` together with the schema fingerprint."""
    if len(fields) != len(values):
        raise ValueError(f"Expected {len(fields)} values, got {len(values)}")

    abi_types = ["bytes32"]
    encoded_values = [type_hash]
    for f, value in zip(fields, values):
        abi_type, encoded = _encode_member(f["type"], value)
        abi_types.append(abi_type)
        encoded_values.append(encoded)

    return Web3.keccak(encode(abi_types, encoded_values))


def compute_domain_separator(
    name: str,
    version: str,
    chain_id: int,
    verifying_contract: str,
) -> bytes:
    return compute_struct_hash(
        EIP712_DOMAIN_TYPEHASH,
        EIP712_DOMAIN_TYPE,
        [name, version, chain_id, verifying_contract],
    )


def compute_digest(domain_separator: bytes, struct_hash: bytes) -> bytes:
    """The exact 32 bytes that must be signed off-chain."""
    return Web3.keccak(EIP712_PREFIX + bytes(domain_separator) + bytes(struct_hash))


def recover_signer(digest: bytes, signature: bytes) -> str:
    """Recover the checksum address that produced a 65-byte ``r || s || v`` signature.

    Malformed signatures raise ``SignatureFormatError`` instead of recovering
    an unrelated address.
    """
    if len(signature) != SIGNATURE_LENGTH:
        raise SignatureFormatError(f"Invalid signature length: {len(signature)}")

    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:64], "big")
    v = signature[64]

    if v not in (27, 28):
        raise SignatureFormatError(f"Invalid recovery id: {v}")
    if r == 0 or s == 0:
        raise SignatureFormatError("Signature r and s must be non-zero")
    # Upper-half s values are the malleable twin of a valid signature
    if s > SECP256K1_HALF_N:
        raise SignatureFormatError("Invalid signature 's' value")

    try:
        public_key = keys.Signature(vrs=(v - 27, r, s)).recover_public_key_from_msg_hash(bytes(digest))
    except (BadSignature, ValidationError) as e:
        raise SignatureFormatError(f"Invalid signature: {e}") from e

    return public_key.to_checksum_address()


@dataclass(frozen=True)
class TypedDataDomain:
    """Signing domain; fixed once the verifying component is created."""

    name: str
    version: str
    chain_id: int
    verifying_contract: str

    @cached_property
    def separator(self) -> bytes:
        return compute_domain_separator(self.name, self.version, self.chain_id, self.verifying_contract)

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": Web3.to_checksum_address(self.verifying_contract),
        }


def _normalized_message(payload) -> dict:
    message = payload.message()
    for f in payload.FIELDS:
        if f["type"] == "address":
            message[f["name"]] = Web3.to_checksum_address(message[f["name"]])
    return message


def hash_payload(payload) -> bytes:
    """Struct hash of a payload dataclass (``PayStub``, ``Permit``, ...)."""
    message = payload.message()
    return compute_struct_hash(
        compute_type_hash(payload.PRIMARY_TYPE, payload.FIELDS),
        payload.FIELDS,
        [message[f["name"]] for f in payload.FIELDS],
    )


def payload_digest(payload, domain: TypedDataDomain) -> bytes:
    return compute_digest(domain.separator, hash_payload(payload))


def build_typed_data(payload, domain: TypedDataDomain) -> dict:
    """Build the full EIP-712 typed data message for signing."""
    return {
        "types": {
            "EIP712Domain": EIP712_DOMAIN_TYPE,
            payload.PRIMARY_TYPE: payload.FIELDS,
        },
        "domain": domain.as_dict(),
        "primaryType": payload.PRIMARY_TYPE,
        "message": _normalized_message(payload),
    }


def sign_typed_data(payload, domain: TypedDataDomain, private_key: str) -> bytes:
    """Sign a payload with EIP-712."""
    signable = encode_typed_data(full_message=build_typed_data(payload, domain))

    signed = Account.sign_message(signable, private_key=private_key)
    # r + s + v packed (65 bytes, matching Solidity's abi.encodePacked(r, s, v))
    return (
        signed.r.to_bytes(32, "big")
        + signed.s.to_bytes(32, "big")
        + signed.v.to_bytes(1, "big")
    )


class TypedDataVerifier:
    """Checks that payloads were signed by an expected key under one domain."""

    def __init__(self, domain: TypedDataDomain):
        self.domain = domain

    def digest(self, payload) -> bytes:
        return payload_digest(payload, self.domain)

    def recover(self, payload, signature: bytes) -> str:
        return recover_signer(self.digest(payload), signature)

    def verify(self, payload, signature: bytes, expected_signer: str) -> bool:
        """Return True only if ``expected_signer`` signed ``payload``."""
        try:
            recovered = self.recover(payload, signature)
        except SignatureFormatError as e:
            logger.debug(f"Rejected malformed signature: {e}")
            return False
        except ValueError as e:
            logger.debug(f"Rejected unencodable payload: {e}")
            return False
        return recovered.lower() == expected_signer.lower()

    def require_signer(self, payload, signature: bytes, expected_signer: str) -> str:
        """Raising form of ``verify``; returns the recovered address."""
        recovered = self.recover(payload, signature)
        if recovered.lower() != expected_signer.lower():
            raise WrongSignerError(recovered, expected_signer)
        return recovered
