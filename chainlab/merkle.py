"""Merkle allowlists and proof generation.

Two constructions are provided, matching the two off-chain tools the
allowlist contracts are tested against:

- ``MerkleTree``: keccak over raw leaves, pairs sorted before hashing, an odd
  node promoted unchanged to the next layer (merkletreejs ``sortPairs``).
- ``StandardMerkleTree``: OpenZeppelin's standard tree. Leaves are
  ``keccak(keccak(abi.encode(types, value)))``, sorted, and laid out as a
  complete binary tree in an array.

Both verify with the same sorted-pair ``process_proof`` used by
OpenZeppelin's ``MerkleProof.verify``.
"""

from datetime import datetime, timezone

from eth_abi import encode
from web3 import Web3


def _hash_pair(a: bytes, b: bytes) -> bytes:
    """Hash two nodes, sorting them first (OpenZeppelin standard)."""
    if a <= b:
        return Web3.keccak(a + b)
    else:
        return Web3.keccak(b + a)


def hash_address_leaf(address: str) -> bytes:
    """Leaf for an allowlisted address: keccak of its 20 raw bytes."""
    return Web3.keccak(bytes.fromhex(address.removeprefix("0x").lower()))


def process_proof(leaf: bytes, proof: list[bytes]) -> bytes:
    computed = leaf
    for sibling in proof:
        computed = _hash_pair(computed, sibling)
    return computed


class MerkleTree:
    """Sorted-pair Merkle tree over pre-hashed leaves."""

    def __init__(self, leaves: list[bytes]):
        if not leaves:
            raise ValueError("Cannot build tree with no leaves")
        self.leaves = list(leaves)
        self.layers: list[list[bytes]] = []
        self._build()

    @classmethod
    def from_addresses(cls, addresses: list[str]) -> "MerkleTree":
        return cls([hash_address_leaf(a) for a in addresses])

    def _build(self):
        """Hash pairs upward; an unpaired last node moves up unchanged."""
        layer = self.leaves
        self.layers.append(layer)
        while len(layer) > 1:
            layer = [
                _hash_pair(layer[i], layer[i + 1]) if i + 1 < len(layer) else layer[i]
                for i in range(0, len(layer), 2)
            ]
            self.layers.append(layer)

    @property
    def root(self) -> bytes:
        return self.layers[-1][0]

    @property
    def hex_root(self) -> str:
        return "0x" + bytes(self.root).hex()

    def get_proof(self, index: int) -> list[bytes]:
        """Siblings from leaf to root; promoted nodes contribute nothing."""
        if not 0 <= index < len(self.leaves):
            raise IndexError(f"Leaf index {index} out of range")

        proof = []
        for layer in self.layers[:-1]:
            sibling = index ^ 1
            if sibling < len(layer):
                proof.append(layer[sibling])
            index //= 2
        return proof

    def verify(self, leaf: bytes, proof: list[bytes], root: bytes) -> bool:
        return process_proof(leaf, proof) == root


class StandardMerkleTree:
    """OpenZeppelin ``StandardMerkleTree`` over ABI-encoded values."""

    def __init__(self, tree: list[bytes], values: list[tuple], leaf_types: list[str], tree_indices: list[int]):
        self.tree = tree
        self.values = values
        self.leaf_types = leaf_types
        self._tree_indices = tree_indices

    @staticmethod
    def leaf_hash(leaf_types: list[str], value) -> bytes:
        # Address case carries no meaning here; eth_abi only accepts valid checksums
        members = [
            Web3.to_checksum_address(v.lower()) if t == "address" else v
            for t, v in zip(leaf_types, value)
        ]
        return Web3.keccak(Web3.keccak(encode(leaf_types, members)))

    @classmethod
    def of(cls, values: list, leaf_types: list[str]) -> "StandardMerkleTree":
        if not values:
            raise ValueError("Cannot build tree with no leaves")

        hashed = sorted(
            ((cls.leaf_hash(leaf_types, v), i) for i, v in enumerate(values)),
            key=lambda item: bytes(item[0]),
        )

        n = len(hashed)
        tree: list[bytes] = [b""] * (2 * n - 1)
        tree_indices = [0] * n
        for leaf_index, (leaf, value_index) in enumerate(hashed):
            tree_index = len(tree) - 1 - leaf_index
            tree[tree_index] = leaf
            tree_indices[value_index] = tree_index
        for i in range(len(tree) - 1 - n, -1, -1):
            tree[i] = _hash_pair(tree[2 * i + 1], tree[2 * i + 2])

        return cls(tree, [tuple(v) for v in values], list(leaf_types), tree_indices)

    @property
    def root(self) -> bytes:
        return self.tree[0]

    @property
    def hex_root(self) -> str:
        return "0x" + bytes(self.root).hex()

    def get_proof(self, index: int) -> list[bytes]:
        """Proof for the value at ``index`` in the original input order."""
        if index < 0 or index >= len(self.values):
            raise IndexError(f"Value index {index} out of range")

        proof = []
        i = self._tree_indices[index]
        while i > 0:
            sibling = i + 1 if i % 2 == 1 else i - 1
            proof.append(self.tree[sibling])
            i = (i - 1) // 2
        return proof

    @classmethod
    def verify(cls, root: bytes, leaf_types: list[str], value, proof: list[bytes]) -> bool:
        return process_proof(cls.leaf_hash(leaf_types, value), proof) == root


def dump_allowlist(
    root: bytes,
    proofs: dict[str, list[bytes]],
    participants: list[str],
    description: str = "",
) -> dict:
    """Serialize a tree the way the allowlist contracts' deploy data expects."""
    return {
        "merkleRoot": "0x" + bytes(root).hex(),
        "proofs": {
            participant: {"proof": ["0x" + bytes(p).hex() for p in proof]}
            for participant, proof in proofs.items()
        },
        "participants": list(participants),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "description": description,
    }
