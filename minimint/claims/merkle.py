"""
minimint.claims.merkle — sorted-pair Keccak Merkle trees.

Pure, side-effect free helpers shared by the allowlist entry points and the
``minimint merkle`` command.

Hashing rules
-------------
- Single-claim leaf:  ``keccak256(address)``              (20 packed bytes)
- Allowance leaf:     ``keccak256(address || uint256)``   (20 + 32 packed bytes)
- Inner node:         ``keccak256(min(a, b) || max(a, b))``

Sorting each pair makes a proof a plain list of sibling hashes: the verifier
never needs left/right flags. When a level has an odd number of nodes, the
last node is promoted to the next level unchanged.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from minimint.runtime.hash import encode_packed, keccak256


def leaf_for(address: bytes) -> bytes:
    return keccak256(encode_packed(("address", address)))


def leaf_for_allowance(address: bytes, allowance: int) -> bytes:
    return keccak256(encode_packed(("address", address), ("uint256", allowance)))


def hash_pair(a: bytes, b: bytes) -> bytes:
    return keccak256(a + b) if a <= b else keccak256(b + a)


def process_proof(leaf: bytes, proof: Iterable[bytes]) -> bytes:
    node = bytes(leaf)
    for sibling in proof:
        node = hash_pair(node, bytes(sibling))
    return node


def verify_proof(proof: Iterable[bytes], root: bytes, leaf: bytes) -> bool:
    return process_proof(leaf, proof) == bytes(root)


class MerkleTree:
    """
    Build a tree over pre-hashed leaves (in the given order) and produce
    proofs by leaf index.

        tree = MerkleTree([leaf_for(a) for a in addresses])
        assert verify_proof(tree.proof(0), tree.root, tree.leaves[0])
    """

    def __init__(self, leaves: Sequence[bytes]) -> None:
        if not leaves:
            raise ValueError("cannot build a Merkle tree without leaves")
        for i, leaf in enumerate(leaves):
            if len(leaf) != 32:
                raise ValueError(f"leaf {i} is not 32 bytes")
        self.leaves: List[bytes] = [bytes(x) for x in leaves]
        self.levels: List[List[bytes]] = [self.leaves]
        level = self.leaves
        while len(level) > 1:
            nxt = [hash_pair(level[i], level[i + 1]) for i in range(0, len(level) - 1, 2)]
            if len(level) % 2 == 1:
                nxt.append(level[-1])
            self.levels.append(nxt)
            level = nxt

    @property
    def root(self) -> bytes:
        return self.levels[-1][0]

    def proof(self, index: int) -> List[bytes]:
        if not 0 <= index < len(self.leaves):
            raise IndexError(f"leaf index {index} out of range")
        path: List[bytes] = []
        for level in self.levels[:-1]:
            sibling = index ^ 1
            if sibling < len(level):
                path.append(level[sibling])
            index //= 2
        return path

    def index_of(self, leaf: bytes) -> int:
        return self.leaves.index(bytes(leaf))

    def proof_for_leaf(self, leaf: bytes) -> List[bytes]:
        return self.proof(self.index_of(leaf))


__all__ = [
    "leaf_for",
    "leaf_for_allowance",
    "hash_pair",
    "process_proof",
    "verify_proof",
    "MerkleTree",
]
