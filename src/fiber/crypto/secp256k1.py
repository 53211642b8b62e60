"""
secp256k1 signatures for Ethereum transactions.

Ethereum signatures carry a recovery id next to (r, s) so that the signer's
public key, and from it the sender address, can be recovered from the
message hash alone. `cryptography` signs and verifies but does not expose
point arithmetic, so recovery is done with the affine helpers below.

Recovery (SEC 1 v2, section 4.1.6):

    R = point with x = r and y parity = recovery_id
    Q = r^-1 * (s*R - e*G)

References:
- https://www.secg.org/sec1-v2.pdf
- EIP-2 (low-s requirement): https://eips.ethereum.org/EIPS/eip-2
"""

from __future__ import annotations

from typing import Final

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, decode_dss_signature
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from fiber.types import Address

from .keccak import keccak256

P: Final = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
"""secp256k1 field prime."""

N: Final = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
"""secp256k1 curve order."""

HALF_N: Final = N // 2
"""Upper bound for `s` in canonical (low-s) signatures."""

_G: Final = (
    0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798,
    0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8,
)
"""secp256k1 generator point."""

Point = tuple[int, int]


class SignatureError(ValueError):
    """Raised when a signature is malformed or no public key can be recovered."""


def _point_add(p1: Point | None, p2: Point | None) -> Point | None:
    """Add two curve points; `None` is the point at infinity."""
    if p1 is None:
        return p2
    if p2 is None:
        return p1

    x1, y1 = p1
    x2, y2 = p2

    if x1 == x2 and (y1 + y2) % P == 0:
        return None

    if x1 == x2:
        lam = (3 * x1 * x1 * pow(2 * y1, -1, P)) % P
    else:
        lam = ((y2 - y1) * pow(x2 - x1, -1, P)) % P

    x3 = (lam * lam - x1 - x2) % P
    y3 = (lam * (x1 - x3) - y1) % P
    return (x3, y3)


def _point_mul(k: int, point: Point | None) -> Point | None:
    """Scalar multiplication using double-and-add."""
    result = None
    addend = point
    while k:
        if k & 1:
            result = _point_add(result, addend)
        addend = _point_add(addend, addend)
        k >>= 1
    return result


def _lift_x(x: int, odd: bool) -> Point:
    """Return the curve point with the given x and y parity."""
    y_sq = (pow(x, 3, P) + 7) % P
    y = pow(y_sq, (P + 1) // 4, P)
    if (y * y) % P != y_sq:
        raise SignatureError("r is not the x-coordinate of a curve point")
    if (y & 1) != odd:
        y = P - y
    return (x, y)


def recover_public_key(message_hash: bytes, recovery_id: int, r: int, s: int) -> bytes:
    """
    Recover the 64-byte uncompressed public key (x || y) that produced a signature.

    Args:
        message_hash: 32-byte digest that was signed.
        recovery_id: y parity of the ephemeral point R (0 or 1).
        r: Signature r value.
        s: Signature s value.

    Raises:
        SignatureError: If any component is out of range or recovery fails.
    """
    if recovery_id not in (0, 1):
        raise SignatureError(f"Invalid recovery id: {recovery_id}")
    if not (0 < r < N and 0 < s < N):
        raise SignatureError("Signature values out of range")
    if len(message_hash) != 32:
        raise SignatureError(f"Message hash must be 32 bytes, got {len(message_hash)}")

    e = int.from_bytes(message_hash, "big") % N
    big_r = _lift_x(r, odd=bool(recovery_id))
    r_inv = pow(r, -1, N)

    s_r = _point_mul(s, big_r)
    e_g = _point_mul((-e) % N, _G)
    q = _point_mul(r_inv, _point_add(s_r, e_g))
    if q is None:
        raise SignatureError("Recovered point at infinity")

    return q[0].to_bytes(32, "big") + q[1].to_bytes(32, "big")


def public_key_to_address(public_key: bytes) -> Address:
    """Derive the address: the last 20 bytes of keccak256(x || y)."""
    if len(public_key) != 64:
        raise ValueError(f"Public key must be 64 bytes, got {len(public_key)}")
    return Address(keccak256(public_key)[-20:])


def recover_address(
    message_hash: bytes,
    recovery_id: int,
    r: int,
    s: int,
    *,
    require_low_s: bool = True,
) -> Address:
    """
    Recover the signer address of a signature.

    Raises:
        SignatureError: If the signature is invalid or has a high `s`
            while `require_low_s` is set.
    """
    if require_low_s and s > HALF_N:
        raise SignatureError("Signature s value is not canonical (EIP-2)")
    return public_key_to_address(recover_public_key(message_hash, recovery_id, r, s))


def private_key_from_int(secret: int) -> ec.EllipticCurvePrivateKey:
    """Build a secp256k1 private key from its scalar."""
    if not 0 < secret < N:
        raise ValueError("Private key out of range for secp256k1")
    return ec.derive_private_key(secret, ec.SECP256K1())


def address_of(private_key: ec.EllipticCurvePrivateKey) -> Address:
    """Return the address controlled by `private_key`."""
    uncompressed = private_key.public_key().public_bytes(
        Encoding.X962, PublicFormat.UncompressedPoint
    )
    return public_key_to_address(uncompressed[1:])


def sign_hash(private_key: ec.EllipticCurvePrivateKey, message_hash: bytes) -> tuple[int, int, int]:
    """
    Sign a 32-byte digest.

    Returns:
        (recovery_id, r, s) with `s` normalized to the lower half of the order.
    """
    der = private_key.sign(message_hash, ec.ECDSA(Prehashed(hashes.SHA256())))
    r, s = decode_dss_signature(der)
    if s > HALF_N:
        s = N - s

    # The signer's y parity is not reported, so try both candidates.
    expected = address_of(private_key)
    for recovery_id in (0, 1):
        try:
            if recover_address(message_hash, recovery_id, r, s) == expected:
                return recovery_id, r, s
        except SignatureError:
            continue
    raise SignatureError("Could not determine recovery id")
