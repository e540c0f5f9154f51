# -*- coding: utf-8 -*-
import json
import os
from dataclasses import dataclass

from nacl.signing import SigningKey

from keyutils.errors import ParseError
from keyutils.utils.codec import encode

SEED_LENGTH = 32
SECRET_KEY_LENGTH = 64


@dataclass(frozen=True)
class Keypair:
    public_key: bytes
    # 32-byte seed followed by the 32-byte public key (Solana wallet layout)
    secret_key: bytes


def _from_signing_key(signing_key: SigningKey) -> Keypair:
    public_key = signing_key.verify_key.encode()
    return Keypair(public_key=public_key, secret_key=bytes(signing_key) + public_key)


def generate_keypair() -> Keypair:
    return _from_signing_key(SigningKey.generate())


def keypair_from_secret(raw: bytes) -> Keypair:
    """Rebuild a keypair from a 32-byte seed or a 64-byte secret key."""
    raw = bytes(raw)
    if len(raw) not in (SEED_LENGTH, SECRET_KEY_LENGTH):
        raise ParseError(
            "Unexpected secret key length: {} bytes (expected {} or {})".format(
                len(raw), SEED_LENGTH, SECRET_KEY_LENGTH
            )
        )
    keypair = _from_signing_key(SigningKey(raw[:SEED_LENGTH]))
    if len(raw) == SECRET_KEY_LENGTH and raw[SEED_LENGTH:] != keypair.public_key:
        raise ParseError("Public half of the secret key does not match its seed")
    return keypair


def encode_public_key(keypair: Keypair) -> str:
    return encode(keypair.public_key)


def encode_secret_key(keypair: Keypair) -> str:
    return encode(keypair.secret_key)


def save_keypair(keypair: Keypair, output_dir: str) -> str:
    """Write the keypair as a solana-keygen JSON file named after its public key."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "{}.json".format(encode_public_key(keypair)))
    with open(path, "w", encoding="utf-8") as f:
        json.dump(list(keypair.secret_key), f)
    return path
