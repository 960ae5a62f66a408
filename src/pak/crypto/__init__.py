from pak.crypto.keypair import SECRET_KEY_LEN, Keypair, verify_signature
from pak.crypto.z32 import decode_z32, encode_z32, validate_identity

__all__ = [
    "Keypair",
    "SECRET_KEY_LEN",
    "encode_z32",
    "decode_z32",
    "validate_identity",
    "verify_signature",
]
