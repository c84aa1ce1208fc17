from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.exceptions import ClientError
from cryptography.fernet import Fernet, InvalidToken


# Environment variable names for convenience configuration
ENV_BUCKET = "FHEVM_S3_BUCKET"
ENV_PREFIX = "FHEVM_S3_PREFIX"
ENV_FERNET_KEY = "FHEVM_FERNET_KEY"


def _to_fernet(key: str | bytes) -> Fernet:
    """Construct a Fernet instance from a user-provided key.

    The key must be a URL-safe base64-encoded 32-byte key (str or bytes),
    as returned by `cryptography.fernet.Fernet.generate_key()`.
    """
    if isinstance(key, str):
        key_bytes = key.encode("utf-8")
    else:
        key_bytes = key
    return Fernet(key_bytes)


@dataclass
class S3Location:
    bucket: str
    prefix: str

    def object_key(self, key: str) -> str:
        return f"{self.prefix}{key}" if self.prefix else key


class S3KeyValueStore:
    """
    S3-backed string store, one object per key, encrypted at rest with Fernet.

    Authorization artifacts hold decryption private keys, so values never
    reach S3 in plaintext.

    Usage
    - `get_item(key)` returns the decrypted string, or None when the object
      does not exist.
    - `set_item(key, value)` overwrites the object (last writer wins).
    - `remove_item(key)` deletes the object; deleting a missing key is a no-op.

    Environment variables (optional)
    - `FHEVM_S3_BUCKET`:  bucket holding the objects
    - `FHEVM_S3_PREFIX`:  key prefix, e.g. "sessions/alice/"
    - `FHEVM_FERNET_KEY`: urlsafe base64-encoded key for Fernet
    """

    def __init__(
        self,
        *,
        s3: Optional[object] = None,
        bucket: str,
        prefix: str = "",
        fernet_key: str | bytes,
        region_name: Optional[str] = None,
    ) -> None:
        self._s3 = s3 or boto3.client("s3", region_name=region_name)
        self._loc = S3Location(bucket=bucket, prefix=prefix)
        self._fernet = _to_fernet(fernet_key)

    # -------- Construction helpers --------
    @classmethod
    def from_env(cls) -> "S3KeyValueStore":
        bucket = os.environ.get(ENV_BUCKET)
        fkey = os.environ.get(ENV_FERNET_KEY)
        if not bucket or not fkey:
            missing = [name for name, val in [(ENV_BUCKET, bucket), (ENV_FERNET_KEY, fkey)] if not val]
            raise RuntimeError(
                f"Missing required environment variables for S3 storage: {', '.join(missing)}"
            )
        return cls(bucket=bucket, prefix=os.environ.get(ENV_PREFIX, ""), fernet_key=fkey)

    # -------- Core operations --------
    def get_item(self, key: str) -> Optional[str]:
        """Read and decrypt the value stored under `key`.

        Raises:
        - ValueError if decryption fails.
        - botocore.exceptions.ClientError for S3 issues other than a missing key.
        """
        try:
            resp = self._s3.get_object(Bucket=self._loc.bucket, Key=self._loc.object_key(key))
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404"):
                return None
            raise

        body = resp["Body"].read()
        try:
            decrypted = self._fernet.decrypt(body)
        except InvalidToken as ex:
            raise ValueError("Failed to decrypt stored value: invalid Fernet token") from ex
        return decrypted.decode("utf-8")

    def set_item(self, key: str, value: str) -> None:
        ciphertext = self._fernet.encrypt(value.encode("utf-8"))
        self._s3.put_object(
            Bucket=self._loc.bucket,
            Key=self._loc.object_key(key),
            Body=ciphertext,
            ContentType="application/octet-stream",
        )

    def remove_item(self, key: str) -> None:
        self._s3.delete_object(Bucket=self._loc.bucket, Key=self._loc.object_key(key))


__all__ = ["S3KeyValueStore"]
