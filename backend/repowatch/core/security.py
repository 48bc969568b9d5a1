"""シークレット設定の暗号化・マスキングモジュール。

cryptographyによるAES-256-GCM暗号化で、APIキーやGitHubトークンなど
settingsテーブルに保存する機密値を保護する。
"""

import base64
import hmac
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from repowatch.config import settings

# 設定一覧APIで機密値の代わりに返すプレースホルダ
MASKED_VALUE = "••••••••"


# ---------------------------------------------------------------------------
# 暗号化 (AES-256-GCM)
# ---------------------------------------------------------------------------

def _get_aes_key() -> bytes:
    """settings.ENCRYPTION_KEY から32バイトのAES鍵を取得する。

    ENCRYPTION_KEY は64文字のhex文字列（32バイト相当）を想定。

    Returns:
        32バイトの鍵。
    """
    return bytes.fromhex(settings.ENCRYPTION_KEY)


def encrypt_secret(plaintext: str) -> str:
    """平文をAES-256-GCMで暗号化し、base64エンコードして返す。

    出力形式: base64(nonce + ciphertext + tag)

    Args:
        plaintext: 暗号化する平文文字列。

    Returns:
        base64エンコードされた暗号文。
    """
    aesgcm = AESGCM(_get_aes_key())
    nonce = os.urandom(12)
    ciphertext: bytes = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.urlsafe_b64encode(nonce + ciphertext).decode("ascii")


def decrypt_secret(encrypted: str) -> str:
    """encrypt_secret() で生成された暗号文を復号する。

    Args:
        encrypted: base64エンコードされた暗号文。

    Returns:
        復号された平文文字列。

    Raises:
        cryptography.exceptions.InvalidTag: 鍵不一致や改ざん時。
        ValueError: base64として不正な場合。
    """
    aesgcm = AESGCM(_get_aes_key())
    raw: bytes = base64.urlsafe_b64decode(encrypted)
    nonce = raw[:12]
    ciphertext = raw[12:]
    return aesgcm.decrypt(nonce, ciphertext, None).decode("utf-8")


# ---------------------------------------------------------------------------
# マスキング・比較
# ---------------------------------------------------------------------------

def mask_secret(value: str | None) -> str:
    """ログ出力用に機密値の末尾4文字のみを残してマスクする。"""
    if not value:
        return ""
    if len(value) <= 8:
        return MASKED_VALUE
    return f"{MASKED_VALUE}{value[-4:]}"


def is_masked(value: str | None) -> bool:
    """値がUIから返ってきたマスク済みプレースホルダかどうか。"""
    return value == MASKED_VALUE


def secrets_match(provided: str | None, expected: str | None) -> bool:
    """タイミング攻撃を避けてシークレットを比較する。"""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
