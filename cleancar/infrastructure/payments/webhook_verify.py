from __future__ import annotations

import hmac
import logging


logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def sign_payload(body: bytes, secret: str) -> str:
    """Signature header value for `body`, as the mock provider sends it."""
    return SIGNATURE_PREFIX + hmac.new(secret.encode("utf-8"), body, "sha256").hexdigest()


def verify_post_signature(body: bytes, signature_header: str | None, secret: str | None, env: str) -> bool:
    if not signature_header:
        if env.lower() in {"dev", "local"}:
            logger.warning("Missing payment webhook signature; accepting in dev mode")
            return True
        return False

    if not secret:
        logger.error("Missing payment webhook secret for signature verification")
        return False

    if not signature_header.lower().startswith(SIGNATURE_PREFIX):
        logger.warning("Unsupported payment webhook signature scheme")
        return False

    return hmac.compare_digest(sign_payload(body, secret), SIGNATURE_PREFIX + signature_header[len(SIGNATURE_PREFIX):])
