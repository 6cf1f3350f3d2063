import hashlib
import hmac
import logging
import time

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 30 * 60


def parse_signature_header(header: str) -> dict[str, str]:
    parts: dict[str, str] = {}
    for item in (header or "").split(","):
        key, sep, value = item.strip().partition("=")
        if sep and key:
            parts[key] = value
    return parts


def compute_signature(raw_body: bytes, timestamp: int | str, secret: str) -> str:
    message = f"{timestamp}.".encode("utf-8") + raw_body
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(
    raw_body: bytes,
    signature_header: str,
    secret: str,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> bool:
    """Check an ``elevenlabs-signature`` header (``t=<unix>,v0=<hex>``).

    An empty secret disables verification entirely, so unconfigured
    deployments accept every request.
    """
    if not secret:
        logger.warning("Webhook secret not configured - skipping signature verification")
        return True

    parts = parse_signature_header(signature_header)
    timestamp = parts.get("t")
    provided = parts.get("v0")
    if not timestamp or not provided:
        logger.warning("Webhook signature header missing t= or v0= component")
        return False
    try:
        issued_at = int(timestamp)
    except ValueError:
        logger.warning("Webhook signature timestamp is not an integer: %s", timestamp)
        return False

    current = time.time() if now is None else now
    if issued_at < current - tolerance_seconds:
        logger.warning("Webhook signature timestamp too old (%s)", timestamp)
        return False

    expected = compute_signature(raw_body, timestamp, secret)
    if not hmac.compare_digest(expected, provided):
        logger.warning("Webhook HMAC signature mismatch")
        return False
    return True


def build_signature_header(raw_body: bytes, secret: str, timestamp: int | None = None) -> str:
    issued_at = int(time.time()) if timestamp is None else timestamp
    return f"t={issued_at},v0={compute_signature(raw_body, issued_at, secret)}"
