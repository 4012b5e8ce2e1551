# utils.py

import hmac
import hashlib
import logging
from typing import Optional

logger = logging.getLogger(__name__)

NANOSECOND = 1
MICROSECOND = 1000 * NANOSECOND
MILLISECOND = 1000 * MICROSECOND
SECOND = 1000 * MILLISECOND
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE

# Digest algorithms GitHub may announce in the signature header prefix.
SIGNATURE_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}


def verify_signature(request_body: bytes, signature: Optional[str], secret: str) -> bool:
    """
    Check a GitHub style "<algorithm>=<hex digest>" header against the HMAC of
    the raw request body.

    An empty secret disables the check entirely; this is meant for local
    development only.
    """
    if not secret:
        logger.debug("Webhook secret is disabled. Skipping signature verification.")
        return True

    if not signature:
        logger.warning("No signature provided.")
        return False

    try:
        sha_name, digest = signature.strip().split('=', 1)
    except ValueError:
        logger.warning("Invalid signature format.")
        return False

    digestmod = SIGNATURE_ALGORITHMS.get(sha_name.lower())
    if digestmod is None:
        logger.warning(f"Unsupported signature type: {sha_name}")
        return False

    mac = hmac.new(secret.encode(), msg=request_body, digestmod=digestmod)
    is_valid = hmac.compare_digest(mac.hexdigest().encode(), digest.lower().encode())
    if is_valid:
        logger.debug("Webhook signature verified successfully.")
    else:
        logger.warning("Webhook signature verification failed.")
    return is_valid


def sanitize_output(data: bytes) -> str:
    """
    Returns valid UTF-8 text from potentially incorrectly encoded data coming
    from an untrusted process. Ill-formed sequences are dropped, everything
    else is kept in order.
    """
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("utf-8", errors="ignore")


def round_duration(ns: int) -> int:
    """
    Rounds a duration in nanoseconds at a precision that makes sense to show
    to a user: 1ns below a millisecond, 1µs below a second, 1ms above.
    """
    if ns < MILLISECOND:
        return ns
    if ns < SECOND:
        return (ns + MICROSECOND // 2) // MICROSECOND * MICROSECOND
    return (ns + MILLISECOND // 2) // MILLISECOND * MILLISECOND


def _fraction(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    width = len(str(unit)) - 1
    return f"{whole}.{frac:0{width}d}".rstrip("0")


def format_duration(ns: int) -> str:
    """
    Formats a duration in nanoseconds as a number plus unit, e.g. "750ns",
    "1.5ms", "42.1s" or "2h3m4.5s".
    """
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)

    if ns < MICROSECOND:
        return f"{sign}{ns}ns"
    if ns < MILLISECOND:
        return f"{sign}{_fraction(ns, MICROSECOND)}µs"
    if ns < SECOND:
        return f"{sign}{_fraction(ns, MILLISECOND)}ms"

    hours, rest = divmod(ns, HOUR)
    minutes, rest = divmod(rest, MINUTE)
    seconds = f"{_fraction(rest, SECOND)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return f"{sign}{seconds}"
