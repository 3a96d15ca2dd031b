import base64
import hashlib
import hmac
import logging
from urllib.parse import quote_plus, urlencode

from . import conf

logger = logging.getLogger(__name__)

ENCODING_BASE64 = "base64"
ENCODING_HEX = "hex"


def _encode_digest(digest, encoding):
    if encoding == ENCODING_BASE64:
        return base64.b64encode(digest).decode("ascii")
    if encoding == ENCODING_HEX:
        return digest.hex()
    raise ValueError(f"Unsupported signature encoding: {encoding}")


def verify_signature(
    secret: str, raw_bytes: bytes, received_signature: str, encoding: str
) -> bool:
    """Verify an HMAC-SHA256 signature over ``raw_bytes``.

    Shopify signs webhook bodies with a Base64-encoded digest and OAuth
    callback query strings with a hex-encoded digest, both keyed with the
    app's API secret.  The computed value is compared against the received
    one with :func:`hmac.compare_digest` after a length check, so the time
    taken does not depend on how many leading characters match.

    Args:
        secret: The shared signing secret.
        raw_bytes: The exact bytes that were signed.
        received_signature: The signature sent by Shopify.
        encoding: ``"base64"`` or ``"hex"``.

    Returns:
        True if the signature is valid, False otherwise.  Never raises.
    """
    if not secret or not received_signature:
        return False
    try:
        computed = _encode_digest(
            hmac.new(secret.encode("utf-8"), raw_bytes, hashlib.sha256).digest(),
            encoding,
        ).encode("ascii")
        received = received_signature.encode("ascii")
    except (AttributeError, ValueError, UnicodeError, TypeError):
        return False
    if len(computed) != len(received):
        return False
    return hmac.compare_digest(computed, received)


def verify_shopify_hmac(request_body: bytes, hmac_header: str) -> bool:
    """Verify the X-Shopify-Hmac-Sha256 header against the raw request body.

    ``request_body`` must be the bytes exactly as received; re-serialising
    parsed JSON changes whitespace and key order and breaks the digest.
    """
    return verify_signature(
        conf.get("SHOPIFY_API_SECRET"), request_body, hmac_header, ENCODING_BASE64
    )


def build_callback_message(query_params) -> str:
    """Build the canonical message Shopify signs for OAuth redirects.

    Every query parameter except ``hmac`` is included, sorted by key and
    form-encoded (``key=value&key=value``).  ``query_params`` may be a
    Django ``QueryDict`` (multi-valued keys are preserved) or a plain dict.
    """
    if hasattr(query_params, "lists"):
        pairs = [
            (key, value)
            for key, values in query_params.lists()
            for value in values
        ]
    else:
        pairs = list(query_params.items())
    pairs = [(key, value) for key, value in pairs if key != "hmac"]
    pairs.sort(key=lambda pair: pair[0])
    return urlencode(pairs, quote_via=_form_quote)


def _form_quote(value, safe="", encoding=None, errors=None):
    # application/x-www-form-urlencoded leaves "*" bare and escapes "~".
    return quote_plus(value, safe="*", encoding=encoding, errors=errors).replace(
        "~", "%7E"
    )


def verify_callback_hmac(query_params) -> bool:
    """Verify the hex ``hmac`` query parameter of an OAuth callback."""
    received = query_params.get("hmac")
    message = build_callback_message(query_params).encode("utf-8")
    return verify_signature(
        conf.get("SHOPIFY_API_SECRET"), message, received, ENCODING_HEX
    )
