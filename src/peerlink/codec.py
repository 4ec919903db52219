"""Encode and decode negotiation envelopes.

An envelope is canonical JSON (sorted keys, compact separators) wrapped in
standard base64 so it travels as a plain string through any handler.
Decoding reverses both steps and then checks the structure with small
composable predicates; nothing partially valid is ever returned.
"""

import base64
import binascii
import json
import logging
from typing import Any, Callable, Iterable

from peerlink.errors import ValidationError
from peerlink.messages import (
    NEGOTIATE_ANSWER,
    NEGOTIATE_OFFER,
    IceCandidate,
    NegotiateAnswer,
    NegotiateOffer,
    SessionDescription,
)

logger = logging.getLogger(__name__)

Check = Callable[[Any], bool]


# ============================================================================
# Shape checks
# ============================================================================


def is_string(value: Any) -> bool:
    return isinstance(value, str)


def is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_exact(constant: Any) -> Check:
    """Check that a value equals one literal (and has its type)."""

    def check(value: Any) -> bool:
        return type(value) is type(constant) and value == constant

    return check


def is_optional(check: Check) -> Check:
    """Accept None or whatever ``check`` accepts."""

    def optional(value: Any) -> bool:
        return value is None or check(value)

    return optional


def is_array(check: Check) -> Check:
    """Check a list whose every item passes ``check``."""

    def array(value: Any) -> bool:
        return isinstance(value, list) and all(check(item) for item in value)

    return array


def is_shape(shape: dict[str, Check]) -> Check:
    """Check an object with every named key present and passing its check.

    Keys not named in ``shape`` are allowed.
    """

    def matches(value: Any) -> bool:
        if not isinstance(value, dict):
            return False
        for key, check in shape.items():
            if key not in value:
                return False
            if not check(value[key]):
                return False
        return True

    return matches


def is_partial_shape(shape: dict[str, Check]) -> Check:
    """Like is_shape, but named keys may be absent."""

    def matches(value: Any) -> bool:
        if not isinstance(value, dict):
            return False
        return all(check(value[key]) for key, check in shape.items() if key in value)

    return matches


def is_all(*checks: Check) -> Check:
    """Check that passes only if every check passes."""

    def combined(value: Any) -> bool:
        return all(check(value) for check in checks)

    return combined


is_offer = is_shape({"type": is_exact("offer"), "sdp": is_string})

is_answer = is_shape({"type": is_exact("answer"), "sdp": is_string})

is_candidate = is_all(
    is_shape({"candidate": is_string}),
    is_partial_shape(
        {
            "sdpMid": is_optional(is_string),
            "sdpMLineIndex": is_optional(is_int),
            "usernameFragment": is_optional(is_string),
        }
    ),
)

is_candidate_list = is_array(is_candidate)

is_negotiate_offer = is_shape(
    {
        "type": is_exact(NEGOTIATE_OFFER),
        "offer": is_offer,
        "candidates": is_candidate_list,
    }
)

is_negotiate_answer = is_shape(
    {
        "type": is_exact(NEGOTIATE_ANSWER),
        "answer": is_answer,
        "candidates": is_candidate_list,
    }
)


# ============================================================================
# Encoding
# ============================================================================


def _encode(envelope: dict[str, Any]) -> str:
    text = json.dumps(envelope, sort_keys=True, separators=(",", ":"))
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _decode(encoded: str, check: Check, label: str) -> dict[str, Any]:
    try:
        raw = base64.b64decode(encoded, validate=True)
        decoded = json.loads(raw.decode("utf-8"))
    except (binascii.Error, ValueError, TypeError, RecursionError) as e:
        # JSONDecodeError and UnicodeDecodeError are ValueErrors; deep nesting is a RecursionError
        logger.warning(f"Failed decoding {label}: {e}")
        raise ValidationError(f"Failed decoding {label}: {e}") from e

    if not check(decoded):
        logger.warning(f"Failed decoding {label}: unexpected decoded result")
        raise ValidationError(f"Failed decoding {label}: unexpected decoded result")
    return decoded


def encode_offer(
    description: SessionDescription, candidates: Iterable[IceCandidate]
) -> str:
    """Encode a negotiateOffer envelope.

    Args:
        description: Local offer.
        candidates: Gathered local candidates, in discovery order.

    Returns:
        Base64 text ready to hand to the handler.
    """
    return _encode(NegotiateOffer(offer=description, candidates=tuple(candidates)).to_dict())


def decode_offer(encoded: str) -> NegotiateOffer:
    """Decode a negotiateOffer envelope.

    Raises:
        ValidationError: If the text is not base64 JSON or has the wrong shape.
    """
    return NegotiateOffer.from_dict(_decode(encoded, is_negotiate_offer, "offer"))


def encode_answer(
    description: SessionDescription, candidates: Iterable[IceCandidate]
) -> str:
    """Encode a negotiateAnswer envelope."""
    return _encode(NegotiateAnswer(answer=description, candidates=tuple(candidates)).to_dict())


def decode_answer(encoded: str) -> NegotiateAnswer:
    """Decode a negotiateAnswer envelope.

    Raises:
        ValidationError: If the text is not base64 JSON or has the wrong shape.
    """
    return NegotiateAnswer.from_dict(_decode(encoded, is_negotiate_answer, "answer"))
