"""
=============================================================================
GEMINI STATUS CODES
=============================================================================

This module defines the closed set of Gemini status codes and their
canonical names. It is shared by both sides of the protocol:

- the server uses it to write status lines (``51 NOT_FOUND``)
- the client uses it to interpret the two digits it reads back

=============================================================================
STATUS CODE CATEGORIES
=============================================================================

Gemini status codes are 2-digit numbers grouped by the first digit:

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  1x    │ INPUT: the server wants a line of user input               │
    │        │   10 INPUT, 11 SENSITIVE_INPUT                            │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  2x    │ SUCCESS: meta is a MIME type, a body follows              │
    │        │   20 SUCCESS                                              │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  3x    │ REDIRECT: meta is the new URL                             │
    │        │   30 REDIRECT_TEMPORARY, 31 REDIRECT_PERMANENT            │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4x    │ TEMPORARY FAILURE: try again later                        │
    │        │   40..44                                                  │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5x    │ PERMANENT FAILURE: don't try again                        │
    │        │   50..53, 59 BAD_REQUEST                                  │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  6x    │ CLIENT CERTIFICATE: a certificate is required/rejected    │
    │        │   60..62                                                  │
    └────────┴───────────────────────────────────────────────────────────┘

A client that doesn't know a specific code can still act on its first
digit. That's why ``UnknownStatus`` keeps a category when it can.

=============================================================================
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

from ..errors import UnknownStatusError


class StatusCategory(IntEnum):
    """The tens digit of a status code."""
    INPUT = 1
    SUCCESS = 2
    REDIRECT = 3
    TEMPORARY_FAILURE = 4
    PERMANENT_FAILURE = 5
    CLIENT_CERTIFICATE = 6


class GeminiStatus(IntEnum):
    """
    Gemini status codes.

    Using IntEnum means the members compare equal to plain ints:

        GeminiStatus.NOT_FOUND == 51        # True
        f"{int(GeminiStatus.SUCCESS)}"      # "20"

    The member name IS the canonical name written on the wire by
    ``GeminiResponse.send_status()``.
    """

    # 1x INPUT
    INPUT = 10
    SENSITIVE_INPUT = 11

    # 2x SUCCESS
    SUCCESS = 20

    # 3x REDIRECT
    REDIRECT_TEMPORARY = 30
    REDIRECT_PERMANENT = 31

    # 4x TEMPORARY FAILURE
    TEMPORARY_FAILURE = 40
    SERVER_UNAVAILABLE = 41
    CGI_ERROR = 42
    PROXY_ERROR = 43
    SLOW_DOWN = 44

    # 5x PERMANENT FAILURE
    PERMANENT_FAILURE = 50
    NOT_FOUND = 51
    GONE = 52
    PROXY_REQUEST_REFUSED = 53
    BAD_REQUEST = 59

    # 6x CLIENT CERTIFICATE
    CLIENT_CERTIFICATE_REQUIRED = 60
    CERTIFICATE_NOT_AUTHORIZED = 61
    CERTIFICATE_NOT_VALID = 62

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def canonical_name(self) -> str:
        """
        Get the canonical name for this status code.

        This is the text that follows the code in a bare status line:

            51 NOT_FOUND
            ── ─────────
             │     │
             │     └── Canonical name (from this property)
             └──────── Status code
        """
        return self.name

    @property
    def category(self) -> StatusCategory:
        """The category this code belongs to (its tens digit)."""
        return StatusCategory(self // 10)

    @property
    def is_input(self) -> bool:
        return self.category == StatusCategory.INPUT

    @property
    def is_success(self) -> bool:
        return self.category == StatusCategory.SUCCESS

    @property
    def is_redirect(self) -> bool:
        return self.category == StatusCategory.REDIRECT

    @property
    def is_temporary_failure(self) -> bool:
        return self.category == StatusCategory.TEMPORARY_FAILURE

    @property
    def is_permanent_failure(self) -> bool:
        return self.category == StatusCategory.PERMANENT_FAILURE

    @property
    def is_certificate_required(self) -> bool:
        return self.category == StatusCategory.CLIENT_CERTIFICATE

    @property
    def is_error(self) -> bool:
        """
        Check if this is a failure status (4x, 5x or 6x).

        Useful for logging and for CLI exit codes.
        """
        return self >= 40


@dataclass(frozen=True)
class UnknownStatus:
    """
    A status code read off the wire that is not in the registry.

    Servers are allowed to send codes we don't know about (e.g. a future
    ``21``). Rather than failing, the client hands back this variant so the
    caller can still branch on ``category``.
    """
    code: int

    @property
    def category(self) -> Optional[StatusCategory]:
        """Tens-digit category, or None if the digit is outside 1..6."""
        try:
            return StatusCategory(self.code // 10)
        except ValueError:
            return None

    @property
    def canonical_name(self) -> None:
        return None

    @property
    def is_success(self) -> bool:
        return self.category == StatusCategory.SUCCESS

    @property
    def is_redirect(self) -> bool:
        return self.category == StatusCategory.REDIRECT

    @property
    def is_error(self) -> bool:
        return self.category is None or self.category >= StatusCategory.TEMPORARY_FAILURE

    def __int__(self) -> int:
        return self.code


Status = Union[GeminiStatus, UnknownStatus]


# =============================================================================
# REGISTRY LOOKUPS
# =============================================================================
#
# The enum is the registry. These helpers give the two directions:
#
#   code  ──status_name()──────►  "NOT_FOUND"
#   name  ──status_from_name()─►  GeminiStatus.NOT_FOUND
#   code  ──lookup_status()────►  GeminiStatus | UnknownStatus
#
# =============================================================================

_CODES = {status.value: status for status in GeminiStatus}


def lookup_status(code: int) -> Status:
    """
    Resolve a numeric code without raising.

    Args:
        code: Numeric status code (e.g. parsed from a response header).

    Returns:
        The matching GeminiStatus, or UnknownStatus(code).

    Example:
        >>> lookup_status(51)
        <GeminiStatus.NOT_FOUND: 51>
        >>> lookup_status(21)
        UnknownStatus(code=21)
    """
    return _CODES.get(int(code), UnknownStatus(int(code)))


def status_name(code: int) -> str:
    """
    Get the canonical name of a registered status code.

    Fails closed: a code outside the registry raises instead of returning
    a made-up name.

    Raises:
        UnknownStatusError: If ``code`` is not a registered status.
    """
    try:
        return _CODES[int(code)].canonical_name
    except (KeyError, TypeError, ValueError):
        raise UnknownStatusError(code) from None


def status_from_name(name: str) -> GeminiStatus:
    """
    Reverse lookup from a canonical name.

    Accepts any case, and spaces in place of underscores, so
    "not found", "NOT_FOUND" and "Not_Found" all work.

    Raises:
        UnknownStatusError: If the name is not registered.
    """
    key = name.strip().upper().replace(" ", "_")
    try:
        return GeminiStatus[key]
    except KeyError:
        raise UnknownStatusError(name) from None
