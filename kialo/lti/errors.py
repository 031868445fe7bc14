"""Error taxonomy of the LTI flows.

``LtiError`` marks a protocol validation failure, ``AuthorizationError`` a
host permission problem detected before any message is built and
``ConfigurationError`` a broken installation. The HTTP layer turns each of
them into a generic page and keeps the detailed reason in the logs.
"""

from enum import StrEnum


class LtiErrorKind(StrEnum):
    """Distinct reasons an LTI message is rejected."""

    INVALID_REQUEST = "invalid_request"
    SIGNATURE_INVALID = "signature_invalid"
    REGISTRATION_NOT_FOUND = "registration_not_found"
    CLAIM_MISMATCH = "claim_mismatch"
    NONCE_MISSING = "nonce_missing"
    NONCE_REUSED = "nonce_reused"
    MESSAGE_TYPE_INVALID = "message_type_invalid"
    CONTENT_ITEMS_MISSING = "content_items_missing"
    CONTENT_ITEM_COUNT_INVALID = "content_item_count_invalid"
    CONTENT_ITEM_TYPE_INVALID = "content_item_type_invalid"
    CONTENT_ITEM_URL_MISSING = "content_item_url_missing"
    DATA_TOKEN_INVALID = "data_token_invalid"
    AUTHENTICATION_FAILED = "authentication_failed"


class LtiError(Exception):
    """An LTI message failed validation."""

    def __init__(self, kind: LtiErrorKind, reason: str) -> None:
        super().__init__(reason)
        self.kind = kind
        self.reason = reason


class AuthorizationError(Exception):
    """The current user may not start the requested flow."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ConfigurationError(Exception):
    """The plugin configuration or key material is unusable."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
