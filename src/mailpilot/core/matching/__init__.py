from .engine import (
    ATTACHMENT_MISMATCH,
    BODY_MISSING_RECIPIENT,
    DEFAULT_CORPORATE_SUFFIXES,
    NO_RECIPIENT,
    SafetyWarning,
    match_recipient_by_file_name,
    match_template_by_file_name,
    normalize,
    split_file_name,
    strip_corporate_suffixes,
    validate_send_safety,
)

__all__ = [
    "ATTACHMENT_MISMATCH",
    "BODY_MISSING_RECIPIENT",
    "DEFAULT_CORPORATE_SUFFIXES",
    "NO_RECIPIENT",
    "SafetyWarning",
    "match_recipient_by_file_name",
    "match_template_by_file_name",
    "normalize",
    "split_file_name",
    "strip_corporate_suffixes",
    "validate_send_safety",
]
