from .doctor import run_doctor_checks
from .mailer import (
    MailService,
    apply_template_variables,
    build_client,
    find_recipients,
    resolve_linked_template,
    select_template,
)

__all__ = [
    "MailService",
    "apply_template_variables",
    "build_client",
    "find_recipients",
    "resolve_linked_template",
    "run_doctor_checks",
    "select_template",
]
