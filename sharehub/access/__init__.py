"""
Доступ к контенту (внутренняя библиотека): условия просмотра, токены, пароль.
Decision (access) отделён от I/O; контракт через ViewerContext.
"""
from sharehub.access.access import decide_access, meets_view_condition
from sharehub.access.models import AccessDecision, ViewerContext
from sharehub.access.password import check_content_password, grant_is_valid, issue_password_grant

__all__ = [
    "AccessDecision",
    "ViewerContext",
    "decide_access",
    "meets_view_condition",
    "check_content_password",
    "issue_password_grant",
    "grant_is_valid",
]
