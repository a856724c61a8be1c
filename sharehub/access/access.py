"""
Decision только: decide_access(ctx) -> AccessDecision.
Чистая функция, без I/O. Guardrail: владелец всегда видит контент.
Порядок проверок: условие просмотра -> токены -> пароль.
"""
from __future__ import annotations

import logging

from sharehub.access.models import AccessDecision, ViewerContext

logger = logging.getLogger(__name__)

BLOCKED_CONDITION = "condition"
BLOCKED_TOKENS = "tokens"
BLOCKED_PASSWORD = "password"


def meets_view_condition(
    view_condition: str,
    has_liked: bool,
    has_commented: bool,
    is_subscribed: bool,
) -> bool:
    """none -> всегда; like / comment / subscription -> соответствующий флаг зрителя."""
    if view_condition == "like":
        return has_liked
    if view_condition == "comment":
        return has_commented
    if view_condition == "subscription":
        return is_subscribed
    if view_condition != "none":
        logger.warning("unknown_view_condition", extra={"status": view_condition})
    return True


def decide_access(ctx: ViewerContext) -> AccessDecision:
    # Guardrail: владелец всегда full
    if ctx.viewer_id is not None and ctx.viewer_id == ctx.owner_id:
        return _decision(ctx, None)

    if not meets_view_condition(ctx.view_condition, ctx.has_liked, ctx.has_commented, ctx.is_subscribed):
        return _decision(ctx, BLOCKED_CONDITION)

    if ctx.token_cost > 0 and not ctx.is_unlocked:
        return _decision(ctx, BLOCKED_TOKENS)

    if ctx.has_password and not ctx.password_verified:
        return _decision(ctx, BLOCKED_PASSWORD)

    return _decision(ctx, None)


def _decision(ctx: ViewerContext, blocked_by: str | None) -> AccessDecision:
    return AccessDecision(
        can_view=blocked_by is None,
        blocked_by=blocked_by,
        view_condition=ctx.view_condition,
        token_cost=ctx.token_cost,
    )
