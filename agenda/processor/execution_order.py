"""
agenda/processor/execution_order.py
Turns a routed intent into the order modules run in.

  "" / "none" / "both"   every registered module, registration order
  registered name        that module first, then the rest
  anything else          [intent] with hard_stop=True: recorded as
                         unknown_intent and dropped, never "run everything"
"""

from typing import List, Tuple

from agenda.intents.registry import Registry
from agenda.intents.router import INTENT_MULTI, INTENT_NONE, RoutedIntent


def resolve_execution_order(
    registry: Registry,
    routed:   RoutedIntent,
) -> Tuple[List[str], bool]:
    """Returns (order, hard_stop)."""
    names = registry.list() if registry is not None else []
    if not names:
        return [], False

    intent = (routed.intent if routed is not None else '').strip()
    if intent in ('', INTENT_NONE, INTENT_MULTI):
        return names, False

    if intent not in names:
        return [intent], True

    return [intent] + [n for n in names if n != intent], False
