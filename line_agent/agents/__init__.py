# agents/__init__.py
"""
Agents Package

Contains the intent-routing core:
- ActionRegistry: name -> descriptor + handler, sole validation gate
- SchoolActions: domain handlers for rooms, repairs, gallery, summary, FAQ
- Dispatcher: one inbound message -> one outbound reply
- ReplyRenderer: ActionResult -> LINE text or flex card
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .registry import ActionRegistry, RegisteredAction
    from .actions import SchoolActions, build_default_registry
    from .dispatcher import Dispatcher
    from .reply_renderer import ReplyRenderer

__all__ = [
    "ActionRegistry",
    "RegisteredAction",
    "SchoolActions",
    "build_default_registry",
    "Dispatcher",
    "ReplyRenderer",
]
