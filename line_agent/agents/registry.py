# agents/registry.py
"""
Action Registry & Validator

Holds the canonical name -> (descriptor, handler) table. Adding an
action is a single ``register`` call; the registry is built once at
startup and only read afterwards.

``validate`` is the sole gate between extracted arguments and domain
handlers: it reports every violation at once so the clarifying question
can name all missing or malformed slots.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from loguru import logger

from ..exceptions import ActionValidationError, DuplicateActionError
from ..schemas.agent_schemas import (
    ActionDescriptor,
    ActionInvocation,
    ActionResult,
    ArgumentSpec,
    ArgumentType,
    UserAccount,
    ValidationIssue,
)


Handler = Callable[[Dict[str, Any], Optional[UserAccount]], Awaitable[ActionResult]]
Ranker = Callable[[List[Any], Dict[str, Any], datetime], List[Any]]

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


@dataclass(frozen=True)
class RegisteredAction:
    """Descriptor plus everything needed to execute and present it"""
    descriptor: ActionDescriptor
    handler: Handler
    ranker: Optional[Ranker] = None
    requires_account: bool = False
    phrase_with_model: bool = False
    confirm_before_run: bool = False

    @property
    def name(self) -> str:
        return self.descriptor.name


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce(spec: ArgumentSpec, value: Any) -> Tuple[Any, Optional[ValidationIssue]]:
    """Return the coerced value, or an issue describing why it is unusable"""

    def issue(code: str, problem: str) -> Tuple[Any, ValidationIssue]:
        return value, ValidationIssue(argument=spec.name, code=code, problem=problem)

    if spec.type == ArgumentType.BOOLEAN:
        if isinstance(value, bool):
            coerced = value
        elif isinstance(value, str) and value.strip().lower() in ("true", "false", "yes", "no"):
            coerced = value.strip().lower() in ("true", "yes")
        else:
            return issue("type", f"expected boolean, got {value!r}")

    elif spec.type == ArgumentType.INTEGER:
        if isinstance(value, bool):
            return issue("type", f"expected integer, got {value!r}")
        if isinstance(value, int):
            coerced = value
        elif isinstance(value, float) and value.is_integer():
            coerced = int(value)
        elif isinstance(value, str):
            try:
                coerced = int(value.strip())
            except ValueError:
                return issue("type", f"expected integer, got {value!r}")
        else:
            return issue("type", f"expected integer, got {value!r}")

    elif spec.type == ArgumentType.NUMBER:
        if isinstance(value, bool):
            return issue("type", f"expected number, got {value!r}")
        if isinstance(value, (int, float)):
            coerced = value
        else:
            try:
                coerced = float(str(value).strip())
            except ValueError:
                return issue("type", f"expected number, got {value!r}")

    elif spec.type == ArgumentType.DATE:
        text = str(value).strip() if isinstance(value, str) else None
        if text is None or not _DATE_RE.match(text):
            return issue("format", f"expected date YYYY-MM-DD, got {value!r}")
        try:
            date.fromisoformat(text)
        except ValueError:
            return issue("format", f"not a calendar date: {text}")
        coerced = text

    elif spec.type == ArgumentType.TIME:
        text = str(value).strip() if isinstance(value, str) else None
        match = _TIME_RE.match(text) if text else None
        if not match:
            return issue("format", f"expected time HH:MM, got {value!r}")
        coerced = f"{int(match.group(1)):02d}:{match.group(2)}"

    else:
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            return issue("type", f"expected text, got {value!r}")
        coerced = str(value).strip()

    if spec.enum and str(coerced) not in spec.enum:
        return issue("enum", f"{coerced!r} is not one of {', '.join(spec.enum)}")

    return coerced, None


class ActionRegistry:
    """
    Lookup table of named actions.
    Duplicate registration is a programming error and raises immediately.
    """

    def __init__(self):
        self._actions: Dict[str, RegisteredAction] = {}

    def register(
        self,
        descriptor: ActionDescriptor,
        handler: Handler,
        *,
        ranker: Optional[Ranker] = None,
        requires_account: bool = False,
        phrase_with_model: bool = False,
        confirm_before_run: bool = False,
    ) -> RegisteredAction:
        """Add an action; fails if the name is already taken"""
        if descriptor.name in self._actions:
            raise DuplicateActionError(f"Action already registered: {descriptor.name}")

        entry = RegisteredAction(
            descriptor=descriptor,
            handler=handler,
            ranker=ranker,
            requires_account=requires_account,
            phrase_with_model=phrase_with_model,
            confirm_before_run=confirm_before_run,
        )
        self._actions[descriptor.name] = entry
        logger.debug(f"Registered action: {descriptor.name}")
        return entry

    def get(self, name: str) -> Optional[RegisteredAction]:
        return self._actions.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def __len__(self) -> int:
        return len(self._actions)

    @property
    def names(self) -> List[str]:
        return list(self._actions)

    @property
    def descriptors(self) -> List[ActionDescriptor]:
        return [entry.descriptor for entry in self._actions.values()]

    def check(self, invocation: ActionInvocation) -> Tuple[ActionInvocation, List[ValidationIssue]]:
        """
        Validate without raising.

        Returns:
            (invocation with coerced values, every violation found)
        """
        entry = self._actions.get(invocation.name)
        if entry is None:
            return invocation, [ValidationIssue(
                argument="*",
                code="unknown_action",
                problem=f"no action named {invocation.name!r}",
            )]

        issues: List[ValidationIssue] = []
        clean: Dict[str, Any] = {}

        for spec in entry.descriptor.arguments:
            value = invocation.arguments.get(spec.name)
            if _is_blank(value):
                if spec.required:
                    issues.append(ValidationIssue(argument=spec.name, code="missing", problem="required"))
                continue
            coerced, problem = _coerce(spec, value)
            if problem:
                issues.append(problem)
            else:
                clean[spec.name] = coerced

        extra = set(invocation.arguments) - {spec.name for spec in entry.descriptor.arguments}
        if extra:
            logger.debug(f"Dropping undeclared arguments for {invocation.name}: {sorted(extra)}")

        return ActionInvocation(name=invocation.name, arguments=clean), issues

    def validate(self, invocation: ActionInvocation) -> ActionInvocation:
        """Validated (and coerced) invocation, or ActionValidationError listing every violation"""
        validated, issues = self.check(invocation)
        if issues:
            raise ActionValidationError(invocation.name, issues)
        return validated

    def tool_schemas(self) -> List[Dict[str, Any]]:
        """Function-tool definitions for the generation model"""
        return [entry.descriptor.to_tool_schema() for entry in self._actions.values()]

    def describe_for_prompt(self) -> str:
        """Plain-text catalogue of actions for the system instruction"""
        lines = []
        for index, descriptor in enumerate(self.descriptors, start=1):
            args = []
            for spec in descriptor.arguments:
                flag = "จำเป็น" if spec.required else "ไม่บังคับ"
                allowed = f" [{'|'.join(spec.enum)}]" if spec.enum else ""
                args.append(f"{spec.name}:{spec.type.value}{allowed} ({flag})")
            arg_text = ", ".join(args) if args else "-"
            lines.append(f"{index}. {descriptor.name}: {descriptor.description}\n   arguments: {arg_text}")
        return "\n".join(lines)
