"""Tests for the action registry and validator"""

import pytest

from line_agent.agents.actions import DESCRIPTORS
from line_agent.agents.registry import ActionRegistry
from line_agent.exceptions import ActionValidationError, DuplicateActionError
from line_agent.schemas.agent_schemas import (
    ActionDescriptor,
    ActionInvocation,
    ActionResult,
    ArgumentSpec,
    ArgumentType,
)


async def _noop(args, account):
    return ActionResult(action="noop", success=True, payload=args)


SAMPLE_VALUES = {
    ArgumentType.STRING: "ทดสอบ",
    ArgumentType.INTEGER: 3,
    ArgumentType.NUMBER: 1.5,
    ArgumentType.BOOLEAN: True,
    ArgumentType.DATE: "2025-12-21",
    ArgumentType.TIME: "14:00",
}


def _valid_arguments(descriptor: ActionDescriptor) -> dict:
    args = {}
    for spec in descriptor.arguments:
        if not spec.required:
            continue
        args[spec.name] = spec.enum[0] if spec.enum else SAMPLE_VALUES[spec.type]
    return args


class TestRegistration:
    def test_duplicate_name_is_rejected(self):
        registry = ActionRegistry()
        descriptor = ActionDescriptor(name="ping", description="ping")
        registry.register(descriptor, _noop)

        with pytest.raises(DuplicateActionError):
            registry.register(ActionDescriptor(name="ping", description="another"), _noop)

        assert len(registry) == 1

    def test_registered_action_is_retrievable(self):
        registry = ActionRegistry()
        entry = registry.register(ActionDescriptor(name="ping", description="ping"), _noop, requires_account=True)

        assert "ping" in registry
        assert registry.get("ping") is entry
        assert entry.requires_account is True
        assert registry.get("pong") is None

    def test_tool_schemas_list_required_arguments(self, registry):
        schemas = {s["function"]["name"]: s for s in registry.tool_schemas()}

        book = schemas["book_room"]["function"]["parameters"]
        assert book["required"] == ["room_id", "date", "start_time"]
        assert "sh_leelawadee" in book["properties"]["room_id"]["enum"]

    def test_prompt_description_names_every_action(self, registry):
        text = registry.describe_for_prompt()
        for name in registry.names:
            assert name in text


class TestValidation:
    @pytest.mark.parametrize("descriptor", DESCRIPTORS, ids=lambda d: d.name)
    def test_accepts_complete_arguments(self, registry, descriptor):
        invocation = ActionInvocation(name=descriptor.name, arguments=_valid_arguments(descriptor))
        validated = registry.validate(invocation)
        assert validated.name == descriptor.name

    @pytest.mark.parametrize(
        "descriptor",
        [d for d in DESCRIPTORS if d.required_arguments],
        ids=lambda d: d.name,
    )
    def test_rejects_each_missing_required_argument(self, registry, descriptor):
        for name in descriptor.required_arguments:
            args = _valid_arguments(descriptor)
            del args[name]

            with pytest.raises(ActionValidationError) as exc_info:
                registry.validate(ActionInvocation(name=descriptor.name, arguments=args))

            assert exc_info.value.missing == [name]

    def test_reports_every_violation(self, registry):
        invocation = ActionInvocation(
            name="book_room",
            arguments={"room_id": "ห้องน้ำ", "date": "วันจันทร์หน้า"},
        )

        with pytest.raises(ActionValidationError) as exc_info:
            registry.validate(invocation)

        codes = {issue.argument: issue.code for issue in exc_info.value.issues}
        assert codes == {"room_id": "enum", "date": "format", "start_time": "missing"}

    def test_blank_string_counts_as_missing(self, registry):
        with pytest.raises(ActionValidationError) as exc_info:
            registry.validate(ActionInvocation(name="gallery_search", arguments={"keyword": "  "}))
        assert exc_info.value.missing == ["keyword"]

    def test_unknown_action(self, registry):
        with pytest.raises(ActionValidationError) as exc_info:
            registry.validate(ActionInvocation(name="launch_rocket", arguments={}))
        assert exc_info.value.issues[0].code == "unknown_action"

    def test_invalid_calendar_date(self, registry):
        with pytest.raises(ActionValidationError) as exc_info:
            registry.validate(ActionInvocation(name="check_room_schedule", arguments={"date": "2025-02-30"}))
        assert exc_info.value.issues[0].code == "format"

    def test_coerces_loose_values(self):
        registry = ActionRegistry()
        registry.register(
            ActionDescriptor(
                name="typed",
                description="typed",
                arguments=[
                    ArgumentSpec(name="count", type=ArgumentType.INTEGER, required=True),
                    ArgumentSpec(name="ratio", type=ArgumentType.NUMBER),
                    ArgumentSpec(name="flag", type=ArgumentType.BOOLEAN),
                    ArgumentSpec(name="at", type=ArgumentType.TIME),
                ],
            ),
            _noop,
        )

        validated = registry.validate(ActionInvocation(
            name="typed",
            arguments={"count": "4", "ratio": "0.5", "flag": "true", "at": "9:05", "extra": 1},
        ))

        assert validated.arguments == {"count": 4, "ratio": 0.5, "flag": True, "at": "09:05"}

    def test_rejects_wrong_types(self):
        registry = ActionRegistry()
        registry.register(
            ActionDescriptor(
                name="typed",
                description="typed",
                arguments=[
                    ArgumentSpec(name="count", type=ArgumentType.INTEGER, required=True),
                    ArgumentSpec(name="flag", type=ArgumentType.BOOLEAN, required=True),
                ],
            ),
            _noop,
        )

        with pytest.raises(ActionValidationError) as exc_info:
            registry.validate(ActionInvocation(name="typed", arguments={"count": "many", "flag": "maybe"}))

        assert [i.code for i in exc_info.value.issues] == ["type", "type"]

    @pytest.mark.parametrize("count", ["²", "--5", "4.5", ["4"]])
    def test_unparseable_integer_is_reported(self, count):
        registry = ActionRegistry()
        registry.register(
            ActionDescriptor(
                name="typed",
                description="typed",
                arguments=[
                    ArgumentSpec(name="count", type=ArgumentType.INTEGER, required=True),
                    ArgumentSpec(name="at", type=ArgumentType.TIME, required=True),
                ],
            ),
            _noop,
        )

        with pytest.raises(ActionValidationError) as exc_info:
            registry.validate(ActionInvocation(name="typed", arguments={"count": count}))

        codes = {issue.argument: issue.code for issue in exc_info.value.issues}
        assert codes == {"count": "type", "at": "missing"}
