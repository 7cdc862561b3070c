"""
Error taxonomy for the LINE agent.

Domain rejections (booking conflict, ticket not found) are not errors:
handlers report them as ``ActionResult(success=False)``. The exceptions
below cover the failures the dispatcher has to recover from.
"""

from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from .schemas.agent_schemas import ValidationIssue


class AgentError(Exception):
    """Base class for agent failures"""


class ExtractionError(AgentError):
    """The generation model was unreachable or returned unusable output"""


class ActionValidationError(AgentError):
    """An invocation does not satisfy its action's argument schema"""

    def __init__(self, action: str, issues: List["ValidationIssue"]):
        self.action = action
        self.issues = list(issues)
        details = "; ".join(f"{i.argument}: {i.problem}" for i in self.issues)
        super().__init__(f"Invalid arguments for {action}: {details}")

    @property
    def missing(self) -> List[str]:
        return [i.argument for i in self.issues if i.code == "missing"]


class TransportError(AgentError):
    """A downstream collaborator (store, LINE API) could not be reached"""


class DuplicateActionError(AgentError):
    """An action name was registered twice"""
