from pydantic import BaseModel, Field

from parley.models import Enforcement, Mode, Priority, PrivilegeLevel, ViolationType


class RegisterAgent(BaseModel):
    name: str
    description: str
    instance_id: str | None = None


class AgentRef(BaseModel):
    agent_id: str


class InstanceRef(BaseModel):
    instance_id: str


class Empty(BaseModel):
    pass


class SendMessage(BaseModel):
    from_: str = Field(alias="from")
    to: str
    message: str

    model_config = {"populate_by_name": True}


class UpdateStatus(BaseModel):
    agent_id: str
    status: str


class Subscribe(BaseModel):
    agent_id: str
    events: list[str]


class Unsubscribe(BaseModel):
    agent_id: str
    events: list[str] | None = None


class SendBroadcast(BaseModel):
    from_: str = Field(alias="from")
    message: str
    priority: Priority = Priority.NORMAL

    model_config = {"populate_by_name": True}


class ExternalBroadcast(BaseModel):
    api_key: str
    message: str
    priority: Priority = Priority.NORMAL
    sender: str = "external"


class GrantStick(BaseModel):
    granter: str
    target: str
    topic: str = ""
    privilege_level: PrivilegeLevel = PrivilegeLevel.STANDARD


class RequestStick(BaseModel):
    agent_id: str
    topic: str = ""
    urgent: bool = False


class ReleaseStick(BaseModel):
    agent_id: str
    summary: str = ""
    pass_to: str | None = None


class SetMode(BaseModel):
    mode: Mode
    initiated_by: str
    enforcement_level: Enforcement = Enforcement.SUGGESTION


class TrackViolation(BaseModel):
    agent_id: str
    violation_type: ViolationType = ViolationType.OTHER
    context: str = ""


class ForceReset(BaseModel):
    initiated_by: str = "system"
