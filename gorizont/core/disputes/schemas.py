from pydantic import BaseModel

from gorizont.common.enums import DisputeStatus


class EscalationRule(BaseModel):
    from_status: DisputeStatus
    trigger_hours: int
    message: str
