from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

MessageRole = Literal["system", "user", "assistant"]


def _number(ge: float, le: Optional[float] = None) -> Any:
    # int is tried first, so whole-number readings stay ints on the wire
    return Union[Annotated[int, Field(ge=ge, le=le)], Annotated[float, Field(ge=ge, le=le)]]


Psi = _number(0, 6000)
SuitPsi = _number(0, 15)
Bpm = _number(0, 250)
Celsius = _number(-150, 150)
Latitude = _number(-90, 90)
Longitude = _number(-180, 180)
Meters = _number(0)
Degrees = _number(0, 360)


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Position(_WireModel):
    lat: Latitude
    lon: Longitude


class TelemetrySnapshot(_WireModel):
    primary_o2: Psi = Field(alias="primaryO2")
    secondary_o2: Psi = Field(alias="secondaryO2")
    suit_pressure: SuitPsi = Field(alias="suitPressure")
    heart_rate: Bpm = Field(alias="heartRate")
    temperature: Celsius
    position: Position
    ltv_distance: Meters = Field(alias="ltvDistance")
    ltv_bearing: Degrees = Field(alias="ltvBearing")


class MessageIn(_WireModel):
    role: MessageRole
    content: str


class Message(MessageIn):
    timestamp: int | None = None


class ChatRequest(_WireModel):
    message: str
    conversation_history: list[Message] | None = Field(default=None, alias="conversationHistory")
    telemetry: TelemetrySnapshot | None = None
    conversation_id: str | None = Field(default=None, alias="conversationId", min_length=1, max_length=128)


class ChatResponse(_WireModel):
    response: str
    emergency: bool
    telemetry_alert: bool = Field(alias="telemetryAlert")
    timestamp: int


class ProcedureSearchRequest(_WireModel):
    query: str
