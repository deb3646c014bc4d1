"""Pydantic schemas."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

USAGE = 'Call with ?gameId=YOUR_GAME_ID or POST with {"gameId": "YOUR_GAME_ID"}'

# ==================== Requests ====================


class GameRequest(BaseModel):
    """Validated parameters for one game fetch."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    game_id: str = Field(..., alias="gameId", min_length=1)
    custom_script: Optional[str] = Field(None, alias="customScript")
    script_template: Optional[str] = Field(None, alias="scriptTemplate")
    wait_time_ms: int = Field(..., alias="waitTime", gt=0)


# ==================== Extraction ====================


class GameDataEnvelope(BaseModel):
    """Aggregate of every probe fragment; all keys are always present."""

    pageInitData: Optional[Any] = None
    extensionData: Dict[str, Any] = Field(default_factory=dict)
    dom: Dict[str, Any] = Field(default_factory=dict)
    localStorage: Optional[Dict[str, Any]] = None
    computedData: Dict[str, Any] = Field(default_factory=dict)


# ==================== Responses ====================


class FetchSuccessResponse(BaseModel):
    """Body returned when extraction completed."""

    success: bool = True
    gameId: str
    data: GameDataEnvelope
    timestamp: str


class FetchErrorResponse(BaseModel):
    """Body returned when navigation, injection or extraction failed."""

    success: bool = False
    error: str
    gameId: Optional[str] = None
    stack: Optional[str] = None


class ValidationErrorResponse(BaseModel):
    """Body returned for malformed requests."""

    error: str
    usage: str = USAGE


class OrganizedGameResponse(BaseModel):
    """Body returned by the organized variant."""

    success: bool = True
    gameId: str
    organized: Dict[str, Any]
    timestamp: str


class ScriptTemplateInfo(BaseModel):
    """Public metadata for a script template."""

    name: str
    description: str = ""


class ScriptTemplatesResponse(BaseModel):
    """Response wrapper for template listings."""

    templates: List[ScriptTemplateInfo]
