# schemas/process_data.py
"""
Process Data Schema

Canonical swimlane process graph exchanged between the generator (LLM or
deterministic fallback), the quality validator, the passport projector and
the persistence layer. On the wire every field is camelCase.
"""

from __future__ import annotations
from typing import List, Optional, Dict, Any, Mapping, Union
from enum import Enum
import json
import re

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel


class ProcessDataError(Exception):
    """Raised when a payload does not match the ProcessData contract"""
    pass


# ---------- Core Enums ----------

class BlockType(str, Enum):
    START = "start"
    ACTION = "action"
    PRODUCT = "product"
    DECISION = "decision"
    SPLIT = "split"
    END = "end"


# 12 pastel lane tones, cycled by role position
SWIMLANE_COLORS = [
    "#d8b4f8",  # purple
    "#a5c8f0",  # blue
    "#98e8b8",  # green
    "#f0e070",  # yellow
    "#f0c090",  # orange
    "#f0b0b8",  # pink
    "#a8b8f0",  # indigo
    "#80e0f0",  # cyan
    "#c0e880",  # lime
    "#f0c0a0",  # peach
    "#c8d0e0",  # slate
    "#c8b8f0",  # violet
]


def lane_color(index: int) -> str:
    return SWIMLANE_COLORS[index % len(SWIMLANE_COLORS)]


# ---------- Graph Models ----------

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProcessRole(CamelModel):
    id: str
    name: str
    description: str = ""
    department: Optional[str] = None
    color: Optional[str] = None


class ProcessStage(CamelModel):
    id: str
    name: str
    order: int


class ProcessBlock(CamelModel):
    id: str
    name: str
    description: str = ""
    type: BlockType
    role: str
    stage: str
    time_estimate: Optional[str] = None
    input_documents: Optional[List[str]] = None
    output_documents: Optional[List[str]] = None
    info_systems: Optional[List[str]] = None
    checklist: Optional[List[str]] = None
    connections: List[str] = Field(default_factory=list)

    # Only meaningful on blocks reached from a decision
    condition_label: Optional[str] = None
    is_default: Optional[bool] = None

    # Absent means active
    is_active: Optional[bool] = None

    @property
    def active(self) -> bool:
        return self.is_active is not False


class ProcessData(CamelModel):
    name: str
    goal: str = ""
    owner: str = ""
    start_event: str = ""
    end_event: str = ""
    roles: List[ProcessRole] = Field(default_factory=list)
    stages: List[ProcessStage] = Field(default_factory=list)
    blocks: List[ProcessBlock] = Field(default_factory=list)

    def active_blocks(self) -> List[ProcessBlock]:
        return [b for b in self.blocks if b.active]

    def block_map(self, active_only: bool = True) -> Dict[str, ProcessBlock]:
        blocks = self.active_blocks() if active_only else self.blocks
        return {b.id: b for b in blocks}

    def role_name(self, role_id: str) -> str:
        for role in self.roles:
            if role.id == role_id:
                return role.name
        return role_id

    def stage_name(self, stage_id: str) -> str:
        for stage in self.stages:
            if stage.id == stage_id:
                return stage.name
        return stage_id

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------- Boundary Parsing ----------

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def parse_process_data(payload: Union[ProcessData, Mapping[str, Any], str]) -> ProcessData:
    """
    Decode a payload into ProcessData.

    Accepts an existing ProcessData (returned as is), a mapping, or raw
    model output text, from which the outermost JSON object is extracted.
    Raises ProcessDataError when the payload does not fit the contract.
    """
    if isinstance(payload, ProcessData):
        return payload

    if isinstance(payload, str):
        match = _JSON_OBJECT.search(payload)
        if not match:
            raise ProcessDataError("No JSON object found in payload")
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ProcessDataError(f"Invalid JSON: {e}") from e

    if not isinstance(payload, Mapping):
        raise ProcessDataError(
            f"Process data must be an object, got {type(payload).__name__}"
        )

    try:
        return ProcessData.model_validate(dict(payload))
    except ValidationError as e:
        raise ProcessDataError(f"Process data does not match schema: {e}") from e
