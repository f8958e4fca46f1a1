# schemas/passport.py
"""
Process Passport Schema

Read-only textual summary of a process map, rendered by the reporting layer.
"""

from __future__ import annotations
from typing import List
from enum import Enum

from pydantic import Field

from schemas.process_data import CamelModel


class Raci(str, Enum):
    RESPONSIBLE = "R"
    ACCOUNTABLE = "A"
    CONSULTED = "C"
    INFORMED = "I"


class DocumentKind(str, Enum):
    INPUT = "input"
    OUTPUT = "output"
    INTERMEDIATE = "intermediate"


class RiskImpact(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ProcessBoundaries(CamelModel):
    start: str
    end: str
    scope: str


class ProcessPassportRole(CamelModel):
    name: str
    raci: Raci
    department: str = ""


class ProcessPassportStep(CamelModel):
    order: int
    name: str
    role: str
    description: str


class ProcessPassportDocument(CamelModel):
    name: str
    type: DocumentKind
    stage: str


class ProcessPassportSLA(CamelModel):
    metric: str
    target: str
    measurement: str


class ProcessPassportRisk(CamelModel):
    description: str
    impact: RiskImpact
    control: str


class ProcessPassport(CamelModel):
    name: str
    owner: str
    customer: str
    goal: str
    boundaries: ProcessBoundaries
    triggers: List[str] = Field(default_factory=list)
    inputs: List[str] = Field(default_factory=list)
    outputs: List[str] = Field(default_factory=list)
    roles: List[ProcessPassportRole] = Field(default_factory=list)
    systems: List[str] = Field(default_factory=list)
    main_flow: List[ProcessPassportStep] = Field(default_factory=list)
    exceptions: List[str] = Field(default_factory=list)
    documents: List[ProcessPassportDocument] = Field(default_factory=list)
    sla: List[ProcessPassportSLA] = Field(default_factory=list)
    risks: List[ProcessPassportRisk] = Field(default_factory=list)
    integrations: List[str] = Field(default_factory=list)
    version: str = "1.0"
    last_updated: str = ""
