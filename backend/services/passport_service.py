"""
Process Passport Service

Projects a process map into its textual passport: main flow, documents,
RACI roles, SLA and risks. Pure projection, no validation.
"""

from typing import List, Dict, Any, Mapping, Union, Iterable
import logging

from schemas.process_data import ProcessData, ProcessBlock, BlockType, parse_process_data
from schemas.passport import (
    ProcessPassport, ProcessPassportRole, ProcessPassportStep, ProcessPassportDocument,
    ProcessPassportSLA, ProcessPassportRisk, ProcessBoundaries, Raci, DocumentKind, RiskImpact
)

logger = logging.getLogger(__name__)

SLA_METRIC_PREFIX = "Время: "


def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(v for v in values if v))


class PassportService:
    """Builds ProcessPassport views from ProcessData."""

    def generate(
        self,
        data: Union[ProcessData, Mapping[str, Any]],
        customer: str = "",
        version: str = "1.0",
        last_updated: str = "",
    ) -> ProcessPassport:
        data = parse_process_data(data)
        blocks = data.blocks
        block_map = data.block_map(active_only=False)
        actions = [b for b in blocks if b.type == BlockType.ACTION]
        decisions = [b for b in blocks if b.type == BlockType.DECISION]

        inputs = _unique(d for b in blocks for d in (b.input_documents or []))
        outputs = _unique(d for b in blocks for d in (b.output_documents or []))
        systems = _unique(s for b in blocks for s in (b.info_systems or []))

        passport = ProcessPassport(
            name=data.name,
            owner=data.owner,
            customer=customer,
            goal=data.goal,
            boundaries=ProcessBoundaries(
                start=data.start_event,
                end=data.end_event,
                scope=f"{len(data.stages)} этапов, {len(data.roles)} ролей, {len(blocks)} блоков",
            ),
            triggers=_unique([data.start_event] + [b.name for b in blocks if b.type == BlockType.START]),
            inputs=inputs,
            outputs=outputs,
            roles=self._roles(data),
            systems=systems,
            main_flow=[
                ProcessPassportStep(
                    order=i + 1,
                    name=b.name,
                    role=data.role_name(b.role),
                    description=b.description,
                )
                for i, b in enumerate(actions)
            ],
            exceptions=self._exceptions(decisions, block_map),
            documents=self._documents(data, blocks),
            sla=[
                ProcessPassportSLA(
                    metric=f"{SLA_METRIC_PREFIX}{b.name}",
                    target=b.time_estimate,
                    measurement=f"{data.role_name(b.role)}, этап «{data.stage_name(b.stage)}»",
                )
                for b in actions if b.time_estimate
            ],
            risks=[self._risk(data, d, block_map) for d in decisions],
            integrations=self._integrations(blocks, block_map),
            version=version,
            last_updated=last_updated,
        )
        logger.debug("Passport generated for '%s'", data.name)
        return passport

    def _roles(self, data: ProcessData) -> List[ProcessPassportRole]:
        return [
            ProcessPassportRole(
                name=role.name,
                raci=Raci.ACCOUNTABLE if i == 0 else Raci.RESPONSIBLE,
                department=role.department or "",
            )
            for i, role in enumerate(data.roles)
        ]

    def _exceptions(self, decisions: List[ProcessBlock], block_map: Dict[str, ProcessBlock]) -> List[str]:
        exceptions = []
        for dec in decisions:
            for target_id in dec.connections:
                target = block_map.get(target_id)
                if not target or target.is_default or not target.condition_label:
                    continue
                exceptions.append(f"{dec.name}: {target.condition_label} → {target.name}")
        return exceptions

    def _documents(self, data: ProcessData, blocks: List[ProcessBlock]) -> List[ProcessPassportDocument]:
        documents: Dict[tuple, ProcessPassportDocument] = {}

        def add(name: str, kind: DocumentKind, block: ProcessBlock):
            key = (name, kind)
            if name and key not in documents:
                documents[key] = ProcessPassportDocument(name=name, type=kind, stage=data.stage_name(block.stage))

        for b in blocks:
            for doc in b.input_documents or []:
                add(doc, DocumentKind.INPUT, b)
            if b.type == BlockType.PRODUCT:
                add(b.name, DocumentKind.INTERMEDIATE, b)
            for doc in b.output_documents or []:
                add(doc, DocumentKind.OUTPUT, b)
        return list(documents.values())

    def _risk(self, data: ProcessData, dec: ProcessBlock, block_map: Dict[str, ProcessBlock]) -> ProcessPassportRisk:
        terminal = any(
            block_map[t].type == BlockType.END for t in dec.connections if t in block_map
        )
        return ProcessPassportRisk(
            description=f"Ошибочное решение в точке «{dec.name}»",
            impact=RiskImpact.HIGH if terminal else RiskImpact.MEDIUM,
            control=f"Контроль решения: {data.role_name(dec.role)}",
        )

    def _integrations(self, blocks: List[ProcessBlock], block_map: Dict[str, ProcessBlock]) -> List[str]:
        # A system-to-system hop along an edge is an integration point
        pairs = []
        for b in blocks:
            for target_id in b.connections:
                target = block_map.get(target_id)
                if not target:
                    continue
                for src in b.info_systems or []:
                    for dst in target.info_systems or []:
                        if src != dst:
                            pairs.append(f"{src} → {dst}")
        return _unique(pairs)


def generate_passport(data: Union[ProcessData, Mapping[str, Any]], **meta: str) -> ProcessPassport:
    return PassportService().generate(data, **meta)
