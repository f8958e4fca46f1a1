"""
Fallback Process Builder

Builds a complete swimlane process from interview answers without calling
the LLM. The topology is a fixed 7-stage template; only the texts, roles
and stages come from the answers. Output is a pure function of the input.
"""

from typing import Dict, List, Any, Mapping, Optional, Tuple
from dataclasses import dataclass
import logging
import re

from schemas.process_data import (
    ProcessData, ProcessBlock, ProcessRole, ProcessStage, BlockType, lane_color
)

logger = logging.getLogger(__name__)


# Interview question ids the builder reads
ANSWER_KEYS = {
    "name": "a1",
    "trigger": "a3",
    "result": "a4",
    "owner": "a5",
    "goal": "b2",
    "stages": "d1",
    "roles": "e1",
    "partners": "e3",
}

DEFAULT_NAME = "Бизнес-процесс"
DEFAULT_GOAL = "Оптимизация деятельности"
DEFAULT_OWNER = "Руководитель"
DEFAULT_TRIGGER = "Поступление заявки от клиента"
DEFAULT_RESULT = "Выполненная задача"
DEFAULT_ROLES_PHRASE = "Руководитель, Менеджер по продажам, Аналитик, Бухгалтер, Специалист, Юрист"
DEFAULT_STAGES_PHRASE = (
    "Инициация, Квалификация, Подготовка предложения, Согласование, "
    "Исполнение, Контроль качества, Закрытие"
)

ROLE_PADDING = ["Руководитель", "Менеджер", "Аналитик", "Бухгалтер", "Специалист", "Юрист"]
STAGE_FALLBACK = ["Инициация", "Анализ", "Подготовка", "Согласование", "Исполнение", "Контроль", "Закрытие"]

MIN_ROLES = 6
MIN_STAGES = 5
EXTERNAL_SUFFIX = " (внешний)"
EXTERNAL_DEPARTMENT = "Внешний партнёр"

_ROLE_SEPARATORS = re.compile(r"[,;]")
_STAGE_SEPARATORS = re.compile(r"[,;.]")

# Role slots of the template
HEAD, MANAGER, ANALYST, ACCOUNTANT, SPECIALIST, LAWYER = range(6)


@dataclass(frozen=True)
class BlockSpec:
    key: str
    role: int
    stage: int
    type: BlockType
    name: str
    description: str
    targets: Tuple[str, ...] = ()
    time: Optional[str] = None
    inputs: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ()
    systems: Tuple[str, ...] = ()
    condition: Optional[str] = None
    default: bool = False
    # Assigned to the partner role when the interview names one
    external: bool = False


# Names "{trigger}" and "{result}" are substituted at build time.
TEMPLATE: List[BlockSpec] = [
    # Stage 1: intake
    BlockSpec("start", HEAD, 0, BlockType.START, "{trigger}", "Начало процесса", ("recv",)),
    BlockSpec("recv", MANAGER, 0, BlockType.ACTION, "Принять заявку", "Регистрация входящей заявки в системе",
              ("reg",), time="10 мин", inputs=("Заявка клиента",), systems=("CRM",)),
    BlockSpec("reg", MANAGER, 0, BlockType.PRODUCT, "Зарегистрированная заявка", "Заявка внесена в CRM", ("anal",)),

    # Stage 2: qualification
    BlockSpec("anal", ANALYST, 1, BlockType.ACTION, "Проанализировать требования",
              "Изучение требований клиента и проверка возможности исполнения", ("check",),
              time="1 ч", inputs=("Заявка",), systems=("CRM", "BI-система")),
    BlockSpec("check", ANALYST, 1, BlockType.DECISION, "Возможно выполнить?", "Оценка выполнимости заявки",
              ("qual_ok", "qual_fail")),
    BlockSpec("qual_ok", ANALYST, 1, BlockType.PRODUCT, "Требования подтверждены", "Заявка прошла квалификацию",
              ("prep",), default=True),
    BlockSpec("qual_fail", MANAGER, 1, BlockType.ACTION, "Уведомить клиента об отказе",
              "Отправка письма об отклонении заявки", ("end_reject",),
              time="15 мин", inputs=("Заявка",), systems=("Email",), condition="Нет"),
    BlockSpec("end_reject", MANAGER, 1, BlockType.END, "Заявка отклонена", "Процесс завершён отказом"),

    # Stage 3: prepare, cost, verify
    BlockSpec("prep", MANAGER, 2, BlockType.ACTION, "Подготовить коммерческое предложение",
              "Формирование КП на основе требований клиента", ("calc",),
              time="2 ч", inputs=("Требования",), outputs=("КП",), systems=("CRM",)),
    BlockSpec("calc", SPECIALIST, 2, BlockType.ACTION, "Рассчитать стоимость",
              "Детальный расчёт себестоимости и маржи", ("buh_check",),
              time="1 ч", inputs=("КП",), outputs=("Расчёт стоимости",), systems=("1С",)),
    BlockSpec("buh_check", ACCOUNTANT, 2, BlockType.ACTION, "Проверить финансовые параметры",
              "Верификация расчёта бухгалтерией", ("offer",),
              time="30 мин", inputs=("Расчёт стоимости",), systems=("1С",)),
    BlockSpec("offer", MANAGER, 2, BlockType.PRODUCT, "Готовое КП", "Коммерческое предложение сформировано", ("legal",)),

    # Stage 4: 4-eyes approval
    BlockSpec("legal", LAWYER, 3, BlockType.ACTION, "Провести юридическую проверку",
              "Проверка правовых аспектов сделки", ("approve",),
              time="1 ч", inputs=("КП", "Договор"), systems=("СЭД",)),
    BlockSpec("approve", HEAD, 3, BlockType.DECISION, "Согласовано?", "Решение руководства по КП",
              ("approved", "rework")),
    BlockSpec("approved", HEAD, 3, BlockType.PRODUCT, "КП утверждено", "Предложение согласовано руководством",
              ("send",), default=True),
    BlockSpec("rework", MANAGER, 3, BlockType.ACTION, "Доработать КП", "Возврат на доработку по замечаниям",
              ("calc",), time="1 ч", inputs=("Замечания руководства",), systems=("CRM",), condition="На доработку"),

    # Stage 5: client acceptance and execution
    BlockSpec("send", MANAGER, 4, BlockType.ACTION, "Отправить КП клиенту", "Презентация предложения клиенту",
              ("client_dec",), time="30 мин", inputs=("КП",), systems=("Email", "CRM")),
    BlockSpec("client_dec", MANAGER, 4, BlockType.DECISION, "Клиент согласен?", "Ответ клиента на предложение",
              ("contract", "renegotiate")),
    BlockSpec("renegotiate", MANAGER, 4, BlockType.ACTION, "Пересогласовать условия",
              "Обсуждение возражений клиента и корректировка предложения", ("send",),
              time="1 ч", inputs=("Возражения клиента",), systems=("CRM",), condition="Нужен пересмотр"),
    BlockSpec("contract", LAWYER, 4, BlockType.ACTION, "Подписать договор", "Оформление и подписание договора",
              ("exec",), time="2 ч", inputs=("Договор",), outputs=("Подписанный договор",), systems=("СЭД",),
              default=True),
    BlockSpec("exec", SPECIALIST, 4, BlockType.ACTION, "Выполнить работы", "Реализация обязательств по договору",
              ("qa",), time="5 дн", inputs=("Подписанный договор",), systems=("Jira", "1С"), external=True),

    # Stage 6: quality check
    BlockSpec("qa", ANALYST, 5, BlockType.ACTION, "Проконтролировать качество", "Проверка результатов выполнения",
              ("qa_dec",), time="2 ч", inputs=("Результат работ",), systems=("Jira",)),
    BlockSpec("qa_dec", HEAD, 5, BlockType.DECISION, "Качество ОК?", "Оценка соответствия требованиям",
              ("qa_ok", "qa_fail")),
    BlockSpec("qa_ok", HEAD, 5, BlockType.PRODUCT, "Работа принята", "Результат соответствует требованиям",
              ("invoice",), default=True),
    BlockSpec("qa_fail", SPECIALIST, 5, BlockType.ACTION, "Исправить замечания", "Устранение замечаний контроля",
              ("exec",), time="1 дн", inputs=("Протокол замечаний",), systems=("Jira",), condition="Замечания"),

    # Stage 7: closing
    BlockSpec("invoice", ACCOUNTANT, 6, BlockType.ACTION, "Выставить счёт", "Формирование финального счёта и акта",
              ("close",), time="30 мин", inputs=("Акт приёмки",), outputs=("Счёт", "Акт"), systems=("1С",)),
    BlockSpec("close", MANAGER, 6, BlockType.ACTION, "Закрыть сделку в CRM", "Обновление статуса в CRM, архивирование",
              ("end",), time="15 мин", inputs=("Счёт",), systems=("CRM",)),
    BlockSpec("end", HEAD, 6, BlockType.END, "{result}", "Процесс завершён успешно"),
]


def block_id(key: str) -> str:
    return f"b_{key}"


def template_edges() -> List[Tuple[str, str]]:
    """All (source key, target key) pairs of the template."""
    return [(spec.key, target) for spec in TEMPLATE for target in spec.targets]


def _answer(answers: Mapping[str, Any], field_name: str) -> str:
    value = answers.get(ANSWER_KEYS[field_name])
    if not isinstance(value, str):
        return ""
    return value.strip()


def split_names(text: str, separators: "re.Pattern[str]") -> List[str]:
    return [part.strip() for part in separators.split(text) if part.strip()]


class FallbackProcessBuilder:
    """
    Deterministic process generator used when the LLM is unavailable.
    Every graph it returns passes the quality validator without errors.
    """

    def __init__(self, template: Optional[List[BlockSpec]] = None):
        self.template = template if template is not None else TEMPLATE

    def build(self, answers: Optional[Mapping[str, Any]], company_name: str = "") -> ProcessData:
        answers = answers or {}

        name = _answer(answers, "name") or self._default_name(company_name)
        goal = _answer(answers, "goal") or DEFAULT_GOAL
        owner = _answer(answers, "owner") or DEFAULT_OWNER
        trigger = _answer(answers, "trigger") or DEFAULT_TRIGGER
        result = _answer(answers, "result") or DEFAULT_RESULT

        roles, partner_id = self._build_roles(
            _answer(answers, "roles") or DEFAULT_ROLES_PHRASE,
            _answer(answers, "partners"),
        )
        stages = self._build_stages(_answer(answers, "stages") or DEFAULT_STAGES_PHRASE)
        blocks = self._build_blocks(roles, stages, partner_id, {"trigger": trigger, "result": result})

        logger.debug(
            "Fallback process built: %d roles, %d stages, %d blocks",
            len(roles), len(stages), len(blocks),
        )

        return ProcessData(
            name=name,
            goal=goal,
            owner=owner,
            start_event=trigger,
            end_event=result,
            roles=roles,
            stages=stages,
            blocks=blocks,
        )

    def _default_name(self, company_name: str) -> str:
        company_name = (company_name or "").strip()
        return f"{DEFAULT_NAME} «{company_name}»" if company_name else DEFAULT_NAME

    def _build_roles(self, roles_text: str, partners_text: str) -> Tuple[List[ProcessRole], Optional[str]]:
        names = split_names(roles_text, _ROLE_SEPARATORS)

        for default in ROLE_PADDING:
            if len(names) >= MIN_ROLES:
                break
            if default not in names:
                names.append(default)

        departments: List[str] = ["" for _ in names]
        partner_id = None
        partners = split_names(partners_text, _ROLE_SEPARATORS)
        if partners:
            names.append(f"{partners[0]}{EXTERNAL_SUFFIX}")
            departments.append(EXTERNAL_DEPARTMENT)
            partner_id = f"role_{len(names)}"

        roles = [
            ProcessRole(
                id=f"role_{i + 1}",
                name=role_name,
                description=f"Участник процесса: {role_name}",
                department=departments[i],
                color=lane_color(i),
            )
            for i, role_name in enumerate(names)
        ]
        return roles, partner_id

    def _build_stages(self, stages_text: str) -> List[ProcessStage]:
        names = split_names(stages_text, _STAGE_SEPARATORS)
        if len(names) < MIN_STAGES:
            names = list(STAGE_FALLBACK)

        return [
            ProcessStage(id=f"stage_{i + 1}", name=stage_name, order=i + 1)
            for i, stage_name in enumerate(names)
        ]

    def _build_blocks(
        self,
        roles: List[ProcessRole],
        stages: List[ProcessStage],
        partner_id: Optional[str],
        texts: Dict[str, str],
    ) -> List[ProcessBlock]:
        # The partner lane sits after the padded roles; template slots never reach it
        internal_roles = [r for r in roles if r.id != partner_id]

        def role_for(spec: BlockSpec) -> str:
            if spec.external and partner_id:
                return partner_id
            return internal_roles[min(spec.role, len(internal_roles) - 1)].id

        def stage_for(spec: BlockSpec) -> str:
            return stages[min(spec.stage, len(stages) - 1)].id

        blocks = []
        for spec in self.template:
            blocks.append(ProcessBlock(
                id=block_id(spec.key),
                name=spec.name.format(**texts),
                description=spec.description,
                type=spec.type,
                role=role_for(spec),
                stage=stage_for(spec),
                time_estimate=spec.time,
                input_documents=list(spec.inputs) or None,
                output_documents=list(spec.outputs) or None,
                info_systems=list(spec.systems) or None,
                connections=[block_id(t) for t in spec.targets],
                condition_label=spec.condition,
                is_default=True if spec.default else None,
            ))
        return blocks


def build_fallback_process(answers: Optional[Mapping[str, Any]], company_name: str = "") -> ProcessData:
    return FallbackProcessBuilder().build(answers, company_name)
