"""
Process Quality Validator

Runs a fixed battery of BPMN-style checks over a process map and scores it.
Findings are returned as data; only a payload that does not match the
ProcessData contract raises (ProcessDataError).
"""

from typing import List, Dict, Optional, Any, Set, Union, Mapping, Iterable
from collections import deque
from dataclasses import dataclass
import logging
import math

from schemas.process_data import ProcessData, ProcessBlock, BlockType, parse_process_data
from schemas.quality import QualityCheckItem, QualityCheckResult, Severity
from utils.config import Settings

logger = logging.getLogger(__name__)

CAT_STATUS = "Статус блоков"
CAT_LOGIC = "Логическая завершённость"
CAT_GATEWAYS = "Гейтвеи и условия"
CAT_ROLES = "Роли и handoffs"
CAT_READABILITY = "Читаемость"
CAT_DATA = "Документы и данные"
CAT_VALUE = "Соответствие ценности"
CAT_AUTOMATION = "Потенциал автоматизации"

ERROR_PENALTY = 5
WARNING_PENALTY = 2


@dataclass(frozen=True)
class QualityThresholds:
    min_handoffs: int = 5
    handoff_info_floor: int = 3
    min_roles: int = 3
    role_info_floor: int = 2
    max_blocks: int = 50
    min_stages: int = 3
    min_description_length: int = 5
    max_missing_ratio: float = 0.3
    min_products: int = 2
    min_decisions: int = 1
    min_goal_length: int = 4
    min_info_systems: int = 2

    @classmethod
    def from_settings(cls, settings: Settings) -> "QualityThresholds":
        return cls(
            min_handoffs=settings.quality_min_handoffs,
            max_missing_ratio=settings.quality_max_missing_ratio,
        )


def _quoted(blocks: List[ProcessBlock], limit: Optional[int] = None) -> str:
    shown = blocks if limit is None else blocks[:limit]
    return ", ".join(f"«{b.name}»" for b in shown)


def _duplicates(ids: Iterable[str]) -> List[str]:
    """Ids seen more than once, in order of first repeat."""
    seen: Set[str] = set()
    repeated: List[str] = []
    for item_id in ids:
        if item_id in seen and item_id not in repeated:
            repeated.append(item_id)
        seen.add(item_id)
    return repeated


def _js_round(value: float) -> int:
    return int(math.floor(value + 0.5))


def reachable_from_starts(blocks: Dict[str, ProcessBlock]) -> Set[str]:
    """Ids of blocks reachable from any start block; a single BFS over connections."""
    seen: Set[str] = set()
    queue = deque(b.id for b in blocks.values() if b.type == BlockType.START)
    seen.update(queue)
    while queue:
        block = blocks.get(queue.popleft())
        if not block:
            continue
        for target in block.connections:
            if target in blocks and target not in seen:
                seen.add(target)
                queue.append(target)
    return seen


class _Report:
    def __init__(self):
        self.items: List[QualityCheckItem] = []

    def add(self, category: str, rule: str, passed: bool, details: str, severity: Severity, **extra: Any):
        self.items.append(QualityCheckItem(
            id=f"check_{len(self.items) + 1}",
            category=category,
            rule=rule,
            passed=passed,
            details=details,
            severity=severity,
            **{k: v for k, v in extra.items() if v is not None},
        ))


class QualityValidator:
    """
    Deterministic quality assessment for process maps.
    Works identically for LLM-generated and fallback-generated graphs.
    """

    def __init__(self, thresholds: Optional[QualityThresholds] = None):
        self.thresholds = thresholds or QualityThresholds()

    def validate(self, data: Union[ProcessData, Mapping[str, Any]]) -> QualityCheckResult:
        data = parse_process_data(data)
        report = _Report()

        active = data.active_blocks()
        block_map = data.block_map()

        self._check_inactive(data, report)
        self._check_logic(data, active, block_map, report)
        self._check_gateways(data, active, block_map, report)
        self._check_roles(data, active, block_map, report)
        self._check_readability(data, active, report)
        self._check_documents(data, active, report)
        self._check_value(data, active, report)
        self._check_automation(active, report)

        result = self._score(report.items)
        logger.debug("Quality check for '%s': score %d, %d items", data.name, result.score, len(result.items))
        return result

    # ---------- 0. Block status ----------

    def _check_inactive(self, data: ProcessData, report: _Report):
        inactive = [b for b in data.blocks if not b.active]
        if not inactive:
            return
        report.add(
            CAT_STATUS,
            f"Выключенные блоки ({len(inactive)})",
            True,
            f"{len(inactive)} блоков выключены и исключены из проверки качества.",
            Severity.INFO,
            location=_quoted(inactive),
            block_ids=[b.id for b in inactive],
        )

    # ---------- 1. Logical completeness ----------

    def _check_logic(self, data: ProcessData, active: List[ProcessBlock],
                     block_map: Dict[str, ProcessBlock], report: _Report):
        starts = [b for b in active if b.type == BlockType.START]
        report.add(
            CAT_LOGIC, "Процесс имеет стартовый блок", bool(starts),
            f"Найдено стартовых блоков: {len(starts)}. Процесс имеет корректную точку входа."
            if starts else
            "В диаграмме отсутствует блок типа «start». Без стартового события невозможно определить начало процесса.",
            Severity.ERROR,
            location=", ".join(f"«{b.name}» ({data.stage_name(b.stage)})" for b in starts) or None,
            block_ids=[b.id for b in starts] or None,
            recommendation=None if starts else "Добавьте блок типа «start» и свяжите его с первым действием процесса.",
        )

        ends = [b for b in active if b.type == BlockType.END]
        report.add(
            CAT_LOGIC, "Процесс имеет конечный блок", bool(ends),
            f"Найдено конечных блоков: {len(ends)}. Все сценарии завершаются корректно."
            if ends else
            "Отсутствует блок типа «end». Процесс не имеет определённого завершения.",
            Severity.ERROR,
            location=", ".join(f"«{b.name}» ({data.stage_name(b.stage)})" for b in ends) or None,
            block_ids=[b.id for b in ends] or None,
            recommendation=None if ends else "Добавьте один или несколько блоков типа «end» после финальных шагов процесса.",
        )

        reachable = reachable_from_starts(block_map)
        unreachable = [b for b in active if b.id not in reachable]
        report.add(
            CAT_LOGIC, "Все блоки достижимы от start", not unreachable,
            "Все активные блоки связаны в единый поток от стартового события. Граф процесса целостен."
            if not unreachable else
            f"{len(unreachable)} блоков не достижимы от стартового события: {_quoted(unreachable)}.",
            Severity.ERROR,
            location="; ".join(
                f"«{b.name}» — роль {data.role_name(b.role)}, этап {data.stage_name(b.stage)}" for b in unreachable
            ) or None,
            block_ids=[b.id for b in unreachable] or None,
            consequence="Изолированные блоки никогда не будут выполнены." if unreachable else None,
            recommendation="Добавьте входящие соединения от предшествующих шагов или удалите неиспользуемые блоки."
            if unreachable else None,
        )

        ends_with_exits = [b for b in ends if b.connections]
        report.add(
            CAT_LOGIC, "End-блоки не имеют исходящих связей", not ends_with_exits,
            "Все конечные блоки корректно завершают потоки без исходящих соединений."
            if not ends_with_exits else
            f"Конечные блоки с исходящими связями: {_quoted(ends_with_exits)}. "
            f"По стандарту BPMN end-событие не должно иметь выходов.",
            Severity.ERROR,
            block_ids=[b.id for b in ends_with_exits] or None,
            recommendation="Удалите исходящие связи из конечных блоков или смените их тип на action."
            if ends_with_exits else None,
        )

        dead_ends = [b for b in active if b.type != BlockType.END and not b.connections]
        report.add(
            CAT_LOGIC, "Нет «мёртвых» концов (блоки без исходящих кроме end)", not dead_ends,
            "Все блоки (кроме конечных) имеют продолжение — поток процесса не обрывается."
            if not dead_ends else
            f"{len(dead_ends)} блоков без исходящих связей: {_quoted(dead_ends)}. Поток процесса обрывается.",
            Severity.ERROR,
            block_ids=[b.id for b in dead_ends] or None,
            recommendation="Добавьте исходящую связь к следующему шагу или к конечному блоку."
            if dead_ends else None,
        )

        broken = [(b, target) for b in active for target in b.connections if target not in block_map]
        report.add(
            CAT_LOGIC, "Все связи ссылаются на существующие блоки", not broken,
            "Все соединения между блоками указывают на существующие элементы диаграммы."
            if not broken else
            f"{len(broken)} битых связей: "
            + "; ".join(f"«{b.name}» → {target} (несуществующий блок)" for b, target in broken) + ".",
            Severity.ERROR,
            block_ids=[b.id for b, _ in broken] or None,
            recommendation="Исправьте или удалите некорректные связи в указанных блоках." if broken else None,
        )

        # Inactive blocks included: ids are unique across the whole collection
        dup_blocks = _duplicates(b.id for b in data.blocks)
        report.add(
            CAT_LOGIC, "Идентификаторы блоков уникальны", not dup_blocks,
            "Каждый блок имеет собственный идентификатор."
            if not dup_blocks else
            f"Повторяющиеся идентификаторы блоков: {', '.join(dup_blocks)}. "
            f"Связи с этими блоками неоднозначны.",
            Severity.ERROR,
            block_ids=dup_blocks or None,
            recommendation="Присвойте каждому блоку уникальный id и проверьте связи на него."
            if dup_blocks else None,
        )

        dup_roles = _duplicates(r.id for r in data.roles)
        dup_stages = _duplicates(s.id for s in data.stages)
        clashes = [f"роль {i}" for i in dup_roles] + [f"этап {i}" for i in dup_stages]
        report.add(
            CAT_LOGIC, "Идентификаторы ролей и этапов уникальны", not clashes,
            "Все роли и этапы имеют собственные идентификаторы."
            if not clashes else
            f"Повторяющиеся идентификаторы: {', '.join(clashes)}. Блоки этих дорожек и этапов неоднозначны.",
            Severity.ERROR,
            recommendation="Присвойте каждой роли и каждому этапу уникальный id." if clashes else None,
        )

    # ---------- 2. Gateways and conditions ----------

    def _check_gateways(self, data: ProcessData, active: List[ProcessBlock],
                        block_map: Dict[str, ProcessBlock], report: _Report):
        decisions = [b for b in active if b.type == BlockType.DECISION]

        narrow = [d for d in decisions if len(d.connections) < 2]
        report.add(
            CAT_GATEWAYS, "Decision-блоки имеют 2+ исходящих ветви", not narrow,
            f"Все {len(decisions)} точек принятия решений имеют минимум 2 варианта — логика ветвления корректна."
            if not narrow else
            f"{len(narrow)} decision-блоков имеют менее 2 выходов: "
            + ", ".join(f"«{d.name}» ({len(d.connections)} выход)" for d in narrow) + ".",
            Severity.ERROR,
            block_ids=[d.id for d in narrow] or None,
            recommendation="Добавьте второй выход с альтернативным условием или замените тип блока на action."
            if narrow else None,
        )

        for dec in decisions:
            targets = [block_map[c] for c in dec.connections if c in block_map]
            unlabeled = [t for t in targets if not t.condition_label and not t.is_default]
            report.add(
                CAT_GATEWAYS, f"Ветви «{dec.name}» подписаны условиями", not unlabeled,
                f"Все ветви решения «{dec.name}» имеют подписи условий — логика выбора прозрачна для исполнителей."
                if not unlabeled else
                f"{len(unlabeled)} ветвей без подписи: {_quoted(unlabeled)}. "
                f"Исполнитель не поймёт, при каком условии выбрать эту ветвь.",
                Severity.WARNING,
                location=f"Решение «{dec.name}» — этап {data.stage_name(dec.stage)}, роль {data.role_name(dec.role)}",
                block_ids=[dec.id] + [t.id for t in unlabeled],
                recommendation="Укажите условие (conditionLabel) для каждой исходящей ветви."
                if unlabeled else None,
            )

        for dec in decisions:
            targets = [block_map[c] for c in dec.connections if c in block_map]
            has_default = any(t.is_default for t in targets)
            report.add(
                CAT_GATEWAYS, f"«{dec.name}» имеет ветвь по умолчанию", has_default,
                f"Решение «{dec.name}» имеет ветвь по умолчанию — предусмотрен fallback-сценарий."
                if has_default else
                f"У решения «{dec.name}» нет ветви по умолчанию (isDefault). "
                f"Если ни одно условие не выполнено, процесс заблокируется.",
                Severity.WARNING,
                location=f"Решение «{dec.name}» — этап {data.stage_name(dec.stage)}, роль {data.role_name(dec.role)}",
                block_ids=[dec.id],
                recommendation=None if has_default else
                "Отметьте одну из ветвей как «по умолчанию» (isDefault).",
            )

    # ---------- 3. Roles and handoffs ----------

    def _check_roles(self, data: ProcessData, active: List[ProcessBlock],
                     block_map: Dict[str, ProcessBlock], report: _Report):
        t = self.thresholds

        role_ids = {r.id for r in data.roles}
        orphans = [b for b in active if b.role not in role_ids]
        report.add(
            CAT_ROLES, "Все блоки ссылаются на существующие роли", not orphans,
            "Каждый блок размещён в объявленной дорожке."
            if not orphans else
            f"{len(orphans)} блоков ссылаются на неизвестные роли: "
            + "; ".join(f"«{b.name}» → {b.role}" for b in orphans) + ".",
            Severity.ERROR,
            block_ids=[b.id for b in orphans] or None,
            recommendation="Укажите для блоков id существующей роли или добавьте недостающую роль."
            if orphans else None,
        )

        used_roles = {b.role for b in active}
        empty_roles = [r for r in data.roles if r.id not in used_roles]
        report.add(
            CAT_ROLES, "Нет пустых дорожек (все роли имеют блоки)", not empty_roles,
            f"Все {len(data.roles)} ролей задействованы — каждый участник имеет задачи в процессе."
            if not empty_roles else
            f"{len(empty_roles)} ролей без единого блока: "
            + ", ".join(f"«{r.name}»" for r in empty_roles) + ". Эти дорожки пустуют.",
            Severity.WARNING,
            location=", ".join(f"Роль «{r.name}»" for r in empty_roles) or None,
            recommendation="Добавьте задачи для этих ролей или удалите неиспользуемые роли из процесса."
            if empty_roles else None,
        )

        handoffs = sum(
            1
            for b in active
            for target in b.connections
            if target in block_map and block_map[target].role != b.role
        )
        enough = handoffs >= t.min_handoffs
        report.add(
            CAT_ROLES, f"Процесс перетекает между ролями (handoffs ≥ {t.min_handoffs})", enough,
            f"Обнаружено {handoffs} передач между ролями — процесс демонстрирует реальное межфункциональное взаимодействие."
            if enough else
            f"Только {handoffs} передач между ролями. Для кросс-функционального процесса рекомендуется минимум {t.min_handoffs}.",
            Severity.INFO if handoffs >= t.handoff_info_floor else Severity.WARNING,
            recommendation=None if enough else
            "Проверьте, участвуют ли в процессе другие подразделения. Добавьте передачи задач между ролями.",
        )

        role_count = len(data.roles)
        enough_roles = role_count >= t.min_roles
        report.add(
            CAT_ROLES, f"Минимум {t.min_roles} роли в процессе", enough_roles,
            f"В процессе {role_count} ролей: {', '.join(r.name for r in data.roles)}. "
            f"Достаточно для кросс-функциональной модели."
            if enough_roles else
            f"Только {role_count} роль(ей). Бизнес-процесс обычно затрагивает минимум {t.min_roles} подразделения/роли.",
            Severity.INFO if role_count >= t.role_info_floor else Severity.WARNING,
            recommendation=None if enough_roles else
            "Проанализируйте, кто ещё участвует: согласование, контроль, внешние партнёры.",
        )

    # ---------- 4. Readability ----------

    def _check_readability(self, data: ProcessData, active: List[ProcessBlock], report: _Report):
        t = self.thresholds

        compact = len(active) <= t.max_blocks
        report.add(
            CAT_READABILITY, f"Количество блоков ≤ {t.max_blocks} (не перегружено)", compact,
            f"{len(active)} блоков — диаграмма компактна и читаема."
            if compact else
            f"{len(active)} блоков — диаграмма перегружена. Сложно воспринимать процесс целиком.",
            Severity.INFO if compact else Severity.WARNING,
            recommendation=None if compact else
            "Разбейте процесс на подпроцессы. Выделите крупные блоки в отдельные диаграммы.",
        )

        structured = len(data.stages) >= t.min_stages
        report.add(
            CAT_READABILITY, f"Минимум {t.min_stages} этапа для структуры", structured,
            f"{len(data.stages)} этапов: {', '.join(s.name for s in data.stages)}. Процесс хорошо структурирован."
            if structured else
            f"Только {len(data.stages)} этап(а). Без деления на этапы сложно понять фазы процесса.",
            Severity.WARNING,
            recommendation=None if structured else
            "Разделите процесс минимум на 3 этапа: начало, основная работа, завершение.",
        )

        stage_ids = {s.id for s in data.stages}
        misplaced = [b for b in active if b.stage not in stage_ids]
        report.add(
            CAT_READABILITY, "Все блоки ссылаются на существующие этапы", not misplaced,
            "Каждый блок отнесён к объявленному этапу."
            if not misplaced else
            f"{len(misplaced)} блоков ссылаются на неизвестные этапы: "
            + "; ".join(f"«{b.name}» → {b.stage}" for b in misplaced) + ".",
            Severity.ERROR,
            block_ids=[b.id for b in misplaced] or None,
            recommendation="Укажите для блоков id существующего этапа или добавьте недостающий этап."
            if misplaced else None,
        )

        no_desc = [b for b in active if len(b.description or "") < t.min_description_length]
        more = f" и ещё {len(no_desc) - 5}" if len(no_desc) > 5 else ""
        report.add(
            CAT_READABILITY, "Блоки имеют описания", not no_desc,
            "Все блоки имеют описания — участники процесса смогут понять назначение каждого шага."
            if not no_desc else
            f"{len(no_desc)} блоков без описания: {_quoted(no_desc, 5)}{more}.",
            Severity.INFO,
            block_ids=[b.id for b in no_desc] or None,
            recommendation="Добавьте описание для каждого блока." if no_desc else None,
        )

    # ---------- 5. Documents and data ----------

    def _check_documents(self, data: ProcessData, active: List[ProcessBlock], report: _Report):
        actions = [b for b in active if b.type == BlockType.ACTION]

        self._check_action_share(
            data, actions, report,
            missing=[b for b in actions if not b.input_documents],
            rule="Action-блоки имеют входные документы",
            ok_text="действий имеют входные документы — информационные потоки определены",
            fail_text="действий без входных документов",
            recommendation="Укажите, какие документы/данные нужны для выполнения каждого действия.",
        )
        self._check_action_share(
            data, actions, report,
            missing=[b for b in actions if not b.info_systems],
            rule="Action-блоки указывают информационные системы",
            ok_text="действий привязаны к информационным системам",
            fail_text="действий без указания систем",
            recommendation="Укажите, в какой системе (CRM, ERP, 1С и т.д.) выполняется каждое действие.",
        )
        self._check_action_share(
            data, actions, report,
            missing=[b for b in actions if not b.time_estimate],
            rule="Action-блоки имеют оценку времени",
            ok_text="действий имеют оценку времени — можно рассчитать длительность процесса",
            fail_text="действий без оценки времени",
            recommendation="Укажите timeEstimate для каждого действия (напр. «15 мин», «1 ч»).",
        )

    def _check_action_share(self, data: ProcessData, actions: List[ProcessBlock], report: _Report, *,
                            missing: List[ProcessBlock], rule: str, ok_text: str, fail_text: str,
                            recommendation: str):
        passed = len(missing) <= len(actions) * self.thresholds.max_missing_ratio
        ellipsis = "..." if len(missing) > 4 else ""
        report.add(
            CAT_DATA, rule, passed,
            f"{len(actions) - len(missing)} из {len(actions)} {ok_text}."
            if passed else
            f"{len(missing)} из {len(actions)} {fail_text}: {_quoted(missing, 4)}{ellipsis}.",
            Severity.INFO,
            block_ids=None if passed else [b.id for b in missing],
            location=None if passed else "; ".join(
                f"«{b.name}» — роль {data.role_name(b.role)}" for b in missing[:3]
            ),
            recommendation=None if passed else recommendation,
        )

    # ---------- 6. Value alignment ----------

    def _check_value(self, data: ProcessData, active: List[ProcessBlock], report: _Report):
        t = self.thresholds

        products = [b for b in active if b.type == BlockType.PRODUCT]
        has_products = len(products) >= t.min_products
        report.add(
            CAT_VALUE, "Есть промежуточные результаты (product-блоки)", has_products,
            f"{len(products)} промежуточных результатов: {_quoted(products)}. Процесс создаёт измеримые артефакты."
            if has_products else
            f"Только {len(products)} product-блоков. Рекомендуется минимум {t.min_products} "
            f"для фиксации промежуточных результатов.",
            Severity.WARNING,
            block_ids=[b.id for b in products] or None,
        )

        decisions = [b for b in active if b.type == BlockType.DECISION]
        has_decisions = len(decisions) >= t.min_decisions
        report.add(
            CAT_VALUE, "Есть точки принятия решений (decision-блоки)", has_decisions,
            f"{len(decisions)} точек решений — процесс учитывает альтернативные сценарии."
            if has_decisions else
            "Нет ни одной точки принятия решений. Полностью линейный процесс редко отражает реальность.",
            Severity.WARNING,
            block_ids=[b.id for b in decisions] or None,
        )

        goal = data.goal or ""
        has_goal = len(goal) >= t.min_goal_length
        report.add(
            CAT_VALUE, "Цель процесса указана", has_goal,
            f"Цель процесса: «{goal}». Все шаги должны работать на достижение этой цели."
            if has_goal else
            "Цель процесса не указана или слишком короткая.",
            Severity.WARNING,
            recommendation=None if has_goal else
            "Сформулируйте цель процесса: что должно произойти и для кого создаётся ценность.",
        )

    # ---------- 7. Automation potential ----------

    def _check_automation(self, active: List[ProcessBlock], report: _Report):
        systems = list(dict.fromkeys(s for b in active for s in (b.info_systems or [])))
        enough = len(systems) >= self.thresholds.min_info_systems
        report.add(
            CAT_AUTOMATION, "Информационные системы указаны в процессе", enough,
            f"Используется {len(systems)} систем: {', '.join(systems)}. "
            f"Можно анализировать интеграции и потенциал автоматизации."
            if enough else
            f"Указано только {len(systems)} систем. Для оценки автоматизации нужно указать информационные системы в блоках.",
            Severity.INFO,
            recommendation=None if enough else
            "Укажите используемые системы (CRM, ERP, 1С, Excel и др.) в каждом action-блоке.",
        )

    # ---------- Scoring ----------

    def _score(self, items: List[QualityCheckItem]) -> QualityCheckResult:
        errors = [i for i in items if not i.passed and i.severity == Severity.ERROR]
        warnings = [i for i in items if not i.passed and i.severity == Severity.WARNING]
        passed = sum(1 for i in items if i.passed)

        raw = passed / len(items) * 100 - len(errors) * ERROR_PENALTY - len(warnings) * WARNING_PENALTY
        score = max(0, min(100, _js_round(raw)))

        if errors:
            summary = f"Найдено {len(errors)} критических ошибок. Необходима доработка."
        elif warnings:
            summary = f"Процесс корректен. {len(warnings)} рекомендаций к улучшению."
        else:
            summary = "Процесс полностью соответствует стандартам BPMN."

        return QualityCheckResult(score=score, items=items, summary=summary)


def validate_process(
    data: Union[ProcessData, Mapping[str, Any]],
    thresholds: Optional[QualityThresholds] = None,
) -> QualityCheckResult:
    return QualityValidator(thresholds).validate(data)
