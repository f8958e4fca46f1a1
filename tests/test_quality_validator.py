"""Tests for the process quality validator and its scoring."""

import pytest

from schemas.process_data import ProcessDataError
from schemas.quality import Severity
from services.quality_validator import (
    QualityThresholds, QualityValidator, reachable_from_starts, validate_process,
)
from schemas.process_data import parse_process_data


def item(report, rule):
    return next(i for i in report.items if i.rule == rule)


# ── Baseline ─────────────────────────────────────────────────────────────


class TestCleanProcess:
    def test_all_checks_pass(self, small_process):
        report = validate_process(small_process)

        assert all(i.passed for i in report.items)
        assert report.score == 100
        assert report.summary == "Процесс полностью соответствует стандартам BPMN."

    def test_check_ids_are_sequential(self, small_process):
        report = validate_process(small_process)
        assert [i.id for i in report.items] == [f"check_{n}" for n in range(1, len(report.items) + 1)]

    def test_one_label_and_default_check_per_decision(self, small_process):
        report = validate_process(small_process)
        rules = [i.rule for i in report.items]

        assert "Ветви «Заявка корректна?» подписаны условиями" in rules
        assert "«Заявка корректна?» имеет ветвь по умолчанию" in rules
        assert len(report.items) == 26

    def test_report_is_deterministic(self, small_process):
        assert validate_process(small_process) == validate_process(small_process)

    def test_malformed_payload_raises(self):
        with pytest.raises(ProcessDataError):
            validate_process({"name": "x", "blocks": [{"id": "b1"}]})


# ── Logical completeness ─────────────────────────────────────────────────


class TestLogic:
    def test_dangling_connection_is_reported(self, small_process, get_block):
        get_block(small_process, "a1")["connections"].append("ghost")
        report = validate_process(small_process)

        check = item(report, "Все связи ссылаются на существующие блоки")
        assert not check.passed
        assert check.severity == Severity.ERROR
        assert "«Принять заявку» → ghost (несуществующий блок)" in check.details
        assert check.block_ids == ["a1"]

    def test_end_with_outgoing_edge_is_reported(self, small_process, get_block):
        get_block(small_process, "end")["connections"] = ["a3"]
        report = validate_process(small_process)

        check = item(report, "End-блоки не имеют исходящих связей")
        assert not check.passed
        assert "«Готово»" in check.details
        assert check.block_ids == ["end"]

    def test_missing_start_and_end(self, small_process, get_block):
        get_block(small_process, "start")["type"] = "action"
        get_block(small_process, "end")["type"] = "product"
        report = validate_process(small_process)

        assert not item(report, "Процесс имеет стартовый блок").passed
        assert not item(report, "Процесс имеет конечный блок").passed
        assert "Найдено" in report.summary

    def test_unreachable_block(self, small_process, block):
        small_process["blocks"].append(block("orphan", "action", "r2", "s2", ["end"], name="Сирота"))
        report = validate_process(small_process)

        check = item(report, "Все блоки достижимы от start")
        assert not check.passed
        assert check.block_ids == ["orphan"]
        assert "«Сирота»" in check.details

    def test_dead_end(self, small_process, get_block):
        get_block(small_process, "p2")["connections"] = []
        report = validate_process(small_process)

        check = item(report, "Нет «мёртвых» концов (блоки без исходящих кроме end)")
        assert not check.passed
        assert check.block_ids == ["p2"]

    def test_reachability_is_single_pass_over_cycles(self, small_process, get_block):
        get_block(small_process, "a3")["connections"].append("a1")
        data = parse_process_data(small_process)
        assert reachable_from_starts(data.block_map()) == set(data.block_map())


# ── Gateways ─────────────────────────────────────────────────────────────


class TestGateways:
    def test_unlabelled_non_default_branch_warns(self, small_process, get_block):
        a2 = get_block(small_process, "a2")
        a2["conditionLabel"] = ""
        a2["isDefault"] = False
        report = validate_process(small_process)

        check = item(report, "Ветви «Заявка корректна?» подписаны условиями")
        assert not check.passed
        assert check.severity == Severity.WARNING
        assert check.block_ids == ["dec", "a2"]
        assert report.failed_errors == []
        assert report.summary == "Процесс корректен. 1 рекомендаций к улучшению."

    def test_missing_default_branch_warns(self, small_process, get_block):
        get_block(small_process, "p1")["isDefault"] = False
        get_block(small_process, "p1")["conditionLabel"] = "Да"
        report = validate_process(small_process)

        check = item(report, "«Заявка корректна?» имеет ветвь по умолчанию")
        assert not check.passed
        assert check.severity == Severity.WARNING

    def test_single_exit_decision_is_error(self, small_process, get_block):
        get_block(small_process, "dec")["connections"] = ["p1"]
        get_block(small_process, "a2")["connections"] = ["end"]
        report = validate_process(small_process)

        assert not item(report, "Decision-блоки имеют 2+ исходящих ветви").passed


# ── Roles, readability, data, value ──────────────────────────────────────


class TestRolesAndStructure:
    def test_empty_lane_warns(self, small_process):
        small_process["roles"].append({"id": "r4", "name": "Юрист"})
        report = validate_process(small_process)

        check = item(report, "Нет пустых дорожек (все роли имеют блоки)")
        assert not check.passed
        assert "«Юрист»" in check.details

    def test_handoff_threshold_is_configurable(self, small_process):
        strict = QualityThresholds(min_handoffs=20)
        report = QualityValidator(strict).validate(small_process)

        check = item(report, "Процесс перетекает между ролями (handoffs ≥ 20)")
        assert not check.passed
        assert check.severity == Severity.INFO
        assert "Только 8 передач" in check.details

    def test_few_stages_warn(self, small_process, get_block):
        small_process["stages"] = small_process["stages"][:2]
        for b in small_process["blocks"]:
            if b["stage"] == "s3":
                b["stage"] = "s2"
        report = validate_process(small_process)

        assert not item(report, "Минимум 3 этапа для структуры").passed

    def test_missing_inputs_over_ratio_fails(self, small_process, get_block):
        get_block(small_process, "a1")["inputDocuments"] = []
        report = validate_process(small_process)

        check = item(report, "Action-блоки имеют входные документы")
        assert not check.passed
        assert check.severity == Severity.INFO
        assert check.details.startswith("1 из 3")

    def test_missing_inputs_within_ratio_passes(self, small_process, get_block):
        get_block(small_process, "a1")["inputDocuments"] = []
        lenient = QualityThresholds(max_missing_ratio=0.5)
        report = QualityValidator(lenient).validate(small_process)

        assert item(report, "Action-блоки имеют входные документы").passed

    def test_short_goal_warns(self, small_process):
        small_process["goal"] = "—"
        report = validate_process(small_process)
        assert not item(report, "Цель процесса указана").passed


# ── Identifiers and references ───────────────────────────────────────────


class TestIdentifiers:
    def test_duplicate_block_id_is_error(self, small_process, block):
        small_process["blocks"].append(block("a1", "action", "r1", "s1", ["dec"], name="Двойник"))
        report = validate_process(small_process)

        check = item(report, "Идентификаторы блоков уникальны")
        assert not check.passed
        assert check.severity == Severity.ERROR
        assert check.block_ids == ["a1"]
        assert "a1" in check.details
        assert report.score < 100

    def test_duplicate_inactive_block_id_is_error(self, small_process, block):
        small_process["blocks"].append(block("a3", "action", "r1", "s1", [], isActive=False))
        report = validate_process(small_process)
        assert not item(report, "Идентификаторы блоков уникальны").passed

    def test_duplicate_role_and_stage_ids_are_error(self, small_process):
        small_process["roles"].append({"id": "r1", "name": "Второй руководитель"})
        small_process["stages"].append({"id": "s2", "name": "Повтор", "order": 4})
        report = validate_process(small_process)

        check = item(report, "Идентификаторы ролей и этапов уникальны")
        assert not check.passed
        assert check.severity == Severity.ERROR
        assert "роль r1" in check.details
        assert "этап s2" in check.details

    def test_unknown_role_reference_is_error(self, small_process, get_block):
        get_block(small_process, "a1")["role"] = "nobody"
        report = validate_process(small_process)

        check = item(report, "Все блоки ссылаются на существующие роли")
        assert not check.passed
        assert check.severity == Severity.ERROR
        assert check.block_ids == ["a1"]
        assert "«Принять заявку» → nobody" in check.details

    def test_unknown_stage_reference_is_error(self, small_process, get_block):
        get_block(small_process, "a3")["stage"] = "s9"
        report = validate_process(small_process)

        check = item(report, "Все блоки ссылаются на существующие этапы")
        assert not check.passed
        assert check.severity == Severity.ERROR
        assert check.block_ids == ["a3"]
        assert "«Подготовить ответ» → s9" in check.details


# ── Inactive blocks ──────────────────────────────────────────────────────


class TestInactiveBlocks:
    def test_inactive_blocks_are_excluded(self, small_process, block):
        small_process["blocks"].append(
            block("old", "action", "r2", "s2", [], name="Старый шаг", isActive=False)
        )
        report = validate_process(small_process)

        first = report.items[0]
        assert first.id == "check_1"
        assert first.severity == Severity.INFO
        assert first.passed
        assert first.block_ids == ["old"]
        assert report.failed_errors == []
        assert report.score == 100

    def test_no_status_item_without_inactive_blocks(self, small_process):
        report = validate_process(small_process)
        assert report.items[0].rule == "Процесс имеет стартовый блок"


# ── Scoring ──────────────────────────────────────────────────────────────


class TestScoring:
    def test_warning_costs_two_points(self, small_process, get_block):
        a2 = get_block(small_process, "a2")
        a2["conditionLabel"] = ""
        report = validate_process(small_process)

        # 25 of 26 passed, minus one warning
        assert report.score == round(25 / 26 * 100 - 2)

    def test_score_clamped_to_zero(self):
        report = validate_process({"name": "Пусто", "blocks": []})
        assert 0 <= report.score <= 100

    def test_extra_failure_never_raises_score(self, small_process, get_block):
        base = validate_process(small_process).score
        get_block(small_process, "a1")["connections"].append("ghost")
        broken = validate_process(small_process).score
        get_block(small_process, "end")["connections"] = ["a3"]
        worse = validate_process(small_process).score

        assert base > broken > worse

    @pytest.mark.parametrize("use_fallback", [False, True])
    def test_removing_inputs_never_raises_score(self, use_fallback, small_process, fallback_process):
        process = fallback_process.to_json() if use_fallback else small_process
        scores = [validate_process(process).score]
        for b in process["blocks"]:
            if b["type"] == "action" and b.get("inputDocuments"):
                del b["inputDocuments"]
                scores.append(validate_process(process).score)

        assert len(scores) > 2
        assert scores == sorted(scores, reverse=True)
        assert scores[-1] < scores[0]
