"""Tests for the ProcessData graph model and boundary parsing."""

import json

import pytest

from schemas.process_data import (
    BlockType, ProcessData, ProcessDataError, SWIMLANE_COLORS, lane_color, parse_process_data,
)


# ── Parsing ──────────────────────────────────────────────────────────────


class TestParseProcessData:
    def test_parses_camel_case_mapping(self, small_process):
        data = parse_process_data(small_process)

        assert data.name == "Обработка заявки"
        assert data.start_event == "Заявка поступила"
        assert len(data.blocks) == 8
        a1 = data.block_map()["a1"]
        assert a1.time_estimate == "30 мин"
        assert a1.input_documents == ["Заявка"]
        assert a1.type == BlockType.ACTION

    def test_returns_process_data_unchanged(self, small_process):
        data = ProcessData.model_validate(small_process)
        assert parse_process_data(data) is data

    def test_extracts_json_object_from_model_text(self, small_process):
        text = "Вот процесс:\n```json\n" + json.dumps(small_process, ensure_ascii=False) + "\n```"
        data = parse_process_data(text)
        assert data.name == small_process["name"]
        assert [b.id for b in data.blocks] == [b["id"] for b in small_process["blocks"]]

    def test_text_without_json_raises(self):
        with pytest.raises(ProcessDataError, match="No JSON object"):
            parse_process_data("Не удалось построить процесс")

    def test_broken_json_raises(self):
        with pytest.raises(ProcessDataError, match="Invalid JSON"):
            parse_process_data('{"name": "x", "blocks": [}')

    def test_unknown_block_type_raises(self, small_process):
        small_process["blocks"][1]["type"] = "task"
        with pytest.raises(ProcessDataError):
            parse_process_data(small_process)

    def test_missing_name_raises(self, small_process):
        del small_process["name"]
        with pytest.raises(ProcessDataError):
            parse_process_data(small_process)

    def test_non_object_raises(self):
        with pytest.raises(ProcessDataError, match="must be an object"):
            parse_process_data([1, 2, 3])

    def test_optional_collections_default_to_empty(self):
        data = parse_process_data({"name": "Пустой процесс"})
        assert data.roles == []
        assert data.stages == []
        assert data.blocks == []
        assert data.goal == ""


# ── Model helpers ────────────────────────────────────────────────────────


class TestProcessDataHelpers:
    def test_absent_is_active_means_active(self, small_process):
        small_process["blocks"][1]["isActive"] = False
        data = parse_process_data(small_process)

        assert data.block_map(active_only=False)["a1"].active is False
        assert data.block_map()["start"].active is True
        assert "a1" not in data.block_map()
        assert len(data.active_blocks()) == 7

    def test_role_and_stage_names_fall_back_to_id(self, small_process):
        data = parse_process_data(small_process)
        assert data.role_name("r2") == "Менеджер"
        assert data.role_name("ghost") == "ghost"
        assert data.stage_name("s3") == "Ответ"
        assert data.stage_name("s9") == "s9"

    def test_to_json_uses_camel_case_and_drops_unset(self, small_process):
        payload = parse_process_data(small_process).to_json()

        assert payload["startEvent"] == "Заявка поступила"
        a1 = next(b for b in payload["blocks"] if b["id"] == "a1")
        assert a1["timeEstimate"] == "30 мин"
        assert a1["infoSystems"] == ["CRM"]
        assert "conditionLabel" not in a1
        assert "isActive" not in a1

    def test_to_json_reparses_to_equal_model(self, small_process):
        data = parse_process_data(small_process)
        assert parse_process_data(data.to_json()) == data


class TestLaneColors:
    def test_palette_cycles(self):
        assert lane_color(0) == SWIMLANE_COLORS[0]
        assert lane_color(len(SWIMLANE_COLORS)) == SWIMLANE_COLORS[0]
        assert lane_color(13) == SWIMLANE_COLORS[1]
