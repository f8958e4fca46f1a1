"""Tests for admission of externally produced process maps."""

import json

import pytest

from schemas.process_data import ProcessDataError
from services.process_gate import ProcessRejectedError, admit_process


class TestAdmitProcess:
    def test_clean_process_admitted(self, small_process):
        data, report = admit_process(small_process)
        assert data.name == small_process["name"]
        assert report.score == 100

    def test_model_text_admitted(self, small_process):
        data, _ = admit_process("Ответ:\n" + json.dumps(small_process, ensure_ascii=False))
        assert len(data.blocks) == 8

    def test_warnings_do_not_block(self, small_process, get_block):
        get_block(small_process, "a2")["conditionLabel"] = ""
        data, report = admit_process(small_process)
        assert report.failed_warnings

    def test_error_rejects_with_report(self, small_process, get_block):
        get_block(small_process, "a1")["connections"] = ["ghost"]

        with pytest.raises(ProcessRejectedError) as exc_info:
            admit_process(small_process)

        report = exc_info.value.report
        assert report.failed_errors
        assert "Все связи ссылаются на существующие блоки" in str(exc_info.value)

    def test_malformed_payload_raises_data_error(self):
        with pytest.raises(ProcessDataError):
            admit_process("not a process")

    def test_duplicate_ids_reject(self, small_process, block):
        small_process["blocks"].append(block("a1", "action", "r1", "s1", ["dec"]))
        small_process["roles"].append({"id": "r1", "name": "Двойник"})

        with pytest.raises(ProcessRejectedError) as exc_info:
            admit_process(small_process)

        rules = {i.rule for i in exc_info.value.report.failed_errors}
        assert {"Идентификаторы блоков уникальны", "Идентификаторы ролей и этапов уникальны"} <= rules

    def test_unknown_role_rejects(self, small_process, get_block):
        get_block(small_process, "a1")["role"] = "nobody"

        with pytest.raises(ProcessRejectedError, match="существующие роли"):
            admit_process(small_process)
