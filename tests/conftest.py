"""
Shared pytest fixtures for the process map builder test suite.

Provides:
    - small_process: minimal cross-functional process dict that passes every check
    - block: factory for camelCase block dicts
    - fallback_process: deterministic template process built from empty answers
"""

import copy

import pytest

from services.fallback_builder import build_fallback_process


def _block(id, type, role, stage, connections=(), **extra):
    data = {
        "id": id,
        "name": extra.pop("name", id),
        "description": extra.pop("description", f"Описание шага {id}"),
        "type": type,
        "role": role,
        "stage": stage,
        "connections": list(connections),
    }
    data.update(extra)
    return data


def _action(id, role, stage, connections, **extra):
    extra.setdefault("timeEstimate", "30 мин")
    extra.setdefault("inputDocuments", ["Заявка"])
    extra.setdefault("infoSystems", ["CRM"])
    return _block(id, "action", role, stage, connections, **extra)


SMALL_PROCESS = {
    "name": "Обработка заявки",
    "goal": "Быстрый ответ клиенту",
    "owner": "Директор",
    "startEvent": "Заявка поступила",
    "endEvent": "Клиент получил ответ",
    "roles": [
        {"id": "r1", "name": "Руководитель", "description": "Контроль"},
        {"id": "r2", "name": "Менеджер", "description": "Работа с клиентом"},
        {"id": "r3", "name": "Аналитик", "description": "Анализ"},
    ],
    "stages": [
        {"id": "s1", "name": "Приём", "order": 1},
        {"id": "s2", "name": "Анализ", "order": 2},
        {"id": "s3", "name": "Ответ", "order": 3},
    ],
    "blocks": [
        _block("start", "start", "r1", "s1", ["a1"], name="Заявка поступила"),
        _action("a1", "r2", "s1", ["dec"], name="Принять заявку"),
        _block("dec", "decision", "r3", "s2", ["p1", "a2"], name="Заявка корректна?"),
        _block("p1", "product", "r1", "s2", ["a3"], name="Заявка принята", isDefault=True),
        _action("a2", "r2", "s2", ["end"], name="Отклонить заявку", conditionLabel="Нет"),
        _action("a3", "r3", "s3", ["p2"], name="Подготовить ответ", infoSystems=["1С"]),
        _block("p2", "product", "r2", "s3", ["end"], name="Ответ готов"),
        _block("end", "end", "r1", "s3", name="Готово"),
    ],
}


@pytest.fixture()
def small_process():
    """Fresh deep copy of the minimal valid process, safe to mutate."""
    return copy.deepcopy(SMALL_PROCESS)


@pytest.fixture()
def block():
    return _block


@pytest.fixture()
def fallback_process():
    return build_fallback_process({})


def find_block(process, block_id):
    return next(b for b in process["blocks"] if b["id"] == block_id)


@pytest.fixture()
def get_block():
    return find_block
