"""
Interview Questions Service
Question catalogue of the business-owner interview and completion tracking
"""

from typing import Dict, List, Any, Mapping, Optional
from dataclasses import dataclass
from enum import Enum


class InterviewMode(str, Enum):
    FULL = "full"
    EXPRESS = "express"


# Metadata entry stored alongside answers; never a question
FILES_KEY = "__files__"


@dataclass(frozen=True)
class InterviewQuestion:
    id: str
    block: str
    block_name: str
    question: str
    required: bool
    express_mode: bool
    order: int
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "block": self.block,
            "blockName": self.block_name,
            "question": self.question,
            "hint": self.hint,
            "required": self.required,
            "expressMode": self.express_mode,
            "order": self.order,
        }


_A = "Границы процесса (SIPOC)"
_B = "Клиенты и ценность (BMC)"
_C = "Каналы и взаимодействие (BMC)"
_D = "Основной поток (Key Activities)"
_E = "Участники и ресурсы (Key Resources)"
_F = "Документы и данные"
_G = "Доход и контроль затрат (BMC)"
_H = "Метрики и SLA"
_I = "Проблемы и риски"
_J = "Оптимизация и автоматизация"

INTERVIEW_QUESTIONS: List[InterviewQuestion] = [
    InterviewQuestion("a1", "A", _A, "Какой бизнес-процесс вы хотите описать? Дайте ему название.", True, True, 1),
    InterviewQuestion("a2", "A", _A, "Кто является клиентом (потребителем результата) этого процесса?", True, True, 2,
                      "Внешний клиент, внутренний заказчик, отдел, партнёр"),
    InterviewQuestion("a3", "A", _A, "Что является входом (триггером) процесса? Что запускает его?", True, True, 3,
                      "Заявка, заказ, запрос, событие, дата, сигнал из системы"),
    InterviewQuestion("a4", "A", _A, "Каков ожидаемый результат (выход) процесса? Что получает клиент?", True, True, 4,
                      "Продукт, услуга, документ, решение, статус"),
    InterviewQuestion("a5", "A", _A, "Кто является владельцем (ответственным) процесса?", True, True, 5),
    InterviewQuestion("a6", "A", _A, "Где проходят границы процесса — что НЕ входит в его зону?", False, False, 6,
                      "Например: послепродажное обслуживание не входит в процесс продаж"),

    InterviewQuestion("b1", "B", _B, "Какие сегменты клиентов обслуживает этот процесс?", True, True, 7,
                      "B2B, B2C, крупный/средний/малый бизнес, госсектор, физлица"),
    InterviewQuestion("b2", "B", _B, "Какую ценность (Value Proposition) создаёт процесс для клиента?", True, True, 8,
                      "Решение проблемы, экономия времени, снижение рисков, удобство"),
    InterviewQuestion("b3", "B", _B, "Каковы критерии успеха процесса с точки зрения клиента?", True, False, 9,
                      "Скорость, качество, стоимость, полнота, точность"),
    InterviewQuestion("b4", "B", _B, "Отличается ли процесс для разных сегментов клиентов? Если да, как?", False, False, 10,
                      "Разные ветки, сроки, условия, уровни обслуживания"),

    InterviewQuestion("c1", "C", _C, "Через какие каналы клиент инициирует процесс?", True, True, 11,
                      "Сайт, телефон, email, мессенджер, личный визит, API"),
    InterviewQuestion("c2", "C", _C, "Как клиент получает информацию о ходе и результате процесса?", False, False, 12,
                      "Уведомления, личный кабинет, звонок менеджера, письмо"),
    InterviewQuestion("c3", "C", _C,
                      "Какие точки взаимодействия с клиентом существуют в ходе процесса ('моменты истины')?",
                      False, False, 13, "Первый контакт, презентация, согласование, приёмка, обратная связь"),
    InterviewQuestion("c4", "C", _C, "Какие правила согласования/утверждения действуют в процессе?", False, False, 14,
                      "Кто согласовывает, при какой сумме, сколько уровней"),

    InterviewQuestion("d1", "D", _D, "Опишите основные этапы (крупные стадии) процесса от начала до конца.", True, True, 15,
                      "Инициация → Квалификация → Подготовка → Согласование → Исполнение → Контроль → Закрытие"),
    InterviewQuestion("d2", "D", _D, "Какие конкретные действия выполняются на каждом этапе?", True, True, 16,
                      "Используйте формат: Глагол + Объект (Проверить заявку, Сформировать КП)"),
    InterviewQuestion("d3", "D", _D, "Есть ли в процессе точки принятия решений? Опишите условия и варианты.",
                      True, False, 17, "Одобрено/Отклонено, Соответствует/Не соответствует, Сумма > порога"),
    InterviewQuestion("d4", "D", _D, "Есть ли действия, которые выполняются параллельно?", False, False, 18,
                      "Одновременная подготовка документов и согласование с партнёром"),
    InterviewQuestion("d5", "D", _D, "Что происходит при ошибке или отклонении от нормального хода?", False, False, 19,
                      "Возврат, эскалация, повторная проверка, отмена"),
    InterviewQuestion("d6", "D", _D, "Сколько времени занимает каждый этап?", False, False, 20),

    InterviewQuestion("e1", "E", _E, "Какие роли (должности/подразделения) участвуют в процессе?", True, True, 21,
                      "Менеджер, Аналитик, Руководитель, Бухгалтер, Юрист, Технический специалист"),
    InterviewQuestion("e2", "E", _E, "Кто за что отвечает? Опишите зоны ответственности.", True, False, 22,
                      "Кто выполняет (R), кто утверждает (A), кого информируют (I)"),
    InterviewQuestion("e3", "E", _E, "Участвуют ли внешние партнёры или подрядчики? Какова их роль?", False, False, 23,
                      "Поставщик, банк, курьерская служба, подрядчик, аудитор"),
    InterviewQuestion("e4", "E", _E, "Какие информационные системы используются в процессе?", True, True, 24,
                      "CRM, ERP, 1С, email, мессенджеры, СЭД, BI, Jira"),
    InterviewQuestion("e5", "E", _E, "Какие системы интегрированы между собой? Какие данные передаются?", False, False, 25),

    InterviewQuestion("f1", "F", _F, "Какие документы создаются или используются в процессе?", True, True, 26,
                      "Заявка, КП, договор, счёт, акт, отчёт, протокол"),
    InterviewQuestion("f2", "F", _F, "На каком этапе какой документ создаётся и кто его формирует?", False, False, 27),
    InterviewQuestion("f3", "F", _F, "Какие промежуточные результаты (артефакты) создаются в ходе процесса?",
                      False, False, 28, "Расчёт, протокол согласования, чек-лист, акт приёмки"),

    InterviewQuestion("g1", "G", _G, "В какой момент процесса фиксируется выручка? Каковы условия оплаты?",
                      False, False, 29, "Предоплата, постоплата, этапное финансирование, подписка"),
    InterviewQuestion("g2", "G", _G, "Какие документы являются основанием для оплаты?", False, False, 30,
                      "Счёт, акт выполненных работ, накладная, договор"),
    InterviewQuestion("g3", "G", _G, "Есть ли точки контроля бюджета или лимитов в процессе?", False, False, 31,
                      "Лимит суммы сделки, бюджет проекта, контроль себестоимости"),

    InterviewQuestion("h1", "H", _H, "Какие KPI используются для оценки процесса?", False, False, 32,
                      "Время выполнения, конверсия, количество ошибок, удовлетворённость"),
    InterviewQuestion("h2", "H", _H, "Каковы целевые значения (SLA) для ключевых этапов?", False, False, 33,
                      "Ответ на заявку — 1 ч, подготовка КП — 1 день, согласование — 3 дня"),
    InterviewQuestion("h3", "H", _H, "Что происходит при нарушении SLA? Есть ли эскалация?", False, False, 34),

    InterviewQuestion("i1", "I", _I, "Какие основные проблемы и узкие места существуют в процессе?", False, False, 35),
    InterviewQuestion("i2", "I", _I, "На каких этапах чаще всего возникают задержки или ошибки?", False, False, 36),
    InterviewQuestion("i3", "I", _I, "Бывают ли ситуации потери информации при передаче между участниками?",
                      False, False, 37),
    InterviewQuestion("i4", "I", _I, "Какие контрольные точки и проверки качества существуют?", False, False, 38,
                      "4-eyes принцип, чек-листы, тестирование, приёмка"),

    InterviewQuestion("j1", "J", _J, "Какие этапы вы хотели бы автоматизировать в первую очередь?", False, False, 39),
    InterviewQuestion("j2", "J", _J, "Рассматриваете ли вы внедрение новых систем или ИИ-инструментов?", False, False, 40,
                      "Чат-боты, RPA, BI-аналитика, электронный документооборот"),
    InterviewQuestion("j3", "J", _J, "Какие ограничения нужно учитывать при изменении процесса?", False, False, 41,
                      "Бюджет, регуляторные требования, зависимость от партнёров"),
]


def get_questions_by_mode(mode: InterviewMode = InterviewMode.FULL) -> List[InterviewQuestion]:
    if InterviewMode(mode) == InterviewMode.EXPRESS:
        return [q for q in INTERVIEW_QUESTIONS if q.express_mode]
    return list(INTERVIEW_QUESTIONS)


def get_questions_by_block(block: str) -> List[InterviewQuestion]:
    return [q for q in INTERVIEW_QUESTIONS if q.block == block.upper()]


def is_answered(answers: Mapping[str, Any], question_id: str) -> bool:
    value = answers.get(question_id)
    return isinstance(value, str) and bool(value.strip())


def completion_percent(answers: Optional[Mapping[str, Any]], mode: InterviewMode = InterviewMode.FULL) -> int:
    """Share of the mode's questions with a non-blank answer, 0-100"""
    questions = get_questions_by_mode(mode)
    answers = answers or {}
    answered = sum(1 for q in questions if is_answered(answers, q.id))
    return int(answered / len(questions) * 100 + 0.5)


def questions_payload(mode: InterviewMode = InterviewMode.FULL, block: Optional[str] = None) -> List[Dict[str, Any]]:
    questions = get_questions_by_mode(mode)
    if block:
        in_block = {q.id for q in get_questions_by_block(block)}
        questions = [q for q in questions if q.id in in_block]
    return [q.to_dict() for q in questions]
