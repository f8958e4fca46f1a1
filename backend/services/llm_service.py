"""
LLM Service for Process Generation

Asks the OpenAI chat model for a complete swimlane process in ProcessData
JSON. Whatever comes back is admitted through the quality gate; generation
falls back to the deterministic builder when the model is unavailable or
its answer is rejected.
"""

import openai
import json
import logging
from typing import Any, Mapping, Optional

from schemas.process_data import ProcessData, ProcessDataError, lane_color
from services.fallback_builder import build_fallback_process
from services.interview_questions import FILES_KEY
from services.process_gate import ProcessRejectedError, admit_process
from services.quality_validator import QualityThresholds
from utils.config import get_settings

logger = logging.getLogger(__name__)


class LLMServiceError(Exception):
    """Raised when the model cannot produce an admissible process"""
    pass


PROCESS_GENERATION_PROMPT = """Ты — эксперт по бизнес-процессам и нотации BPMN 2.0 Swimlane.
На основе ответов анкеты сгенерируй ДЕТАЛЬНОЕ описание бизнес-процесса в формате JSON.

ВАЖНО: Ответ — ТОЛЬКО валидный JSON, без markdown-разметки, без пояснений.

Формат ответа:
{
  "name": "Название процесса",
  "goal": "Цель процесса",
  "owner": "Владелец процесса",
  "startEvent": "Что запускает процесс",
  "endEvent": "Чем завершается процесс",
  "roles": [
    { "id": "role_1", "name": "Название роли", "description": "Зона ответственности", "department": "Отдел" }
  ],
  "stages": [
    { "id": "stage_1", "name": "Название этапа", "order": 1 }
  ],
  "blocks": [
    {
      "id": "block_1",
      "name": "Краткое название (глагол)",
      "description": "Детальное описание (1-2 предложения)",
      "type": "start|action|product|decision|split|end",
      "role": "role_1",
      "stage": "stage_1",
      "timeEstimate": "15 мин",
      "inputDocuments": ["Документ 1"],
      "outputDocuments": ["Документ 2"],
      "infoSystems": ["CRM"],
      "connections": ["block_2"],
      "conditionLabel": "",
      "isDefault": false
    }
  ]
}

КРИТИЧЕСКИЕ ПРАВИЛА:
1. Генерируй 5-8 ролей (разных должностей/отделов), в каждой дорожке несколько блоков.
2. Генерируй 20-35 блоков и 5-8 этапов, в каждом этапе 3-6 блоков.
3. Связи (connections) должны идти между блоками в РАЗНЫХ дорожках — минимум 8-10 передач между ролями.
4. Используй 2-4 блока decision с двумя и более исходящими ветвями.
5. Используй 2-3 блока product (промежуточные результаты) между основными действиями.
6. Начало: 1 блок start. Конец: 1-2 блока end, у end-блоков нет исходящих связей.
7. Для decision-ветвей: у каждого потомка укажи conditionLabel, одна ветвь isDefault=true.
8. Каждый action-блок ОБЯЗАТЕЛЬНО имеет timeEstimate, inputDocuments и infoSystems.
9. Каждый блок, кроме end, имеет хотя бы одну исходящую связь, и все блоки достижимы от start."""

CHANGE_PROMPT = """Ты — эксперт по бизнес-процессам. Тебе дан текущий бизнес-процесс в формате JSON и описание требуемых изменений. Верни обновлённый процесс в том же формате JSON.

ВАЖНО: Ответ должен быть ТОЛЬКО валидным JSON без дополнительных пояснений."""


def format_answers(answers: Mapping[str, Any]) -> str:
    """Non-empty string answers as 'id: text' lines, metadata entries skipped"""
    lines = []
    for key, value in answers.items():
        if key == FILES_KEY or not isinstance(value, str) or not value.strip():
            continue
        lines.append(f"{key}: {value.strip()}")
    return "\n".join(lines)


def with_lane_colors(data: ProcessData) -> ProcessData:
    roles = [role.model_copy(update={"color": lane_color(i)}) for i, role in enumerate(data.roles)]
    return data.model_copy(update={"roles": roles})


class LLMService:
    """
    Service for generating and changing process maps with the LLM.
    Returns only graphs that passed the quality gate.
    """

    def __init__(self, client=None, model: Optional[str] = None,
                 thresholds: Optional[QualityThresholds] = None):
        settings = get_settings()
        self.model = model or settings.openai_model
        self.thresholds = thresholds or QualityThresholds.from_settings(settings)
        if client is not None:
            self.client = client
        elif settings.openai_api_key:
            self.client = openai.OpenAI(api_key=settings.openai_api_key)
        else:
            self.client = None

    @property
    def available(self) -> bool:
        return self.client is not None

    def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            response_format={"type": "json_object"},
            temperature=0.2,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content or ""

    async def generate_process(
        self, answers: Mapping[str, Any], company_name: str, industry: str = ""
    ) -> ProcessData:
        """
        Generate a process map from interview answers.

        Never fails: any problem with the model path is logged and the
        deterministic fallback process is returned instead.
        """
        answers = answers or {}
        if not self.available:
            logger.warning("OpenAI API key not configured, using fallback process for '%s'", company_name)
            return build_fallback_process(answers, company_name)

        user_prompt = f"""Компания: {company_name}
Отрасль: {industry}

Ответы на анкету:
{format_answers(answers)}

Сгенерируй МАКСИМАЛЬНО ДЕТАЛЬНЫЙ бизнес-процесс с 5-8 ролями, 5-8 этапами и 20-35 блоками. Ответ — ТОЛЬКО JSON."""

        try:
            text = self._complete(PROCESS_GENERATION_PROMPT, user_prompt, max_tokens=16000)
            data, report = admit_process(text, self.thresholds)
            logger.info("Process generated by LLM for '%s': %d blocks, score %d",
                        company_name, len(data.blocks), report.score)
            return with_lane_colors(data)
        except ProcessRejectedError as e:
            logger.warning("LLM process rejected by quality gate: %s", e)
        except ProcessDataError as e:
            logger.warning("LLM returned malformed process: %s", e)
        except Exception as e:
            logger.error("LLM generation error: %s", e, exc_info=True)

        return build_fallback_process(answers, company_name)

    async def apply_changes(self, current: ProcessData, change_description: str) -> ProcessData:
        """
        Rewrite an existing process according to a change request.
        Raises LLMServiceError; the current version stays untouched.
        """
        if not self.available:
            raise LLMServiceError("LLM is not configured")

        user_prompt = f"""Текущий процесс:
{json.dumps(current.to_json(), ensure_ascii=False, indent=2)}

Требуемые изменения:
{change_description}

Верни полный обновлённый JSON процесса с применёнными изменениями."""

        try:
            text = self._complete(CHANGE_PROMPT, user_prompt, max_tokens=8000)
            data, _ = admit_process(text, self.thresholds)
        except ProcessRejectedError as e:
            raise LLMServiceError(f"Changed process failed quality checks: {e}") from e
        except ProcessDataError as e:
            raise LLMServiceError(f"Changed process is malformed: {e}") from e
        except Exception as e:
            logger.error("LLM change error: %s", e, exc_info=True)
            raise LLMServiceError("Failed to apply changes via LLM") from e

        # Keep lane colours of roles that survived the change
        colors = {r.id: r.color for r in current.roles if r.color}
        roles = [
            role.model_copy(update={"color": colors.get(role.id) or lane_color(i)})
            for i, role in enumerate(data.roles)
        ]
        return data.model_copy(update={"roles": roles})
