"""训练/饮食计划生成 —— 调用 Anthropic 兼容的 messages 接口。

生成失败（网络错误、接口报错、返回内容不是合法的计划 JSON）统一抛出
:class:`PlanGenerationError`，不重试。
"""
import json
from typing import List, Optional

import requests
from loguru import logger
from pydantic import BaseModel, ValidationError

from config.prompts import (
    DIET_SYSTEM_PROMPT, WORKOUT_SYSTEM_PROMPT,
    get_diet_prompt, get_workout_prompt,
)
from config.settings import settings

GENERIC_FAILURE = "Failed to generate plan. Please try again."


class PlanGenerationError(Exception):
    """计划生成失败"""

    def __init__(self, message: str = GENERIC_FAILURE) -> None:
        super().__init__(message)


class Exercise(BaseModel):
    name: str
    sets: str
    reps: str
    rest: str
    description: str


class WorkoutDay(BaseModel):
    day: str
    focus: str
    exercises: List[Exercise]


class WorkoutPlan(BaseModel):
    plan: List[WorkoutDay]


class Meal(BaseModel):
    name: str
    description: str
    calories: float


class DayMeals(BaseModel):
    breakfast: Meal
    lunch: Meal
    dinner: Meal
    snack: Meal


class DietDay(BaseModel):
    day: str
    meals: DayMeals
    total_calories: float


class DietPlan(BaseModel):
    plan: List[DietDay]


class PlanGenerator:
    """计划生成客户端

    Args:
        api_key: 接口密钥，默认取 settings.planner_api_key
        model: 模型名称
        base_url: 接口地址（Anthropic 兼容，不含 /v1/messages）
        timeout: 请求超时（秒）
    """

    def __init__(self, api_key: Optional[str] = None,
                 model: Optional[str] = None,
                 base_url: Optional[str] = None,
                 timeout: Optional[int] = None):
        self.api_key = api_key if api_key is not None else settings.planner_api_key
        self.model = model or settings.planner_model
        self.base_url = (base_url or settings.planner_base_url).rstrip("/")
        self.timeout = timeout or settings.planner_timeout

    def generate_workout_plan(self, goal: str, level: str,
                              days: str) -> WorkoutPlan:
        """生成每周训练计划"""
        text = self._request(WORKOUT_SYSTEM_PROMPT,
                             get_workout_prompt(goal, level, days))
        return self._parse(text, WorkoutPlan)

    def generate_diet_plan(self, goal: str, calories: str,
                           preference: str) -> DietPlan:
        """生成每周饮食计划"""
        text = self._request(DIET_SYSTEM_PROMPT,
                             get_diet_prompt(goal, calories, preference))
        return self._parse(text, DietPlan)

    def _request(self, system_prompt: str, user_prompt: str) -> str:
        if not self.api_key:
            logger.warning("Planner API key is not configured")
            raise PlanGenerationError()

        try:
            response = requests.post(
                f"{self.base_url}/v1/messages",
                headers={
                    "x-api-key": self.api_key,
                    "anthropic-version": "2023-06-01",
                    "content-type": "application/json",
                },
                json={
                    "model": self.model,
                    "max_tokens": 4096,
                    "system": system_prompt,
                    "messages": [{"role": "user", "content": user_prompt}],
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"Plan generation request failed: {e}")
            raise PlanGenerationError() from e

        blocks = payload.get("content") or []
        text = "".join(
            b.get("text", "") for b in blocks if b.get("type") == "text"
        ).strip()
        if not text:
            logger.error("Plan generation returned no text content")
            raise PlanGenerationError()
        return text

    @staticmethod
    def _parse(text: str, model_cls):
        # 去掉可能的 ```json 代码块包裹
        if text.startswith("```"):
            text = text.strip("`")
            if text.lower().startswith("json"):
                text = text[4:]
        try:
            return model_cls.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Plan generation returned an invalid plan: {e}")
            raise PlanGenerationError() from e
