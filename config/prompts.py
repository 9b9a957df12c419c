"""训练/饮食计划生成的 Prompt 定义"""
import json

WORKOUT_SYSTEM_PROMPT = (
    "You are an expert fitness coach. Generate a detailed, weekly workout "
    "plan in JSON format based on the user's specifications. The plan "
    "should be structured by day and include exercises, sets, reps, and "
    "rest periods. Provide a brief description for each exercise."
)

DIET_SYSTEM_PROMPT = (
    "You are an expert nutritionist. Generate a detailed, weekly diet plan "
    "in JSON format based on the user's specifications. The plan should be "
    "structured by day and include breakfast, lunch, dinner, and a snack, "
    "with a name, description and calorie estimate for each meal."
)

_EXERCISE = {
    "name": "string", "sets": "string", "reps": "string",
    "rest": "string", "description": "string",
}

_MEAL = {"name": "string", "description": "string", "calories": "number"}

WORKOUT_PLAN_SHAPE = {
    "plan": [{"day": "string", "focus": "string", "exercises": [_EXERCISE]}]
}

DIET_PLAN_SHAPE = {
    "plan": [{
        "day": "string",
        "meals": {"breakfast": _MEAL, "lunch": _MEAL,
                  "dinner": _MEAL, "snack": _MEAL},
        "total_calories": "number",
    }]
}


def _with_shape(request: str, shape: dict) -> str:
    return (
        f"{request}\n\n"
        f"Respond with a single JSON object only, no markdown, matching "
        f"this shape:\n{json.dumps(shape, indent=2)}"
    )


def get_workout_prompt(goal: str, level: str, days: str) -> str:
    """获取训练计划请求文本

    Args:
        goal: 训练目标
        level: 健身水平
        days: 每周训练天数
    """
    return _with_shape(
        f"Generate a detailed weekly workout plan for a user with the "
        f"following details: Goal: {goal}, Fitness Level: {level}, "
        f"Days per week: {days}.",
        WORKOUT_PLAN_SHAPE,
    )


def get_diet_prompt(goal: str, calories: str, preference: str) -> str:
    """获取饮食计划请求文本"""
    return _with_shape(
        f"Generate a diet plan for a user with the following details: "
        f"Goal: {goal}, Daily Caloric Target: {calories}, "
        f"Dietary Preference: {preference}.",
        DIET_PLAN_SHAPE,
    )
