"""
演示笔记本数据生成

四个人物 (Bob / Alice / Charlie / David) 过去 365 天的每日健康指标，
形状固定、数值带随机扰动。
"""

import random
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

FITNESS_COLUMNS = (
    "name", "record_date", "weight_kg", "body_fat_pct", "waist_cm",
    "resting_heart_rate", "sleep_hours", "steps", "calories_kcal",
)

FITNESS_DDL = {
    "mysql": """
        CREATE TABLE fitness_metrics (
            name VARCHAR(50),
            record_date DATE,
            weight_kg FLOAT COMMENT 'Body Weight in KG',
            body_fat_pct FLOAT COMMENT 'Body Fat Percentage',
            waist_cm FLOAT COMMENT 'Waist Circumference',
            resting_heart_rate INT COMMENT 'Resting BPM',
            sleep_hours FLOAT COMMENT 'Nightly Sleep Duration',
            steps INT COMMENT 'Daily Step Count',
            calories_kcal INT COMMENT 'Total Caloric Intake'
        )
    """,
    "postgres": """
        CREATE TABLE fitness_metrics (
            name VARCHAR(50),
            record_date DATE,
            weight_kg DOUBLE PRECISION,
            body_fat_pct DOUBLE PRECISION,
            waist_cm DOUBLE PRECISION,
            resting_heart_rate INT,
            sleep_hours DOUBLE PRECISION,
            steps INT,
            calories_kcal INT
        );
        COMMENT ON COLUMN fitness_metrics.weight_kg IS 'Body Weight in KG';
        COMMENT ON COLUMN fitness_metrics.body_fat_pct IS 'Body Fat Percentage';
        COMMENT ON COLUMN fitness_metrics.waist_cm IS 'Waist Circumference';
        COMMENT ON COLUMN fitness_metrics.resting_heart_rate IS 'Resting BPM';
        COMMENT ON COLUMN fitness_metrics.sleep_hours IS 'Nightly Sleep Duration';
        COMMENT ON COLUMN fitness_metrics.steps IS 'Daily Step Count';
        COMMENT ON COLUMN fitness_metrics.calories_kcal IS 'Total Caloric Intake';
    """,
}


@dataclass(frozen=True)
class Persona:
    name: str
    base_weight: float
    weight_trend: float
    base_fat: float
    base_waist: float
    base_rhr: int
    base_sleep: float
    base_steps: int
    base_cals: int
    # 每天体脂 / 腰围的线性变化
    fat_trend: float = 0.0
    waist_trend: float = 0.0
    # 周末多吃多睡
    weekend_cheat: bool = False


PERSONAS = (
    Persona("Bob", 105, -0.05, 32, 110, 85, 6, 3000, 2800, fat_trend=-0.02, waist_trend=-0.03),
    Persona("Alice", 42, 0.02, 16, 60, 75, 7.5, 6000, 1600),
    Persona("Charlie", 75, 0.01, 24, 90, 78, 5.5, 2500, 2400, weekend_cheat=True),
    Persona("David", 78, 0, 10, 75, 55, 8, 12000, 3000),
)

DAYS = 365


def generate_fitness_data(
    today: Optional[date] = None, rng: Optional[random.Random] = None
) -> list[tuple]:
    """生成 (DAYS + 1) * len(PERSONAS) 行，列顺序同 FITNESS_COLUMNS"""
    today = today or date.today()
    rng = rng or random.Random()
    rows = []

    for i in range(DAYS, -1, -1):
        day = today - timedelta(days=i)
        offset = DAYS - i
        weekend = day.weekday() >= 5

        for p in PERSONAS:
            weight = p.base_weight + offset * p.weight_trend + (rng.random() - 0.5)
            fat = p.base_fat + (rng.random() * 2 - 1) + p.fat_trend * offset
            waist = p.base_waist + (rng.random() - 0.5) + p.waist_trend * offset

            sleep = min(max(p.base_sleep + (rng.random() * 3 - 1), 4), 10)
            steps = max(p.base_steps + (rng.random() * 4000 - 2000), 500)
            cals = p.base_cals + (rng.random() * 600 - 300)

            if weekend and p.weekend_cheat:
                cals += 800
                sleep += 3

            rows.append((
                p.name,
                day,
                round(weight, 1),
                round(fat, 1),
                round(waist, 1),
                round(p.base_rhr + (rng.random() * 4 - 2)),
                round(sleep, 1),
                round(steps),
                round(cals),
            ))
    return rows


DEMO_APP_SQL = """SELECT
    name,
    AVG(steps) as avg_daily_steps,
    AVG(sleep_hours) as avg_sleep,
    AVG(calories_kcal) as avg_intake
FROM fitness_metrics
GROUP BY name
ORDER BY avg_daily_steps DESC;"""

DEMO_APP_PROMPT = "Compare daily activity, sleep and calorie intake across all users."


def demo_app_snapshot(timestamp: str) -> dict:
    """演示应用的结果快照 (前端懒加载时展示)"""
    return {
        "result": {
            "data": [
                {"name": "David", "avg_daily_steps": 12050, "avg_sleep": 7.9, "avg_intake": 3010},
                {"name": "Alice", "avg_daily_steps": 6020, "avg_sleep": 7.6, "avg_intake": 1605},
                {"name": "Bob", "avg_daily_steps": 3050, "avg_sleep": 6.1, "avg_intake": 2790},
                {"name": "Charlie", "avg_daily_steps": 2580, "avg_sleep": 5.8, "avg_intake": 2550},
            ],
            "columns": ["name", "avg_daily_steps", "avg_sleep", "avg_intake"],
            "timestamp": timestamp,
            "chartConfigs": [
                {
                    "type": "bar",
                    "xKey": "name",
                    "yKeys": ["avg_daily_steps"],
                    "title": "Activity Level by Person",
                    "description": "Average daily step count over the last year",
                },
                {
                    "type": "bar",
                    "xKey": "name",
                    "yKeys": ["avg_sleep"],
                    "title": "Sleep Quality Comparison",
                    "description": "Average nightly sleep hours",
                },
            ],
        },
        "analysis": (
            "### Health Analysis Summary\n\n"
            "**David (Athlete)** shows superior metrics across the board with >12k steps and "
            "~8h sleep, supporting high caloric intake.\n\n"
            "**Charlie & Bob** show concerning indicators: low activity (<4k steps) and "
            "insufficient sleep (<6.5h), which correlates with higher BMI metrics in the raw data."
        ),
    }


__all__ = [
    "FITNESS_COLUMNS",
    "FITNESS_DDL",
    "PERSONAS",
    "Persona",
    "generate_fitness_data",
    "DEMO_APP_SQL",
    "DEMO_APP_PROMPT",
    "demo_app_snapshot",
]
