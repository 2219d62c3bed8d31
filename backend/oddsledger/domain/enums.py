from enum import StrEnum


class BetType(StrEnum):
    SPREAD = "spread"
    TOTAL = "total"
    MONEYLINE = "moneyline"


class Side(StrEnum):
    HOME = "HOME"
    AWAY = "AWAY"
    OVER = "OVER"
    UNDER = "UNDER"


class PickStatus(StrEnum):
    PENDING = "pending"
    WIN = "win"
    LOSS = "loss"
    PUSH = "push"


class GameStatus(StrEnum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINAL = "final"
    POSTPONED = "postponed"


class TiePolicy(StrEnum):
    PUSH = "push"
    LOSS = "loss"
    EXCLUDE = "exclude"


class RunType(StrEnum):
    COLLECT = "collect"
    GRADE = "grade"
