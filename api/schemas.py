from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

CriterionTypeLiteral = Literal["avg_stay_time", "absence_days"]
OperatorLiteral = Literal["greater", "less"]


class ScreeningCriterionModel(BaseModel):
    id: Optional[str] = None
    type: CriterionTypeLiteral
    value: int
    operator: OperatorLiteral


def _default_criteria() -> List[ScreeningCriterionModel]:
    return [
        ScreeningCriterionModel(id="1", type="avg_stay_time", value=60, operator="less"),
        ScreeningCriterionModel(id="2", type="absence_days", value=3, operator="greater"),
    ]


class ClassSettingModel(BaseModel):
    id: Optional[str] = None
    class_name: str
    capacity: int = 20


class AdminSettingsModel(BaseModel):
    class_settings: List[ClassSettingModel] = Field(default_factory=list)
    screening_criteria: List[ScreeningCriterionModel] = Field(default_factory=_default_criteria)
    caregiver_start: str = "13:00"
    caregiver_end: str = "18:00"


class CapacityUpdateModel(BaseModel):
    class_name: str
    capacity: int = Field(gt=0)


class CaregiverHoursModel(BaseModel):
    start: str
    end: str


class CriterionCreateModel(BaseModel):
    type: CriterionTypeLiteral
    value: int
    operator: OperatorLiteral


class CriterionUpdateModel(BaseModel):
    type: Optional[CriterionTypeLiteral] = None
    value: Optional[int] = None
    operator: Optional[OperatorLiteral] = None
