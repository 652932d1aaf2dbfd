"""
Test cases as returned by the TestMo API.
"""
import json
from typing import Any, Optional, Union
from pydantic import BaseModel, model_validator

# TestMo custom fields come back as strings, numbers or booleans depending on field type
Scalar = Optional[Union[str, int, float, bool]]


class TestCase(BaseModel):
    """
    TestMo test case. Only the fields used for health metrics and CSV export
    are declared; any other upstream field is kept as extra data.
    """

    __test__ = False  # not a pytest test class

    id: Optional[Union[int, str]] = None
    title: Optional[str] = None
    priority: Scalar = None
    custom_priority: Scalar = None
    custom_complexity: Scalar = None
    custom_impact_of_failure: Scalar = None
    custom_likelihood_of_failure: Scalar = None
    custom_can_be_automated: Scalar = None
    custom_automation_status: Scalar = None
    status: Scalar = None
    custom_release: Scalar = None
    custom_issues: Scalar = None

    class Config:
        extra = "allow"

    @model_validator(mode="before")
    @classmethod
    def _flatten_structured_values(cls, data: Any) -> Any:
        # Some TestMo custom fields arrive as lists or objects; keep them as text
        if isinstance(data, dict):
            data = {
                k: (json.dumps(v) if isinstance(v, (dict, list)) and k in cls.model_fields else v)
                for k, v in data.items()
            }
        return data

    @property
    def automation_status(self) -> str:
        return str(self.custom_automation_status or self.custom_can_be_automated or "")

    @property
    def execution_status(self) -> str:
        return str(self.status or "")
