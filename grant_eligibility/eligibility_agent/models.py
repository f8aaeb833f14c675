import json
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class EligibilityRequest(BaseModel):
    pdfLink: Optional[str] = None


class EligibilityResult(BaseModel):
    prime_applicant_types: List[str] = Field(default_factory=list)
    sub_applicant_types: List[str] = Field(default_factory=list)
    qualifiers: List[str] = Field(default_factory=list)
    disqualifiers: List[str] = Field(default_factory=list)


class CheckEligibilityArguments(BaseModel):
    filename: Optional[str] = None
    eligibility: EligibilityResult = Field(default_factory=EligibilityResult)


class EligibilityResponse(BaseModel):
    criteria: Dict[str, Any]  # raw tool call from the assistant


class ErrorResponse(BaseModel):
    code: str
    errorMsg: str


def parse_criteria(tool_call: Dict[str, Any]) -> CheckEligibilityArguments:
    """
    Decode the `arguments` string of a checkEligibility tool call.

    The API hands the tool call back untouched; this is for callers that want
    typed criteria. Raises ValueError on malformed arguments.
    """
    arguments = tool_call.get("function", {}).get("arguments") or "{}"
    try:
        data = json.loads(arguments)
    except json.JSONDecodeError as e:
        raise ValueError(f"Tool call arguments are not valid JSON: {e}") from e
    return CheckEligibilityArguments.model_validate(data)
