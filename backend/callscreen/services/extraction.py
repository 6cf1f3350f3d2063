"""Flatten a loosely-typed ElevenLabs conversation payload into qualification facts.

All nested-JSON access lives here. Every accessor treats a missing or oddly
shaped field as absent, so extraction never raises on provider data.
"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from callscreen.models import Qualification

logger = logging.getLogger(__name__)

FIRST_NAME = "First_Name"
LAST_NAME = "Last_Name"
PHONE = "Phone_number"
HAS_CDL = "question_one"
HAS_EXPERIENCE = "Question_two"
HOPPER_EXPERIENCE = "Question_three"
OTR_WILLING = "question_four"
HAS_VIOLATIONS = "question_five"
WORK_ELIGIBLE = "question_six"


class DataCollectionResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    value: Any = None
    json_schema: Optional[Dict[str, Any]] = None
    rationale: Optional[str] = None


class Analysis(BaseModel):
    model_config = ConfigDict(extra="allow")

    call_successful: Optional[str] = None
    transcript_summary: Optional[str] = None
    data_collection_results: Dict[str, DataCollectionResult] = Field(default_factory=dict)


class TranscriptEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: Optional[str] = None
    message: Optional[str] = None
    time_in_call_secs: Optional[float] = None


class ConversationPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    conversation_id: Optional[str] = None
    agent_id: Optional[str] = None
    status: Optional[str] = None
    transcript: List[TranscriptEntry] = Field(default_factory=list)
    analysis: Optional[Analysis] = None


class ExtractedData(BaseModel):
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    has_cdl: bool = False
    has_experience: bool = False
    has_violations: bool = False
    work_eligible: Optional[bool] = None
    hopper_experience: Optional[bool] = None
    otr_willing: Optional[bool] = None
    qualified: bool = False
    qualification: Qualification = Qualification.PENDING
    call_duration: Optional[float] = None
    call_successful: bool = False
    message_count: int = 0
    data_collection: Dict[str, Any] = Field(default_factory=dict)


def parse_payload(raw_payload: Any) -> ConversationPayload:
    if not isinstance(raw_payload, dict):
        return ConversationPayload()
    try:
        return ConversationPayload.model_validate(raw_payload)
    except ValidationError as exc:
        logger.warning("Conversation payload did not match expected shape: %s", exc.error_count())
    # Keep whatever parts are usable when the whole payload is malformed.
    return ConversationPayload(
        transcript=_safe_transcript(raw_payload.get("transcript")),
        analysis=_safe_analysis(raw_payload.get("analysis")),
    )


def _safe_transcript(value: Any) -> List[TranscriptEntry]:
    entries: List[TranscriptEntry] = []
    if not isinstance(value, list):
        return entries
    for item in value:
        try:
            entries.append(TranscriptEntry.model_validate(item))
        except ValidationError:
            entries.append(TranscriptEntry())
    return entries


def _safe_analysis(value: Any) -> Optional[Analysis]:
    if not isinstance(value, dict):
        return None
    results: Dict[str, DataCollectionResult] = {}
    raw_results = value.get("data_collection_results")
    if isinstance(raw_results, dict):
        for key, item in raw_results.items():
            try:
                results[key] = DataCollectionResult.model_validate(item)
            except ValidationError:
                continue
    call_successful = value.get("call_successful")
    return Analysis(
        call_successful=call_successful if isinstance(call_successful, str) else None,
        data_collection_results=results,
    )


def _text(results: Dict[str, DataCollectionResult], key: str) -> str:
    item = results.get(key)
    if item is None or item.value is None:
        return ""
    return str(item.value)


def _value(results: Dict[str, DataCollectionResult], key: str) -> Any:
    item = results.get(key)
    return None if item is None else item.value


def _optional_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def is_qualified(
    has_cdl: Any, has_experience: Any, has_violations: Any, work_eligible: Any
) -> bool:
    # Work eligibility only disqualifies on an explicit False; absence passes.
    return (
        has_cdl is True
        and has_experience is True
        and not (has_violations is True)
        and work_eligible is not False
    )


def extract(raw_payload: Any) -> ExtractedData:
    payload = parse_payload(raw_payload)
    analysis = payload.analysis or Analysis()
    results = analysis.data_collection_results

    cdl = _value(results, HAS_CDL)
    experience = _value(results, HAS_EXPERIENCE)
    violations = _value(results, HAS_VIOLATIONS)
    work_eligible = _value(results, WORK_ELIGIBLE)
    qualified = is_qualified(cdl, experience, violations, work_eligible)

    duration = payload.transcript[-1].time_in_call_secs if payload.transcript else None

    return ExtractedData(
        first_name=_text(results, FIRST_NAME),
        last_name=_text(results, LAST_NAME),
        phone=_text(results, PHONE),
        has_cdl=cdl is True,
        has_experience=experience is True,
        has_violations=violations is True,
        work_eligible=_optional_bool(work_eligible),
        hopper_experience=_optional_bool(_value(results, HOPPER_EXPERIENCE)),
        otr_willing=_optional_bool(_value(results, OTR_WILLING)),
        qualified=qualified,
        qualification=Qualification.from_bool(qualified) if results else Qualification.PENDING,
        call_duration=duration,
        call_successful=analysis.call_successful == "success",
        message_count=len(payload.transcript),
        data_collection=_raw_results(raw_payload),
    )


def _raw_results(raw_payload: Any) -> Dict[str, Any]:
    if not isinstance(raw_payload, dict):
        return {}
    analysis = raw_payload.get("analysis")
    if not isinstance(analysis, dict):
        return {}
    results = analysis.get("data_collection_results")
    return dict(results) if isinstance(results, dict) else {}
