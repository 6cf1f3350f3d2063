from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from callscreen.models import Qualification, ReportFrequency
from callscreen.services.reports import ReportData

ROLE_PATTERN = "^(ADMIN|RECRUITER)$"
FREQUENCY_PATTERN = "^(" + "|".join(frequency.value for frequency in ReportFrequency) + ")$"
REPORT_TYPE_PATTERN = "^(summary|detailed)$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: str


class LoginRequest(BaseModel):
    username: str = Field(min_length=3, max_length=150)
    password: str = Field(min_length=5, max_length=128)


class UserBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: Optional[str] = None
    role: str
    is_active: bool
    must_change_password: bool
    email_notifications: bool
    receive_notifications: bool


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=150)
    password: str = Field(min_length=8, max_length=128)
    role: str = Field(pattern=ROLE_PATTERN)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    email_notifications: bool = True
    receive_notifications: bool = True


class UserUpdate(BaseModel):
    is_active: Optional[bool] = None
    role: Optional[str] = Field(default=None, pattern=ROLE_PATTERN)
    must_change_password: Optional[bool] = None
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN)
    email_notifications: Optional[bool] = None
    receive_notifications: Optional[bool] = None


class ResetPasswordRequest(BaseModel):
    new_password: str = Field(min_length=8, max_length=128)


class CallRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: str
    agent_id: str
    status: str
    first_name: Optional[str]
    last_name: Optional[str]
    phone: Optional[str]
    qualification: Qualification
    qualified: Optional[bool]
    created_at: datetime
    updated_at: datetime


class CallRecordDetail(CallRecordOut):
    extracted_data: Optional[Dict[str, Any]] = None
    raw_data: Dict[str, Any]


class QualificationUpdate(BaseModel):
    qualification: Qualification


class CallStats(BaseModel):
    today_calls: int
    qualified: int
    pending: int
    qualification_rate: int


class ReportConfigBase(BaseModel):
    enabled: bool = True
    frequency: str = Field(pattern=FREQUENCY_PATTERN)
    frequency_value: int = Field(default=1, ge=1, le=365)
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    hour_of_day: int = Field(default=9, ge=0, le=23)
    report_type: str = Field(default="summary", pattern=REPORT_TYPE_PATTERN)
    include_metrics: Dict[str, bool] = Field(
        default_factory=lambda: {"total_calls": True, "qualified_leads": True, "conversion_rate": True}
    )
    include_call_details: bool = True
    subject_template: str = Field(default="TruckRecruit Pro - {period} Report", max_length=255)
    template_data: Dict[str, Any] = Field(default_factory=dict)


class ReportConfigCreate(ReportConfigBase):
    name: str = Field(min_length=1, max_length=120)
    next_send_at: Optional[datetime] = None


class ReportConfigUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    enabled: Optional[bool] = None
    frequency: Optional[str] = Field(default=None, pattern=FREQUENCY_PATTERN)
    frequency_value: Optional[int] = Field(default=None, ge=1, le=365)
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    hour_of_day: Optional[int] = Field(default=None, ge=0, le=23)
    report_type: Optional[str] = Field(default=None, pattern=REPORT_TYPE_PATTERN)
    include_metrics: Optional[Dict[str, bool]] = None
    include_call_details: Optional[bool] = None
    subject_template: Optional[str] = Field(default=None, max_length=255)
    template_data: Optional[Dict[str, Any]] = None
    next_send_at: Optional[datetime] = None


class ReportConfigOut(ReportConfigBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    frequency: str
    created_at: datetime
    updated_at: datetime
    last_sent_at: Optional[datetime]
    next_send_at: Optional[datetime]


class ReportPreview(BaseModel):
    subject: str
    data: ReportData


class EmailLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    report_config_id: Optional[int]
    recipient_email: str
    recipient_user_id: Optional[int]
    subject: str
    status: str
    provider_message_id: Optional[str]
    error_message: Optional[str]
    sent_at: datetime
    report_period_start: Optional[datetime]
    report_period_end: Optional[datetime]


class ReportTestRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN)
    report_config_id: Optional[int] = None


class SendResultOut(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class DeliveryResultOut(BaseModel):
    report_config_id: int
    sent: int
    failed: int
    errors: List[str]


class SchedulerStatus(BaseModel):
    running: bool
    active_configs: int
    last_tick_at: Optional[datetime]
    last_refresh_at: Optional[datetime]
    next_due_at: Optional[datetime]
