"""Request payload models. Field names follow the JSON the clients send."""
import datetime
import re
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError, field_validator

from thinkquiz.services.errors import ValidationFailed

NAME_RE = re.compile(r"^[A-Za-z\s]+$")
PHONE_RE = re.compile(r"^(03\d{9}|\+92\d{10})$")
SPECIAL_RE = re.compile(r"[^A-Za-z0-9]")


class _Payload(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


def _check_password_strength(value):
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain an uppercase letter")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain a lowercase letter")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain a digit")
    if not SPECIAL_RE.search(value):
        raise ValueError("Password must contain a special character")
    return value


# -------------------
# AUTH / PROFILE
# -------------------
class RegisterRequest(_Payload):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    phone: Optional[str] = None
    dateOfBirth: Optional[datetime.date] = None

    @field_validator("name")
    @classmethod
    def _name_letters(cls, v):
        if not NAME_RE.match(v):
            raise ValueError("Name may only contain letters and spaces")
        return v

    @field_validator("password")
    @classmethod
    def _password_strength(cls, v):
        return _check_password_strength(v)

    @field_validator("phone")
    @classmethod
    def _phone_format(cls, v):
        if v in (None, ""):
            return None
        if not PHONE_RE.match(v):
            raise ValueError("Phone must look like 03XXXXXXXXX or +92XXXXXXXXXX")
        return v

    @field_validator("dateOfBirth")
    @classmethod
    def _age_range(cls, v):
        if v is None:
            return v
        today = datetime.date.today()
        age = today.year - v.year - ((today.month, today.day) < (v.month, v.day))
        if age < 13 or age > 100:
            raise ValueError("Age must be between 13 and 100")
        return v


class LoginRequest(_Payload):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class ProfileUpdateRequest(_Payload):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr


class ChangePasswordRequest(_Payload):
    currentPassword: str = Field(min_length=1, max_length=128)
    newPassword: str = Field(min_length=8, max_length=128)

    @field_validator("newPassword")
    @classmethod
    def _password_strength(cls, v):
        return _check_password_strength(v)


# -------------------
# QUIZ
# -------------------
class AnswerItem(_Payload):
    questionId: int
    selectedOption: int = Field(ge=0)


class SubmitQuizRequest(_Payload):
    answers: List[AnswerItem] = Field(min_length=1, max_length=500)


class QuestionPayload(_Payload):
    text: str = Field(min_length=1, max_length=1000)
    options: List[str] = Field(min_length=2, max_length=6)
    correctOption: Optional[int] = Field(default=None, ge=0)
    status: Literal["active", "paused"] = "active"

    @field_validator("options")
    @classmethod
    def _non_empty_options(cls, v):
        cleaned = [o.strip() for o in v]
        if any(not o for o in cleaned):
            raise ValueError("Options cannot be empty")
        return cleaned


class QuizCreateRequest(_Payload):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    duration: int = Field(default=30, ge=1, le=600)
    passingScore: int = Field(default=70, ge=0, le=100)
    timeLimit: int = Field(default=600, ge=10, le=36000)
    accessPrice: Optional[float] = Field(default=None, ge=0, le=1000)
    status: Literal["active", "paused", "draft"] = "active"
    startDate: Optional[datetime.datetime] = None
    endDate: Optional[datetime.datetime] = None
    questions: List[QuestionPayload] = Field(default_factory=list, max_length=200)


class QuizUpdateRequest(_Payload):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    duration: Optional[int] = Field(default=None, ge=1, le=600)
    passingScore: Optional[int] = Field(default=None, ge=0, le=100)
    timeLimit: Optional[int] = Field(default=None, ge=10, le=36000)
    accessPrice: Optional[float] = Field(default=None, ge=0, le=1000)
    status: Optional[Literal["active", "paused", "draft"]] = None
    startDate: Optional[datetime.datetime] = None
    endDate: Optional[datetime.datetime] = None


class QuestionCreateRequest(QuestionPayload):
    quizId: int


class QuestionUpdateRequest(_Payload):
    text: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    options: Optional[List[str]] = Field(default=None, min_length=2, max_length=6)
    correctOption: Optional[int] = Field(default=None, ge=0)
    status: Optional[Literal["active", "paused"]] = None
    position: Optional[int] = Field(default=None, ge=0)


class EvaluationRequest(_Payload):
    quizId: int
    correctAnswers: Dict[int, int]


class PointsAllocationRequest(_Payload):
    quizId: int
    pointsPerWinner: int = Field(default=10, ge=1, le=1000)
    percentageThreshold: float = Field(default=10, ge=0.01, le=100)
    prizeId: Optional[int] = None


# -------------------
# PAYMENTS / WALLET
# -------------------
class DailyPaymentRequest(_Payload):
    amount: float = Field(ge=0.01, le=1000)
    paymentMethod: str = Field(default="demo", max_length=30)
    transactionId: Optional[str] = Field(default=None, max_length=120)


class WalletAccessRequest(_Payload):
    quizId: Optional[int] = None


class DepositRequest(_Payload):
    amount: float = Field(le=100000)
    paymentMethod: Literal["Easypaisa", "Jazzcash", "Bank"]
    transactionId: str = Field(min_length=1, max_length=120)
    proofImage: Optional[str] = Field(default=None, max_length=300)


class WalletModerationRequest(_Payload):
    transactionId: int
    action: Literal["approve", "reject"]
    notes: Optional[str] = Field(default=None, max_length=500)


# -------------------
# PRIZES
# -------------------
class RedemptionRequest(_Payload):
    prizeId: int
    fullName: Optional[str] = Field(default=None, max_length=100)
    whatsappNumber: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None, max_length=500)


class PrizeRequest(_Payload):
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, max_length=2000)
    imageUrl: Optional[str] = Field(default=None, max_length=300)
    modelUrl: Optional[str] = Field(default=None, max_length=300)
    type: str = Field(default="general", max_length=50)
    pointsRequired: int = Field(ge=0, le=1000000)
    isActive: bool = True
    category: Literal["electronics", "vehicles", "accessories", "general"] = "general"
    stock: int = Field(default=0, ge=0)
    status: Literal["draft", "published"] = "published"
    value: float = Field(default=0.0, ge=0)


class PrizeUpdateRequest(_Payload):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = Field(default=None, max_length=2000)
    imageUrl: Optional[str] = Field(default=None, max_length=300)
    modelUrl: Optional[str] = Field(default=None, max_length=300)
    type: Optional[str] = Field(default=None, max_length=50)
    pointsRequired: Optional[int] = Field(default=None, ge=0, le=1000000)
    isActive: Optional[bool] = None
    category: Optional[Literal["electronics", "vehicles", "accessories", "general"]] = None
    stock: Optional[int] = Field(default=None, ge=0)
    status: Optional[Literal["draft", "published"]] = None
    value: Optional[float] = Field(default=None, ge=0)


class ClaimUpdateRequest(_Payload):
    claimId: int
    status: Literal["pending", "approved", "rejected", "fulfilled"]
    notes: Optional[str] = Field(default=None, max_length=500)


# -------------------
# STREAMING
# -------------------
class StreamEmbedRequest(_Payload):
    embedHtml: str = Field(min_length=10, max_length=20000)
    title: Optional[str] = Field(default=None, max_length=200)
    isActive: bool = True


# -------------------
# QUERY STRINGS
# -------------------
class LeaderboardQuery(_Payload):
    limit: int = Field(default=10, ge=1, le=100)
    timeframe: Literal["weekly", "monthly", "allTime"] = "allTime"
    quizId: Optional[int] = None


class SecurityEventsQuery(_Payload):
    timeframe: Literal["1h", "24h", "7d", "30d"] = "24h"
    severity: Optional[Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]] = None
    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


def format_validation_errors(exc):
    return [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


def parse_payload(model, data):
    """Validate ``data`` against ``model`` or raise ValidationFailed with field details."""
    if data is None:
        raise ValidationFailed("Invalid JSON body", details=[])
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed("Invalid input", details=format_validation_errors(exc)) from exc
