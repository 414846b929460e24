"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from xiaoe_gateway.domain.models import StudentComment, StudentProfile


class CamelModel(BaseModel):
    """Accepts and emits the web client's camelCase keys"""

    model_config = ConfigDict(populate_by_name=True)


class Credentials(BaseModel):
    """Request body for POST /api/register and /api/login"""

    username: str = Field("", max_length=64, description="Account name")
    password: str = Field("", description="Plaintext password, hashed before storage")


class UserSchema(BaseModel):
    username: str
    credits: int


class AuthResponse(BaseModel):
    message: str
    user: UserSchema


class UserResponse(BaseModel):
    user: UserSchema


class StudentProfileSchema(BaseModel):
    """Single student in a generation request"""

    name: str = Field(..., min_length=1)
    role: str = "none"
    incidents: str = "none"
    tags: str = "none"

    def to_domain(self) -> StudentProfile:
        return StudentProfile(name=self.name, role=self.role, incidents=self.incidents, tags=self.tags)


class GenerateCommentRequest(CamelModel):
    """Request body for POST /api/generate-comment"""

    student_profiles: List[StudentProfileSchema] = Field(..., min_length=1, alias="studentProfiles")
    comment_style: str = Field(..., alias="commentStyle")
    model: str = Field(..., min_length=1)
    username: str = ""


class CommentSectionSchema(BaseModel):
    source: str
    text: str


class StudentCommentSchema(CamelModel):
    """One generated comment blueprint"""

    student_name: str = Field(..., alias="studentName")
    intro: str
    body: List[CommentSectionSchema]
    conclusion: str

    @classmethod
    def from_domain(cls, comment: StudentComment) -> "StudentCommentSchema":
        return cls(
            student_name=comment.student_name,
            intro=comment.intro,
            body=[CommentSectionSchema(source=s.source, text=s.text) for s in comment.body],
            conclusion=comment.conclusion,
        )


class GenerateAlternativesRequest(CamelModel):
    """Request body for POST /api/generate-alternatives"""

    original_text: str = Field(..., min_length=1, alias="originalText")
    source_tag: str = Field("", alias="sourceTag")
    comment_style: str = Field(..., alias="commentStyle")
    model: str = Field(..., min_length=1)
    username: str = ""


class CreateOrderRequest(BaseModel):
    """Request body for POST /api/create-alipay-order"""

    username: str = Field(..., min_length=1)


class CreateOrderResponse(CamelModel):
    qr_code_url: str = Field(..., alias="qrCodeUrl")
    order_id: str = Field(..., alias="orderId")


class CancelOrderRequest(CamelModel):
    """Request body for POST /api/cancel-order"""

    username: str = Field(..., min_length=1)
    order_id: str = Field(..., min_length=1, alias="orderId")


class OrderStatusResponse(CamelModel):
    order_id: str = Field(..., alias="orderId")
    status: str
    credits_granted: int = Field(..., alias="creditsGranted")
    paid_at: Optional[str] = Field(None, alias="paidAt")
