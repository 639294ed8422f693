from pydantic import BaseModel


class ValidationError(BaseModel):
    """Individual missing or invalid answer"""
    field: str
    code: str  # required, type, choice
    message: str
    page: str | None = None
    label: str | None = None  # "<page title>: <field label>"


class LockPreviewResponse(BaseModel):
    """What submitting the evaluation would report right now"""
    valid: bool
    errors: list[ValidationError]
    missing_fields: list[str]
