from uuid import UUID

from pydantic import BaseModel


class LetterResponse(BaseModel):
    """Generated HR document, as HTML and base64 for download."""
    employee_id: UUID
    letter_type: str
    filename: str
    html: str
    content_base64: str
