"""
ReportRecord model representing one person's report for one day.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ReportRecord(BaseModel):
    """
    One person's daily work report after validation.

    Text fields are stored exactly as extracted: line breaks, numbering and
    indentation are part of the content and are never trimmed.

    Attributes:
        id: Identifier assigned by the authoritative store (None before persistence)
        employee_name: Raw display name as extracted
        date: Canonical report date (YYYY-MM-DD)
        department: One value of the configured department enumeration
        content: Today's work, verbatim
        next_steps: Tomorrow's plan, verbatim
        blockers: Problems raised, verbatim
        matched_keywords: Configured keywords found in the text fields
    """

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=False,
        json_schema_extra={
            "example": {
                "id": "3f2a9c1e0b7d4e58a6c2f1d09e8b7a65",
                "employeeName": "王强 Wang Qiang",
                "date": "2024-01-05",
                "department": "蔬果",
                "content": "1. 西瓜到货500斤，已全部上架。\n2. 处理叶菜损耗，共计20斤。",
                "nextSteps": "",
                "blockers": "",
                "matchedKeywords": ["损耗"],
            }
        },
    )

    id: str | None = None
    employee_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("employee_name", "employeeName"),
        serialization_alias="employeeName",
    )
    date: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}-\d{2}$",
        validation_alias=AliasChoices("date", "reportDate"),
    )
    department: str = Field(..., min_length=1)
    content: str = Field(
        "",
        validation_alias=AliasChoices("content", "contentSummary"),
    )
    next_steps: str = Field(
        "",
        validation_alias=AliasChoices("next_steps", "nextSteps"),
        serialization_alias="nextSteps",
    )
    blockers: str = ""
    matched_keywords: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("matched_keywords", "matchedKeywords"),
        serialization_alias="matchedKeywords",
    )

    def to_payload(self) -> dict:
        """Serialize with the camelCase field names used by stored blobs."""
        return self.model_dump(by_alias=True)

    def text_fields(self) -> list[str]:
        """Return the verbatim text blocks in display order."""
        return [self.content, self.next_steps, self.blockers]
