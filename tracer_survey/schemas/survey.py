"""Pydantic schemas for survey authoring.

These schemas describe how a survey's question graph is written: through the
builder endpoints or from YAML survey definition files. Question and option
ids are optional; when supplied for rows that do not exist yet they become
the new rows' ids, which lets one payload reference its own parents and
branching triggers.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from tracer_survey.models.question import QuestionType, TEXT_QUESTION_TYPES
from tracer_survey.models.survey import RespondentRole, SurveyStatus


class OptionDefinition(BaseModel):
    """A selectable option of a question.

    Attributes:
        id: Existing or client-chosen option id
        answer_text: Text shown to the respondent
        sort_order: Ordering among the question's options
        is_triggered: Marks the option as a branching trigger
        other_option_placeholder: Set when the option asks for free text
    """
    id: Optional[str] = Field(None, min_length=1, max_length=64)
    answer_text: str = Field(..., min_length=1, description="Display text for option")
    sort_order: int = Field(0, ge=0)
    is_triggered: bool = False
    other_option_placeholder: Optional[str] = None


class QuestionDefinition(BaseModel):
    """A question as written by the builder.

    Attributes:
        id: Existing or client-chosen question id
        code: Code bucket (created on demand, unique per survey)
        parent_id: Container question (must not itself have a parent)
        group_name: Display group label
        question_text: Text shown to the respondent
        question_type: Question type
        is_required: Whether a visible instance must be answered
        sort_order: Ordering among siblings
        page_number: Form page
        placeholder: Input placeholder
        search_placeholder: Search box placeholder for combo boxes
        options: Options of the question
    """
    id: Optional[str] = Field(None, min_length=1, max_length=64)
    code: str = Field(..., min_length=1, max_length=50)
    parent_id: Optional[str] = None
    group_name: Optional[str] = None
    question_text: str = Field(..., min_length=1)
    question_type: QuestionType
    is_required: bool = False
    sort_order: int = Field(0, ge=0)
    page_number: int = Field(1, ge=1)
    placeholder: str = ""
    search_placeholder: str = ""
    options: list[OptionDefinition] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_options(self):
        """Text questions carry no options; option ids are unique."""
        if self.question_type in TEXT_QUESTION_TYPES and self.options:
            raise ValueError(
                f"{self.question_type.value} question '{self.question_text}' cannot declare options"
            )
        ids = [option.id for option in self.options if option.id]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate option ids in question '{self.question_text}'")
        return self


class BranchDefinition(BaseModel):
    """Branching rule: show the target when the trigger's answer contains the option."""
    trigger_question_id: str = Field(..., min_length=1)
    trigger_option_id: str = Field(..., min_length=1)
    target_question_id: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_not_self(self):
        if self.trigger_question_id == self.target_question_id:
            raise ValueError(f"Question '{self.target_question_id}' cannot trigger itself")
        return self


class BuilderPayload(BaseModel):
    """Bulk save of a survey's questions.

    ``branches`` replaces every branching rule of the survey when given and
    leaves existing rules untouched when omitted. ``pages`` is UI layout
    metadata and is only counted.
    """
    questions: list[QuestionDefinition] = Field(default_factory=list)
    branches: Optional[list[BranchDefinition]] = None
    pages: Optional[list[Any]] = None

    @field_validator("questions")
    @classmethod
    def unique_question_ids(cls, v):
        ids = [q.id for q in v if q.id]
        duplicates = sorted({qid for qid in ids if ids.count(qid) > 1})
        if duplicates:
            raise ValueError(f"Duplicate question ids found: {duplicates}")
        return v


class CodeQuestionCreate(BaseModel):
    """Create a new code bucket together with its questions."""
    code: str = Field(..., min_length=1, max_length=50)
    questions: list[QuestionDefinition] = Field(default_factory=list)

    @model_validator(mode="after")
    def questions_use_code(self):
        for question in self.questions:
            if question.code != self.code:
                raise ValueError(
                    f"Question '{question.question_text}' uses code '{question.code}', "
                    f"expected '{self.code}'"
                )
        return self


NON_NULLABLE_QUESTION_FIELDS = frozenset({
    "question_text",
    "question_type",
    "is_required",
    "sort_order",
    "page_number",
    "placeholder",
    "search_placeholder",
})


class QuestionUpdate(BaseModel):
    """Partial update of one question. Options, when given, replace the set."""
    question_text: Optional[str] = Field(None, min_length=1)
    question_type: Optional[QuestionType] = None
    is_required: Optional[bool] = None
    sort_order: Optional[int] = Field(None, ge=0)
    page_number: Optional[int] = Field(None, ge=1)
    placeholder: Optional[str] = None
    search_placeholder: Optional[str] = None
    group_name: Optional[str] = None
    options: Optional[list[OptionDefinition]] = None

    @model_validator(mode="after")
    def no_null_required_fields(self):
        """Omit a field to keep it; only group_name may be cleared with null."""
        nulled = sorted(
            field for field in self.model_fields_set
            if field in NON_NULLABLE_QUESTION_FIELDS and getattr(self, field) is None
        )
        if nulled:
            raise ValueError(f"Fields cannot be null: {nulled}")
        return self


class QuestionOrder(BaseModel):
    question_id: str = Field(..., min_length=1)
    sort_order: int = Field(..., ge=0)


class ReorderRequest(BaseModel):
    orders: list[QuestionOrder] = Field(..., min_length=1)


class BuilderResult(BaseModel):
    survey_id: str
    total_questions: int
    total_pages: int


class SurveyRuleDefinition(BaseModel):
    """Eligibility rule; omitted fields match anything."""
    faculty_code: Optional[str] = None
    major_code: Optional[str] = None
    degree: Optional[str] = None
    graduated_year: Optional[int] = Field(None, ge=1950, le=2100)


class SurveyMetadata(BaseModel):
    """Survey identification and publication state.

    Attributes:
        id: Survey identifier
        title: Survey title
        description: Survey description
        target_role: Role of respondents the survey targets
        status: Publication status
    """
    id: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    target_role: RespondentRole
    status: SurveyStatus = SurveyStatus.DRAFT

    @field_validator("id")
    @classmethod
    def id_alphanumeric(cls, v):
        """Ensure ID is alphanumeric with underscores/hyphens only."""
        if not v.replace("_", "").replace("-", "").isalnum():
            raise ValueError("Survey ID must be alphanumeric with underscores/hyphens")
        return v


class SurveyDefinition(BaseModel):
    """Complete, self-contained survey definition (root of a YAML file).

    Unlike builder payloads, every parent and branching reference must
    resolve inside the definition itself.
    """
    metadata: SurveyMetadata
    greeting_opening: Optional[dict[str, Any]] = None
    greeting_closing: Optional[dict[str, Any]] = None
    rules: list[SurveyRuleDefinition] = Field(default_factory=list)
    builder: BuilderPayload

    @model_validator(mode="after")
    def validate_references(self):
        """Check that parents, triggers and targets exist in the definition."""
        questions = {q.id: q for q in self.builder.questions if q.id}

        for question in self.builder.questions:
            if question.parent_id and question.parent_id not in questions:
                raise ValueError(
                    f"Question '{question.question_text}' references unknown parent "
                    f"'{question.parent_id}'"
                )

        for branch in self.builder.branches or []:
            for ref in (branch.trigger_question_id, branch.target_question_id):
                if ref not in questions:
                    raise ValueError(f"Branch references unknown question '{ref}'")

        return self
