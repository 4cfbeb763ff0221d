"""Pydantic schemas for response state, completion and display-ready answers."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Completion(BaseModel):
    """Completion of a response against the visible required leaf questions.

    Attributes:
        total_required: Visible, required, answerable questions
        answered_required: Those of them that carry a non-empty answer
        percentage: answered_required / total_required * 100, rounded half up;
            100 when nothing is required
        total_questions: Visible answerable questions, required or not
        answered_questions: Those of them that carry a non-empty answer
    """
    model_config = ConfigDict(frozen=True)

    total_required: int = Field(..., ge=0)
    answered_required: int = Field(..., ge=0)
    percentage: int = Field(..., ge=0, le=100)
    total_questions: int = Field(0, ge=0)
    answered_questions: int = Field(0, ge=0)

    @property
    def is_complete(self) -> bool:
        """Every required question is answered.

        Compared on counts: 199 of 200 rounds to 100% but is not complete.
        """
        return self.answered_required == self.total_required


class OptionSelection(BaseModel):
    """Selection state of one option, for re-rendering a form."""
    id: str
    text: str
    is_selected: bool


class QuestionAnswerView(BaseModel):
    """Display-ready answer to one question."""
    question_id: str
    question_text: str
    question_type: str
    is_required: bool
    is_visible: bool
    is_answered: bool
    sort_order: int
    answer: Optional[str] = None
    other_text: Optional[str] = None
    options: list[OptionSelection] = Field(default_factory=list)
    children: list["QuestionAnswerView"] = Field(default_factory=list)


class AnswerSet(BaseModel):
    """All answers of a response keyed by question id, plus display order."""
    response_id: str
    questions: list[QuestionAnswerView] = Field(default_factory=list)

    def get(self, question_id: str) -> Optional[QuestionAnswerView]:
        """Find a question's view, searching children too."""
        for view in self.questions:
            if view.question_id == question_id:
                return view
            for child in view.children:
                if child.question_id == question_id:
                    return child
        return None

    @property
    def by_question(self) -> dict[str, QuestionAnswerView]:
        result = {}
        for view in self.questions:
            result[view.question_id] = view
            for child in view.children:
                result[child.question_id] = child
        return result


class ResponseOut(BaseModel):
    """Response state returned after a draft save or submit."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    survey_id: str
    respondent_id: str
    submitted_at: Optional[datetime] = None
    is_draft: bool
    completion: Completion
    visible_question_ids: list[str] = Field(default_factory=list)


class ResponseDetail(ResponseOut):
    """Response state together with every answer."""
    answers: AnswerSet


class ResponseListItem(BaseModel):
    """One row of an admin response listing."""
    id: str
    respondent_id: str
    full_name: str
    email: str
    submitted_at: Optional[datetime] = None
    completion: Completion


class ResponseListStats(BaseModel):
    total: int
    submitted: int
    drafts: int
    average_completion: int


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ResponseList(BaseModel):
    responses: list[ResponseListItem]
    meta: PageMeta
    stats: ResponseListStats
