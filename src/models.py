"""
Data Models

Dataclasses shared by the intake, extraction, form and storage modules.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional


@dataclass
class ImageFile:
    """An image accepted by intake, identified within a session by its name."""
    data: bytes
    name: str
    mime_type: str
    preview: Optional[bytes] = None
    upload_id: Optional[str] = None

    def release_preview(self):
        self.preview = None


@dataclass(frozen=True)
class ConversionOutput:
    question: str = ""
    options: tuple = ()

    @classmethod
    def empty(cls) -> "ConversionOutput":
        return cls(question="", options=())

    def is_empty(self) -> bool:
        return not self.question and not self.options


@dataclass
class SelectedImage:
    image: ImageFile
    conversion_output: ConversionOutput


@dataclass
class DropdownOption:
    id: str
    value: str
    label: str


@dataclass
class QuestionDraft:
    """Editable form state. `options` is newline-delimited raw text."""
    question: str = ""
    options: str = ""
    image: str = ""
    solution_image: Optional[str] = None
    test_name_id: str = ""
    question_subject_id: str = ""
    question_difficulty: str = ""
    created_at: Optional[str] = None


@dataclass
class SavedOption:
    value: str
    correct: bool
    type: str = "text"


@dataclass
class SavedQuestion:
    question: str
    options: list[SavedOption]
    image: str
    test_name_id: str
    question_subject_id: str
    solution_image: Optional[str] = None
    created_at: Optional[str] = None

    def to_row(self) -> dict:
        """Row for the `questions` table (snake_case columns)."""
        return {
            "question": self.question,
            "options": [
                {"type": o.type, "value": o.value, "correct": o.correct}
                for o in self.options
            ],
            "image": self.image,
            "solution_image": self.solution_image,
            "test_name_id": self.test_name_id,
            "question_subject_id": self.question_subject_id,
        }


@dataclass
class SubmitResult:
    ok: bool
    message: str
    errors: list[str] = field(default_factory=list)
    row: Optional[list] = None

    def to_dict(self) -> dict:
        return asdict(self)
