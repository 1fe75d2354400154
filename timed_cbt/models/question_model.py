import enum
from typing import Any, Dict, Iterator, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator


class OptionKey(str, enum.Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class Question(BaseModel):
    """
    객관식 시험 문제 모델 (불변).

    content 필드는 렌더링용 원본 데이터(발문, 보기, 해설 등)로,
    세션 엔진은 해석하지 않는다.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="문제 고유 식별자"
    )
    order: int = Field(
        ...,
        ge=0,
        description="문제 세트 내 위치 (0-based)"
    )
    subject: str = Field(
        ...,
        min_length=1,
        description="과목명"
    )
    topic: str = Field(
        "General",
        description="세부 주제"
    )
    difficulty: str = Field(
        "medium",
        description="난이도 (easy / medium / hard 등)"
    )
    correct_option: OptionKey = Field(
        ...,
        description="정답 보기 키 (A-D)"
    )
    content: Dict[str, Any] = Field(
        default_factory=dict,
        description="엔진이 해석하지 않는 문제 본문 데이터"
    )

    @field_validator("correct_option", mode="before")
    @classmethod
    def normalize_option(cls, v: Any) -> Any:
        """보기 키는 대소문자/공백을 무시하고 받는다 ('a ' → 'A')."""
        if isinstance(v, str):
            return v.strip().upper()
        return v


class QuestionSet(BaseModel):
    """
    한 세션에서 사용하는 순서 고정 문제 목록.

    검증 규칙:
      - order는 리스트 위치와 일치해야 한다 (0부터 연속).
      - id는 중복될 수 없다.
    """
    model_config = ConfigDict(frozen=True)

    questions: Tuple[Question, ...] = ()

    _by_id: Dict[str, Question] = PrivateAttr(default_factory=dict)

    @model_validator(mode="after")
    def validate_order_and_ids(self) -> "QuestionSet":
        seen = set()
        for position, q in enumerate(self.questions):
            if q.order != position:
                raise ValueError(
                    f"문제 '{q.id}'의 order({q.order})가 위치({position})와 다릅니다."
                )
            if q.id in seen:
                raise ValueError(f"중복된 문제 ID입니다: {q.id}")
            seen.add(q.id)
        return self

    def model_post_init(self, __context: Any) -> None:
        self._by_id = {q.id: q for q in self.questions}

    @classmethod
    def from_list(cls, questions: List[Question]) -> "QuestionSet":
        return cls(questions=tuple(questions))

    def __len__(self) -> int:
        return len(self.questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self.questions)

    def __getitem__(self, index: int) -> Question:
        return self.questions[index]

    def get(self, question_id: str) -> Question | None:
        return self._by_id.get(question_id)

    def index_of(self, question_id: str) -> int:
        q = self.get(question_id)
        return -1 if q is None else q.order
