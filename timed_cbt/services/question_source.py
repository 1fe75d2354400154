"""
services/question_source.py

문제 세트 로딩.
Public API:
  - JsonQuestionSource(questions_dir).fetch_questions(test_id) -> QuestionSet
  - build_question_set(items) -> QuestionSet

파일 형식: <questions_dir>/<test_id>.json
  [ {"id": ..., "subject": ..., "correct_option": "A", ...}, ... ]
  또는 {"questions": [ ... ]}
order 가 없는 항목은 파일 내 위치로 채운다.
"""

import json
import logging
import os
from typing import Any, Dict, List

from pydantic import ValidationError

from timed_cbt.models.question_model import Question, QuestionSet

logger = logging.getLogger(__name__)

_CONTENT_FIELDS = ("question", "question_text", "context", "options", "solution", "explanation")


def build_question_set(items: List[Dict[str, Any]]) -> QuestionSet:
    """
    원본 딕셔너리 목록 → QuestionSet.

    정의된 필드 외의 본문 관련 키(question, options 등)는 content 로 옮긴다.
    하나라도 검증에 실패하면 ValueError.
    """
    questions: List[Question] = []
    for position, raw in enumerate(items):
        data = dict(raw)
        data.setdefault("order", position)
        if "id" in data:
            data["id"] = str(data["id"])
        content = dict(data.pop("content", None) or {})
        for key in _CONTENT_FIELDS:
            if key in data:
                content[key] = data.pop(key)
        data["content"] = content
        try:
            questions.append(Question.model_validate(data))
        except ValidationError as e:
            raise ValueError(f"{position + 1}번째 문제 형식 오류: {e}") from e

    try:
        return QuestionSet.from_list(questions)
    except ValidationError as e:
        raise ValueError(f"문제 세트 검증 실패: {e}") from e


class JsonQuestionSource:
    """JSON 파일에서 시험 문제를 읽는 문제 공급자."""

    def __init__(self, questions_dir: str):
        self.questions_dir = questions_dir

    def fetch_questions(self, test_id: str) -> QuestionSet:
        if not test_id or os.path.basename(test_id) != test_id:
            raise ValueError(f"올바르지 않은 시험 ID입니다: {test_id!r}")

        path = os.path.join(self.questions_dir, f"{test_id}.json")
        if not os.path.exists(path):
            raise FileNotFoundError(f"시험 문제 파일이 없습니다: {path}")

        with open(path, encoding="utf-8") as f:
            try:
                payload = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"문제 파일 JSON 파싱 실패 ({path}): {e}") from e

        items = payload.get("questions", []) if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise ValueError(f"문제 목록 형식이 아닙니다: {path}")

        question_set = build_question_set(items)
        logger.info(f"fetch_questions: '{test_id}' {len(question_set)}문항 로드")
        return question_set
