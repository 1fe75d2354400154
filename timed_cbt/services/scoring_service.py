"""
services/scoring_service.py

시험 채점 및 결과 분석 비즈니스 로직.
순수 Python 함수로 구성. 전역 상태 변경, I/O 없음.
"""

from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Mapping, Sequence

from config import POINTS_PER_QUESTION
from timed_cbt.models.answer_ledger import AnswerRecord
from timed_cbt.models.question_model import Question
from timed_cbt.models.score_model import GroupStats, NavigationPattern, ScoreReport
from timed_cbt.models.session_state import NavigationEvent, SessionSnapshot


def _percent(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def calculate_group_stats(
    questions: Sequence[Question],
    answers: Mapping[str, AnswerRecord],
    key: Callable[[Question], str],
) -> List[GroupStats]:
    """
    문제를 key 기준으로 묶어 그룹별 응답/정답/정확도/평균 소요 시간을 계산한다.

    응답하지 않은 문제는 그룹 total 에만 반영된다.

    Returns:
        정확도 내림차순, 같으면 이름순으로 정렬된 GroupStats 리스트.
    """
    buckets: Dict[str, Dict[str, float]] = defaultdict(
        lambda: {"total": 0, "attempted": 0, "correct": 0, "time": 0.0}
    )

    for q in questions:
        b = buckets[key(q) or "기타"]
        b["total"] += 1

        record = answers.get(q.id)
        if record is None or not record.is_attempted:
            continue
        b["attempted"] += 1
        b["time"] += record.time_spent_seconds
        if record.is_correct:
            b["correct"] += 1

    result = []
    for name, b in buckets.items():
        attempted = int(b["attempted"])
        correct = int(b["correct"])
        result.append(GroupStats(
            name=name,
            total=int(b["total"]),
            attempted=attempted,
            correct=correct,
            incorrect=attempted - correct,
            accuracy=_percent(correct, attempted),
            avg_time_seconds=round(b["time"] / attempted, 2) if attempted else 0.0,
        ))
    result.sort(key=lambda g: (-g.accuracy, g.name))
    return result


def summarize_navigation(history: Iterable[NavigationEvent]) -> NavigationPattern:
    events = list(history)
    return NavigationPattern(
        total_navigations=len(events),
        backtrack_count=sum(1 for e in events if e.to_index < e.from_index),
        jump_count=sum(1 for e in events if abs(e.to_index - e.from_index) > 1),
    )


def calculate_report(
    questions: Sequence[Question],
    answers: Mapping[str, AnswerRecord],
    marked_for_review: Iterable[str] = (),
    navigation_history: Iterable[NavigationEvent] = (),
    time_spent_seconds: float = 0.0,
    points_per_question: int = POINTS_PER_QUESTION,
) -> ScoreReport:
    """
    사용자 답안을 채점하여 ScoreReport 를 만든다.

    정답 판정은 기록 시점에 계산된 AnswerRecord.is_correct 를 그대로 쓴다.
    문제 세트에 없는 답안 키는 무시한다.

    Args:
        questions:           채점 대상 문제 (순서 고정).
        answers:             문제 ID → 답안 기록.
        marked_for_review:   검토 표시 문제 ID.
        navigation_history:  이동 기록 (분석용).
        time_spent_seconds:  시험 경과 시간.
        points_per_question: 정답 1개당 점수.
    """
    known = {q.id for q in questions}
    attempted_records = [
        r for qid, r in answers.items() if qid in known and r.is_attempted
    ]

    total = len(questions)
    attempted = len(attempted_records)
    correct = sum(1 for r in attempted_records if r.is_correct)

    subject_stats = calculate_group_stats(questions, answers, key=lambda q: q.subject)
    top_subject = next((g.name for g in subject_stats if g.attempted), None)

    return ScoreReport(
        total_questions=total,
        attempted=attempted,
        correct=correct,
        incorrect=attempted - correct,
        skipped=total - attempted,
        marked_count=len(set(marked_for_review) & known),
        score=correct * points_per_question,
        percentage=_percent(correct, total),
        attempt_percentage=_percent(attempted, total),
        time_spent_seconds=round(time_spent_seconds, 2),
        avg_time_per_question=round(time_spent_seconds / attempted, 2) if attempted else 0.0,
        subject_stats=subject_stats,
        difficulty_stats=calculate_group_stats(questions, answers, key=lambda q: q.difficulty),
        top_subject=top_subject,
        navigation=summarize_navigation(navigation_history),
    )


def score_snapshot(
    snapshot: SessionSnapshot,
    points_per_question: int = POINTS_PER_QUESTION,
) -> ScoreReport:
    """SessionSnapshot 하나로 채점한다. 자동 저장 사본과 실시간 상태가 같은 결과를 내야 한다."""
    return calculate_report(
        snapshot.questions,
        snapshot.answers,
        marked_for_review=snapshot.marked_for_review,
        navigation_history=snapshot.navigation_history,
        time_spent_seconds=snapshot.elapsed_seconds,
        points_per_question=points_per_question,
    )


def performance_message(report: ScoreReport) -> str:
    """결과 화면에 보여줄 한 줄 메시지."""
    if report.attempted == 0:
        return "📝 응답 없이 제출되었습니다."
    if report.percentage >= 90:
        return f"🏆 훌륭합니다! {report.percentage}%"
    if report.percentage >= 75:
        return f"🎯 아주 좋습니다! {report.percentage}%"
    if report.percentage >= 60:
        return f"👍 잘했습니다! {report.percentage}%"
    return f"📊 시험 완료! {report.percentage}%"
