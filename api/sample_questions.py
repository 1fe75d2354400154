"""
api/sample_questions.py — 문제 파일 없이 바로 응시해 볼 수 있는 샘플 문제 세트
"""

from timed_cbt.services.question_source import build_question_set

SAMPLE_TEST_ID = "sample"

_RAW = [
    {
        "id": "ds-001",
        "subject": "Data Structures",
        "topic": "Stacks",
        "difficulty": "easy",
        "question": "스택(stack)의 원소 삽입/삭제 순서는?",
        "options": {"A": "FIFO", "B": "LIFO", "C": "우선순위 순", "D": "임의 순서"},
        "correct_option": "B",
    },
    {
        "id": "ds-002",
        "subject": "Data Structures",
        "topic": "Trees",
        "difficulty": "medium",
        "question": "노드가 n개인 이진 트리의 간선 수는?",
        "options": {"A": "n", "B": "n + 1", "C": "n - 1", "D": "2n"},
        "correct_option": "C",
    },
    {
        "id": "os-001",
        "subject": "Operating Systems",
        "topic": "Scheduling",
        "difficulty": "medium",
        "question": "선점형 스케줄링 알고리즘은?",
        "options": {"A": "FCFS", "B": "SJF (비선점)", "C": "Round Robin", "D": "없음"},
        "correct_option": "C",
    },
    {
        "id": "os-002",
        "subject": "Operating Systems",
        "topic": "Deadlock",
        "difficulty": "hard",
        "question": "교착 상태의 필요 조건이 아닌 것은?",
        "options": {"A": "상호 배제", "B": "점유 대기", "C": "비선점", "D": "선점"},
        "correct_option": "D",
    },
    {
        "id": "dbms-001",
        "subject": "Database Management System",
        "topic": "Normalization",
        "difficulty": "medium",
        "question": "부분 함수 종속을 제거한 정규형은?",
        "options": {"A": "1NF", "B": "2NF", "C": "3NF", "D": "BCNF"},
        "correct_option": "B",
    },
    {
        "id": "cn-001",
        "subject": "Computer Networks",
        "topic": "Transport Layer",
        "difficulty": "easy",
        "question": "연결 지향 전송 계층 프로토콜은?",
        "options": {"A": "UDP", "B": "IP", "C": "TCP", "D": "ICMP"},
        "correct_option": "C",
    },
]

SAMPLE_QUESTIONS = build_question_set(_RAW)
