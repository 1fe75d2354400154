import threading
import time

from timed_cbt.models.question_model import Question, QuestionSet


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_questions(n=10, subjects=("Algorithms", "Operating Systems"), correct="A"):
    difficulties = ("easy", "medium", "hard")
    return QuestionSet.from_list([
        Question(
            id=f"q{i}",
            order=i,
            subject=subjects[i % len(subjects)],
            topic=f"topic-{i % 4}",
            difficulty=difficulties[i % 3],
            correct_option=correct,
        )
        for i in range(n)
    ])


def wait_for(predicate, timeout=3.0, interval=0.01) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class GatedPipeline:
    """run() 진입 후 release 될 때까지 멈추는 파이프라인 래퍼."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = 0
        self.entered = threading.Event()
        self.release = threading.Event()

    def run(self, snapshot, report, completion_type):
        self.calls += 1
        self.entered.set()
        self.release.wait(5)
        return self.inner.run(snapshot, report, completion_type)
