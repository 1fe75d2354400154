import os

# 기본 디렉토리 설정
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# 경로 설정
DATA_DIR = os.getenv("CBT_DATA_DIR", os.path.join(BASE_DIR, "data"))
BACKUP_DIR = os.getenv("CBT_BACKUP_DIR", os.path.join(DATA_DIR, "backup"))
QUESTIONS_DIR = os.getenv("CBT_QUESTIONS_DIR", os.path.join(DATA_DIR, "questions"))
STORE_DIR = os.getenv("CBT_STORE_DIR", os.path.join(DATA_DIR, "store"))
LOG_FILE = os.path.join(BASE_DIR, "launch.log")

# 서버 설정
DEFAULT_HOST = os.getenv("HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("PORT", "8000"))
SESSION_TTL = 3600          # 1시간

# 시험 시간 설정
EXAM_DURATION_SECONDS = int(os.getenv("EXAM_DURATION_SECONDS", "5400"))   # 90분
TIMER_TICK_SECONDS = 1.0
WARNING_THRESHOLDS = (600, 300, 60)     # 남은 시간 경고 기준 (초, 내림차순)

# 자동 저장 설정
AUTOSAVE_INTERVAL_SECONDS = float(os.getenv("AUTOSAVE_INTERVAL_SECONDS", "30"))

# 채점/제출 설정
POINTS_PER_QUESTION = 100
OUTCOME_BATCH_SIZE = 50         # 문항별 결과 저장 배치 크기
MAX_SUBMIT_RETRIES = 1          # 제출 실패 후 허용되는 재시도 횟수

# 분석용 이력 설정
NAVIGATION_HISTORY_LIMIT = 50
