# core/logging.py
# -*- coding: utf-8 -*-
"""
- logger    : 터미널(stdout) 로그. 레벨은 LOG_LEVEL 로 조정.
- log_event : 민원별 JSONL 이벤트 로그 (LOG_DIR/{complaint_id}.jsonl).
  단계 전이, 안전성 판정, 전송 시도, 알림이 한 줄씩 쌓인다.
"""

import re
import sys
import json
import logging
import threading
from datetime import datetime
from typing import Any, Dict

from . import config
from .config import LOG_DIR

# ------------------------------------------------
# 터미널 출력용 logger
# ------------------------------------------------
logger = logging.getLogger("civic_pipeline")
logger.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))

if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

# 백그라운드 전송(스레드풀)과 요청 처리가 같은 파일에 동시에 쓸 수 있다
_write_lock = threading.Lock()

# 외부에서 들어온 민원 ID 를 파일 이름으로 쓰므로 경로 문자는 치환
_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


def event_log_path(complaint_id: str):
    name = _UNSAFE.sub("_", complaint_id).lstrip(".") or "_"
    return LOG_DIR / f"{name}.jsonl"


def log_event(complaint_id: str, payload: Dict[str, Any]) -> None:
    """
    사후 분석용 JSONL 로그 기록.
    민원(complaint)별로 1줄씩 쌓임. 직렬화 안 되는 값(datetime, Enum 등)은 문자열로.
    """
    if not config.EVENT_LOG_ENABLED:
        return

    record = {
        "timestamp": datetime.utcnow().isoformat(),
        "complaint_id": complaint_id,
        **payload,
    }
    line = json.dumps(record, ensure_ascii=False, default=str)

    with _write_lock:
        with event_log_path(complaint_id).open("a", encoding="utf-8") as f:
            f.write(line + "\n")
