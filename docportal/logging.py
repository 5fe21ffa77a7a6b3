"""JSON logging to stdout. Extras passed to a log call become top-level keys."""
from __future__ import annotations
import json, logging, os, sys, time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict

_DEFAULT_EXCLUDE = {
    "args","asctime","created","exc_info","exc_text","filename","funcName","levelname",
    "levelno","lineno","module","msecs","message","msg","name","pathname","process",
    "processName","relativeCreated","stack_info","thread","threadName","taskName"
}

class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        # include JSON-serializable extras
        for k, v in record.__dict__.items():
            if k in _DEFAULT_EXCLUDE:
                continue
            try:
                json.dumps(v)
                base[k] = v
            except (TypeError, ValueError):
                base[k] = str(v)
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False)

def init_logging(level: str | None = None) -> logging.Logger:
    lvl = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(handlers=[handler], level=getattr(logging, lvl, logging.INFO), force=True)
    # the Azure SDK logs every HTTP request at INFO
    logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(logging.WARNING)
    logging.getLogger("azure.identity").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    return logging.getLogger("docportal")

def get_logger(name: str = "docportal") -> logging.Logger:
    return logging.getLogger(name)

@contextmanager
def stage(name: str, **fields: Any):
    """Log start, then ok or error, for the block on logger stage.<name>.

    Records carry the stage name and the given fields; ok and error also
    carry duration_ms. Exceptions are logged and re-raised.
    """
    log = get_logger(f"stage.{name}")
    t0 = time.perf_counter()
    log.info("start", extra={"stage": name, **fields})
    try:
        yield
    except Exception:
        dt = int((time.perf_counter() - t0) * 1000)
        log.exception("error", extra={"stage": name, "duration_ms": dt, **fields})
        raise
    else:
        dt = int((time.perf_counter() - t0) * 1000)
        log.info("ok", extra={"stage": name, "duration_ms": dt, **fields})
