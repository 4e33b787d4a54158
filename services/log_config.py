# services/log_config.py
import logging


class ExtraFieldsFormatter(logging.Formatter):
    """把 logger.info(..., extra={...}) 帶進來的欄位接在訊息後面。"""

    _STANDARD_ATTRS = set(
        logging.LogRecord("", 0, "", 0, "", None, None).__dict__
    ) | {"message", "asctime", "extra_fields"}

    def format(self, record: logging.LogRecord) -> str:
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._STANDARD_ATTRS and not key.startswith("_")
        }
        record.extra_fields = ""
        if extras:
            formatted = " ".join(f"{key}={value}" for key, value in sorted(extras.items()))
            record.extra_fields = f" | {formatted}"
        return super().format(record)


def setup_logging(level: str) -> None:
    formatter = ExtraFieldsFormatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s%(extra_fields)s"
    )
    logging.basicConfig(level=level.upper())
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper())
    for handler in root_logger.handlers:
        handler.setFormatter(formatter)
