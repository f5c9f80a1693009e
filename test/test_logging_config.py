import io
import logging

from logging_config import SIMPLE_FORMAT, ColoredFormatter


def record(level=logging.WARNING):
    return logging.LogRecord("app.test", level, __file__, 1, "rollup %s", ("2026-10",), None)


def test_colored_level_name():
    formatter = ColoredFormatter(fmt="%(levelname)s %(message)s", use_colors=True)
    rec = record()
    output = formatter.format(rec)
    assert output.startswith(ColoredFormatter.COLORS["WARNING"])
    assert output.endswith("rollup 2026-10")
    assert rec.levelname == "WARNING"


def test_plain_output_without_colors():
    formatter = ColoredFormatter(fmt=SIMPLE_FORMAT, datefmt="%H:%M:%S", use_colors=False)
    output = formatter.format(record(logging.INFO))
    assert "\033[" not in output
    assert "| INFO     | app.test | rollup 2026-10" in output


def test_setup_logging_returns_app_logger():
    from logging_config import setup_logging

    logger = setup_logging(stream=io.StringIO())
    assert logger.name == "app"
