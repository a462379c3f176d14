"""Centralized logging configuration for maestro."""

import logging
import os
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO

LOGGER_NAME = "maestro"


def setup_logging(
	level: Optional[str] = None,
	log_dir: Optional[Path] = None,
	stream: Optional[TextIO] = None,
) -> logging.Logger:
	"""
	Set up logging with console and file handlers.

	Args:
		level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to env var or INFO.
		log_dir: Directory for the rotating log file. No file handler when omitted.
		stream: Console stream. Defaults to stdout.

	Returns:
		Configured package logger
	"""
	level = level or os.getenv("MAESTRO_LOG_LEVEL") or os.getenv("LOG_LEVEL", "INFO")
	log_level = getattr(logging, level.upper(), logging.INFO)

	logger = logging.getLogger(LOGGER_NAME)
	logger.setLevel(log_level)

	# Avoid duplicate handlers
	if logger.handlers:
		return logger

	detailed_formatter = logging.Formatter(
		"%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
		datefmt="%Y-%m-%d %H:%M:%S",
	)
	simple_formatter = logging.Formatter(
		"%(asctime)s [%(levelname)s] %(message)s",
		datefmt="%H:%M:%S",
	)
	redactor = SensitiveDataFilter()

	console_handler = logging.StreamHandler(stream or sys.stdout)
	console_handler.setLevel(log_level)
	console_handler.setFormatter(simple_formatter)
	console_handler.addFilter(redactor)
	logger.addHandler(console_handler)

	if log_dir is not None:
		log_path = Path(log_dir)
		log_path.mkdir(parents=True, exist_ok=True)

		file_handler = RotatingFileHandler(
			log_path / f"{LOGGER_NAME}.log",
			maxBytes=10 * 1024 * 1024,  # 10 MB
			backupCount=5,
		)
		file_handler.setLevel(logging.DEBUG)  # File gets all logs
		file_handler.setFormatter(detailed_formatter)
		file_handler.addFilter(redactor)
		logger.addHandler(file_handler)

	return logger


class SensitiveDataFilter(logging.Filter):
	"""Filter to redact API keys from log records."""

	KEY_PATTERN = re.compile(r"sk-ant-[A-Za-z0-9_\-]+")
	REPLACEMENT = "[REDACTED_API_KEY]"

	def filter(self, record: logging.LogRecord) -> bool:
		message = record.getMessage()
		if self.KEY_PATTERN.search(message):
			record.msg = self.KEY_PATTERN.sub(self.REPLACEMENT, message)
			record.args = None
		return True
