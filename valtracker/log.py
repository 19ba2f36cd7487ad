import logging


def get_logger(name: str) -> logging.Logger:
  """Named logger with a short prefix; handler installed once."""
  log = logging.getLogger(f"valtracker.{name}")
  if not log.handlers:
    h = logging.StreamHandler()
    h.setFormatter(logging.Formatter("[VT] %(levelname)s %(name)s: %(message)s"))
    log.addHandler(h)
    log.setLevel(logging.INFO)
  return log
