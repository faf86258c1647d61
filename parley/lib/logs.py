import logging

FORMAT = "[parley] %(levelname)s %(name)s: %(message)s"


def configure(level: str | int = "INFO") -> None:
    """Configure root logging once for CLI processes."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=FORMAT)
    logging.getLogger().setLevel(level)
