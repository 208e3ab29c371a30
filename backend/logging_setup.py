import logging
import os


def setup_logging(level="INFO", log_path=None) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    if getattr(root, "_plantkeeper_configured", False):
        return

    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    root.addHandler(ch)

    if log_path:
        log_dir = os.path.dirname(log_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        fh = logging.FileHandler(log_path)
        fh.setFormatter(fmt)
        root.addHandler(fh)

    root._plantkeeper_configured = True
