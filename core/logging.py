import logging


def setup_logging(level_name="INFO"):
    level = getattr(logging, str(level_name).upper(), logging.INFO)

    root = logging.getLogger()
    if getattr(root, "_pharmacos_configured", False):
        root.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s - %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    root.setLevel(level)
    root.addHandler(handler)
    root._pharmacos_configured = True
