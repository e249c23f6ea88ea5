"""Logging setup. Modules only ever call `logging.getLogger(__name__)`; the handlers are configured once here."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Escrow actions are reported by the client after on-chain calls. They end up on their own logger so they can be routed separately.
ESCROW_LOGGER_NAME = "chessroom.escrow"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # uvicorn's access log is noisy with one websocket upgrade per client.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
