"""Log routing for the ``pitchclf`` command line."""

import logging
import sys

PACKAGE_LOGGER = "pitch_classifier"
_HANDLER_NAME = "pitchclf-stderr"
_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


def configure_logging(*, verbose: bool = False) -> None:
    """Send log records to stderr, leaving stdout to the report tables.

    By default only warnings reach the terminal: failed folds and anything
    scikit-learn raises through ``warnings.warn``. With ``verbose`` the
    package also reports sweep progress, fit timings and data cleaning, and
    libraries may log at INFO.

    Calling this again replaces the handler it installed earlier and leaves
    any other root handlers alone.
    """
    root = logging.getLogger()
    for handler in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(handler)
    root.setLevel(logging.INFO if verbose else logging.WARNING)

    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if verbose else logging.WARNING)
    # Convergence and ill-conditioning warnings from fits go through the same handler
    logging.captureWarnings(True)
