"""TD Sequential setups, countdowns and risk levels.
"""

from .config import TDSequentialConfig
from .engine import TDRecord, TDSequential
from .errors import ConfigurationError, DataError, InvariantViolation, TDSequentialError
from .indicators import compute_td_sequential, extract_events, run_many
