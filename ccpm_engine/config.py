"""
Named configuration parameters for the CCPM analysis engine.

Services read these as defaults for their constructor keyword arguments, so a
caller can override any of them per instance.
"""

# Forecast simulation
DEFAULT_SIMULATIONS = 1000
MIN_SIMULATIONS = 100
MAX_SIMULATIONS = 10000
DEFAULT_PERCENTILES = (50, 80, 95)
DEFAULT_DISTRIBUTION = "triangular"  # or "pert"
PERT_SHAPE = 4.0  # weight of the most-likely value in the PERT beta
FORECAST_BLOCK_SIZE = 250  # trials per worker block
FORECAST_MAX_WORKERS = None  # None = let the executor decide
HISTOGRAM_BINS = 10

# Buffer sizing
DEFAULT_BUFFER_STRATEGY = "rsem"
CUT_AND_PASTE_FRACTION = 0.5

# Fever chart: width of the yellow band as a fraction of the remaining chain
YELLOW_BAND_FRACTION = 0.5

# Critical chain analysis
RESOURCE_LEVELING_DEFAULT = False

# Buffer listing
DEFAULT_LIST_LIMIT = 50

MINUTE_MS = 60_000
