"""Engine tuning constants for shopbulk.

These values describe the Shopify Admin GraphQL throttle and the engine's
safety margins. They are passed into the core components by the workflows;
the core itself never reads this module, so every limit can be overridden
per call.
"""

# Maximum items in a single mutation's input array (e.g. setQuantities).
MAX_ITEMS_PER_CALL = 250

# Maximum aliased sub-mutations multiplexed into one GraphQL document.
MAX_ALIASES_PER_CALL = 100

# Fraction of the currently available budget a round may spend.
SAFETY_FACTOR = 0.9

# Upper bound on concurrent calls in a single round.
HARD_PARALLEL_CAP = 500

# Stuck state: wait between throttle probes, and how many consecutive
# stuck cycles are tolerated before the run is aborted (about 60 seconds).
STUCK_DELAY_SECONDS = 0.5
MAX_STUCK_CYCLES = 120

# A throttle snapshot below this many points marks the round as "hot":
# transport failures in that round become retry-eligible.
LOW_WATER_MARK = 2000

# Serial retry spacing and the total attempts allowed per batch.
RETRY_DELAY_SECONDS = 1.0
MAX_ATTEMPTS_PER_BATCH = 3

# Pause between rounds.
ROUND_DELAY_SECONDS = 0.05

# Conservative start state assumed before the first feedback arrives.
DEFAULT_MAXIMUM_AVAILABLE = 20000.0
DEFAULT_CURRENTLY_AVAILABLE = 20000.0
DEFAULT_RESTORE_RATE = 1000.0

# Cost estimates per call or per alias, in points.
SET_QUANTITIES_CALL_COST = 10.0
TRACKING_ALIAS_COST = 10.0
PRICE_UPDATE_CALL_COST = 50.0

# Random quantity range used by the inventory refresh workflows.
MIN_RANDOM_QUANTITY = 1
MAX_RANDOM_QUANTITY = 2000
