"""Fixed-point scales and limits shared across the engine.

Every ledger quantity is a Python ``int`` expressed in one of these scales.
"""

# Time constants
SECONDS_PER_YEAR = 31_536_000  # 365 days

# Precision constants
FACTOR_SCALE = 10**18  # collateral factors, rates, utilization
BASE_INDEX_SCALE = 10**15  # supply/borrow indices
PRICE_SCALE = 10**8  # price feed answers
PRICE_FEED_DECIMALS = 8
BASE_ACCRUAL_SCALE = 10**6  # reward accrual is tracked in 6 decimals
TRACKING_INDEX_SCALE = 10**15
RESCALE_FACTOR_DECIMALS = 6

# Limits
MAX_ASSETS = 24
MAX_BASE_DECIMALS = 18
MAX_UINT64 = 2**64 - 1
MAX_UINT104 = 2**104 - 1
MAX_UINT128 = 2**128 - 1
MAX_UINT256 = 2**256 - 1
MAX_INT104 = 2**103 - 1
MIN_INT104 = -(2**103)

# "Entire balance" sentinel for supply/withdraw/transfer amounts
ENTIRE_BALANCE = MAX_UINT256

# Null address used as the counterparty of mint/burn style transfer events
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
