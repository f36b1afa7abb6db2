"""
Numerical constants, tolerances and step budgets for the pricing engine.

Every value that crosses a module boundary is a fixed-point number with
DECIMALS fractional digits, so tolerances below are given as decimal strings
and parsed once by the modules that use them. Iteration and step caps are
part of the public contract: callers may rely on them as worst-case cost.
"""

# Fixed-point representation
DECIMALS = 18
SCALE = 10**DECIMALS  # raw units per 1.0
MAX_RAW = 2**255 - 1  # signed 256-bit range
MIN_RAW = -(2**255)

# Internal working precision for exp/ln/trig series (36 fractional digits)
WORK_DECIMALS = 36
WORK_SCALE = 10**WORK_DECIMALS
GUARD_SCALE = WORK_SCALE // SCALE

# Series term caps; each series also stops early once a term vanishes
EXP_SERIES_TERMS = 40
LN_SERIES_TERMS = 40
TRIG_SERIES_TERMS = 40
ATAN_SERIES_TERMS = 40

# exp() domain: e^135 * 10^18 still fits the signed 256-bit range,
# e^-42 is below one unit of least precision
EXP_MAX_ARGUMENT = 135
EXP_MIN_ARGUMENT = -42

# Normal distribution bounds
MAX_STANDARD_DEVIATIONS = 8  # Beyond ±8σ, CDF is returned as exactly 0 or 1

# Implied volatility solver parameters
IV_PRICE_TOLERANCE = "0.000000001"  # absolute price accuracy
IV_VOL_TOLERANCE = "0.000000000001"  # absolute volatility step
IV_MAX_ITERATIONS = 32  # default Newton-Raphson iterations
IV_ITERATION_CAP = 64  # hard cap callers cannot exceed
IV_BISECTION_ITERATIONS = 64  # bracket width shrinks to ~5e-19
IV_MIN_VEGA = "0.000001"  # below this, fall back to bisection
IV_INITIAL_GUESS = "0.25"  # default 25% volatility if no better guess
IV_MIN_VOL = "0.001"  # 0.1% minimum volatility
IV_MAX_VOL = "10"  # 1000% maximum volatility

# Heston implied volatility (BSM-equivalent) solver
HESTON_IV_MAX_ITERATIONS = 32

# Heston characteristic-function quadrature
# U_max = depth / √(min(v0, theta)·T), so the Gaussian envelope
# e^(-v·T·φ²/2) of the integrand is below e^(-depth²/2) at the cut
HESTON_TRUNCATION_DEPTH = 10
HESTON_MAX_INTEGRATION_LIMIT = 5000
HESTON_PANELS = 16  # composite panels over [0, U_max]
MAX_HESTON_PANELS = 64

# Binomial lattice
MAX_LATTICE_STEPS = 64
DEFAULT_LATTICE_STEPS = 32

# Volatility surface defaults
EWMA_DEFAULT_DECAY = "0.94"
SURFACE_DEFAULT_ALPHA = "0.5"  # quadratic smile curvature
SURFACE_DEFAULT_BETA = "-0.1"  # linear skew tilt
SURFACE_DEFAULT_GAMMA = "0.05"  # utilization premium scale
SURFACE_DEFAULT_IV_FLOOR = "0.05"
SURFACE_DEFAULT_IV_CEILING = "5"
PERIODS_PER_YEAR = 365

# Arbitrage diagnostics tolerances
ARBITRAGE_TOLERANCE = "0.0001"  # $0.0001 tolerance for bounds checks
PARITY_TOLERANCE = "0.000001"  # Put-call parity tolerance
