"""
sumprod: Monte Carlo study of summing vs multiplying noisy attribute ratings.

Pipeline: moment-matched lognormal population -> true ratings and rankings ->
per-regime noisy observations -> sum/product estimates -> rank-error and
log-correlation table sliced by true-rank percentile.
"""

__version__ = "0.1.0"
