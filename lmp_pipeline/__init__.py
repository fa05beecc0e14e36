"""
LMP hourly price outlier detection.

Normalizes wide daily price exports into an hourly series, smooths it at
several scales, fits an ARIMA model on one smoothed scale and flags raw
observations far above the model expectation.
"""

__version__ = "1.0.0"
