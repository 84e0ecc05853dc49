"""
Advertising platform read boundary: data types, PerformanceSource, Google Ads client
"""

from ppc_advisor.ads.base import PerformanceSource
from ppc_advisor.ads.client import GoogleAdsClient, GoogleAdsError
from ppc_advisor.ads.rate_limiter import RateLimiter

__all__ = ["GoogleAdsClient", "GoogleAdsError", "PerformanceSource", "RateLimiter"]
