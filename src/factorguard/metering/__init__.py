"""Usage quotas per subscription tier and request-volume rate limiting."""
