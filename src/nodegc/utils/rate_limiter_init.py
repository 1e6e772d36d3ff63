"""Initialize rate limiters from configuration."""

from nodegc.core.config import RateLimitsConfig
from nodegc.utils.logging import get_logger
from nodegc.utils.rate_limiter import get_rate_limiter

logger = get_logger(__name__)

AWS_API = "aws_api"
KUBERNETES_API = "kubernetes_api"


def initialize_rate_limiters(rate_limits: RateLimitsConfig) -> None:
    """Register the AWS and Kubernetes API rate limiters.

    Call once at startup. Limits are requests per minute; the bucket holds one
    minute's worth of requests so a pass can burst up to the limit.

    Args:
        rate_limits: Rate limits configuration
    """
    rate_limiter = get_rate_limiter()

    logger.info("initializing_rate_limiters", limits=rate_limits.model_dump())

    limits = ((AWS_API, rate_limits.aws_api), (KUBERNETES_API, rate_limits.kubernetes_api))
    for name, per_minute in limits:
        rate_limiter.register(
            name=name,
            capacity=per_minute,
            refill_rate=per_minute / 60.0,
            max_wait=rate_limits.max_wait_seconds,
            replace=True,
        )

    logger.info("rate_limiters_initialized")
