"""
Frame/pose selection policies.

Available selectors:
- YawBucketSelector: top frames from left/center/right yaw buckets plus padding
- DiscretePoseSelector: one frame per pose (front, left, right, down, up)
"""

from models.config import SelectionConfig

from .base import Selector, SelectionResult, rank
from .yaw_bucket import YawBucketSelector
from .discrete_pose import DiscretePoseSelector


def create_selector_from_config(config: SelectionConfig) -> Selector:
    """Build the selector named by config.policy."""
    if config.policy == "yaw_bucket":
        return YawBucketSelector(config)
    if config.policy == "discrete_pose":
        return DiscretePoseSelector()
    raise ValueError(f"Unknown selection policy: {config.policy}")


__all__ = [
    "Selector",
    "SelectionResult",
    "rank",
    "YawBucketSelector",
    "DiscretePoseSelector",
    "create_selector_from_config",
]
