"""
Back office analytics.

Turns the raw users/assets/purchases/diary/forum tables of the tutoring
platform into the dashboard cards, time series, rankings and activity feed
served to the admin panel.
"""

from .activities import (  # noqa: F401
    Activity,
    ActivityUser,
    AssetPurchaseActivity,
    AwardEarnedActivity,
    ChatMessageActivity,
    DiaryEntryActivity,
    ForumPostActivity,
    assemble_recent,
)
from .buckets import (  # noqa: F401
    SERIES_WINDOWS,
    USAGE_WINDOWS,
    bucket_key,
    generate_buckets,
    parse_limit,
    parse_period,
    window_for,
)
from .configuration import AnalyticsConfig, load_analytics_config  # noqa: F401
from .metrics import PALETTE, compare, percent_change, rank_top  # noqa: F401
from .models import (  # noqa: F401
    BucketValue,
    BucketWindow,
    CategoricalChart,
    ComparativeStat,
    DashboardStats,
    Granularity,
    RankedItem,
    SeriesDataset,
    TimeSeriesChart,
    serialize,
)
from .repository import (  # noqa: F401
    AnalyticsError,
    AnalyticsRepository,
    MetricFetchError,
    RepositoryNotConfiguredError,
    SQLAnalyticsRepository,
    build_repository_from_env,
)
from .series import align_many, align_series  # noqa: F401
from .service import AnalyticsService  # noqa: F401
