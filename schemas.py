from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from datetime import datetime, date
from typing import Optional, List, Dict, Any


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# Tracking records

class ClassifiedNode(CamelModel):
    id: str
    session_id: Optional[str] = None
    type: Optional[str] = None
    timestamp: Optional[datetime] = None
    category: str
    variant: Optional[str] = None
    label: str
    value: Optional[Any] = None
    data: Optional[Dict[str, Any]] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
        frozen = True


class UserSession(CamelModel):
    id: str
    user_id: int
    landing_page_id: Optional[int] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: float = 0.0
    pages_viewed: int = 0
    interactions_count: int = 0
    entry_url: Optional[str] = None
    exit_url: Optional[str] = None
    is_converted: bool = False


class TrackedUser(CamelModel):
    id: int
    fingerprint: str
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    location: Optional[str] = None
    referrer: Optional[str] = None
    first_visit: datetime
    last_activity: datetime
    sessions_count: int = 0
    is_active: bool = False


class LandingPage(CamelModel):
    id: int
    url: str
    normalized_url: Optional[str] = None
    title: Optional[str] = None
    total_visits: int = 0
    unique_users: int = 0
    conversion_rate: float = 0.0
    last_access: Optional[datetime] = None
    original_urls: List[str] = []


class TrackedEventIn(CamelModel):
    id: Optional[str] = None
    type: Optional[str] = None
    timestamp: datetime
    data: Optional[Dict[str, Any]] = None


class EventBatch(CamelModel):
    fingerprint: str
    session_id: str
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    title: Optional[str] = None
    events: List[TrackedEventIn]


# Advanced analytics rollup

class HourlyDistribution(CamelModel):
    hour: int
    visits: int
    page_views: int
    engagement: float
    conversions: int


class WeeklyDistribution(CamelModel):
    day_of_week: int
    day_name: str
    visits: int
    avg_engagement: float
    peak_hour: int


class WeeklyTrends(CamelModel):
    growth: float
    momentum: str
    seasonality: float


class TemporalPatterns(CamelModel):
    hourly_distribution: List[HourlyDistribution]
    weekly_distribution: List[WeeklyDistribution]
    weekly_trends: WeeklyTrends


class EngagementComponents(CamelModel):
    time_engagement: float
    interaction_engagement: float
    depth_engagement: float
    conversion_engagement: float


class ScoreCount(CamelModel):
    score: float
    user_count: int


class EngagementBySource(ScoreCount):
    source: str


class EngagementByDevice(CamelModel):
    mobile: ScoreCount
    desktop: ScoreCount


class EngagementDistribution(CamelModel):
    high: int
    medium: int
    low: int


class EngagementMetrics(CamelModel):
    overall_score: float
    components: EngagementComponents
    by_source: List[EngagementBySource]
    by_device: EngagementByDevice
    distribution: EngagementDistribution


class InteractionHotspot(CamelModel):
    element_type: str
    element_id: str
    interactions: int
    unique_users: int
    heat_score: float


class DropOffPoint(CamelModel):
    depth: int
    drop_off_rate: float


class ScrollBehavior(CamelModel):
    avg_depth: float
    completion_rate: float
    drop_off_points: List[DropOffPoint]
    fast_scrollers: float
    slow_readers: float


class NavigationPattern(CamelModel):
    pattern: str
    frequency: int
    conversion_rate: float
    avg_session_value: float


class BehavioralHeatmap(CamelModel):
    interaction_hotspots: List[InteractionHotspot]
    scroll_behavior: ScrollBehavior
    navigation_patterns: List[NavigationPattern]


class FunnelStep(CamelModel):
    step_name: str
    step_order: int
    entries: int
    exits: int
    conversions: int
    drop_off_rate: float
    avg_time_in_step: float


class FunnelOverall(CamelModel):
    total_entries: int
    total_completions: int
    completion_rate: float
    avg_time_to_complete: float
    bottleneck_step: str


class FunnelBySource(CamelModel):
    source: str
    completion_rate: float
    avg_time_to_complete: float


class FunnelAnalysis(CamelModel):
    steps: List[FunnelStep]
    overall: FunnelOverall
    by_source: List[FunnelBySource]


class ClusterCharacteristics(CamelModel):
    avg_session_duration: float
    avg_page_views: float
    conversion_rate: float
    preferred_device: str
    top_sources: List[str]


class BehavioralCluster(CamelModel):
    cluster_name: str
    user_count: int
    characteristics: ClusterCharacteristics


class GeographicSegment(CamelModel):
    region: str
    user_count: int
    engagement: float
    conversion_rate: float
    top_content: List[str]


class ValueSegment(CamelModel):
    count: int
    avg_value: float


class ValueSegments(CamelModel):
    high_value: ValueSegment
    medium_value: ValueSegment
    low_value: ValueSegment


class UserSegmentation(CamelModel):
    behavioral_clusters: List[BehavioralCluster]
    geographic: List[GeographicSegment]
    value_segments: ValueSegments


class TopPage(CamelModel):
    url: str
    visits: int
    unique_visitors: int
    avg_time_on_page: float
    bounce_rate: float
    conversion_rate: float
    engagement_score: float
    rank: int


class ContentCategory(CamelModel):
    category: str
    page_count: int
    total_views: int
    avg_engagement: float
    conversion_contribution: float


class ExitAnalysis(CamelModel):
    url: str
    exit_rate: float
    before_exit_actions: List[str]
    improvement_opportunity: float


class ContentPerformance(CamelModel):
    top_pages: List[TopPage]
    categories: List[ContentCategory]
    exit_analysis: List[ExitAnalysis]


class QualityDistribution(CamelModel):
    excellent: int
    good: int
    average: int
    poor: int


class QualityIndicators(CamelModel):
    avg_pages_per_session: float
    avg_session_duration: float
    interaction_rate: float
    goal_completion_rate: float


class QualityBySource(CamelModel):
    source: str
    avg_quality_score: float
    session_count: int


class SessionQuality(CamelModel):
    quality_distribution: QualityDistribution
    indicators: QualityIndicators
    by_traffic_source: List[QualityBySource]


class PredictionFactor(CamelModel):
    factor: str
    weight: float
    trend: str


class ConversionPropensity(CamelModel):
    next_week_prediction: float
    confidence: float
    factors: List[PredictionFactor]


class ChurnRisk(CamelModel):
    high_risk: int
    medium_risk: int
    low_risk: int


class GrowthForecast(CamelModel):
    next_period_growth: float
    seasonality_factor: float
    trend_momentum: str


class Predictions(CamelModel):
    conversion_propensity: ConversionPropensity
    churn_risk: ChurnRisk
    growth_forecast: GrowthForecast


class AdvancedAnalytics(CamelModel):
    date: str
    period: str
    period_key: str
    temporal_patterns: TemporalPatterns
    engagement: EngagementMetrics
    behavioral_heatmap: BehavioralHeatmap
    funnel_analysis: FunnelAnalysis
    user_segmentation: UserSegmentation
    content_performance: ContentPerformance
    session_quality: SessionQuality
    predictions: Predictions
    calculated_at: str
    data_sources_used: List[str]
    confidence: float
    sample_size: int


class AnalyticsInsight(CamelModel):
    id: Optional[str] = None
    type: str
    category: str
    message: str
    priority: str
    recommendation: Optional[str] = None
    value: Optional[float] = None
    change: Optional[float] = None


class InsightsSummary(CamelModel):
    total_insights: int
    high_priority: int
    categories: List[str]


class InsightsAnalytics(CamelModel):
    overall_score: float
    confidence: float
    sample_size: int


class InsightsResponse(CamelModel):
    period_key: Optional[str] = None
    insights: List[AnalyticsInsight]
    comparative_insights: List[AnalyticsInsight]
    summary: InsightsSummary
    analytics: InsightsAnalytics


class DashboardSummary(CamelModel):
    overall_score: float
    confidence: float
    sample_size: int
    top_interaction: Optional[str] = None
    peak_hour: Optional[int] = None
    top_source: Optional[str] = None


class DashboardResponse(CamelModel):
    period_key: str
    period: str
    analytics: AdvancedAnalytics
    insights: List[AnalyticsInsight]
    summary: DashboardSummary


class GenerateAnalyticsRequest(CamelModel):
    start_date: date
    end_date: Optional[date] = None
    period: str = "monthly"
    force: bool = False


class GenerateAnalyticsResponse(CamelModel):
    message: str
    period_key: str
    analytics: AdvancedAnalytics
    generated: bool


# Sales funnel

class FunnelItem(CamelModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    status: str
    type: Optional[str] = None
    value: Optional[float] = None
    service: Optional[str] = None
    created_at: Optional[datetime] = None


class LeadCreate(CamelModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    status: str = "new"
    type: Optional[str] = "form"
    value: Optional[float] = None
    service: Optional[str] = None


class StageMove(CamelModel):
    status: str
