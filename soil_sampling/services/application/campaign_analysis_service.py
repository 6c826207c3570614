"""
Application service: Batch analysis of a campaign's sampled points.

Points are analyzed in order with bounded concurrency (1 by default, i.e.
strictly one at a time) to keep the load on the external vision model and
the geodata services under control, and to report progress per point.

Each point result is persisted as soon as it exists. The first failure
abandons the rest of the batch: results already persisted stay, pending
points are not analyzed, and nothing is retried.

Captured images only live in the caller's memory until the batch runs;
abandoning the caller before that loses them.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol
import asyncio
import logging
from pydantic import BaseModel, Field

from soil_sampling.config import settings
from soil_sampling.domain.exceptions import BatchAnalysisError, CampaignStateError
from soil_sampling.domain.geodata import GeoDataContext
from soil_sampling.domain.models import (
    CampaignStatus,
    FieldCampaign,
    SamplingPoint,
    new_id,
    utc_now,
)
from soil_sampling.services.application.geodata_aggregator import GeoDataAggregator

logger = logging.getLogger(__name__)


@dataclass
class CapturedImages:
    """Photo pair captured at one sampling point."""
    surface: bytes
    profile: bytes


class PointAnalysis(BaseModel):
    """Analysis result of one sampling point."""
    id: str = Field(default_factory=lambda: new_id("an"))
    campaign_id: str
    sampling_point_id: str
    result: Dict[str, Any]
    geodata_context: GeoDataContext
    geodata_used: Dict[str, bool]
    created_at: datetime = Field(default_factory=utc_now)


class PointAnalyzer(Protocol):
    """External vision-language model call for one point."""

    async def analyze(
        self,
        point: SamplingPoint,
        campaign: FieldCampaign,
        images: CapturedImages,
        geodata: GeoDataContext,
    ) -> Dict[str, Any]: ...


class FieldReporter(Protocol):
    """External aggregation pass producing the field-level report."""

    async def generate(self, campaign: FieldCampaign, analyses: List[PointAnalysis]) -> Dict[str, Any]: ...


class CampaignStore(Protocol):
    """Persistence collaborator."""

    async def save_analysis(self, analysis: PointAnalysis) -> None: ...

    async def save_campaign(self, campaign: FieldCampaign) -> None: ...


ProgressCallback = Callable[[int, int, str], None]


class CampaignAnalysisService:
    """
    Application service running the analysis batch of a campaign.

    Coordinates geodata aggregation, the point analyzer, the field
    reporter and the store; holds no analysis logic itself.
    """

    def __init__(
        self,
        aggregator: GeoDataAggregator,
        analyzer: PointAnalyzer,
        reporter: FieldReporter,
        store: CampaignStore,
        concurrency: Optional[int] = None,
    ):
        self.aggregator = aggregator
        self.analyzer = analyzer
        self.reporter = reporter
        self.store = store
        self.concurrency = max(1, concurrency or settings.analysis_concurrency)

    async def run(
        self,
        campaign: FieldCampaign,
        images: Mapping[str, CapturedImages],
        progress: Optional[ProgressCallback] = None,
    ) -> FieldCampaign:
        """
        Analyze every sampled point and complete the campaign.

        Args:
            campaign: Campaign with sampled points
            images: Captured photo pairs keyed by sampling point id
            progress: Called as ``(done, total, message)`` after each step

        Returns:
            The completed campaign, with analysis links and field report

        Raises:
            CampaignStateError: If the campaign is completed or has nothing to analyze
            BatchAnalysisError: If a point analysis fails
        """
        if campaign.status == CampaignStatus.COMPLETED:
            raise CampaignStateError(f"Campaign {campaign.id} is already completed")

        work = []
        for point in campaign.sampled_points:
            if point.id in images:
                work.append(point)
            else:
                logger.warning(f"No images captured for point {point.label}, skipping analysis")

        if not work:
            raise CampaignStateError(f"Campaign {campaign.id} has no captured samples to analyze")

        total = len(work)
        logger.info(f"Analyzing {total} points of campaign {campaign.id} (concurrency={self.concurrency})")

        analyses = await self._analyze_points(campaign, work, images, progress)

        for analysis in analyses:
            campaign.attach_analysis(analysis.sampling_point_id, analysis.id)

        self._notify(progress, total, total, "Generating field report")
        campaign.global_analysis = await self.reporter.generate(campaign, analyses)
        campaign.transition_to(CampaignStatus.COMPLETED)
        await self.store.save_campaign(campaign)

        logger.info(f"Campaign {campaign.id} completed with {len(analyses)} point analyses")
        return campaign

    async def _analyze_points(
        self,
        campaign: FieldCampaign,
        work: List[SamplingPoint],
        images: Mapping[str, CapturedImages],
        progress: Optional[ProgressCallback],
    ) -> List[PointAnalysis]:
        semaphore = asyncio.Semaphore(self.concurrency)
        aborted = asyncio.Event()
        total = len(work)

        async def process(point: SamplingPoint) -> Optional[PointAnalysis]:
            async with semaphore:
                # Set before the failing task releases the semaphore
                if aborted.is_set():
                    return None
                try:
                    return await self._analyze_point(campaign, point, images[point.id])
                except Exception:
                    aborted.set()
                    raise

        tasks = [asyncio.create_task(process(point)) for point in work]
        analyses: List[PointAnalysis] = []

        for done, (task, point) in enumerate(zip(tasks, work), start=1):
            try:
                analyses.append(await task)
            except Exception as e:
                for pending in tasks:
                    pending.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)

                completed = [
                    p.label for t, p in zip(tasks, work)
                    if not t.cancelled() and t.exception() is None and t.result() is not None
                ]
                logger.error(f"Analysis of point {point.label} failed; abandoning batch ({len(completed)} saved): {e}")
                raise BatchAnalysisError(point.label, e, completed) from e

            self._notify(progress, done, total, f"Analyzed point {point.label} ({done} of {total})")

        return analyses

    async def _analyze_point(
        self,
        campaign: FieldCampaign,
        point: SamplingPoint,
        images: CapturedImages,
    ) -> PointAnalysis:
        geodata = await self.aggregator.fetch(point.lat, point.lon, campaign.parcel.crop)
        result = await self.analyzer.analyze(point, campaign, images, geodata)
        analysis = PointAnalysis(
            campaign_id=campaign.id,
            sampling_point_id=point.id,
            result=result,
            geodata_context=geodata,
            geodata_used=geodata.geodata_used(),
        )
        await self.store.save_analysis(analysis)
        logger.debug(f"Saved analysis {analysis.id} for point {point.label}")
        return analysis

    @staticmethod
    def _notify(progress: Optional[ProgressCallback], done: int, total: int, message: str) -> None:
        if progress is not None:
            progress(done, total, message)
