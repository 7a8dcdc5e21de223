"""
Enrichment Pipeline Orchestrator

Drives one run over a batch of catalog items:

    fetch candidates -> status gate -> dedup gate -> analyze -> threshold gate
        -> gather (barcode, text search, images) -> generate -> validate
        -> claim PENDING log -> auto-apply or leave for approval

Every item that is attempted yields exactly one log in the run. Run
counters are saved after every item. Only a failure while fetching
candidates fails the run; per-item failures become FAILED logs.
"""

import logging
from collections import Counter
from typing import List, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from enrichment.discovery.barcode_lookup import BarcodeLookup
from enrichment.discovery.image_search import (
    IMAGE_SEARCH_BELOW_COUNT,
    MAX_NEW_IMAGES,
    ImageSearcher,
)
from enrichment.discovery.web_search import WebSearcher
from enrichment.models import (
    BLOCKING_LOG_STATUSES,
    EnrichmentLog,
    EnrichmentRun,
    LogStatus,
    TriggerType,
)
from enrichment.monitoring import add_pipeline_breadcrumb, capture_pipeline_error
from enrichment.services.ai_client import GeminiClient
from enrichment.services.catalog_updater import CatalogUpdater, UpdateResult
from enrichment.services.completeness import analyze, should_enrich
from enrichment.services.validator import validate
from enrichment.shopify.client import ShopifyAdminClient
from enrichment.shopify.queries import fetch_product, fetch_products_page
from enrichment.shopify.types import CatalogImage, CatalogItem, CatalogMetafield

logger = logging.getLogger(__name__)

DEFAULT_MAX_PRODUCTS = 50
DEFAULT_MIN_CONFIDENCE = 0.5


def project_item(item: CatalogItem, applied: dict) -> CatalogItem:
    """Return the item as it looks after the applied changes."""
    changes = {}
    if "descriptionHtml" in applied:
        changes["description_html"] = applied["descriptionHtml"]
    if "productType" in applied:
        changes["product_type"] = applied["productType"]
    if "tags" in applied:
        changes["tags"] = list(applied["tags"])
    seo = applied.get("seo") or {}
    if seo.get("title"):
        changes["seo_title"] = seo["title"]
    if seo.get("description"):
        changes["seo_description"] = seo["description"]

    if applied.get("metafields"):
        merged = {(m.namespace, m.key): m for m in item.metafields}
        for full_key, value in applied["metafields"].items():
            namespace, _, key = full_key.partition(".")
            merged[(namespace, key)] = CatalogMetafield(namespace=namespace, key=key, value=value)
        changes["metafields"] = list(merged.values())

    if applied.get("images"):
        changes["images"] = list(item.images) + [
            CatalogImage(url=url, alt_text=None) for url in applied["images"]
        ]

    return item.with_changes(**changes)


class EnrichmentPipeline:
    """
    Enrichment run orchestrator for one shop.

    Collaborators are injectable; defaults talk to the real services.

    Usage:
        pipeline = EnrichmentPipeline(shop, client)
        run = pipeline.run(TriggerType.MANUAL, max_products=50, auto_apply=True)
    """

    def __init__(
        self,
        shop: str,
        client: ShopifyAdminClient,
        web_searcher: Optional[WebSearcher] = None,
        image_searcher: Optional[ImageSearcher] = None,
        barcode_lookup: Optional[BarcodeLookup] = None,
        generator: Optional[GeminiClient] = None,
        updater: Optional[CatalogUpdater] = None,
        threshold: Optional[int] = None,
        max_candidate_pages: Optional[int] = None,
    ):
        self.shop = shop
        self.client = client
        self.web_searcher = web_searcher or WebSearcher()
        self.image_searcher = image_searcher or ImageSearcher()
        self.barcode_lookup = barcode_lookup or BarcodeLookup()
        self.generator = generator or GeminiClient()
        self.updater = updater or CatalogUpdater(client)
        self.threshold = threshold if threshold is not None else getattr(settings, "ENRICHMENT_THRESHOLD", 80)
        self.max_candidate_pages = (
            max_candidate_pages
            if max_candidate_pages is not None
            else getattr(settings, "ENRICHMENT_MAX_CANDIDATE_PAGES", 20)
        )

    @property
    def model_name(self) -> str:
        return getattr(self.generator, "model", "")

    # ============================================================
    # Run
    # ============================================================

    def run(
        self,
        triggered_by: str = TriggerType.MANUAL,
        max_products: int = DEFAULT_MAX_PRODUCTS,
        auto_apply: bool = False,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
        product_id: Optional[str] = None,
    ) -> EnrichmentRun:
        """
        Execute one enrichment run.

        Raises:
            Exception: Whatever the candidate fetch raised; the run is
                marked FAILED first
        """
        run = EnrichmentRun.objects.create(shop=self.shop, triggered_by=triggered_by)
        logger.info(
            "Starting enrichment run %s for %s (trigger=%s, max=%d, auto_apply=%s, min_confidence=%.2f)",
            run.id, self.shop, triggered_by, max_products, auto_apply, min_confidence,
        )
        add_pipeline_breadcrumb(self.shop, "Enrichment run started", run_id=run.id)

        try:
            candidates = self.collect_candidates(max_products, product_id)
        except Exception as e:
            logger.exception("Candidate fetch failed for run %s", run.id)
            run.fail(str(e))
            raise

        counts = Counter()
        run.record_progress(0, 0, 0, 0, total=len(candidates))

        for item in candidates:
            try:
                outcome = self.process_item(run, item, auto_apply, min_confidence)
            except Exception as e:
                logger.exception("Enrichment failed for %s (%s)", item.id, item.title)
                capture_pipeline_error(e, shop=self.shop, product_id=item.id, run_id=run.id)
                self._record_failure(run, item, e)
                outcome = LogStatus.FAILED

            counts[outcome] += 1
            run.record_progress(
                enriched=counts[LogStatus.APPLIED],
                failed=counts[LogStatus.FAILED],
                skipped=counts[LogStatus.SKIPPED],
                pending=counts[LogStatus.PENDING],
            )

        run.complete()
        logger.info(
            "Run %s completed: %d applied, %d pending, %d skipped, %d failed",
            run.id,
            counts[LogStatus.APPLIED],
            counts[LogStatus.PENDING],
            counts[LogStatus.SKIPPED],
            counts[LogStatus.FAILED],
        )
        return run

    # ============================================================
    # Candidate sourcing
    # ============================================================

    def collect_candidates(self, max_products: int, product_id: Optional[str] = None) -> List[CatalogItem]:
        """
        Collect up to `max_products` items without a pending or applied log.

        Pages through active products newest first and stops when enough
        candidates are found, pages run out or the page cap is hit.
        """
        if product_id:
            item = fetch_product(self.client, product_id)
            if item is None:
                logger.warning("Product %s not found in %s", product_id, self.shop)
                return []
            return [item]

        candidates: List[CatalogItem] = []
        cursor = None

        for page_number in range(self.max_candidate_pages):
            page = fetch_products_page(self.client, cursor=cursor)

            page_ids = [item.id for item in page.items]
            blocked = set(
                EnrichmentLog.objects.filter(
                    shop=self.shop,
                    product_id__in=page_ids,
                    status__in=BLOCKING_LOG_STATUSES,
                ).values_list("product_id", flat=True)
            )

            for item in page.items:
                if item.id in blocked:
                    continue
                candidates.append(item)
                if len(candidates) >= max_products:
                    return candidates

            logger.debug(
                "Page %d: %d products, %d already handled, %d candidates so far",
                page_number + 1, len(page.items), len(blocked), len(candidates),
            )

            if not page.has_next_page:
                break
            cursor = page.end_cursor

        return candidates

    # ============================================================
    # Per-item processing
    # ============================================================

    def process_item(
        self,
        run: EnrichmentRun,
        item: CatalogItem,
        auto_apply: bool,
        min_confidence: float,
    ) -> str:
        """
        Process one item and record its log.

        Returns:
            The LogStatus recorded for the item
        """
        if not item.is_active:
            self._create_log(run, item, LogStatus.SKIPPED, error_message=f"Product status is {item.status}")
            return LogStatus.SKIPPED

        if self._has_blocking_log(item.id):
            self._create_log(run, item, LogStatus.SKIPPED, error_message="Already enriched or pending approval")
            return LogStatus.SKIPPED

        analysis = analyze(item)
        if not should_enrich(analysis, self.threshold):
            self._create_log(run, item, LogStatus.SKIPPED, score_before=analysis.completeness_score)
            return LogStatus.SKIPPED

        # Gather external data
        barcode_data = self.barcode_lookup.lookup(item.barcode) if item.barcode else None
        search_results = self.web_searcher.search(item.sku, item.title, item.vendor, item.barcode)

        image_urls: List[str] = []
        if analysis.image_count < IMAGE_SEARCH_BELOW_COUNT:
            images = self.image_searcher.search(item.title, item.vendor, item.sku)
            image_urls = [image.url for image in images[:MAX_NEW_IMAGES]]

        gathered = {
            "score_before": analysis.completeness_score,
            "search_data": [r.to_dict() for r in search_results],
            "image_data": image_urls,
            "barcode_data": barcode_data.to_dict() if barcode_data else None,
        }

        add_pipeline_breadcrumb(self.shop, "Generating proposal", product_id=item.id, run_id=run.id)
        proposal, raw = self.generator.generate(item, search_results, barcode_data)

        valid, errors = validate(proposal)
        if not valid:
            logger.warning("Validation failed for %s: %s", item.id, "; ".join(errors))
            self._create_log(
                run, item, LogStatus.FAILED,
                proposed_changes=proposal.to_dict(),
                confidence=proposal.confidence_score,
                ai_model=self.model_name,
                ai_response_raw=raw,
                error_message=f"Validation failed: {'; '.join(errors)}",
                **gathered,
            )
            return LogStatus.FAILED

        # Claim the product; the unique constraint rejects a concurrent claim
        try:
            with transaction.atomic():
                log = self._create_log(
                    run, item, LogStatus.PENDING,
                    proposed_changes=proposal.to_dict(),
                    confidence=proposal.confidence_score,
                    ai_model=self.model_name,
                    ai_response_raw=raw,
                    **gathered,
                )
        except IntegrityError:
            logger.info("Product %s was claimed by a concurrent run, skipping", item.id)
            self._create_log(
                run, item, LogStatus.SKIPPED,
                score_before=analysis.completeness_score,
                error_message="Claimed by a concurrent run",
            )
            return LogStatus.SKIPPED

        should_auto_apply = auto_apply and proposal.confidence_score >= min_confidence
        logger.info(
            "Product %r: auto_apply=%s confidence=%.2f threshold=%.2f decision=%s",
            item.title,
            auto_apply,
            proposal.confidence_score,
            min_confidence,
            "AUTO-APPLY" if should_auto_apply else "PENDING",
        )
        if not should_auto_apply:
            return LogStatus.PENDING

        return self._apply(run, log, item, proposal, image_urls)

    def _apply(self, run, log: EnrichmentLog, item: CatalogItem, proposal, image_urls: List[str]) -> str:
        try:
            result = self.updater.apply(item.id, proposal, item.tags, image_urls or None)
        except Exception as e:
            logger.exception("Apply raised for %s", item.id)
            capture_pipeline_error(e, shop=self.shop, product_id=item.id, run_id=run.id)
            result = UpdateResult(errors=[f"Apply failed: {e}"])

        if result.success:
            log.status = LogStatus.APPLIED
            log.applied_changes = result.applied
            log.applied_at = timezone.now()
            log.score_after = analyze(project_item(item, result.applied)).completeness_score
            if result.warnings:
                log.error_message = "; ".join(result.warnings)[:2000]
        else:
            log.status = LogStatus.FAILED
            log.error_message = "; ".join(result.errors + result.warnings)[:2000]

        log.save(update_fields=["status", "applied_changes", "applied_at", "score_after", "error_message"])
        return log.status

    # ============================================================
    # Helpers
    # ============================================================

    def _has_blocking_log(self, product_id: str) -> bool:
        return EnrichmentLog.objects.filter(
            shop=self.shop,
            product_id=product_id,
            status__in=BLOCKING_LOG_STATUSES,
        ).exists()

    def _record_failure(self, run: EnrichmentRun, item: CatalogItem, error: Exception) -> EnrichmentLog:
        message = str(error)[:2000]

        # A log already written for this item takes the failure; never add a second one
        existing = EnrichmentLog.objects.filter(run=run, product_id=item.id).first()
        if existing is not None:
            existing.status = LogStatus.FAILED
            existing.error_message = message
            existing.save(update_fields=["status", "error_message"])
            return existing

        try:
            score_before = analyze(item).completeness_score
        except Exception:
            logger.warning("Could not score %s for its failure log", item.id, exc_info=True)
            score_before = 0
        return self._create_log(run, item, LogStatus.FAILED, score_before=score_before, error_message=message)

    def _create_log(self, run: EnrichmentRun, item: CatalogItem, status: str, **fields) -> EnrichmentLog:
        return EnrichmentLog.objects.create(
            run=run,
            shop=self.shop,
            product_id=item.id,
            product_title=item.title[:500],
            status=status,
            original_data=item.snapshot(),
            **fields,
        )
