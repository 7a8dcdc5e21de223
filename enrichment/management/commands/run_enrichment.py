"""
Management command to run the enrichment pipeline synchronously.

Usage:
    python manage.py run_enrichment --shop store.myshopify.com
    python manage.py run_enrichment --shop store.myshopify.com --product-id 123456
    python manage.py run_enrichment --shop store.myshopify.com --max-products 10 --auto-apply
"""

import logging

from django.core.management.base import BaseCommand, CommandError

from enrichment.api.views import normalize_product_id
from enrichment.models import TriggerType
from enrichment.services.pipeline import EnrichmentPipeline
from enrichment.tasks import MissingCredentialError, build_client, resolve_job_options

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Run one enrichment pass for a shop without going through the queue."""

    help = 'Run the enrichment pipeline for a shop in the foreground'

    def add_arguments(self, parser):
        parser.add_argument(
            '--shop',
            required=True,
            help='Shop domain, e.g. store.myshopify.com',
        )
        parser.add_argument(
            '--product-id',
            help='Enrich a single product (numeric id or GID)',
        )
        parser.add_argument(
            '--max-products',
            type=int,
            help='Maximum products to process (default: shop setting)',
        )
        parser.add_argument(
            '--auto-apply',
            action='store_true',
            default=None,
            help='Apply proposals that meet the confidence threshold',
        )
        parser.add_argument(
            '--min-confidence',
            type=float,
            help='Confidence required for auto-apply (default: shop setting)',
        )

    def handle(self, *args, **options):
        shop = options['shop']
        max_products = options['max_products']
        if max_products is not None and not 1 <= max_products <= 200:
            raise CommandError('--max-products must be between 1 and 200')

        try:
            client = build_client(shop)
        except MissingCredentialError as e:
            raise CommandError(str(e))

        product_id = options['product_id']
        if product_id:
            product_id = normalize_product_id(product_id)

        job_options = resolve_job_options(
            shop,
            TriggerType.MANUAL,
            max_products=max_products,
            auto_apply=options['auto_apply'],
            min_confidence=options['min_confidence'],
        )

        self.stdout.write(
            f"Enriching {shop} (max={job_options['max_products']}, "
            f"auto_apply={job_options['auto_apply']}, min_confidence={job_options['min_confidence']})"
        )

        try:
            run = EnrichmentPipeline(shop, client).run(
                triggered_by=TriggerType.MANUAL,
                product_id=product_id,
                **job_options,
            )
        except Exception as e:
            raise CommandError(f'Enrichment run failed: {e}')
        finally:
            client.close()

        self.stdout.write(self.style.SUCCESS(
            f'Run {run.id} {run.status}: {run.total_products} products, '
            f'{run.enriched_count} applied, {run.pending_count} pending, '
            f'{run.skipped_count} skipped, {run.failed_count} failed'
        ))
