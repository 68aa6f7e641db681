from __future__ import annotations

import argparse
import asyncio
from typing import List, Optional

from app.core.logging import configure_logging, get_logger
from app.core.request_id import with_run_id
from app.models.articles import ArticleCategory
from services.article_storage_service import ArticleStorageService, StorageUnavailableError
from services.news_categorizer import parse_category
from services.news_pipeline_service import NewsPipelineService, build_pipeline

configure_logging(service_name="worker")
logger = get_logger().bind(worker="news_pipeline_bot")


def _parse_category_arg(value: str) -> ArticleCategory:
    try:
        return parse_category(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="NewsPipelineBot: fetch, rewrite and categorize cybersecurity news."
    )
    parser.add_argument(
        "--category",
        type=_parse_category_arg,
        default=ArticleCategory.CYBERSECURITY,
        help="Category to run: cybersecurity, hacking or general.",
    )
    parser.add_argument(
        "--all-categories",
        action="store_true",
        help="Run the pipeline once per category (overrides --category).",
    )
    parser.add_argument(
        "--store",
        action="store_true",
        help="Upsert the resulting articles into article storage.",
    )
    return parser.parse_args(argv)


async def run_pipeline(
    categories: List[ArticleCategory],
    *,
    store: bool,
    pipeline: Optional[NewsPipelineService] = None,
    storage: Optional[ArticleStorageService] = None,
) -> int:
    if store and storage is None:
        storage = ArticleStorageService()
    pipeline = pipeline or build_pipeline(storage=storage)

    exit_code = 0
    for category in categories:
        result = await pipeline.run_detailed(category)
        stored = 0
        if store and storage is not None:
            try:
                stored = await storage.store_articles(result.articles)
            except StorageUnavailableError as exc:
                logger.error("news_pipeline_bot_store_failed", category=category.value, error=str(exc))
                exit_code = 1
        logger.info(
            "news_pipeline_bot_category_finished",
            category=category.value,
            articles=len(result.articles),
            fallback_used=result.fallback_used,
            stored=stored,
        )
    return exit_code


async def main_async(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    categories = list(ArticleCategory) if args.all_categories else [args.category]
    with with_run_id():
        return await run_pipeline(categories, store=args.store)


def main() -> None:
    exit_code = asyncio.run(main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
