from gorizont.common.logging import get_logger
from gorizont.tasks.celery_app import app, run_async

logger = get_logger("tasks.review")


@app.task(name="gorizont.tasks.review_tasks.recompute_all_product_ratings")
def recompute_all_product_ratings():
    """Nightly rebuild of every product's rating aggregate from its approved reviews."""
    logger.info("Recomputing product ratings")

    async def _recompute():
        from sqlalchemy import select

        from gorizont.core.reviews.service import ReviewService
        from gorizont.db.models.product import Product
        from gorizont.db.session import async_session_factory

        async with async_session_factory() as db:
            try:
                service = ReviewService()
                result = await db.execute(select(Product).where(Product.is_deleted.is_(False)))
                products = result.scalars().all()
                for product in products:
                    await service.recompute_product_rating(product, db)
                await db.commit()

                logger.info("Recomputed ratings for %d products", len(products))
                return len(products)
            except Exception as e:
                await db.rollback()
                logger.error("Rating recompute failed: %s", e)
                raise

    return run_async(_recompute())
