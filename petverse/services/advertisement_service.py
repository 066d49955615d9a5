"""
Advertisement service - provider submissions and admin moderation.

An advertisement is published once it is both approved and paid; the two
happen independently and in either order. Moderation transitions are
conditional UPDATEs so two admins acting at once cannot both win.
"""
import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import update

from petverse.models import Advertisement, AdvertisementStatus, AdvertisementPaymentStatus
from petverse.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _parse_duration(value) -> int:
    try:
        duration = int(value)
    except (TypeError, ValueError):
        raise ValidationError('Duration must be a positive number')
    max_days = current_app.config.get('MAX_AD_DURATION_DAYS', 90)
    if not 1 <= duration <= max_days:
        raise ValidationError(f'Duration must be between 1 and {max_days} days')
    return duration


def create_advertisement(session, provider, payload: dict) -> Advertisement:
    """Submit an advertisement for moderation. The caller is the provider."""
    title = (payload.get('title') or '').strip()
    if not title:
        raise ValidationError('title is required')

    ad = Advertisement(
        provider_id=provider.id,
        title=title,
        description=payload.get('description'),
        duration_days=_parse_duration(payload.get('duration')),
        status=AdvertisementStatus.PENDING.value,
        payment_status=AdvertisementPaymentStatus.PENDING.value,
    )
    session.add(ad)
    session.flush()
    logger.info(f"[AD] #{ad.id} submitted by provider {provider.id}")
    return ad


def get_advertisement(session, ad_id: int) -> Advertisement:
    ad = session.get(Advertisement, ad_id)
    if ad is None:
        raise NotFoundError('Advertisement not found')
    return ad


def approve_advertisement(session, ad_id: int) -> Advertisement:
    result = session.execute(
        update(Advertisement)
        .where(Advertisement.id == ad_id, Advertisement.status != AdvertisementStatus.APPROVED.value)
        .values(
            status=AdvertisementStatus.APPROVED.value,
            approved_at=datetime.now(timezone.utc),
            rejection_reason=None,
        )
        .execution_options(synchronize_session='fetch')
    )
    ad = get_advertisement(session, ad_id)
    if result.rowcount != 1:
        raise ValidationError('Advertisement is already approved')

    logger.info(f"[AD] #{ad_id} approved (published={ad.is_published})")
    return ad


def reject_advertisement(session, ad_id: int, reason) -> Advertisement:
    reason = (reason or '').strip()
    if not reason:
        raise ValidationError('Rejection reason is required')

    ad = get_advertisement(session, ad_id)
    session.execute(
        update(Advertisement)
        .where(Advertisement.id == ad_id)
        .values(
            status=AdvertisementStatus.REJECTED.value,
            approved_at=None,
            rejection_reason=reason,
        )
        .execution_options(synchronize_session='fetch')
    )
    logger.info(f"[AD] #{ad_id} rejected: {reason}")
    return ad


def list_published(session):
    """Approved and paid, most recently approved first."""
    return (
        session.query(Advertisement)
        .filter(
            Advertisement.status == AdvertisementStatus.APPROVED.value,
            Advertisement.payment_status == AdvertisementPaymentStatus.PAID.value,
        )
        .order_by(Advertisement.approved_at.desc(), Advertisement.id.desc())
        .all()
    )


def list_by_status(session, status=None):
    query = session.query(Advertisement)
    if status:
        try:
            query = query.filter(Advertisement.status == AdvertisementStatus(status).value)
        except ValueError:
            raise ValidationError(f'Invalid status: {status}')
    return query.order_by(Advertisement.created_at.desc(), Advertisement.id.desc()).all()


def list_provider_ads(session, provider_id: int):
    return (
        session.query(Advertisement)
        .filter(Advertisement.provider_id == provider_id)
        .order_by(Advertisement.created_at.desc(), Advertisement.id.desc())
        .all()
    )
