"""Creator earnings aggregation, periods and payout scheduling."""

import calendar
from datetime import datetime, timedelta, timezone

from interactive_video.repositories import earnings_repo, engagement_repo, payouts_repo, videos_repo

DAY_SECONDS = 24 * 60 * 60
DEFAULT_LOOKBACK_DAYS = 30
MAX_DOCS_PER_WINDOW = 50000
MAX_CREATORS_PER_RUN = 10000
BALANCE_RESERVING_STATUSES = ('pending', 'processing', 'completed')
PAYOUT_FREQUENCIES = ('weekly', 'biweekly', 'monthly')


def round_money(value):
    return round(float(value or 0.0), 2)


def get_current_rates(db, default_rates):
    """Active payout_rates docs ({type, rate, active}) override the defaults."""
    rates = dict(default_rates)
    for doc in earnings_repo.list_active_rates(db):
        data = doc.to_dict() or {}
        rate_type = str(data.get('type', '') or '').strip()
        rate = data.get('rate')
        if rate_type in rates and isinstance(rate, (int, float)) and not isinstance(rate, bool) and rate >= 0:
            rates[rate_type] = float(rate)
    return rates


def _window_docs(db, collection_name, uid, start_ts, end_ts):
    docs = engagement_repo.list_creator_docs_in_window(db, collection_name, uid, start_ts, end_ts, MAX_DOCS_PER_WINDOW)
    return [doc.to_dict() or {} for doc in docs]


def collect_activity(db, uid, start_ts, end_ts):
    return {
        'views': _window_docs(db, 'video_views', uid, start_ts, end_ts),
        'engagements': _window_docs(db, 'video_engagements', uid, start_ts, end_ts),
        'payments': _window_docs(db, 'subscription_payments', uid, start_ts, end_ts),
        'ad_impressions': _window_docs(db, 'ad_impressions', uid, start_ts, end_ts),
        'ad_clicks': _window_docs(db, 'ad_clicks', uid, start_ts, end_ts),
    }


def summarize_activity(activity, rates):
    views_count = len(activity['views'])
    engagements_count = len(activity['engagements'])
    impressions_count = len(activity['ad_impressions'])
    clicks_count = len(activity['ad_clicks'])
    subscription_revenue = sum(float(p.get('amount', 0) or 0) for p in activity['payments'])

    views_amount = views_count * rates['view']
    engagements_amount = engagements_count * rates['engagement']
    subscriptions_amount = subscription_revenue * rates['subscription']
    ad_amount = impressions_count * rates['ad_impression'] + clicks_count * rates['ad_click']
    return {
        'views_count': views_count,
        'views_amount': round_money(views_amount),
        'engagements_count': engagements_count,
        'engagements_amount': round_money(engagements_amount),
        'subscriptions_count': len(activity['payments']),
        'subscription_revenue': round_money(subscription_revenue),
        'subscriptions_amount': round_money(subscriptions_amount),
        'ad_impressions_count': impressions_count,
        'ad_clicks_count': clicks_count,
        'ad_amount': round_money(ad_amount),
        'tips_amount': 0.0,
        'sales_amount': 0.0,
        'other_amount': round_money(engagements_amount + ad_amount),
        'total_amount': round_money(views_amount + engagements_amount + subscriptions_amount + ad_amount),
    }


def calculate_earnings(db, uid, start_ts, end_ts, rates):
    summary = summarize_activity(collect_activity(db, uid, start_ts, end_ts), rates)
    summary.update({'start_date': start_ts, 'end_date': end_ts})
    return summary


def latest_finalized_period(db, uid):
    periods = [doc.to_dict() or {} for doc in earnings_repo.list_for_uid(db, uid, 500, status='finalized')]
    if not periods:
        return None
    return max(periods, key=lambda p: p.get('end_date', 0) or 0)


def calculate_current_earnings(db, uid, now_ts, rates):
    """Earnings since the last finalized period (or the last 30 days) up to now."""
    last_period = latest_finalized_period(db, uid)
    if last_period:
        start_ts = float(last_period.get('end_date', 0) or 0) + DAY_SECONDS
    else:
        start_ts = now_ts - DEFAULT_LOOKBACK_DAYS * DAY_SECONDS
    return calculate_earnings(db, uid, start_ts, now_ts, rates)


def create_earnings_period(db, uid, start_ts, end_ts, rates, now_ts):
    summary = calculate_earnings(db, uid, start_ts, end_ts, rates)
    summary.update({
        'uid': uid,
        'status': 'pending',
        'finalized_at': None,
        'created_at': now_ts,
    })
    period_id = earnings_repo.create_period(db, summary)
    summary['id'] = period_id
    return summary


def get_earnings_breakdown(db, period, rates):
    uid = period['uid']
    rows = {}
    for doc in videos_repo.list_by_uid(db, uid, MAX_DOCS_PER_WINDOW):
        video = doc.to_dict() or {}
        rows[doc.id] = {
            'video_id': doc.id,
            'video_title': video.get('title', ''),
            'views': 0,
            'view_earnings': 0.0,
            'engagements': 0,
            'engagement_earnings': 0.0,
            'subscriptions': 0,
            'subscription_earnings': 0.0,
            'ad_impressions': 0,
            'ad_clicks': 0,
            'ad_earnings': 0.0,
            'total_earnings': 0.0,
        }

    activity = collect_activity(db, uid, period['start_date'], period['end_date'])
    for view in activity['views']:
        row = rows.get(view.get('video_id'))
        if row:
            row['views'] += 1
            row['view_earnings'] += rates['view']
    for engagement in activity['engagements']:
        row = rows.get(engagement.get('video_id'))
        if row:
            row['engagements'] += 1
            row['engagement_earnings'] += rates['engagement']
    for payment in activity['payments']:
        row = rows.get(payment.get('video_id'))
        if row:
            row['subscriptions'] += 1
            row['subscription_earnings'] += float(payment.get('amount', 0) or 0) * rates['subscription']
    for impression in activity['ad_impressions']:
        row = rows.get(impression.get('video_id'))
        if row:
            row['ad_impressions'] += 1
            row['ad_earnings'] += rates['ad_impression']
    for click in activity['ad_clicks']:
        row = rows.get(click.get('video_id'))
        if row:
            row['ad_clicks'] += 1
            row['ad_earnings'] += rates['ad_click']

    breakdown = []
    for row in rows.values():
        for key in ('view_earnings', 'engagement_earnings', 'subscription_earnings', 'ad_earnings'):
            row[key] = round_money(row[key])
        row['total_earnings'] = round_money(
            row['view_earnings'] + row['engagement_earnings'] + row['subscription_earnings'] + row['ad_earnings']
        )
        breakdown.append(row)
    breakdown.sort(key=lambda item: item['total_earnings'], reverse=True)
    return breakdown


def finalize_earnings_period(db, period_id, now_ts):
    """Move a pending period to finalized. Returns False for missing or non-pending periods."""
    period = earnings_repo.get_period(db, period_id)
    if not period or period.get('status') != 'pending':
        return False
    earnings_repo.update_period(db, period_id, {'status': 'finalized', 'finalized_at': now_ts})
    return True


def get_available_balance(db, uid):
    finalized_total = sum(
        float((doc.to_dict() or {}).get('total_amount', 0) or 0)
        for doc in earnings_repo.list_for_uid(db, uid, MAX_DOCS_PER_WINDOW, status='finalized')
    )
    reserved = sum(
        float(tx.get('amount', 0) or 0)
        for tx in payouts_repo.list_transactions(db, uid, MAX_DOCS_PER_WINDOW, statuses=BALANCE_RESERVING_STATUSES)
    )
    return round_money(max(0.0, finalized_total - reserved))


def previous_month_window(now_ts):
    now_dt = datetime.fromtimestamp(now_ts, tz=timezone.utc)
    first_of_month = now_dt.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    last_day_prev = first_of_month - timedelta(days=1)
    start_dt = last_day_prev.replace(day=1)
    end_dt = first_of_month - timedelta(microseconds=1)
    return start_dt.timestamp(), end_dt.timestamp()


def has_period_covering(db, uid, start_ts, end_ts):
    for doc in earnings_repo.list_for_uid(db, uid, 500):
        period = doc.to_dict() or {}
        if (period.get('start_date', 0) or 0) <= start_ts and (period.get('end_date', 0) or 0) >= end_ts:
            return True
    return False


def schedule_earnings_periods(db, rates, now_ts, dry_run=False):
    """Create last calendar month's period for each creator that lacks one. Returns the uids handled."""
    start_ts, end_ts = previous_month_window(now_ts)
    created = []
    for uid in videos_repo.list_creator_ids(db, MAX_CREATORS_PER_RUN):
        if has_period_covering(db, uid, start_ts, end_ts):
            continue
        if not dry_run:
            create_earnings_period(db, uid, start_ts, end_ts, rates, now_ts)
        created.append(uid)
    return created


def is_payout_due(settings, now_ts):
    now_dt = datetime.fromtimestamp(now_ts, tz=timezone.utc)
    frequency = settings.get('payout_frequency', 'monthly')
    try:
        payout_day = int(settings.get('payout_day', 1) or 1)
    except (TypeError, ValueError):
        payout_day = 1
    if frequency == 'monthly':
        last_day = calendar.monthrange(now_dt.year, now_dt.month)[1]
        return now_dt.day == min(max(payout_day, 1), last_day)
    _, iso_week, iso_weekday = now_dt.isocalendar()
    if iso_weekday != min(max(payout_day, 1), 7):
        return False
    if frequency == 'biweekly':
        return iso_week % 2 == 0
    return frequency == 'weekly'


def run_scheduled_payouts(db, now_ts, *, payout_trigger, default_settings, logger=None, dry_run=False):
    """Trigger automatic payouts for creators whose schedule matches today.

    Returns (triggered_uids, failed_uids). One creator failing does not stop the run.
    """
    triggered = []
    failed = []
    for doc in payouts_repo.list_automatic_settings(db, MAX_CREATORS_PER_RUN):
        settings = dict(default_settings)
        settings.update(doc.to_dict() or {})
        if not is_payout_due(settings, now_ts):
            continue
        if dry_run:
            triggered.append(doc.id)
            continue
        try:
            payout_trigger(doc.id)
            triggered.append(doc.id)
        except Exception as e:
            failed.append(doc.id)
            if logger is not None:
                logger.error(f"Scheduled payout for {doc.id} failed: {e}")
    return triggered, failed
