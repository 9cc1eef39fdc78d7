"""Ad selection, targeting and impression/click accounting."""

import random

from interactive_video.repositories import ads_repo

AD_FORMATS = ('banner', 'sidebar', 'preroll', 'midroll', 'postroll', 'overlay')
AD_TYPES = ('video', 'image', 'gif')
AD_STATUSES = ('active', 'paused', 'completed', 'scheduled')
VIDEO_FORMATS = {'preroll', 'midroll', 'postroll'}
CANDIDATE_LIMIT = 20

# format -> (wants video ads, max ads served)
SELECTION_RULES = {
    'preroll': (True, 1),
    'postroll': (True, 1),
    'midroll': (True, 2),
    'banner': (False, 1),
    'overlay': (False, 1),
    'sidebar': (False, 3),
}

MOBILE_MARKERS = ('iphone', 'android', 'mobile', 'ipod', 'windows phone')
TABLET_MARKERS = ('ipad', 'tablet', 'kindle', 'silk')


def detect_device(user_agent):
    ua = str(user_agent or '').lower()
    if any(marker in ua for marker in TABLET_MARKERS):
        return 'tablet'
    if 'android' in ua and 'mobile' not in ua:
        return 'tablet'
    if any(marker in ua for marker in MOBILE_MARKERS):
        return 'mobile'
    return 'desktop'


def is_in_schedule(ad, now_ts):
    start = ad.get('start_date')
    end = ad.get('end_date')
    if isinstance(start, (int, float)) and start > now_ts:
        return False
    if isinstance(end, (int, float)) and end < now_ts:
        return False
    return True


def matches_targeting(ad, country, device):
    audience = ad.get('target_audience') or {}
    countries = [str(c).upper() for c in audience.get('countries') or []]
    devices = [str(d).lower() for d in audience.get('devices') or []]
    if countries and str(country or '').upper() not in countries:
        return False
    if devices and str(device or '').lower() not in devices:
        return False
    return True


def select_ads(candidates, ad_format, rng=random):
    wants_video, max_ads = SELECTION_RULES.get(ad_format, (None, 1))
    if wants_video is True:
        pool = [ad for ad in candidates if ad.get('type') == 'video']
    elif wants_video is False:
        pool = [ad for ad in candidates if ad.get('type') != 'video']
    else:
        pool = list(candidates)
    if len(pool) <= max_ads:
        picked = list(pool)
        rng.shuffle(picked)
        return picked
    return rng.sample(pool, max_ads)


def public_ad(ad, impression_id):
    return {
        'id': ad['id'],
        'impression_id': impression_id,
        'name': ad.get('name', ''),
        'type': ad.get('type', ''),
        'format': ad.get('format', ''),
        'url': ad.get('url', ''),
        'target_url': ad.get('target_url', ''),
        'duration': ad.get('duration'),
        'skip_after': ad.get('skip_after'),
        'width': ad.get('width'),
        'height': ad.get('height'),
        'position': ad.get('position'),
    }


def serve_ads(db, ad_format, *, country, device, video_id, viewer_uid, creator_id, ip_hash, firestore_module, now_ts, rng=random):
    """Pick ads for a placement and record one impression per served ad."""
    candidates = []
    for doc in ads_repo.list_active_by_format(db, ad_format, CANDIDATE_LIMIT):
        ad = doc.to_dict() or {}
        ad['id'] = doc.id
        if is_in_schedule(ad, now_ts) and matches_targeting(ad, country, device):
            candidates.append(ad)

    served = []
    for ad in select_ads(candidates, ad_format, rng=rng):
        impression_id = ads_repo.add_impression(db, {
            'ad_id': ad['id'],
            'video_id': video_id or '',
            'creator_id': creator_id or '',
            'uid': viewer_uid or '',
            'ip_hash': ip_hash,
            'country': country or '',
            'device': device,
            'format': ad_format,
            'created_at': now_ts,
        })
        ads_repo.increment_counter(db, ad['id'], 'impressions', firestore_module)
        served.append(public_ad(ad, impression_id))
    return served


def record_click(db, ad_id, impression_id, *, firestore_module, now_ts):
    """Record at most one click per impression. Returns 'recorded', 'duplicate' or 'not_found'."""
    impression = ads_repo.get_impression(db, impression_id)
    if not impression or impression.get('ad_id') != ad_id:
        return 'not_found', None
    click_ref = ads_repo.click_ref(db, impression_id)
    transaction = db.transaction()

    @firestore_module.transactional
    def _txn(txn):
        snapshot = click_ref.get(transaction=txn)
        if snapshot.exists:
            return False
        txn.set(click_ref, {
            'ad_id': ad_id,
            'impression_id': impression_id,
            'video_id': impression.get('video_id', ''),
            'creator_id': impression.get('creator_id', ''),
            'uid': impression.get('uid', ''),
            'created_at': now_ts,
        })
        return True

    if not _txn(transaction):
        return 'duplicate', impression
    ads_repo.increment_counter(db, ad_id, 'clicks', firestore_module)
    return 'recorded', impression


def compute_performance(ad, cpm):
    impressions = int(ad.get('impressions', 0) or 0)
    clicks = int(ad.get('clicks', 0) or 0)
    spend = (impressions / 1000.0) * cpm
    return {
        'ad_id': ad.get('id', ''),
        'impressions': impressions,
        'clicks': clicks,
        'ctr': round((clicks / impressions) * 100, 2) if impressions else 0.0,
        'spend': round(spend, 2),
        'cpm': round(cpm, 2),
        'cpc': round(spend / clicks, 4) if clicks else 0.0,
    }


def _clean_list(value, transform):
    if not isinstance(value, list):
        return []
    return [transform(str(item).strip()) for item in value if str(item or '').strip()][:50]


def validate_ad_payload(raw, *, partial=False, existing=None):
    """Return (fields, errors) for ad create/update payloads."""
    raw = raw if isinstance(raw, dict) else {}
    merged = dict(existing or {})
    errors = {}
    fields = {}

    def wants(key):
        return key in raw or not partial

    if wants('name'):
        name = str(raw.get('name', '') or '').strip()[:120]
        if not name:
            errors['name'] = 'Name is required'
        fields['name'] = name
    if wants('type'):
        ad_type = str(raw.get('type', '') or '').strip().lower()
        if ad_type not in AD_TYPES:
            errors['type'] = f"Type must be one of: {', '.join(AD_TYPES)}"
        fields['type'] = ad_type
    if wants('format'):
        ad_format = str(raw.get('format', '') or '').strip().lower()
        if ad_format not in AD_FORMATS:
            errors['format'] = f"Format must be one of: {', '.join(AD_FORMATS)}"
        fields['format'] = ad_format
    if 'status' in raw or not partial:
        status = str(raw.get('status', 'scheduled') or 'scheduled').strip().lower()
        if status not in AD_STATUSES:
            errors['status'] = f"Status must be one of: {', '.join(AD_STATUSES)}"
        fields['status'] = status
    for key in ('url', 'target_url'):
        if wants(key):
            value = str(raw.get(key, '') or '').strip()[:1000]
            if not value.startswith(('https://', 'http://')):
                errors[key] = 'Must be an http(s) URL'
            fields[key] = value
    for key in ('start_date', 'end_date'):
        if wants(key):
            value = raw.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors[key] = 'Must be a Unix timestamp'
            fields[key] = value
    for key in ('duration', 'skip_after', 'width', 'height'):
        if key in raw:
            value = raw.get(key)
            if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0):
                errors[key] = 'Must be a number >= 0'
            fields[key] = value
    if 'position' in raw:
        fields['position'] = str(raw.get('position', '') or '').strip()[:40]
    if 'target_audience' in raw or not partial:
        audience = raw.get('target_audience') if isinstance(raw.get('target_audience'), dict) else {}
        fields['target_audience'] = {
            'countries': _clean_list(audience.get('countries'), str.upper),
            'languages': _clean_list(audience.get('languages'), str.lower),
            'devices': _clean_list(audience.get('devices'), str.lower),
        }

    merged.update(fields)
    if not errors:
        start, end = merged.get('start_date'), merged.get('end_date')
        if isinstance(start, (int, float)) and isinstance(end, (int, float)) and start >= end:
            errors['end_date'] = 'End date must be after start date'
        ad_type, ad_format = merged.get('type'), merged.get('format')
        if ad_format in VIDEO_FORMATS and ad_type != 'video':
            errors['type'] = f'{ad_format} ads must be video ads'
        elif ad_format and ad_format not in VIDEO_FORMATS and ad_type == 'video':
            errors['type'] = f'{ad_format} ads must be image or gif ads'
    return fields, errors
