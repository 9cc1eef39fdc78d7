import os
import re
import json
import math
import time
import uuid
import hashlib
import threading
import logging

import boto3
import requests
import stripe
import sentry_sdk
from flask import jsonify, request, g
from google import genai
from google.genai import types
from dotenv import load_dotenv
from sentry_sdk.integrations.flask import FlaskIntegration
from werkzeug.exceptions import RequestEntityTooLarge
import firebase_admin
from firebase_admin import credentials, auth, firestore

from interactive_video.repositories import (
    ads_repo,
    affiliate_repo,
    categories_repo,
    comments_repo,
    earnings_repo,
    engagement_repo,
    notifications_repo,
    payouts_repo,
    share_links_repo,
    subscriptions_repo,
    templates_repo,
    users_repo,
    videos_repo,
)
from interactive_video.services import (
    ad_service,
    affiliate_service,
    ai_service,
    analytics_service,
    auth_service,
    earnings_service,
    element_service,
    email_service,
    notifications_api_service,
    payout_service,
    rate_limit_service,
    share_service,
    storage_service,
    subscription_service,
    video_token_service,
)

load_dotenv()
LOG_LEVEL = (os.getenv('LOG_LEVEL', 'INFO') or 'INFO').strip().upper()
logger = logging.getLogger('interactive_video')


def log_event(level, event, **fields):
    payload = {'event': event}
    for key, value in fields.items():
        payload[str(key)] = value
    logger.log(level, json.dumps(payload, ensure_ascii=True, default=str))


def safe_int_env(name, default=0, minimum=1, maximum=100000):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except Exception:
        value = int(default)
    return min(max(value, minimum), maximum)


def safe_float_env(name, default=0.0, minimum=0.0, maximum=1.0):
    raw = os.getenv(name, str(default)).strip()
    try:
        value = float(raw)
    except Exception:
        return default
    return min(max(value, minimum), maximum)


def env_flag(name, default='0'):
    return str(os.getenv(name, default)).strip().lower() in {'1', 'true', 'yes', 'on'}


MAX_CONTENT_LENGTH = 2 * 1024 * 1024
MAX_VIDEO_UPLOAD_BYTES = safe_int_env('MAX_VIDEO_UPLOAD_BYTES', 5 * 1024 * 1024 * 1024, minimum=1024 * 1024, maximum=20 * 1024 * 1024 * 1024)
ALLOWED_VIDEO_MIME_TYPES = {
    'video/mp4', 'video/webm', 'video/ogg', 'video/quicktime', 'video/x-matroska', 'video/x-msvideo', 'video/mpeg',
}
S3_PRESIGNED_URL_TTL_SECONDS = 3600
VIDEO_ACCESS_TOKEN_TTL_SECONDS = 24 * 60 * 60
MAX_COMMENT_LENGTH = 2000
MAX_COMPLETED_INTERACTIONS = 500
DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100

# --- Gemini Setup ---
GEMINI_API_KEY = (os.getenv('GEMINI_API_KEY', '') or '').strip()
GEMINI_MODEL = (os.getenv('GEMINI_MODEL', 'gemini-2.5-flash') or 'gemini-2.5-flash').strip()
if GEMINI_API_KEY:
    try:
        client = genai.Client(api_key=GEMINI_API_KEY)
    except Exception as e:
        client = None
        logger.info(f"⚠️ Gemini client disabled: {e}")
else:
    client = None
    logger.info("⚠️ GEMINI_API_KEY not set; AI interaction drafting is disabled.")

# --- Firebase Setup ---
db = None
firebase_init_error = ''
try:
    if os.path.exists('firebase-credentials.json'):
        cred = credentials.Certificate('firebase-credentials.json')
    else:
        firebase_creds_raw = (os.getenv('FIREBASE_CREDENTIALS', '') or '').strip()
        if not firebase_creds_raw:
            raise ValueError("FIREBASE_CREDENTIALS is not set and firebase-credentials.json was not found.")
        cred = credentials.Certificate(json.loads(firebase_creds_raw))
    if not firebase_admin._apps:
        firebase_admin.initialize_app(cred)
    db = firestore.client()
except Exception as e:
    firebase_init_error = str(e)
    logger.info(f"⚠️ Firebase initialization skipped: {firebase_init_error}")

# --- Stripe Setup ---
stripe.api_key = os.getenv('STRIPE_SECRET_KEY')
STRIPE_PUBLISHABLE_KEY = os.getenv('STRIPE_PUBLISHABLE_KEY', '')
STRIPE_WEBHOOK_SECRET = os.getenv('STRIPE_WEBHOOK_SECRET', '')
ADMIN_EMAILS = {email.strip().lower() for email in os.getenv('ADMIN_EMAILS', '').split(',') if email.strip()}
ADMIN_UIDS = {uid.strip() for uid in os.getenv('ADMIN_UIDS', '').split(',') if uid.strip()}

# --- Storage, payout and mail backends ---
AWS_REGION = (os.getenv('AWS_REGION', 'us-east-1') or 'us-east-1').strip()
AWS_S3_BUCKET = (os.getenv('AWS_S3_BUCKET', '') or '').strip()
PAYPAL_CLIENT_ID = (os.getenv('PAYPAL_CLIENT_ID', '') or '').strip()
PAYPAL_CLIENT_SECRET = (os.getenv('PAYPAL_CLIENT_SECRET', '') or '').strip()
PAYPAL_API_BASE = (os.getenv('PAYPAL_API_BASE', 'https://api.paypal.com') or 'https://api.paypal.com').strip().rstrip('/')
COINBASE_COMMERCE_API_KEY = (os.getenv('COINBASE_COMMERCE_API_KEY', '') or '').strip()
SMTP_HOST = (os.getenv('SMTP_HOST', '') or '').strip()
SMTP_PORT = safe_int_env('SMTP_PORT', 587, minimum=1, maximum=65535)
SMTP_USER = (os.getenv('SMTP_USER', '') or '').strip()
SMTP_PASSWORD = os.getenv('SMTP_PASSWORD', '') or ''
EMAIL_FROM = (os.getenv('EMAIL_FROM', SMTP_USER or 'noreply@localhost') or 'noreply@localhost').strip()
PUBLIC_BASE_URL = (os.getenv('PUBLIC_BASE_URL', '') or '').strip().rstrip('/')
VIDEO_TOKEN_SECRET = (os.getenv('VIDEO_TOKEN_SECRET', '') or '').strip() or os.urandom(32).hex()

# --- Rate limits ---
CHECKOUT_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('CHECKOUT_RATE_LIMIT_WINDOW_SECONDS', 600, minimum=10, maximum=86400)
CHECKOUT_RATE_LIMIT_MAX_REQUESTS = safe_int_env('CHECKOUT_RATE_LIMIT_MAX_REQUESTS', 6, minimum=1, maximum=100)
ANALYTICS_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('ANALYTICS_RATE_LIMIT_WINDOW_SECONDS', 60, minimum=10, maximum=3600)
ANALYTICS_RATE_LIMIT_MAX_REQUESTS = safe_int_env('ANALYTICS_RATE_LIMIT_MAX_REQUESTS', 240, minimum=10, maximum=5000)
AD_CLICK_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('AD_CLICK_RATE_LIMIT_WINDOW_SECONDS', 60, minimum=10, maximum=3600)
AD_CLICK_RATE_LIMIT_MAX_REQUESTS = safe_int_env('AD_CLICK_RATE_LIMIT_MAX_REQUESTS', 30, minimum=1, maximum=1000)
SHARE_PASSWORD_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('SHARE_PASSWORD_RATE_LIMIT_WINDOW_SECONDS', 600, minimum=10, maximum=86400)
SHARE_PASSWORD_RATE_LIMIT_MAX_REQUESTS = safe_int_env('SHARE_PASSWORD_RATE_LIMIT_MAX_REQUESTS', 10, minimum=1, maximum=200)
INTERACTION_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('INTERACTION_RATE_LIMIT_WINDOW_SECONDS', 60, minimum=10, maximum=3600)
INTERACTION_RATE_LIMIT_MAX_REQUESTS = safe_int_env('INTERACTION_RATE_LIMIT_MAX_REQUESTS', 120, minimum=1, maximum=5000)
AI_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('AI_RATE_LIMIT_WINDOW_SECONDS', 3600, minimum=60, maximum=86400)
AI_RATE_LIMIT_MAX_REQUESTS = safe_int_env('AI_RATE_LIMIT_MAX_REQUESTS', 20, minimum=1, maximum=500)
UPLOAD_RATE_LIMIT_WINDOW_SECONDS = safe_int_env('UPLOAD_RATE_LIMIT_WINDOW_SECONDS', 600, minimum=10, maximum=86400)
UPLOAD_RATE_LIMIT_MAX_REQUESTS = safe_int_env('UPLOAD_RATE_LIMIT_MAX_REQUESTS', 10, minimum=1, maximum=1000)
ACCOUNT_EXPORT_MAX_DOCS_PER_COLLECTION = safe_int_env('ACCOUNT_EXPORT_MAX_DOCS_PER_COLLECTION', 10000, minimum=100, maximum=50000)
ACCOUNT_DELETE_MAX_DOCS_PER_COLLECTION = safe_int_env('ACCOUNT_DELETE_MAX_DOCS_PER_COLLECTION', 10000, minimum=100, maximum=50000)
RATE_LIMIT_EVENTS = {}
RATE_LIMIT_LOCK = threading.Lock()
RATE_LIMIT_COUNTER_COLLECTION = 'rate_limit_counters'
RATE_LIMIT_FIRESTORE_ENABLED = env_flag('RATE_LIMIT_FIRESTORE_ENABLED', '1')

# --- Money ---
AD_CPM_USD = safe_float_env('AD_CPM_USD', 5.0, minimum=0.0, maximum=1000.0)
MIN_MANUAL_PAYOUT = safe_float_env('MIN_MANUAL_PAYOUT', 1.0, minimum=0.01, maximum=100000.0)
DEFAULT_EARNINGS_RATES = {
    'view': 0.001,
    'engagement': 0.01,
    'subscription': 0.7,
    'ad_impression': 0.001,
    'ad_click': 0.1,
}
DEFAULT_PAYOUT_SETTINGS = {
    'minimum_payout': 50.0,
    'payout_frequency': 'monthly',
    'automatic_payouts': True,
    'payout_day': 1,
}

# --- Subscription plans (what viewers can subscribe to) ---
SUBSCRIPTION_PLANS = {
    'basic_monthly': {
        'name': 'Basic',
        'description': 'Ad-free playback on all public videos',
        'features': ['No ads', 'HD playback'],
        'price_cents': 499,
        'currency': 'usd',
        'interval': 'month',
        'stripe_price_id': (os.getenv('STRIPE_PRICE_BASIC_MONTHLY', '') or '').strip(),
    },
    'premium_monthly': {
        'name': 'Premium',
        'description': 'Ad-free playback plus subscriber-only videos',
        'features': ['No ads', 'HD playback', 'Subscriber-only videos', 'Offline downloads'],
        'price_cents': 999,
        'currency': 'usd',
        'interval': 'month',
        'stripe_price_id': (os.getenv('STRIPE_PRICE_PREMIUM_MONTHLY', '') or '').strip(),
    },
    'premium_yearly': {
        'name': 'Premium (yearly)',
        'description': 'Premium billed yearly (two months free)',
        'features': ['No ads', 'HD playback', 'Subscriber-only videos', 'Offline downloads'],
        'price_cents': 9990,
        'currency': 'usd',
        'interval': 'year',
        'stripe_price_id': (os.getenv('STRIPE_PRICE_PREMIUM_YEARLY', '') or '').strip(),
    },
}

AFFILIATE_PROGRAM = {
    'name': (os.getenv('AFFILIATE_PROGRAM_NAME', 'Creator Referral Program') or 'Creator Referral Program').strip(),
    'description': 'Earn a share of every subscription paid by viewers you refer.',
    'commission_rate': safe_float_env('AFFILIATE_COMMISSION_RATE', 0.2, minimum=0.0, maximum=1.0),
    'cookie_duration_days': safe_int_env('AFFILIATE_COOKIE_DURATION_DAYS', 30, minimum=1, maximum=365),
    'min_payout': safe_float_env('AFFILIATE_MIN_PAYOUT', 50.0, minimum=0.0, maximum=100000.0),
    'signup_bonus': safe_float_env('AFFILIATE_SIGNUP_BONUS', 1.0, minimum=0.0, maximum=1000.0),
    'active': env_flag('AFFILIATE_PROGRAM_ACTIVE', '1'),
}
AFFILIATE_COOKIE_NAME = 'affiliate_code'

ANALYTICS_NAME_RE = re.compile(r'^[a-z0-9_]{2,64}$')
ANALYTICS_SESSION_ID_RE = re.compile(r'^[A-Za-z0-9_-]{6,80}$')
ANALYTICS_ALLOWED_EVENTS = {
    'auth_modal_opened',
    'auth_success',
    'auth_failed',
    'video_play',
    'video_pause',
    'video_complete',
    'interaction_shown',
    'interaction_answered',
    'share_opened',
    'embed_loaded',
    'ad_skipped',
    'checkout_started',
    'subscription_cancelled',
    'affiliate_link_copied',
    'subscription_paid_backend',
    'payout_completed_backend',
    'payout_failed_backend',
    'earnings_finalized_backend',
}
RATE_LIMIT_LOG_NAMES = {'checkout', 'analytics', 'ad_click', 'share_password', 'interaction', 'ai_generation', 'upload'}

SENTRY_BACKEND_DSN = os.getenv('SENTRY_DSN_BACKEND', '').strip()
SENTRY_ENVIRONMENT = (os.getenv('SENTRY_ENVIRONMENT', os.getenv('FLASK_ENV', 'production')) or 'production').strip()
SENTRY_RELEASE = (os.getenv('SENTRY_RELEASE', 'interactive-video-platform') or 'interactive-video-platform').strip()
SENTRY_TRACES_SAMPLE_RATE = safe_float_env('SENTRY_TRACES_SAMPLE_RATE', 0.0)
DEV_ENV_NAMES = {'development', 'dev', 'local', 'test'}
APP_BOOT_TS = time.time()

if SENTRY_BACKEND_DSN:
    sentry_sdk.init(
        dsn=SENTRY_BACKEND_DSN,
        integrations=[FlaskIntegration()],
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=False,
        environment=SENTRY_ENVIRONMENT,
        release=SENTRY_RELEASE,
    )


def parse_cors_allowed_origins():
    raw = (os.getenv('CORS_ALLOWED_ORIGINS', '') or '').strip()
    if raw:
        origins = [part.strip().lower() for part in raw.split(',') if part.strip()]
        return set(origins)
    return {
        'http://127.0.0.1:3000',
        'http://localhost:3000',
        'http://127.0.0.1:5000',
        'http://localhost:5000',
    }


CORS_ALLOWED_ORIGINS = parse_cors_allowed_origins()


def is_dev_environment():
    env_value = str(SENTRY_ENVIRONMENT or '').strip().lower()
    flask_debug = env_flag('FLASK_DEBUG', '0')
    return env_value in DEV_ENV_NAMES or flask_debug


def infer_stripe_key_mode(key_value):
    key = str(key_value or '').strip()
    if not key:
        return 'missing'
    if key.startswith('sk_live_') or key.startswith('pk_live_'):
        return 'live'
    if key.startswith('sk_test_') or key.startswith('pk_test_'):
        return 'test'
    return 'unknown'


def build_admin_runtime_checks():
    secret_key_mode = infer_stripe_key_mode(stripe.api_key)
    publishable_key_mode = infer_stripe_key_mode(STRIPE_PUBLISHABLE_KEY)
    stripe_keys_match = (
        secret_key_mode in {'live', 'test'}
        and publishable_key_mode in {'live', 'test'}
        and secret_key_mode == publishable_key_mode
    )
    return {
        'firebase_ready': bool(db),
        'gemini_ready': bool(client),
        's3_ready': bool(AWS_S3_BUCKET),
        'smtp_ready': bool(SMTP_HOST),
        'paypal_ready': bool(PAYPAL_CLIENT_ID and PAYPAL_CLIENT_SECRET),
        'coinbase_ready': bool(COINBASE_COMMERCE_API_KEY),
        'stripe_secret_mode': secret_key_mode,
        'stripe_publishable_mode': publishable_key_mode,
        'stripe_keys_match': stripe_keys_match,
        'stripe_webhook_configured': bool(STRIPE_WEBHOOK_SECRET),
        'subscription_prices_configured': all(plan['stripe_price_id'] for plan in SUBSCRIPTION_PLANS.values()),
        'app_uptime_seconds': max(0, round(time.time() - APP_BOOT_TS, 1)),
    }


def apply_cors_headers(response):
    origin = str(request.headers.get('Origin', '') or '').strip()
    if not origin:
        return response
    if not request.path.startswith('/api/'):
        return response
    if origin.lower() not in CORS_ALLOWED_ORIGINS:
        return response
    response.headers['Access-Control-Allow-Origin'] = origin
    response.headers['Vary'] = 'Origin'
    response.headers['Access-Control-Allow-Headers'] = 'Authorization, Content-Type, X-Share-Password'
    response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, PATCH, DELETE, OPTIONS'
    response.headers['Access-Control-Allow-Credentials'] = 'true'
    return response


def register_request_hooks(app):
    @app.before_request
    def handle_api_options_preflight():
        if request.method == 'OPTIONS' and request.path.startswith('/api/'):
            return apply_cors_headers(app.make_default_options_response())

    @app.before_request
    def attach_sentry_route_context():
        request_id = str(request.headers.get('X-Request-ID', '') or '').strip()[:120] or uuid.uuid4().hex
        g.request_id = request_id
        if not SENTRY_BACKEND_DSN:
            return
        scope = sentry_sdk.get_current_scope()
        scope.set_tag('request.id', request_id)
        scope.set_tag('route.path', request.path)
        scope.set_tag('route.method', request.method)
        scope.set_tag('route.endpoint', request.endpoint or '')
        scope.set_tag('route.auth_header_present', 'true' if request.headers.get('Authorization') else 'false')

    @app.after_request
    def attach_request_id(response):
        request_id = str(getattr(g, 'request_id', '') or '').strip()
        if request_id:
            response.headers['X-Request-ID'] = request_id
        return apply_cors_headers(response)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_request_entity_too_large(_error):
        return jsonify({'error': 'Request body too large. Upload video files directly to storage with the presigned URL.'}), 413


# --- Auth & users ---
def verify_firebase_token(request):
    return auth_service.verify_firebase_token(request, auth_module=auth, logger=logger)


def is_admin_user(decoded_token):
    if not decoded_token:
        return False
    uid = decoded_token.get('uid', '')
    email = decoded_token.get('email', '').lower()
    return uid in ADMIN_UIDS or email in ADMIN_EMAILS


def build_default_user_data(uid, email):
    """Return the canonical default user document structure."""
    return {
        'uid': uid,
        'email': email,
        'display_name': (email or '').split('@')[0],
        'role': 'viewer',
        'stripe_customer_id': '',
        'created_at': time.time(),
    }


def get_or_create_user(uid, email):
    """Get a user from Firestore, creating the profile on first sight.

    Returns (user_data, created).
    """
    user_doc = users_repo.get_doc(db, uid)
    if user_doc.exists:
        user_data = user_doc.to_dict() or {}
        if user_data.get('email') != email and email:
            users_repo.update_doc(db, uid, {'email': email})
            user_data['email'] = email
        return user_data, False
    user_data = build_default_user_data(uid, email)
    users_repo.set_doc(db, uid, user_data)
    log_event(logging.INFO, 'user_created', uid=uid)
    return user_data, True


# --- Rate limiting ---
def check_rate_limit(key, limit, window_seconds):
    return rate_limit_service.check_rate_limit(
        key,
        limit,
        window_seconds,
        firestore_enabled=RATE_LIMIT_FIRESTORE_ENABLED,
        db=db,
        firestore_module=firestore,
        counter_collection=RATE_LIMIT_COUNTER_COLLECTION,
        in_memory_events=RATE_LIMIT_EVENTS,
        in_memory_lock=RATE_LIMIT_LOCK,
        time_module=time,
    )


def build_rate_limited_response(message, retry_after):
    response = jsonify({
        'error': message,
        'retry_after_seconds': int(max(1, retry_after)),
    })
    response.status_code = 429
    response.headers['Retry-After'] = str(int(max(1, retry_after)))
    return response


def normalize_rate_limit_key_part(value, fallback='anon', max_len=120):
    raw = str(value or '').strip().lower()
    if not raw:
        return fallback
    safe = re.sub(r'[^a-z0-9_.:@-]+', '_', raw)
    return safe[:max_len] if safe else fallback


def get_client_ip(request):
    forwarded = str(request.headers.get('X-Forwarded-For', '') or '').split(',')[0].strip()
    return forwarded or request.remote_addr or 'unknown'


# --- Analytics ---
def sanitize_analytics_event_name(raw_name):
    return analytics_service.sanitize_event_name(raw_name, name_re=ANALYTICS_NAME_RE, allowed_events=ANALYTICS_ALLOWED_EVENTS)


def sanitize_analytics_session_id(raw_session_id):
    return analytics_service.sanitize_session_id(raw_session_id, session_id_re=ANALYTICS_SESSION_ID_RE)


def sanitize_analytics_properties(raw_props):
    return analytics_service.sanitize_properties(raw_props, name_re=ANALYTICS_NAME_RE)


def log_analytics_event(event_name, source='frontend', uid='', email='', session_id='', properties=None, created_at=None):
    return analytics_service.log_analytics_event(
        event_name,
        source=source,
        uid=uid,
        email=email,
        session_id=session_id,
        properties=properties,
        created_at=created_at,
        db=db,
        name_re=ANALYTICS_NAME_RE,
        session_id_re=ANALYTICS_SESSION_ID_RE,
        allowed_events=ANALYTICS_ALLOWED_EVENTS,
        logger=logger,
        time_module=time,
    )


def log_rate_limit_hit(limit_name, retry_after=0):
    return analytics_service.log_rate_limit_hit(
        limit_name,
        retry_after,
        allowed_names=RATE_LIMIT_LOG_NAMES,
        db=db,
        logger=logger,
        time_module=time,
    )


# --- Admin window helpers ---
def get_admin_window(window_key):
    windows = {
        '24h': 24 * 60 * 60,
        '7d': 7 * 24 * 60 * 60,
        '30d': 30 * 24 * 60 * 60,
    }
    safe_key = window_key if window_key in windows else '7d'
    return safe_key, windows[safe_key]


def get_timestamp(value):
    return value if isinstance(value, (int, float)) else 0


def safe_query_docs_in_window(collection_name, timestamp_field, window_start, window_end=None):
    if db is None:
        return []
    try:
        query = db.collection(collection_name).where(timestamp_field, '>=', window_start)
        if window_end is not None:
            query = query.where(timestamp_field, '<=', window_end)
        return list(query.stream())
    except Exception as e:
        # Missing composite indexes in fresh projects; scan instead.
        logger.info(f"Window query fallback for {collection_name}: {e}")
        docs = []
        for doc in db.collection(collection_name).stream():
            ts = get_timestamp((doc.to_dict() or {}).get(timestamp_field))
            if ts < window_start:
                continue
            if window_end is not None and ts > window_end:
                continue
            docs.append(doc)
        return docs


def safe_count_collection(collection_name):
    if db is None:
        return 0
    try:
        agg = db.collection(collection_name).count().get()
        if agg:
            return int(agg[0][0].value)
    except Exception as e:
        logger.info(f"Count aggregation unavailable for {collection_name}: {e}")
    return len(list(db.collection(collection_name).stream()))


# --- Account data helpers ---
def list_docs_by_uid(collection_name, uid, max_docs, uid_field='uid'):
    docs = users_repo.list_docs_by_owner(db, collection_name, uid_field, uid, max_docs + 1)
    truncated = len(docs) > max_docs
    records = []
    for doc in docs[:max_docs]:
        data = doc.to_dict() or {}
        data['_id'] = doc.id
        records.append(data)
    return records, truncated


def delete_docs_by_uid(collection_name, uid, max_docs, uid_field='uid'):
    docs = users_repo.list_docs_by_owner(db, collection_name, uid_field, uid, max_docs + 1)
    truncated = len(docs) > max_docs
    deleted = 0
    for doc in docs[:max_docs]:
        try:
            doc.reference.delete()
            deleted += 1
        except Exception as e:
            logger.info(f"Warning: could not delete doc in {collection_name}/{doc.id}: {e}")
    return deleted, truncated


# --- Request helpers ---
def parse_pagination(request, default_limit=DEFAULT_PAGE_LIMIT):
    try:
        page = int(request.args.get('page', 1))
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(request.args.get('limit', default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    return max(1, page), min(max(1, limit), MAX_PAGE_LIMIT)


def build_pagination(total, page, limit):
    return {
        'total': total,
        'page': page,
        'limit': limit,
        'pages': int(math.ceil(total / float(limit))) if limit else 0,
    }


def paginate(items, page, limit):
    start = (page - 1) * limit
    return items[start:start + limit], build_pagination(len(items), page, limit)


def get_public_base_url(request):
    return PUBLIC_BASE_URL or request.host_url.rstrip('/')


def round_money(value):
    return round(float(value or 0.0), 2)


# --- Integrations ---
def get_s3_client():
    return boto3.client('s3', region_name=AWS_REGION, config=storage_service.SIGNATURE_CONFIG)


def send_email(to_email, subject, text_body, html_body=None):
    return email_service.send_email(
        to_email,
        subject,
        text_body,
        html_body,
        host=SMTP_HOST,
        port=SMTP_PORT,
        username=SMTP_USER,
        password=SMTP_PASSWORD,
        sender=EMAIL_FROM,
        logger=logger,
    )


def build_payout_gateway(base_url=''):
    return payout_service.PayoutGateway(
        stripe_module=stripe,
        http=requests,
        paypal_client_id=PAYPAL_CLIENT_ID,
        paypal_client_secret=PAYPAL_CLIENT_SECRET,
        paypal_api_base=PAYPAL_API_BASE,
        coinbase_api_key=COINBASE_COMMERCE_API_KEY,
        base_url=base_url or PUBLIC_BASE_URL,
        logger=logger,
    )


def notify_user(uid, title, message, notification_type, action_url='', action_text=''):
    """Store an in-app notification. Failures are logged, never raised."""
    if not uid:
        return None
    try:
        return notifications_repo.add_notification(db, notifications_api_service.build_notification(
            uid, title, message, notification_type, time.time(), action_url=action_url, action_text=action_text,
        ))
    except Exception as e:
        logger.error(f"Could not store notification for {uid}: {e}")
        return None


def notify_payout_result(uid, transaction):
    status = transaction.get('status', '')
    amount = f"{round_money(transaction.get('amount', 0)):.2f} {str(transaction.get('currency', 'usd')).upper()}"
    if status == 'completed':
        subject = 'Your payout has been sent'
        body = f"Your payout of {amount} (reference {transaction.get('reference', '')}) has been sent."
    else:
        subject = 'Your payout could not be processed'
        body = (
            f"Your payout of {amount} (reference {transaction.get('reference', '')}) failed: "
            f"{transaction.get('failure_reason', 'unknown error')}. Please check your payout account."
        )
    notify_user(uid, subject, body, 'payout', action_url='/creator/payouts', action_text='View payouts')
    user_doc = users_repo.get_doc(db, uid)
    email = (user_doc.to_dict() or {}).get('email', '') if user_doc.exists else ''
    if not email:
        return False
    return send_email(email, subject, body)


def process_payout(transaction_id, base_url=''):
    """Process a payout transaction and notify the creator. Returns the stored transaction."""
    try:
        transaction = payout_service.process_payout_request(
            db,
            transaction_id,
            gateway=build_payout_gateway(base_url),
            now_ts=time.time(),
        )
        log_analytics_event('payout_completed_backend', source='backend', uid=transaction.get('uid', ''), properties={
            'amount': transaction.get('amount', 0),
        })
    except payout_service.PayoutError as e:
        log_event(logging.WARNING, 'payout_failed', transaction_id=transaction_id, error=str(e))
        transaction = payouts_repo.get_transaction(db, transaction_id) or {}
        log_analytics_event('payout_failed_backend', source='backend', uid=transaction.get('uid', ''))
    if transaction.get('uid'):
        notify_payout_result(transaction['uid'], transaction)
    return transaction


def trigger_automatic_payout(uid):
    transaction_id = payout_service.trigger_automatic_payout(
        db,
        uid,
        default_settings=DEFAULT_PAYOUT_SETTINGS,
        firestore_module=firestore,
        now_ts=time.time(),
    )
    if not transaction_id:
        return None
    return process_payout(transaction_id)


def finalize_earnings_period(period_id):
    finalized = earnings_service.finalize_earnings_period(db, period_id, now_ts=time.time())
    if not finalized:
        return False
    period = earnings_repo.get_period(db, period_id) or {}
    uid = period.get('uid', '')
    log_analytics_event('earnings_finalized_backend', source='backend', uid=uid, properties={
        'total_amount': period.get('total_amount', 0),
    })
    settings = payouts_repo.get_settings(db, uid, DEFAULT_PAYOUT_SETTINGS)
    if settings.get('automatic_payouts'):
        try:
            trigger_automatic_payout(uid)
        except Exception as e:
            logger.error(f"Automatic payout after finalizing {period_id} failed: {e}")
    return True


def schedule_earnings_periods(dry_run=False):
    return earnings_service.schedule_earnings_periods(db, get_earnings_rates(), time.time(), dry_run=dry_run)


def run_scheduled_payouts(dry_run=False):
    return earnings_service.run_scheduled_payouts(
        db,
        time.time(),
        payout_trigger=trigger_automatic_payout,
        default_settings=DEFAULT_PAYOUT_SETTINGS,
        logger=logger,
        dry_run=dry_run,
    )


def notify_affiliate_payout(payout):
    amount = f"{round_money(payout.get('amount', 0)):.2f} USD"
    subject = 'Your affiliate payout has been processed'
    body = f"Your affiliate payout of {amount} via {payout.get('payout_method', 'paypal')} has been processed."
    notify_user(payout.get('affiliate_uid', ''), subject, body, 'affiliate',
                action_url='/affiliate/dashboard', action_text='View dashboard')
    email = str((payout.get('payout_details') or {}).get('email', '') or '').strip()
    if not email:
        user_doc = users_repo.get_doc(db, payout.get('affiliate_uid', ''))
        email = (user_doc.to_dict() or {}).get('email', '') if user_doc.exists else ''
    if not email:
        return False
    return send_email(email, subject, body)


def get_earnings_rates():
    return earnings_service.get_current_rates(db, DEFAULT_EARNINGS_RATES)


def is_premium_user(uid):
    if not uid:
        return False
    return subscription_service.is_premium(db, uid)


def generate_interaction_drafts(video, prompt, transcript, interaction_type, count, density, settings):
    return ai_service.generate_interactions(
        client,
        GEMINI_MODEL,
        types,
        video=video,
        prompt=prompt,
        transcript=transcript,
        interaction_type=interaction_type,
        count=count,
        density=density,
        settings=settings,
    )


def hash_key(value):
    return hashlib.sha256(str(value or '').encode('utf-8')).hexdigest()[:16]
