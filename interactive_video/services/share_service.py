"""Share link settings, embed codes and access gates."""

import html
import json
import re
import secrets
from datetime import datetime, timezone

from werkzeug.security import check_password_hash, generate_password_hash

MIN_EMBED_SIZE = 100
MAX_EMBED_SIZE = 3840
HEX_COLOR_RE = re.compile(r'^#[0-9a-fA-F]{6}$')

DEFAULT_SHARE_SETTINGS = {
    'allow_sharing': True,
    'allow_embedding': True,
    'embed_width': 640,
    'embed_height': 360,
    'autoplay': False,
    'show_controls': True,
    'start_time': None,
    'end_time': None,
    'show_interactions': True,
    'allow_interaction_submissions': True,
    'track_views': True,
    'allow_download': False,
    'custom_branding': None,
}
BOOLEAN_SETTINGS = {
    'allow_sharing', 'allow_embedding', 'autoplay', 'show_controls', 'show_interactions',
    'allow_interaction_submissions', 'track_views', 'allow_download',
}


def generate_share_token():
    return secrets.token_urlsafe(24)


def parse_iso_timestamp(raw_value):
    """Parse an ISO-8601 string to epoch seconds. Naive values are read as UTC."""
    text = str(raw_value or '').strip()
    if not text:
        return None
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def _clean_branding(raw, errors):
    if raw in (None, {}):
        return None
    if not isinstance(raw, dict):
        errors['custom_branding'] = 'Branding must be an object'
        return None
    branding = {
        'logo': str(raw.get('logo', '') or '').strip()[:500],
        'logo_link': str(raw.get('logo_link', '') or '').strip()[:500],
        'primary_color': str(raw.get('primary_color', '') or '').strip(),
    }
    for key in ('logo', 'logo_link'):
        if branding[key] and not branding[key].startswith(('https://', 'http://')):
            errors[f'custom_branding.{key}'] = 'Must be an http(s) URL'
    if branding['primary_color'] and not HEX_COLOR_RE.match(branding['primary_color']):
        errors['custom_branding.primary_color'] = 'Must be a hex color like #1a2b3c'
    return branding


def validate_share_settings(raw, now_ts):
    """Return (settings, password, expires_at, errors)."""
    raw = raw if isinstance(raw, dict) else {}
    errors = {}
    settings = dict(DEFAULT_SHARE_SETTINGS)

    for key in BOOLEAN_SETTINGS:
        if key in raw:
            if not isinstance(raw[key], bool):
                errors[key] = 'Must be true or false'
            else:
                settings[key] = raw[key]

    for key in ('embed_width', 'embed_height'):
        if key in raw:
            value = raw[key]
            if isinstance(value, bool) or not isinstance(value, int) or not MIN_EMBED_SIZE <= value <= MAX_EMBED_SIZE:
                errors[key] = f'Must be an integer between {MIN_EMBED_SIZE} and {MAX_EMBED_SIZE}'
            else:
                settings[key] = value

    for key in ('start_time', 'end_time'):
        value = raw.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            errors[key] = 'Must be a number of seconds >= 0'
        else:
            settings[key] = float(value)
    if settings['start_time'] is not None and settings['end_time'] is not None and settings['start_time'] >= settings['end_time']:
        errors['end_time'] = 'End time must be after start time'

    settings['custom_branding'] = _clean_branding(raw.get('custom_branding'), errors)

    expires_at = None
    if raw.get('expires_at'):
        expires_at = parse_iso_timestamp(raw.get('expires_at'))
        if expires_at is None:
            errors['expires_at'] = 'Must be an ISO-8601 date'
        elif expires_at <= now_ts:
            errors['expires_at'] = 'Must be in the future'

    password = raw.get('password')
    if password is not None and not isinstance(password, str):
        errors['password'] = 'Password must be a string'
        password = None
    password = (password or '').strip()
    if password and not 4 <= len(password) <= 128:
        errors['password'] = 'Password must be 4-128 characters'

    return settings, password, expires_at, errors


def hash_share_password(password):
    return generate_password_hash(password) if password else ''


def build_share_url(base_url, token):
    return f"{base_url}/shared/{token}"


def build_embed_codes(base_url, token, settings):
    width = int(settings.get('embed_width', 640))
    height = int(settings.get('embed_height', 360))
    src = html.escape(f"{base_url}/embed/{token}", quote=True)
    autoplay_attr = '\n  allow="autoplay"' if settings.get('autoplay') else ''
    iframe_code = (
        f'<iframe\n  width="{width}"\n  height="{height}"\n  src="{src}"\n'
        f'  frameborder="0"\n  allowfullscreen{autoplay_attr}\n></iframe>'
    )
    render_options = json.dumps({
        'container': f"interactive-video-{token}",
        'token': token,
        'width': width,
        'height': height,
        'autoplay': bool(settings.get('autoplay')),
        'showControls': bool(settings.get('show_controls')),
        'showInteractions': bool(settings.get('show_interactions')),
    }, indent=2)
    script_code = (
        f'<div id="interactive-video-{token}"></div>\n'
        f'<script src="{base_url}/embed.js"></script>\n'
        f'<script>\n  InteractiveVideo.render({render_options});\n</script>'
    )
    return {'iframe_code': iframe_code, 'script_code': script_code}


def check_share_access(link, now_ts, supplied_password=''):
    """Gate a share link. Returns (status_code, error_payload); status 200 means allowed."""
    if not link:
        return 404, {'error': 'Share link not found'}
    expires_at = link.get('expires_at')
    if isinstance(expires_at, (int, float)) and expires_at <= now_ts:
        return 403, {'error': 'Share link has expired'}
    password_hash = link.get('password_hash', '')
    if password_hash:
        if not supplied_password or not check_password_hash(password_hash, supplied_password):
            return 401, {'error': 'Password required', 'password_required': True}
    return 200, None


def serialize_link(base_url, link):
    settings = dict(DEFAULT_SHARE_SETTINGS)
    settings.update(link.get('settings') or {})
    token = link.get('token') or link.get('id', '')
    return {
        'share_token': token,
        'share_url': build_share_url(base_url, token),
        'embed_code': build_embed_codes(base_url, token, settings),
        'settings': settings,
        'password_protected': bool(link.get('password_hash')),
        'expires_at': link.get('expires_at'),
        'views': int(link.get('views', 0) or 0),
        'created_at': link.get('created_at', 0),
    }
